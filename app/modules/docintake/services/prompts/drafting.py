from __future__ import annotations

import json
from typing import Any, Mapping

from app.modules.docintake.services.documents.common import has_text


def build_clause_prompt(document_name: str, field: str, value: Any, base_clause: str, answers: Mapping[str, Any]) -> str:
    """
    Prompt for an LLM-drafted clause when the deterministic one is too short to stand alone.
    Only answered, non-skipped facts are passed as context.
    """
    context = {
        k: v for k, v in answers.items()
        if isinstance(v, bool) or has_text(v)
    }
    return (
        f"Draft a professional legal clause for a {document_name}.\n\n"
        f"Field: {field}\n"
        f"Raw value: {value}\n"
        f"Deterministic draft: {base_clause}\n"
        f"Context: {json.dumps(context, ensure_ascii=False)}\n\n"
        "RULES:\n"
        "1. Use formal legal language\n"
        "2. Be concise (1-2 sentences max)\n"
        "3. Do NOT add any information not provided\n"
        "4. Do NOT give legal advice\n"
        "5. Return ONLY the clause text, nothing else\n"
        "6. Do not use placeholders like [Address] or [Name]"
    )
