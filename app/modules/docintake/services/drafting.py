from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from app.modules.docintake.services.documents.base import DocumentSpec
from app.modules.docintake.services.documents.common import contains_placeholder
from app.modules.docintake.services.llm import CompletionClient, CompletionError
from app.modules.docintake.services.prompts import build_clause_prompt

logger = logging.getLogger(__name__)

_WRAPPING_QUOTES = re.compile(r'^["\'“‘]+|["\'”’]+$')
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class DraftedClause:
    text: str
    # deterministic clause the text was derived from; equal to `text` unless LLM-drafted
    basis: str

    @property
    def llm_drafted(self) -> bool:
        return self.text != self.basis


def clean_llm_clause(text: str) -> str:
    """Trim wrapping quotes and cap the reply at two sentences."""
    text = _WRAPPING_QUOTES.sub("", (text or "").strip()).strip()
    sentences = _SENTENCE_END.split(text)
    return " ".join(sentences[:2]).strip()


class ClauseDrafter:
    """
    Deterministic clause first; the completion backend is consulted only when the
    deterministic sentence exists but is shorter than `min_length`. Suppressed
    (empty) clauses are never sent to the model.
    """

    def __init__(self, completion: Optional[CompletionClient], min_length: int = 20):
        self.completion = completion
        self.min_length = min_length

    async def draft(
        self,
        session_id: str,
        spec: DocumentSpec,
        field: str,
        value: Any,
        answers: Mapping[str, Any],
    ) -> DraftedClause:
        base = spec.generate(field, value, answers)
        if not base or len(base) >= self.min_length or self.completion is None:
            return DraftedClause(base, base)

        prompt = build_clause_prompt(spec.name, field, value, base, answers)
        try:
            reply = await self.completion.call(session_id, prompt)
        except CompletionError as e:
            logger.warning(f"[draft] backend unavailable for {field}; keeping deterministic clause: {e}")
            return DraftedClause(base, base)

        drafted = clean_llm_clause(reply)
        if not drafted or contains_placeholder(drafted):
            logger.info(f"[draft] rejected LLM clause for {field}")
            return DraftedClause(base, base)
        return DraftedClause(drafted, base)
