from __future__ import annotations

from app.modules.docintake.services.documents.base import QuestionSpec


def build_extraction_prompt(question: QuestionSpec, utterance: str) -> str:
    """
    Strict single-field extraction prompt. The reply must be one JSON object:
    {"value": <extracted or null>, "needsClarification": <bool>, "clarification": "<question if needed>"}
    """
    options = f"Valid options: {', '.join(question.options)}\n" if question.options else ""
    return (
        "You are a data extraction system for legal documents. Extract ONLY the requested information.\n\n"
        f'Question: "{question.prompt}"\n'
        f"Type: {question.kind}\n"
        f"{options}\n"
        f'User\'s response: "{utterance.strip()}"\n\n'
        "RULES:\n"
        "1. Extract ONLY the relevant data, no extra words\n"
        '2. For names: Return properly capitalized name (e.g., "John Smith")\n'
        "3. For dates: Return in YYYY-MM-DD format\n"
        "4. For boolean: Return true or false only\n"
        "5. For select: Return exactly one of the valid options\n"
        "6. If vague/unclear, return null and provide a clarification question\n"
        "7. Never add information not provided by the user\n\n"
        'Return JSON: {"value": <extracted or null>, "needsClarification": <bool>, '
        '"clarification": "<question if needed>"}'
    )
