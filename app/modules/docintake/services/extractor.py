"""
Answer extraction: raw utterance -> typed value for the current question.

Guardrails run first. Deterministic fast paths handle booleans, select options,
dates, skip phrases and name fields; anything else goes through one constrained
completion call. Backend trouble never fails the interview: free text falls back
to the raw utterance, typed questions ask again.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from app.modules.docintake.services.documents.base import AnswerValue, QuestionSpec
from app.modules.docintake.services.documents.common import capitalize_name, is_skip_response
from app.modules.docintake.services.guardrails import classify
from app.modules.docintake.services.llm import CompletionClient, CompletionError, extract_json_object
from app.modules.docintake.services.prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

AFFIRMATIVE = frozenset({"yes", "y", "yeah", "yep", "true", "correct", "affirmative"})
NEGATIVE = frozenset({"no", "n", "nope", "false", "incorrect", "negative", "skip"})

_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class ExtractionResult:
    value: Optional[AnswerValue] = None
    needs_clarification: bool = False
    clarification: Optional[str] = None
    guardrail: Optional[str] = None

    @classmethod
    def ok(cls, value: AnswerValue) -> "ExtractionResult":
        return cls(value=value)

    @classmethod
    def ask(cls, clarification: str, guardrail: Optional[str] = None) -> "ExtractionResult":
        return cls(needs_clarification=True, clarification=clarification, guardrail=guardrail)


def match_boolean(utterance: str) -> Optional[bool]:
    token = utterance.strip().lower().rstrip(".!")
    if token in AFFIRMATIVE:
        return True
    if token in NEGATIVE:
        return False
    return None


def match_option(utterance: str, options) -> Optional[str]:
    """Exact match, then option containing the utterance, then utterance containing the option."""
    text = utterance.strip().lower()
    if not text or not options:
        return None
    for option in options:
        if option.lower() == text:
            return option
    for option in options:
        if text in option.lower():
            return option
    for option in options:
        if option.lower() in text:
            return option
    return None


def _retry_message(question: QuestionSpec) -> str:
    if question.kind == "boolean":
        return "Please answer yes or no."
    if question.options:
        return f"Please choose one of: {', '.join(question.options)}."
    return "Could you please rephrase your answer?"


class AnswerExtractor:
    def __init__(self, completion: Optional[CompletionClient]):
        self.completion = completion

    async def extract(
        self,
        session_id: str,
        utterance: str,
        question: QuestionSpec,
        prior_answers: Optional[Mapping[str, Any]] = None,
    ) -> ExtractionResult:
        verdict = classify(utterance, question.kind, question.id, prior_answers)
        if not verdict.is_clear:
            return ExtractionResult.ask(verdict.message or _retry_message(question), guardrail=verdict.kind)

        text = utterance.strip()
        fast = self._fast_path(text, question)
        if fast is not None:
            return fast
        return await self._extract_with_llm(session_id, text, question)

    def _fast_path(self, text: str, question: QuestionSpec) -> Optional[ExtractionResult]:
        if question.kind == "boolean":
            matched = match_boolean(text)
            return ExtractionResult.ok(matched) if matched is not None else None

        if question.kind == "select":
            option = match_option(text, question.options)
            return ExtractionResult.ok(option) if option else None

        if question.kind == "date":
            found = _DATE.search(text)
            # Free-form dates stay opaque; downstream only embeds them verbatim
            return ExtractionResult.ok(found.group(0) if found else text)

        if not question.required and is_skip_response(text):
            return ExtractionResult.ok(text)

        if question.is_name_field:
            return ExtractionResult.ok(capitalize_name(text))

        return None

    async def _extract_with_llm(self, session_id: str, text: str, question: QuestionSpec) -> ExtractionResult:
        typed = question.kind in ("boolean", "select")
        if self.completion is None:
            return ExtractionResult.ask(_retry_message(question)) if typed else ExtractionResult.ok(text)

        try:
            reply = await self.completion.call(session_id, build_extraction_prompt(question, text))
        except CompletionError as e:
            logger.warning(f"[extract] backend unavailable for {question.id}, degrading: {e}")
            return ExtractionResult.ask(_retry_message(question)) if typed else ExtractionResult.ok(text)

        parsed = extract_json_object(reply)
        if parsed is None:
            logger.info(f"[extract] unparseable reply for {question.id}; using raw answer")
            return ExtractionResult.ask(_retry_message(question)) if typed else ExtractionResult.ok(text)

        value = parsed.get("value")
        if parsed.get("needsClarification") and value is None:
            clarification = str(parsed.get("clarification") or "").strip()
            return ExtractionResult.ask(clarification or _retry_message(question))

        coerced = self._coerce(value, question)
        if coerced is None:
            return ExtractionResult.ask(_retry_message(question)) if typed else ExtractionResult.ok(text)
        return ExtractionResult.ok(coerced)

    @staticmethod
    def _coerce(value: Any, question: QuestionSpec) -> Optional[AnswerValue]:
        """Normalize a model-supplied value to the question's kind; None when it does not fit."""
        if value is None:
            return None
        if question.kind == "boolean":
            if isinstance(value, bool):
                return value
            return match_boolean(str(value))
        if question.kind == "select":
            return match_option(str(value), question.options)
        if isinstance(value, (dict, list)):
            return None
        text = str(value).strip()
        if not text:
            return None
        return capitalize_name(text) if question.is_name_field else text
