"""
Pre-extraction guardrails on raw user utterances.

Regex/phrase heuristics only, no LLM calls. Exactly one verdict per utterance,
with precedence injection > advice_request > contradiction > vague.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple

from app.modules.docintake.services.documents.common import (
    NO_CHILDREN_PHRASES,
    NO_SPOUSE_PHRASES,
    phrase_pattern,
)

logger = logging.getLogger(__name__)

VerdictKind = Literal["clear", "injection", "advice_request", "contradiction", "vague"]

INJECTION_PHRASES = (
    "ignore previous",
    "ignore instructions",
    "disregard",
    "system prompt",
    "you are now",
    "act as",
    "pretend",
    "jailbreak",
    "override",
    "forget everything",
    "new instructions",
    "your new role",
)

ADVICE_PHRASES = (
    "should i",
    "what should",
    "do you recommend",
    "is it legal",
    "can i legally",
    "what is the law",
    "legal requirement",
    "advise me",
    "give me advice",
    "best option",
)

VALID_SHORT_RESPONSES = frozenset({"no", "yes", "none", "n/a", "na", "skip", "nope", "ok", "okay"})

UNCERTAINTY_PHRASES = (
    "i dont know",
    "i don't know",
    "not sure",
    "maybe",
    "i guess",
    "idk",
    "unclear",
)

INJECTION_MESSAGE = "I cannot process that request. Please provide a direct answer to the question."
ADVICE_MESSAGE = (
    "I cannot provide legal advice. I can only help you create documents based on your decisions. "
    "Please consult a qualified attorney for legal guidance."
)
TOO_BRIEF_MESSAGE = "Your response seems too brief. Could you please provide more details?"
UNCERTAIN_MESSAGE = (
    "I understand you're uncertain. Could you provide your best answer, "
    "or would you like me to explain what this information is used for?"
)

_INJECTION = phrase_pattern(INJECTION_PHRASES)
_ADVICE = phrase_pattern(ADVICE_PHRASES)
_UNCERTAIN = phrase_pattern(UNCERTAINTY_PHRASES)
_NO_SPOUSE = phrase_pattern(NO_SPOUSE_PHRASES)
_NO_CHILDREN = phrase_pattern(NO_CHILDREN_PHRASES)


@dataclass(frozen=True)
class GuardrailVerdict:
    kind: VerdictKind
    message: Optional[str] = None

    @property
    def is_clear(self) -> bool:
        return self.kind == "clear"


CLEAR = GuardrailVerdict("clear")

# question id -> (earlier field it depends on, precondition on prior answers, phrase pattern, clarification)
_CONTRADICTION_CHECKS: Dict[str, Tuple[str, Callable[[Mapping[str, Any]], bool], Any, str]] = {
    "spouse_name": (
        "marital_status",
        lambda prior: prior.get("marital_status") == "Married",
        _NO_SPOUSE,
        'CONTRADICTION DETECTED: You indicated you are "Married" but now say you don\'t have a spouse. '
        "Please clarify: Are you currently legally married? If yes, please provide your spouse's name. "
        "If not, reply with your correct marital status (for example Single or Divorced).",
    ),
    "children_details": (
        "has_children",
        lambda prior: prior.get("has_children") is True,
        _NO_CHILDREN,
        "CONTRADICTION DETECTED: You indicated you have children but now say you don't. "
        'Please list your children (Name, Age on each line), or reply "no" if you do not have children.',
    ),
}


def contradiction_source(question_id: str) -> Optional[str]:
    """Earlier field a question's contradiction check depends on, if any."""
    check = _CONTRADICTION_CHECKS.get(question_id)
    return check[0] if check else None


def _contradiction(utterance: str, question_id: Optional[str], prior: Mapping[str, Any]) -> Optional[str]:
    check = _CONTRADICTION_CHECKS.get(question_id or "")
    if not check:
        return None
    _, precondition, pattern, message = check
    if precondition(prior) and pattern.search(utterance):
        return message
    return None


def _vague(lowered: str, question_kind: str) -> Optional[str]:
    if lowered in VALID_SHORT_RESPONSES:
        return None
    if not lowered or (question_kind == "text" and len(lowered) < 3):
        return TOO_BRIEF_MESSAGE
    if _UNCERTAIN.search(lowered):
        return UNCERTAIN_MESSAGE
    return None


def classify(
    utterance: str,
    question_kind: str,
    question_id: Optional[str] = None,
    prior_answers: Optional[Mapping[str, Any]] = None,
) -> GuardrailVerdict:
    text = (utterance or "").strip()
    lowered = text.lower()

    if _INJECTION.search(lowered):
        logger.info("[guardrail] injection attempt refused")
        return GuardrailVerdict("injection", INJECTION_MESSAGE)

    if _ADVICE.search(lowered):
        logger.info("[guardrail] legal advice request refused")
        return GuardrailVerdict("advice_request", ADVICE_MESSAGE)

    contradiction = _contradiction(lowered, question_id, prior_answers or {})
    if contradiction:
        logger.info(f"[guardrail] contradiction on {question_id}")
        return GuardrailVerdict("contradiction", contradiction)

    vague = _vague(lowered, question_kind)
    if vague:
        return GuardrailVerdict("vague", vague)

    return CLEAR
