"""
Shared text helpers for clause generation, validation and guardrails.

Kept regex/heuristic only: every function here is pure and cheap.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Tuple

SKIP_PHRASES = frozenset({
    "skip", "none", "no", "n/a", "na", "not applicable", "idk", "dont know", "don't know",
    "null", "nothing", "nope", "no wish", "no wishes", "no specific wishes", "no particular wishes",
})

NO_SPOUSE_PHRASES = (
    "no spouse", "dont have spouse", "don't have spouse", "do not have a spouse", "no husband",
    "no wife", "none", "n/a", "na", "null", "skip", "not applicable",
)

NO_CHILDREN_PHRASES = (
    "no children", "no kids", "dont have children", "don't have children", "do not have children",
    "dont have kids", "don't have kids", "none", "n/a", "not applicable",
)

# Separators recovering (item, recipient) from one bequest line, tried in order
BEQUEST_SEPARATORS = (" - ", " to ", " -> ", ":", " for ")

_PLACEHOLDER = re.compile(r"\[\s*[A-Za-z_][^\[\]\n]{0,60}\]")
_LIST_SPLIT = re.compile(r"[\n;]+")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_skip_response(value: Any) -> bool:
    """True when a free-text answer is a recognized negative/empty response."""
    if not isinstance(value, str):
        return False
    return value.lower().strip().rstrip(".!") in SKIP_PHRASES


def has_text(value: Any) -> bool:
    """Present, non-empty and not a skip phrase."""
    return isinstance(value, str) and not is_blank(value) and not is_skip_response(value)


def capitalize_name(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in str(name).strip().split())


def capitalize_first(text: str) -> str:
    text = str(text).strip()
    return text[:1].upper() + text[1:]


def same_person(a: Any, b: Any) -> bool:
    """Case-insensitive, trimmed equality of two names; blanks never match."""
    left = str(a or "").lower().strip()
    right = str(b or "").lower().strip()
    return bool(left) and left == right


def contains_placeholder(text: str) -> bool:
    return bool(_PLACEHOLDER.search(text or ""))


def split_lines(text: str) -> List[str]:
    """Split list-type free text on newlines and semicolons, dropping blanks."""
    return [part.strip() for part in _LIST_SPLIT.split(text or "") if part.strip()]


def parse_bequest(line: str) -> Optional[Tuple[str, str]]:
    lowered = line.lower()
    for sep in BEQUEST_SEPARATORS:
        if sep in lowered:
            parts = re.split(re.escape(sep), line, maxsplit=1, flags=re.I)
            item, recipient = parts[0].strip(), parts[1].strip()
            if item and recipient:
                return item, recipient
    return None


def phrase_pattern(phrases: Iterable[str]) -> re.Pattern:
    """Case-insensitive alternation bounded at word edges ("na" does not match "Diana")."""
    alternation = "|".join(re.escape(p) for p in sorted(phrases, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.I)
