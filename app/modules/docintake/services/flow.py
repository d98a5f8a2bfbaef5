from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from app.modules.docintake.services.documents.base import DocumentSpec, QuestionSpec


def next_applicable_index(
    questions: Sequence[QuestionSpec],
    from_index: int,
    answers: Mapping[str, Any],
) -> Optional[int]:
    """Index of the first question at or after `from_index` whose visibility predicate holds."""
    for i in range(max(0, from_index), len(questions)):
        if questions[i].is_applicable(answers):
            return i
    return None


def next_applicable(
    questions: Sequence[QuestionSpec],
    from_index: int,
    answers: Mapping[str, Any],
) -> Optional[QuestionSpec]:
    idx = next_applicable_index(questions, from_index, answers)
    return questions[idx] if idx is not None else None


class FlowController:
    """Cursor over a DocumentSpec's question list.

    `current` and `advance` share `next_applicable_index`, so a question skipped on the
    way forward is never asked later out of order.
    """

    def __init__(self, spec: DocumentSpec, cursor: int = 0):
        self.spec = spec
        self.cursor = cursor

    def current(self, answers: Mapping[str, Any]) -> Optional[QuestionSpec]:
        idx = next_applicable_index(self.spec.questions, self.cursor, answers)
        if idx is None:
            self.cursor = len(self.spec.questions)
            return None
        self.cursor = idx
        return self.spec.questions[idx]

    def advance(self, answers: Mapping[str, Any]) -> Optional[QuestionSpec]:
        """Move past the current question and return the next applicable one (None when exhausted)."""
        current = self.current(answers)
        if current is None:
            return None
        self.cursor += 1
        return self.current(answers)

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.spec.questions)

    def progress(self) -> float:
        total = len(self.spec.questions)
        return round(min(self.cursor, total) / total, 4) if total else 1.0
