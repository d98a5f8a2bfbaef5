from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple, Union

from app.modules.docintake.services.documents.common import contains_placeholder

AnswerKind = Literal["text", "select", "date", "boolean"]
RuleKind = Literal["contradiction", "required_with"]

AnswerValue = Union[str, bool]
AnswerMap = Dict[str, AnswerValue]
ClauseMap = Dict[str, str]

Predicate = Callable[[Mapping[str, Any]], bool]
ClauseFn = Callable[[str, Any, Mapping[str, Any]], str]


@dataclass(frozen=True)
class QuestionSpec:
    id: str
    prompt: str
    kind: AnswerKind
    required: bool
    options: Optional[Tuple[str, ...]] = None
    # Question is only asked (and only required) while this holds against the answers so far
    visible_when: Optional[Predicate] = None
    legal_label: Optional[str] = None

    def is_applicable(self, answers: Mapping[str, Any]) -> bool:
        return self.visible_when is None or bool(self.visible_when(answers))

    @property
    def is_name_field(self) -> bool:
        return self.kind == "text" and "name" in self.id


@dataclass(frozen=True)
class ValidationRule:
    """One cross-field rule: data plus a single pure predicate.

    `evaluate(answers)` returns True when the rule is violated. The last entry of
    `fields` is the field the repair loop asks the user to correct.
    """

    kind: RuleKind
    fields: Tuple[str, ...]
    evaluate: Predicate
    message: str

    @property
    def target_field(self) -> str:
        return self.fields[-1]

    def violated(self, answers: Mapping[str, Any]) -> bool:
        return bool(self.evaluate(answers))


@dataclass(frozen=True)
class ConsistencyReport:
    """Output of a document-type-specific consistency hook (wills: distribution model)."""

    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    distribution_model: Optional[str] = None
    # field the repair loop asks about for each error
    repair_field: Optional[str] = None


@dataclass(frozen=True)
class DocumentSpec:
    doc_type: str
    name: str
    description: str
    questions: Tuple[QuestionSpec, ...]
    rules: Tuple[ValidationRule, ...]
    generator: ClauseFn
    # Ordered (section title, field ids) used when assembling the final document
    sections: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    preamble_fields: Tuple[str, ...] = ()
    signatory_label: str = "Signatory"
    consistency: Optional[Callable[[Mapping[str, Any]], ConsistencyReport]] = field(default=None, compare=False)

    def question(self, question_id: str) -> Optional[QuestionSpec]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def index_of(self, question_id: str) -> int:
        for i, q in enumerate(self.questions):
            if q.id == question_id:
                return i
        raise KeyError(question_id)

    def generate(self, field_id: str, value: Any, answers: Mapping[str, Any]) -> str:
        """Deterministic clause for one field; "" means the clause is omitted."""
        clause = (self.generator(field_id, value, answers) or "").strip()
        if contains_placeholder(clause):
            return ""
        return clause
