"""
Consistency & validation engine.

`validate` is read-only over the answer map and deterministic: equal inputs give
equal ValidationResult values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional, Tuple

from app.modules.docintake.services.documents.base import DocumentSpec, QuestionSpec
from app.modules.docintake.services.documents.common import is_blank, is_skip_response

logger = logging.getLogger(__name__)

IssueKind = Literal["missing", "required_with", "contradiction", "distribution"]


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    message: str
    field: Optional[str] = None
    # every field the underlying rule reads; a correction may land on any of them
    fields: Tuple[str, ...] = ()

    @property
    def blocking_contradiction(self) -> bool:
        return self.kind == "contradiction"


@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[str, ...] = ()
    contradictions: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    distribution_model: Optional[str] = None
    # errors first, then contradictions; the order the repair loop presents them
    issues: Tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors and not self.contradictions

    def messages(self) -> List[str]:
        return [*self.errors, *self.contradictions]


def is_unanswered(question: QuestionSpec, value: Any) -> bool:
    if is_blank(value):
        return True
    # booleans and select options are typed; any free-form string answer can be a skip
    return question.kind not in ("boolean", "select") and is_skip_response(value)


def _excused_by_rule(spec: DocumentSpec, field: str, answers: Mapping[str, Any]) -> bool:
    """A required-with rule whose dependent field this is, and which is not currently
    violated, makes the field conditional. The rule's trigger field is never excused."""
    return any(
        rule.kind == "required_with" and field == rule.target_field and not rule.violated(answers)
        for rule in spec.rules
    )


def validate(spec: DocumentSpec, answers: Mapping[str, Any]) -> ValidationResult:
    errors: List[ValidationIssue] = []
    contradictions: List[ValidationIssue] = []
    warnings: List[str] = []

    # 1. required fields (only questions that would actually be asked)
    for q in spec.questions:
        if not q.required or not q.is_applicable(answers):
            continue
        if is_unanswered(q, answers.get(q.id)) and not _excused_by_rule(spec, q.id, answers):
            errors.append(ValidationIssue("missing", f"Missing required field: {q.prompt}", q.id))

    # 2. cross-field rules, messages verbatim
    for rule in spec.rules:
        if not rule.violated(answers):
            continue
        if rule.kind == "contradiction":
            contradictions.append(ValidationIssue("contradiction", rule.message, rule.target_field, rule.fields))
        else:
            errors.append(ValidationIssue("required_with", rule.message, rule.target_field, rule.fields))

    # 3. document-specific consistency (wills: distribution model)
    distribution_model = None
    if spec.consistency is not None:
        report = spec.consistency(answers)
        for message in report.errors:
            errors.append(ValidationIssue("distribution", message, report.repair_field))
        warnings.extend(report.warnings)
        distribution_model = report.distribution_model

    result = ValidationResult(
        errors=tuple(i.message for i in errors),
        contradictions=tuple(i.message for i in contradictions),
        warnings=tuple(warnings),
        distribution_model=distribution_model,
        issues=tuple(errors + contradictions),
    )
    logger.debug(
        f"[validate] {spec.doc_type}: {len(result.errors)} errors, "
        f"{len(result.contradictions)} contradictions, model={distribution_model}"
    )
    return result
