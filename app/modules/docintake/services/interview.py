"""
Interview orchestration: one turn in, one reply out.

Forward flow asks applicable questions in order. When the flow is exhausted the
answers are validated; any issue starts the repair loop, which visits each issue
once and re-validates at the end. Acknowledged gaps can cover errors but never
contradictions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.modules.docintake.services.conversation_state import (
    InterviewSession,
    SessionStore,
    answers_fingerprint,
)
from app.modules.docintake.services.document_service import AssembledDocument, assemble_document
from app.modules.docintake.services.documents.base import AnswerValue, DocumentSpec, QuestionSpec
from app.modules.docintake.services.documents.registry import get_document_spec
from app.modules.docintake.services.drafting import ClauseDrafter, DraftedClause
from app.modules.docintake.services.errors import DocumentNotReadyError, SessionBusyError
from app.modules.docintake.services.extractor import AnswerExtractor, match_boolean
from app.modules.docintake.services.flow import FlowController
from app.modules.docintake.services.guardrails import contradiction_source
from app.modules.docintake.services.llm import CompletionClient
from app.modules.docintake.services.validation import ValidationIssue, ValidationResult, validate
from core.utils.perf import profile_stage

logger = logging.getLogger(__name__)

REPAIR_SKIP_WORDS = frozenset({"skip", "no", "skip it", "none"})
REPAIR_PROMPT = 'Please provide the correct information, or type "skip" to proceed without it.'
COMPLETE_MESSAGE = "Perfect! All information has been collected. You can now generate your document."
ALREADY_COMPLETE_MESSAGE = "All information has been collected. You can generate your document now."


@dataclass
class TurnResult:
    session_id: str
    doc_type: str
    reply: str
    phase: str
    progress: float
    question_id: Optional[str] = None
    guardrail: Optional[str] = None
    issues: List[str] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.phase == "complete"


def _field_label(spec: DocumentSpec, field_id: str) -> str:
    question = spec.question(field_id)
    if question is not None and question.legal_label:
        return question.legal_label.lower()
    return field_id.replace("_", " ")


def _match_correction(spec: DocumentSpec, text: str, field_ids: Iterable[str]) -> Optional[Tuple[QuestionSpec, AnswerValue]]:
    """Exact boolean/option match of `text` against one of `field_ids`; text fields never match."""
    lowered = text.strip().lower()
    for field_id in field_ids:
        question = spec.question(field_id)
        if question is None:
            continue
        if question.kind == "boolean":
            value = match_boolean(lowered)
            if value is not None:
                return question, value
        elif question.kind == "select":
            for option in question.options or ():
                if option.lower() == lowered:
                    return question, option
    return None


class InterviewEngine:
    """Owns the session registry and drives every turn of every interview."""

    def __init__(
        self,
        completion: Optional[CompletionClient] = None,
        min_clause_length: int = 20,
        store: Optional[SessionStore] = None,
        max_sessions: int = 500,
    ):
        self.completion = completion
        self.sessions = store or SessionStore(
            max_sessions=max_sessions,
            on_evict=completion.clear if completion is not None else None,
        )
        self.extractor = AnswerExtractor(completion)
        self.drafter = ClauseDrafter(completion, min_length=min_clause_length)

    # ------------------------------------------------------------------ #
    # public surface
    # ------------------------------------------------------------------ #

    async def start(self, doc_type: str) -> TurnResult:
        spec = get_document_spec(doc_type)
        session = await self.sessions.create(spec.doc_type)
        first = FlowController(spec).current(session.answers)
        reply = f"Welcome! I'll help you create your {spec.name}. {first.prompt if first else ''}".strip()
        session.record("assistant", reply)
        logger.info(f"[interview] started {session.session_id} ({spec.doc_type})")
        return self._result(session, spec, reply)

    @profile_stage("interview_turn")
    async def handle_message(self, session_id: str, message: str) -> TurnResult:
        session = await self.sessions.get(session_id)
        if session.busy:
            raise SessionBusyError(session_id)

        session.busy = True
        try:
            spec = get_document_spec(session.doc_type)
            text = (message or "").strip()
            session.record("user", text)

            if session.phase == "repairing":
                result = await self._repair_turn(session, spec, text)
            elif session.phase == "complete":
                result = self._result(session, spec, ALREADY_COMPLETE_MESSAGE)
            else:
                result = await self._collect_turn(session, spec, text)

            session.record("assistant", result.reply)
            return result
        finally:
            session.busy = False

    async def snapshot(self, session_id: str) -> Dict[str, Any]:
        session = await self.sessions.get(session_id)
        spec = get_document_spec(session.doc_type)
        current = FlowController(spec, session.cursor).current(session.answers) if session.phase == "collecting" else None
        issue = session.current_issue
        return {
            "session_id": session.session_id,
            "doc_type": session.doc_type,
            "phase": session.phase,
            "progress": self._progress(session, spec),
            "current_question": current.id if current else None,
            "current_issue": issue.message if issue else None,
            "answers": dict(session.answers),
            "clauses": {k: v for k, v in session.clauses.items() if v},
            "acknowledged_gaps": list(session.acknowledged_gaps),
            "transcript": list(session.transcript),
        }

    @profile_stage("generate_document")
    async def generate_document(self, session_id: str) -> AssembledDocument:
        session = await self.sessions.get(session_id)
        spec = get_document_spec(session.doc_type)
        result = validate(spec, session.answers)

        unresolved = self._unresolved(session, result)
        if unresolved:
            logger.info(f"[interview] generation refused for {session_id}: {len(unresolved)} issue(s)")
            raise DocumentNotReadyError(unresolved)

        self._refresh_clauses(session, spec)
        gaps = [m for m in session.acknowledged_gaps if m in result.messages()]
        return assemble_document(spec, session.answers, session.clauses, gaps, result.warnings)

    async def reset(self, session_id: str) -> bool:
        removed = await self.sessions.discard(session_id)
        if self.completion is not None:
            self.completion.clear(session_id)
        if removed:
            logger.info(f"[interview] reset {session_id}")
        return removed

    # ------------------------------------------------------------------ #
    # forward flow
    # ------------------------------------------------------------------ #

    async def _collect_turn(self, session: InterviewSession, spec: DocumentSpec, text: str) -> TurnResult:
        flow = FlowController(spec, session.cursor)
        question = flow.current(session.answers)
        session.cursor = flow.cursor
        if question is None:
            return self._finish_collection(session, spec)

        pending, session.pending_correction = session.pending_correction, None
        if pending:
            correction = _match_correction(spec, text, [pending])
            if correction is not None:
                source, value = correction
                await self._store_answer(session, spec, source.id, value)
                prefix = f"Thank you. I've updated your {_field_label(spec, source.id)}."
                return self._ask_next(session, spec, flow, prefix, advance=False)

        extraction = await self.extractor.extract(session.session_id, text, question, session.answers)
        if extraction.needs_clarification:
            if extraction.guardrail == "contradiction":
                session.pending_correction = contradiction_source(question.id)
            return self._result(session, spec, extraction.clarification or question.prompt, guardrail=extraction.guardrail)

        await self._store_answer(session, spec, question.id, extraction.value)
        return self._ask_next(session, spec, flow, "Thank you.", advance=True)

    def _ask_next(
        self,
        session: InterviewSession,
        spec: DocumentSpec,
        flow: FlowController,
        prefix: str,
        advance: bool,
    ) -> TurnResult:
        upcoming = flow.advance(session.answers) if advance else flow.current(session.answers)
        session.cursor = flow.cursor
        if upcoming is None:
            return self._finish_collection(session, spec)
        return self._result(session, spec, f"{prefix} {upcoming.prompt}")

    def _finish_collection(self, session: InterviewSession, spec: DocumentSpec) -> TurnResult:
        result = validate(spec, session.answers)
        if result.valid:
            return self._complete(session, spec, COMPLETE_MESSAGE)
        return self._begin_repair(session, spec, list(result.issues), "I found")

    # ------------------------------------------------------------------ #
    # repair loop
    # ------------------------------------------------------------------ #

    def _begin_repair(
        self,
        session: InterviewSession,
        spec: DocumentSpec,
        issues: List[ValidationIssue],
        lead: str,
    ) -> TurnResult:
        session.phase = "repairing"
        session.repair_issues = issues
        session.repair_index = 0
        session.completed_fingerprint = None
        logger.info(f"[interview] repair loop for {session.session_id}: {len(issues)} issue(s)")
        reply = f"{lead} {len(issues)} issue(s) that need attention:\n\n{issues[0].message}\n\n{REPAIR_PROMPT}"
        return self._result(session, spec, reply)

    async def _repair_turn(self, session: InterviewSession, spec: DocumentSpec, text: str) -> TurnResult:
        issue = session.current_issue
        if issue is None:
            return self._finish_repair(session, spec, "")

        # a contradiction verdict on the previous turn offers its source field ("no" -> has_children)
        pending, session.pending_correction = session.pending_correction, None
        if pending:
            correction = _match_correction(spec, text, [pending])
            if correction is not None:
                source, value = correction
                await self._store_answer(session, spec, source.id, value)
                return self._next_issue(session, spec, f"Thank you. I've updated your {_field_label(spec, source.id)}.")

        if text.lower().rstrip(".!") in REPAIR_SKIP_WORDS:
            if issue.blocking_contradiction:
                prefix = "Understood, but this contradiction must be resolved before the document can be generated."
            else:
                if issue.message not in session.acknowledged_gaps:
                    session.acknowledged_gaps.append(issue.message)
                prefix = "Understood. I'll note that this information was not provided."
            return self._next_issue(session, spec, prefix)

        if issue.blocking_contradiction:
            others = [f for f in issue.fields if f != issue.field]
            correction = _match_correction(spec, text, others)
            if correction is not None:
                source, value = correction
                await self._store_answer(session, spec, source.id, value)
                return self._next_issue(session, spec, f"Thank you. I've updated your {_field_label(spec, source.id)}.")

        question = spec.question(issue.field) if issue.field else None
        if question is None:
            logger.warning(f"[interview] issue without a repairable field: {issue.message}")
            return self._next_issue(session, spec, "I couldn't apply that answer to this issue.")

        extraction = await self.extractor.extract(session.session_id, text, question, session.answers)
        if extraction.needs_clarification:
            if extraction.guardrail == "contradiction":
                session.pending_correction = contradiction_source(question.id)
            return self._result(session, spec, extraction.clarification or REPAIR_PROMPT, guardrail=extraction.guardrail)

        await self._store_answer(session, spec, question.id, extraction.value)
        return self._next_issue(session, spec, f"Thank you. I've updated your {_field_label(spec, question.id)}.")

    def _next_issue(self, session: InterviewSession, spec: DocumentSpec, prefix: str) -> TurnResult:
        session.repair_index += 1
        issue = session.current_issue
        if issue is not None:
            return self._result(session, spec, f"{prefix}\n\nNext issue:\n\n{issue.message}\n\n{REPAIR_PROMPT}")
        return self._finish_repair(session, spec, prefix)

    def _finish_repair(self, session: InterviewSession, spec: DocumentSpec, prefix: str) -> TurnResult:
        result = validate(spec, session.answers)
        blocking = [
            issue for issue in result.issues
            if issue.blocking_contradiction or issue.message not in session.acknowledged_gaps
        ]
        if blocking:
            return self._begin_repair(session, spec, blocking, f"{prefix}\n\nThere are still".strip())

        # forget gaps for issues the user fixed after acknowledging them
        session.acknowledged_gaps = [m for m in session.acknowledged_gaps if m in result.messages()]
        if session.acknowledged_gaps:
            message = (
                "Proceeding with the information provided. "
                "Note: your document may be incomplete. You can now generate your document."
            )
        else:
            message = "All issues resolved! You can now generate your document."
        return self._complete(session, spec, f"{prefix}\n\n{message}".strip())

    def _complete(self, session: InterviewSession, spec: DocumentSpec, reply: str) -> TurnResult:
        session.phase = "complete"
        session.repair_issues = []
        session.repair_index = 0
        session.cursor = len(spec.questions)
        session.completed_fingerprint = answers_fingerprint(session.answers)
        logger.info(f"[interview] {session.session_id} complete ({len(session.acknowledged_gaps)} acknowledged gap(s))")
        return self._result(session, spec, reply)

    def _unresolved(self, session: InterviewSession, result: ValidationResult) -> List[str]:
        if result.valid:
            return []
        settled = session.phase == "complete" and session.completed_fingerprint == answers_fingerprint(session.answers)
        return [
            issue.message for issue in result.issues
            if not settled or issue.blocking_contradiction or issue.message not in session.acknowledged_gaps
        ]

    # ------------------------------------------------------------------ #
    # answers and clauses
    # ------------------------------------------------------------------ #

    async def _store_answer(self, session: InterviewSession, spec: DocumentSpec, field_id: str, value: AnswerValue) -> None:
        session.answers[field_id] = value
        self._drop_inapplicable(session, spec)
        # other clauses may read this answer (spouse name, executor relationship)
        self._refresh_clauses(session, spec, skip=field_id)
        drafted = await self.drafter.draft(session.session_id, spec, field_id, value, session.answers)
        session.drafts[field_id] = drafted
        session.clauses[field_id] = drafted.text

    @staticmethod
    def _drop_inapplicable(session: InterviewSession, spec: DocumentSpec) -> None:
        """A corrected answer can hide later questions; their stale answers go with them."""
        changed = True
        while changed:
            changed = False
            for question in spec.questions:
                if question.id in session.answers and not question.is_applicable(session.answers):
                    session.answers.pop(question.id)
                    session.clauses.pop(question.id, None)
                    session.drafts.pop(question.id, None)
                    changed = True

    @staticmethod
    def _refresh_clauses(session: InterviewSession, spec: DocumentSpec, skip: Optional[str] = None) -> None:
        for field_id, value in session.answers.items():
            if field_id == skip:
                continue
            base = spec.generate(field_id, value, session.answers)
            previous = session.drafts.get(field_id)
            if previous is not None and previous.basis == base:
                session.clauses[field_id] = previous.text
                continue
            session.drafts[field_id] = DraftedClause(base, base)
            session.clauses[field_id] = base

    # ------------------------------------------------------------------ #
    # replies
    # ------------------------------------------------------------------ #

    @staticmethod
    def _progress(session: InterviewSession, spec: DocumentSpec) -> float:
        if session.phase != "collecting":
            return 1.0
        return FlowController(spec, session.cursor).progress()

    def _result(
        self,
        session: InterviewSession,
        spec: DocumentSpec,
        reply: str,
        guardrail: Optional[str] = None,
    ) -> TurnResult:
        question_id = None
        if session.phase == "collecting":
            current = FlowController(spec, session.cursor).current(session.answers)
            question_id = current.id if current else None
        issue = session.current_issue
        return TurnResult(
            session_id=session.session_id,
            doc_type=session.doc_type,
            reply=reply,
            phase=session.phase,
            progress=self._progress(session, spec),
            question_id=question_id,
            guardrail=guardrail,
            issues=[i.message for i in session.repair_issues] if issue is not None else [],
        )
