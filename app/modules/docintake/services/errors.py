from __future__ import annotations

from typing import Sequence


class DocIntakeError(Exception):
    """Base class for every session-scoped failure raised by the intake engine."""


class UnknownDocumentTypeError(DocIntakeError):
    def __init__(self, doc_type: str):
        super().__init__(f"Unknown document type: {doc_type!r}")
        self.doc_type = doc_type


class SessionNotFoundError(DocIntakeError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionBusyError(DocIntakeError):
    """Raised when a new message arrives while the previous turn is still in flight."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is still processing the previous message")
        self.session_id = session_id


class DocumentNotReadyError(DocIntakeError):
    """Pre-generation check failed; `issues` lists every unresolved field and rule violation."""

    def __init__(self, issues: Sequence[str]):
        self.issues = list(issues)
        super().__init__("Cannot generate document. Missing or invalid: " + "; ".join(self.issues))
