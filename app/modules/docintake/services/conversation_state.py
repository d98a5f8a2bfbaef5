from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional

from app.modules.docintake.services.documents.base import AnswerMap, ClauseMap
from app.modules.docintake.services.drafting import DraftedClause
from app.modules.docintake.services.errors import SessionNotFoundError
from app.modules.docintake.services.validation import ValidationIssue

logger = logging.getLogger(__name__)

Phase = Literal["collecting", "repairing", "complete"]


def answers_fingerprint(answers: AnswerMap) -> str:
    """Order-insensitive digest of an answer map; detects mutation after the repair loop."""
    payload = json.dumps(answers, sort_keys=True, default=str)
    return hashlib.blake2b(payload.encode("utf-8"), digest_size=16).hexdigest()


@dataclass
class InterviewSession:
    session_id: str
    doc_type: str
    answers: AnswerMap = field(default_factory=dict)
    clauses: ClauseMap = field(default_factory=dict)
    drafts: Dict[str, DraftedClause] = field(default_factory=dict)
    cursor: int = 0
    phase: Phase = "collecting"
    repair_issues: List[ValidationIssue] = field(default_factory=list)
    repair_index: int = 0
    acknowledged_gaps: List[str] = field(default_factory=list)
    # earlier field the user may correct on the next turn, set after a contradiction verdict
    pending_correction: Optional[str] = None
    completed_fingerprint: Optional[str] = None
    busy: bool = False
    transcript: List[Dict[str, str]] = field(default_factory=list)

    def record(self, role: str, content: str) -> None:
        self.transcript.append({"role": role, "content": content})

    @property
    def current_issue(self) -> Optional[ValidationIssue]:
        if self.phase != "repairing" or self.repair_index >= len(self.repair_issues):
            return None
        return self.repair_issues[self.repair_index]


class SessionStore:
    """In-process session registry keyed by session id. Nothing persists across processes.

    Bounded: once `max_sessions` is exceeded the least recently used idle sessions are
    dropped and `on_evict` is called with each evicted id.
    """

    def __init__(self, max_sessions: int = 500, on_evict: Optional[Callable[[str], None]] = None):
        self.max_sessions = max_sessions
        self.on_evict = on_evict
        self._sessions: "OrderedDict[str, InterviewSession]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def create(self, doc_type: str) -> InterviewSession:
        session = InterviewSession(session_id=f"s{uuid.uuid4().hex[:16]}", doc_type=doc_type)
        async with self._lock:
            self._sessions[session.session_id] = session
            evicted = self._evict_overflow(keep=session.session_id)
        for session_id in evicted:
            logger.info(f"[sessions] evicted idle session {session_id}")
            if self.on_evict is not None:
                self.on_evict(session_id)
        return session

    async def get(self, session_id: str) -> InterviewSession:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def discard(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def _evict_overflow(self, keep: str) -> List[str]:
        # oldest first; the new session and any session with a turn in flight stay
        overflow = len(self._sessions) - self.max_sessions
        evicted = []
        for session_id, session in list(self._sessions.items()):
            if overflow <= 0:
                break
            if session.busy or session_id == keep:
                continue
            del self._sessions[session_id]
            evicted.append(session_id)
            overflow -= 1
        return evicted

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
