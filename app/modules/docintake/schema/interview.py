from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class StartRequest(BaseModel):
    doc_type: str

    @field_validator("doc_type")
    @classmethod
    def normalize_doc_type(cls, v: str) -> str:
        return v.strip().lower()


class MessageRequest(BaseModel):
    message: str = Field(..., max_length=4000)


class TurnResponse(BaseModel):
    session_id: str
    doc_type: str
    reply: str
    phase: str
    progress: float
    done: bool
    question_id: Optional[str] = None
    guardrail: Optional[str] = None
    issues: List[str] = Field(default_factory=list)


class SessionSnapshot(BaseModel):
    session_id: str
    doc_type: str
    phase: str
    progress: float
    current_question: Optional[str] = None
    current_issue: Optional[str] = None
    answers: Dict[str, Any] = Field(default_factory=dict)
    clauses: Dict[str, str] = Field(default_factory=dict)
    acknowledged_gaps: List[str] = Field(default_factory=list)
    transcript: List[Dict[str, str]] = Field(default_factory=list)


class ResetResponse(BaseModel):
    status: str = Field("ok")
    session_id: str
    reset: bool
