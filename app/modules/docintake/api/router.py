from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.config import get_engine
from app.modules.docintake.schema.documents import (
    DocumentListResponse,
    DocumentSectionOut,
    DocumentTypeInfo,
    GeneratedDocumentResponse,
)
from app.modules.docintake.schema.interview import (
    MessageRequest,
    ResetResponse,
    SessionSnapshot,
    StartRequest,
    TurnResponse,
)
from app.modules.docintake.services.document_service import render_html
from app.modules.docintake.services.documents.registry import list_document_specs
from app.modules.docintake.services.errors import (
    DocIntakeError,
    DocumentNotReadyError,
    SessionBusyError,
    SessionNotFoundError,
    UnknownDocumentTypeError,
)
from app.modules.docintake.services.interview import InterviewEngine, TurnResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/legal", tags=["Document Intake"])


def _http_error(exc: DocIntakeError) -> HTTPException:
    if isinstance(exc, (UnknownDocumentTypeError, SessionNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, SessionBusyError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, DocumentNotReadyError):
        return HTTPException(
            status_code=422,
            detail={"message": str(exc), "issues": exc.issues},
        )
    logger.error(f"[api] unhandled intake error: {exc}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _turn_response(result: TurnResult) -> TurnResponse:
    return TurnResponse(
        session_id=result.session_id,
        doc_type=result.doc_type,
        reply=result.reply,
        phase=result.phase,
        progress=result.progress,
        done=result.done,
        question_id=result.question_id,
        guardrail=result.guardrail,
        issues=result.issues,
    )


@router.get("/documents", response_model=DocumentListResponse)
def list_documents() -> DocumentListResponse:
    return DocumentListResponse(
        documents=[
            DocumentTypeInfo(
                doc_type=spec.doc_type,
                name=spec.name,
                description=spec.description,
                question_count=len(spec.questions),
            )
            for spec in list_document_specs()
        ]
    )


@router.post("/conversation/start", response_model=TurnResponse)
async def start_conversation(req: StartRequest, engine: InterviewEngine = Depends(get_engine)) -> TurnResponse:
    try:
        return _turn_response(await engine.start(req.doc_type))
    except DocIntakeError as e:
        raise _http_error(e) from e


@router.post("/conversation/{session_id}/message", response_model=TurnResponse)
async def send_message(
    session_id: str,
    req: MessageRequest,
    engine: InterviewEngine = Depends(get_engine),
) -> TurnResponse:
    try:
        return _turn_response(await engine.handle_message(session_id, req.message))
    except DocIntakeError as e:
        raise _http_error(e) from e


@router.get("/conversation/{session_id}", response_model=SessionSnapshot)
async def get_conversation(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> SessionSnapshot:
    try:
        return SessionSnapshot(**await engine.snapshot(session_id))
    except DocIntakeError as e:
        raise _http_error(e) from e


@router.post("/conversation/{session_id}/reset", response_model=ResetResponse)
async def reset_conversation(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> ResetResponse:
    removed = await engine.reset(session_id)
    if not removed:
        raise _http_error(SessionNotFoundError(session_id))
    return ResetResponse(session_id=session_id, reset=True)


@router.post("/document/generate-from-session/{session_id}", response_model=GeneratedDocumentResponse)
async def generate_from_session(
    session_id: str,
    include_html: bool = Query(True),
    engine: InterviewEngine = Depends(get_engine),
) -> GeneratedDocumentResponse:
    try:
        doc = await engine.generate_document(session_id)
    except DocIntakeError as e:
        raise _http_error(e) from e

    return GeneratedDocumentResponse(
        doc_type=doc.doc_type,
        title=doc.title,
        preamble=doc.preamble,
        sections=[DocumentSectionOut(title=s.title, clauses=s.clauses) for s in doc.sections],
        signatory=doc.signatory,
        acknowledged_gaps=doc.acknowledged_gaps,
        warnings=doc.warnings,
        disclaimer=doc.disclaimer,
        filename=doc.filename("html"),
        text=doc.to_text(),
        html=render_html(doc) if include_html else None,
    )
