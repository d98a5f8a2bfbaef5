"""
Core Configuration and Services
Consolidated configuration settings and service wiring for the legal document intake service
"""

import logging
from pydantic_settings import BaseSettings
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # LLM (any OpenAI-compatible chat completions endpoint; Groq by default)
    LLM_PROVIDER: str = "groq"
    LLM_MODEL: str = "llama-3.1-8b-instant"
    LLM_BASE_URL: str | None = "https://api.groq.com/openai/v1"
    LLM_API_KEY: str | None = None

    # LLM Behavior Settings (low temperature keeps extraction deterministic)
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 2048
    LLM_TIMEOUT_SECS: int = 30

    # Retry policy for the completion backend
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_BACKOFF_SECS: float = 1.0

    # Per-session completion history
    HISTORY_WINDOW: int = 6
    HISTORY_MAX_SESSIONS: int = 500

    # Drafting
    MIN_CLAUSE_LENGTH: int = 20

    # CORS Configuration
    CORS_ALLOWED_ORIGINS: list[str] = [
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://localhost:3000"
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

settings = Settings()


def get_llm_client() -> AsyncOpenAI:
    """Create LLM client based on LLM configuration.

    Retries are owned by CompletionClient, so the SDK's own retry loop is disabled.
    """
    return AsyncOpenAI(
        api_key=settings.LLM_API_KEY or "missing-key",
        base_url=settings.LLM_BASE_URL or None,
        timeout=settings.LLM_TIMEOUT_SECS,
        max_retries=0,
    )


def build_engine(llm_client=None):
    """Assemble the interview engine from settings."""
    from app.modules.docintake.services.llm import CompletionClient, HistoryStore
    from app.modules.docintake.services.interview import InterviewEngine

    history = HistoryStore(
        max_messages=settings.HISTORY_WINDOW,
        max_sessions=settings.HISTORY_MAX_SESSIONS,
    )
    completion = CompletionClient(
        client=llm_client if llm_client is not None else get_llm_client(),
        history=history,
        model=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        attempts=settings.LLM_RETRY_ATTEMPTS,
        backoff_secs=settings.LLM_RETRY_BACKOFF_SECS,
    )
    return InterviewEngine(
        completion=completion,
        min_clause_length=settings.MIN_CLAUSE_LENGTH,
        max_sessions=settings.HISTORY_MAX_SESSIONS,
    )


def wire_services(app: FastAPI, llm_client=None) -> None:
    """Wire all singleton services into app.state on startup."""
    logger.info("Wiring global services...")

    app.state.settings = settings
    app.state.engine = build_engine(llm_client)

    if not settings.LLM_API_KEY and llm_client is None:
        logger.warning("LLM_API_KEY is not set; free-text extraction will fall back to raw answers")

    logger.info("Service container wiring completed successfully")


def get_engine(request: Request):
    """FastAPI dependency returning the wired InterviewEngine."""
    return request.app.state.engine
