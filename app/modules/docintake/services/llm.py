from typing import Any, Dict, List, Optional
from collections import OrderedDict
import asyncio
import json
import logging
import re
from openai import APIConnectionError, APIError, APIStatusError, BadRequestError
from core.utils.perf import profile_stage
from app.modules.docintake.services.errors import DocIntakeError
from app.modules.docintake.services.prompts import SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)

_JSON_START = re.compile(r"\{")


class CompletionError(DocIntakeError):
    """The completion backend failed on every attempt (transport, non-success status or empty reply)."""


# ============================================================
# Per-session history (explicit store, bounded and evictable)
# ============================================================

class HistoryStore:
    """Trailing window of role-tagged messages per session id.

    Sessions are evicted least-recently-used once `max_sessions` is exceeded; `clear`
    drops a session deterministically on reset or abandonment.
    """

    def __init__(self, max_messages: int = 6, max_sessions: int = 500):
        self.max_messages = max_messages
        self.max_sessions = max_sessions
        self._items: "OrderedDict[str, List[Dict[str, str]]]" = OrderedDict()

    def recent(self, session_id: str) -> List[Dict[str, str]]:
        items = self._items.get(session_id)
        if items is None:
            return []
        self._items.move_to_end(session_id)
        return list(items[-self.max_messages:])

    def append_turn(self, session_id: str, prompt: str, reply: str) -> None:
        items = self._items.setdefault(session_id, [])
        items.append({"role": "user", "content": prompt})
        items.append({"role": "assistant", "content": reply})
        self._items[session_id] = items[-self.max_messages:]
        self._items.move_to_end(session_id)
        while len(self._items) > self.max_sessions:
            evicted, _ = self._items.popitem(last=False)
            logger.debug(f"[llm] evicted history for session {evicted}")

    def clear(self, session_id: str) -> None:
        self._items.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._items

    def __len__(self) -> int:
        return len(self._items)


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in free text, or None."""
    decoder = json.JSONDecoder()
    for match in _JSON_START.finditer(text or ""):
        try:
            obj, _ = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


# ============================================================
# Chat completion with temperature fallback
# ============================================================

async def chat_completion(
    client,
    model: str,
    messages: list[dict],
    temperature: Optional[float] = 0.3,
    max_tokens: int = 2048,
):
    """
    Single chat-completions call.
    Some endpoints forbid non-default temperature; retry once without it.
    """
    params = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
    }
    if temperature is not None:
        params["temperature"] = temperature

    try:
        return await client.chat.completions.create(**params)
    except BadRequestError as e:
        msg = str(e)
        if "temperature" in msg and "unsupported" in msg.lower():
            logger.warning("[llm] endpoint rejected temperature, retrying without it")
            params.pop("temperature", None)
            return await client.chat.completions.create(**params)
        raise


def _reply_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return (getattr(message, "content", None) or "").strip()


class CompletionClient:
    """
    Session-aware wrapper over the completion backend.

    Sends [system instruction, *history window, prompt]; retries transport errors,
    non-success responses and empty replies with increasing backoff, then raises
    CompletionError. Never issue two calls concurrently for one session.
    """

    def __init__(
        self,
        client,
        history: HistoryStore,
        model: str,
        temperature: Optional[float] = 0.3,
        max_tokens: int = 2048,
        attempts: int = 3,
        backoff_secs: float = 1.0,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ):
        self.client = client
        self.history = history
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.attempts = max(1, attempts)
        self.backoff_secs = backoff_secs
        self.system_instruction = system_instruction

    def _messages(self, session_id: str, prompt: str) -> list[dict]:
        return [
            {"role": "system", "content": self.system_instruction},
            *self.history.recent(session_id),
            {"role": "user", "content": prompt},
        ]

    @profile_stage("completion_call")
    async def call(self, session_id: str, prompt: str) -> str:
        messages = self._messages(session_id, prompt)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.attempts + 1):
            try:
                response = await chat_completion(
                    self.client,
                    self.model,
                    messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
                reply = _reply_text(response)
                if reply:
                    self.history.append_turn(session_id, prompt, reply)
                    return reply
                last_error = CompletionError("Empty reply from completion backend")
                logger.warning(f"[llm] attempt {attempt}/{self.attempts} returned no content")
            except APIStatusError as e:
                last_error = e
                logger.warning(f"[llm] attempt {attempt}/{self.attempts} failed with status {e.status_code}")
            except APIConnectionError as e:
                last_error = e
                logger.warning(f"[llm] attempt {attempt}/{self.attempts} transport error: {e}")
            except APIError as e:
                last_error = e
                logger.warning(f"[llm] attempt {attempt}/{self.attempts} backend error: {e}")

            if attempt < self.attempts and self.backoff_secs > 0:
                await asyncio.sleep(self.backoff_secs * attempt)

        raise CompletionError(f"Completion backend failed after {self.attempts} attempts") from last_error

    def clear(self, session_id: str) -> None:
        self.history.clear(session_id)
