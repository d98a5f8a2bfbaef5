"""Shared fixtures: a scripted chat-completions backend (no network) and
zero-backoff completion clients wired the way `core.config.build_engine` wires them."""

from __future__ import annotations

import json
import re
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.modules.docintake.services.interview import InterviewEngine
from app.modules.docintake.services.llm import CompletionClient, HistoryStore

_UTTERANCE = re.compile(r'User\'s response: "(.*)"\n\nRULES', re.DOTALL)
_REQUEST = httpx.Request("POST", "https://llm.test/v1/chat/completions")


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:
    """Pops scripted items (reply text or exception) first, then echoes.

    Extraction prompts are echoed back as {"value": <utterance>}; any other prompt
    gets a fixed clause.
    """

    def __init__(self, script=()):
        self.script = list(script)
        self.calls = []

    async def create(self, **params):
        self.calls.append(params)
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, Exception):
                raise item
            return _response(item)

        prompt = params["messages"][-1]["content"]
        match = _UTTERANCE.search(prompt)
        if match:
            return _response(json.dumps({"value": match.group(1), "needsClarification": False}))
        return _response("The Testator makes this provision.")


class FakeLLM:
    def __init__(self, script=()):
        self.completions = FakeCompletions(script)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def make_llm():
    return FakeLLM


@pytest.fixture
def make_completion():
    def _make(client, attempts=3, max_messages=6):
        return CompletionClient(
            client=client,
            history=HistoryStore(max_messages=max_messages),
            model="test-model",
            attempts=attempts,
            backoff_secs=0,
        )
    return _make


@pytest.fixture
def completion(fake_llm, make_completion):
    return make_completion(fake_llm)


@pytest.fixture
def engine(completion):
    return InterviewEngine(completion=completion)


@pytest.fixture
def status_error():
    def _make(code=500):
        return openai.APIStatusError(
            f"backend returned {code}",
            response=httpx.Response(code, request=_REQUEST),
            body=None,
        )
    return _make


@pytest.fixture
def connection_error():
    def _make():
        return openai.APIConnectionError(request=_REQUEST)
    return _make


@pytest.fixture
def will_answers():
    return {
        "full_name": "John Smith",
        "date_of_birth": "1970-01-01",
        "address": "12 Oak Street, Springfield",
        "marital_status": "Married",
        "spouse_name": "Jane Smith",
        "has_children": False,
        "executor_name": "Robert Brown",
        "executor_relationship": "Friend",
        "has_alternate_executor": False,
        "has_specific_bequests": False,
        "residual_beneficiary": "Jane Smith",
        "funeral_wishes": "none",
    }


@pytest.fixture
def poa_answers():
    return {
        "full_name": "Alice Walker",
        "date_of_birth": "1965-03-02",
        "address": "1 River Road",
        "poa_type": "Durable",
        "agent_name": "Bob Walker",
        "agent_address": "2 Hill Street",
        "agent_relationship": "Sibling",
        "has_alternate_agent": False,
        "powers": "All legal powers",
        "effective_date": "Immediately upon signing",
        "special_instructions": "none",
    }
