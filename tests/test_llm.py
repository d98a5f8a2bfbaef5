import httpx
import openai
import pytest

from app.modules.docintake.services.llm import CompletionError, HistoryStore, extract_json_object


def test_history_keeps_trailing_window():
    history = HistoryStore(max_messages=6)
    for i in range(4):
        history.append_turn("s1", f"prompt {i}", f"reply {i}")

    recent = history.recent("s1")
    assert len(recent) == 6
    assert recent[-1] == {"role": "assistant", "content": "reply 3"}
    assert recent[0] == {"role": "user", "content": "prompt 1"}


def test_history_evicts_least_recent_session():
    history = HistoryStore(max_sessions=2)
    history.append_turn("a", "p", "r")
    history.append_turn("b", "p", "r")
    history.recent("a")
    history.append_turn("c", "p", "r")

    assert "a" in history
    assert "b" not in history
    assert len(history) == 2


def test_history_clear():
    history = HistoryStore()
    history.append_turn("s1", "p", "r")
    history.clear("s1")
    assert history.recent("s1") == []


def test_extract_json_object():
    assert extract_json_object('Sure! {"value": "x", "needsClarification": false} done') == {
        "value": "x",
        "needsClarification": False,
    }
    assert extract_json_object("{not json} then {\"a\": 1}") == {"a": 1}
    assert extract_json_object("no json here") is None
    assert extract_json_object("") is None


@pytest.mark.asyncio
async def test_call_sends_system_history_and_prompt(fake_llm, completion):
    await completion.call("s1", "first")
    await completion.call("s1", "second")

    messages = fake_llm.calls[-1]["messages"]
    assert messages[0]["role"] == "system"
    assert [m["content"] for m in messages[1:]] == ["first", "The Testator makes this provision.", "second"]
    assert fake_llm.calls[-1]["model"] == "test-model"
    assert fake_llm.calls[-1]["temperature"] == 0.3


@pytest.mark.asyncio
async def test_call_retries_then_succeeds(make_llm, make_completion, status_error, connection_error):
    llm = make_llm([connection_error(), status_error(502), "ok"])
    client = make_completion(llm, attempts=3)

    assert await client.call("s1", "hello") == "ok"
    assert len(llm.calls) == 3


@pytest.mark.asyncio
async def test_empty_replies_exhaust_attempts(make_llm, make_completion):
    llm = make_llm(["", "   ", ""])
    client = make_completion(llm, attempts=3)

    with pytest.raises(CompletionError):
        await client.call("s1", "hello")
    assert len(llm.calls) == 3
    assert client.history.recent("s1") == []


@pytest.mark.asyncio
async def test_temperature_rejection_retries_without_it(make_llm, make_completion):
    rejected = openai.BadRequestError(
        "Unsupported value: 'temperature' is unsupported with this model",
        response=httpx.Response(400, request=httpx.Request("POST", "https://llm.test/v1/chat/completions")),
        body=None,
    )
    llm = make_llm([rejected, "fine"])
    client = make_completion(llm, attempts=1)

    assert await client.call("s1", "hello") == "fine"
    assert "temperature" not in llm.calls[-1]
