import pytest

from app.modules.docintake.services.conversation_state import SessionStore
from app.modules.docintake.services.errors import (
    DocumentNotReadyError,
    SessionBusyError,
    SessionNotFoundError,
    UnknownDocumentTypeError,
)
from app.modules.docintake.services.interview import ALREADY_COMPLETE_MESSAGE, COMPLETE_MESSAGE, InterviewEngine

HAPPY_WILL = [
    "john smith",
    "1970-01-01",
    "12 Oak Street, Springfield",
    "Married",
    "Jane Smith",
    "no",
    "Robert Brown",
    "Friend",
    "no",
    "no",
    "Jane Smith",
    "none",
]


async def _answer(engine, session_id, replies):
    result = None
    for reply in replies:
        result = await engine.handle_message(session_id, reply)
    return result


@pytest.mark.asyncio
async def test_start_greets_with_first_question(engine):
    result = await engine.start("will")
    assert result.reply == "Welcome! I'll help you create your Last Will and Testament. What is your full legal name?"
    assert result.question_id == "full_name"
    assert result.phase == "collecting"


@pytest.mark.asyncio
async def test_unknown_document_type(engine):
    with pytest.raises(UnknownDocumentTypeError):
        await engine.start("lease")


@pytest.mark.asyncio
async def test_happy_path_will(engine):
    start = await engine.start("will")
    result = await _answer(engine, start.session_id, HAPPY_WILL)

    assert result.done
    assert result.reply == COMPLETE_MESSAGE

    snapshot = await engine.snapshot(start.session_id)
    assert snapshot["answers"]["full_name"] == "John Smith"
    # marital clause picked up the spouse answered after it
    assert snapshot["clauses"]["marital_status"] == "I am currently married to Jane Smith."
    assert "has_minor_children" not in snapshot["answers"]

    doc = await engine.generate_document(start.session_id)
    assert [s.title for s in doc.sections] == ["Family Information", "Executor", "Bequests"]
    assert doc.acknowledged_gaps == []

    again = await engine.handle_message(start.session_id, "hello?")
    assert again.reply == ALREADY_COMPLETE_MESSAGE


@pytest.mark.asyncio
async def test_invalid_option_asks_again(engine):
    start = await engine.start("will")
    await _answer(engine, start.session_id, ["john smith", "1970-01-01", "12 Oak Street"])

    result = await engine.handle_message(start.session_id, "Engaged")
    assert result.question_id == "marital_status"
    assert result.reply.startswith("Please choose one of: Single, Married")


@pytest.mark.asyncio
async def test_guardrail_keeps_the_question(engine, fake_llm):
    start = await engine.start("will")
    before = len(fake_llm.calls)
    result = await engine.handle_message(start.session_id, "Should I leave everything to charity?")
    assert result.guardrail == "advice_request"
    assert result.question_id == "full_name"
    assert len(fake_llm.calls) == before


@pytest.mark.asyncio
async def test_contradiction_can_be_corrected_at_the_source(engine):
    start = await engine.start("will")
    await _answer(engine, start.session_id, ["john smith", "1970-01-01", "12 Oak Street", "Married"])

    result = await engine.handle_message(start.session_id, "none")
    assert result.guardrail == "contradiction"
    assert result.question_id == "spouse_name"

    result = await engine.handle_message(start.session_id, "Single")
    assert result.question_id == "has_children"
    assert "marital status" in result.reply
    snapshot = await engine.snapshot(start.session_id)
    assert snapshot["answers"]["marital_status"] == "Single"
    assert "spouse_name" not in snapshot["answers"]


@pytest.mark.asyncio
async def test_contradictions_cannot_be_skipped(engine):
    start = await engine.start("will")
    sid = start.session_id
    result = await _answer(engine, sid, [
        "john smith", "1970-01-01", "12 Oak Street", "Single", "no",
        "John Smith", "Friend", "no", "no", "Red Cross", "none",
    ])
    assert result.phase == "repairing"
    assert "I found 1 issue(s)" in result.reply
    assert "cannot appoint yourself as executor" in result.reply

    result = await engine.handle_message(sid, "skip")
    assert result.phase == "repairing"
    assert "There are still 1 issue(s)" in result.reply

    with pytest.raises(DocumentNotReadyError):
        await engine.generate_document(sid)

    result = await engine.handle_message(sid, "robert brown")
    assert result.done
    assert "All issues resolved!" in result.reply

    doc = await engine.generate_document(sid)
    assert doc.sections[1].clauses == ["I appoint Robert Brown, my friend, as Executor of this Will."]


@pytest.mark.asyncio
async def test_skipped_error_becomes_acknowledged_gap(engine):
    start = await engine.start("will")
    sid = start.session_id
    result = await _answer(engine, sid, [
        "john smith", "1970-01-01", "12 Oak Street", "Single", "no",
        "Robert Brown", "Friend", "yes", "skip", "no", "Red Cross", "none",
    ])
    assert result.phase == "repairing"

    result = await engine.handle_message(sid, "skip")
    assert result.done
    assert "may be incomplete" in result.reply

    doc = await engine.generate_document(sid)
    assert doc.acknowledged_gaps == ["You indicated an alternate executor but did not provide their name."]
    assert doc.sections[1].clauses == ["I appoint Robert Brown, my friend, as Executor of this Will."]

    # answers changed after the repair loop: the acknowledgement no longer applies
    session = await engine.sessions.get(sid)
    session.answers["funeral_wishes"] = "Cremation"
    with pytest.raises(DocumentNotReadyError) as exc:
        await engine.generate_document(sid)
    assert exc.value.issues == ["You indicated an alternate executor but did not provide their name."]


@pytest.mark.asyncio
async def test_generation_refused_mid_interview(engine):
    start = await engine.start("will")
    await engine.handle_message(start.session_id, "john smith")

    with pytest.raises(DocumentNotReadyError) as exc:
        await engine.generate_document(start.session_id)
    assert "Missing required field: What is your residential address?" in exc.value.issues


@pytest.mark.asyncio
async def test_busy_session_rejects_second_message(engine):
    start = await engine.start("power_of_attorney")
    session = await engine.sessions.get(start.session_id)
    session.busy = True
    with pytest.raises(SessionBusyError):
        await engine.handle_message(start.session_id, "alice walker")


@pytest.mark.asyncio
async def test_reset_discards_session_and_history(engine, completion):
    start = await engine.start("will")
    await _answer(engine, start.session_id, ["john smith", "1970-01-01", "12 Oak Street"])
    assert start.session_id in completion.history

    assert await engine.reset(start.session_id) is True
    assert start.session_id not in completion.history
    with pytest.raises(SessionNotFoundError):
        await engine.handle_message(start.session_id, "hello")
    assert await engine.reset(start.session_id) is False


@pytest.mark.asyncio
async def test_skipped_date_of_birth_must_be_repaired(engine):
    start = await engine.start("will")
    sid = start.session_id
    replies = list(HAPPY_WILL)
    replies[1] = "none"
    result = await _answer(engine, sid, replies)
    assert result.phase == "repairing"
    assert "Missing required field: What is your date of birth? (YYYY-MM-DD)" in result.reply

    with pytest.raises(DocumentNotReadyError):
        await engine.generate_document(sid)

    result = await engine.handle_message(sid, "1970-01-01")
    assert result.done
    doc = await engine.generate_document(sid)
    assert doc.preamble[1] == "I was born on 1970-01-01."


@pytest.mark.asyncio
async def test_no_after_contradiction_corrects_source_in_repair(engine):
    start = await engine.start("will")
    sid = start.session_id
    result = await _answer(engine, sid, [
        "john smith", "1970-01-01", "12 Oak Street", "Single", "yes", "skip",
        "Robert Brown", "Friend", "no", "no", "Red Cross", "no", "none",
    ])
    assert result.phase == "repairing"
    assert "You indicated you have children but did not provide their details." in result.reply

    result = await engine.handle_message(sid, "no kids")
    assert result.guardrail == "contradiction"
    assert result.phase == "repairing"

    result = await engine.handle_message(sid, "no")
    assert result.done
    assert "All issues resolved!" in result.reply

    snapshot = await engine.snapshot(sid)
    assert snapshot["answers"]["has_children"] is False
    assert "children_details" not in snapshot["answers"]
    doc = await engine.generate_document(sid)
    assert doc.acknowledged_gaps == []


@pytest.mark.asyncio
async def test_oldest_idle_session_is_evicted_with_its_history(completion):
    engine = InterviewEngine(completion=completion, max_sessions=2)
    first = await engine.start("will")
    await _answer(engine, first.session_id, ["john smith", "1970-01-01", "12 Oak Street"])
    second = await engine.start("will")
    await _answer(engine, second.session_id, ["jane smith", "1980-05-05", "9 Elm Road"])
    assert second.session_id in completion.history

    # touching the first session makes the second the least recently used
    await engine.snapshot(first.session_id)
    third = await engine.start("power_of_attorney")

    assert len(engine.sessions) == 2
    with pytest.raises(SessionNotFoundError):
        await engine.handle_message(second.session_id, "hello")
    assert second.session_id not in completion.history
    assert first.session_id in engine.sessions
    assert third.session_id in engine.sessions


@pytest.mark.asyncio
async def test_busy_session_is_never_evicted():
    store = SessionStore(max_sessions=1)
    evicted = []
    store.on_evict = evicted.append

    busy = await store.create("will")
    busy.busy = True
    idle = await store.create("will")
    newest = await store.create("will")

    assert busy.session_id in store
    assert newest.session_id in store
    assert evicted == [idle.session_id]
