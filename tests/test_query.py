import pytest

from docintel.conversation import NO_RESULTS_MESSAGE, NO_RESULTS_SCOPED_MESSAGE
from docintel.errors import GenerativeModelError, ValidationError


@pytest.mark.asyncio
async def test_empty_retrieval_skips_generation(services, chat_client):
    result = await services.query.ask("What is the capital of France?", session_id="s1")

    assert result.answer == NO_RESULTS_MESSAGE
    assert result.citations == []
    assert result.document_ids == []
    assert chat_client.calls == []
    session = await services.conversations.get_session("s1")
    assert [m.role for m in session.messages] == ["user", "assistant"]
    assert session.messages[1].content == NO_RESULTS_MESSAGE


@pytest.mark.asyncio
async def test_scope_without_matches_uses_scoped_wording(services, paris_doc, chat_client):
    await services.ingestion.ingest(paris_doc, "facts.txt")
    calls_after_ingest = len(chat_client.calls)

    result = await services.query.ask("capital of France", target_documents=["missing-doc"])

    assert result.answer == NO_RESULTS_SCOPED_MESSAGE
    assert len(chat_client.calls) == calls_after_ingest


@pytest.mark.asyncio
async def test_end_to_end_answer_cites_ingested_document(services, paris_doc):
    ingested = await services.ingestion.ingest(paris_doc, "facts.txt")

    result = await services.query.ask("What is the capital of France?")

    assert "Paris" in result.answer
    assert result.document_ids == [ingested.doc_id]
    assert result.citations and result.citations[0].doc_id == ingested.doc_id
    assert result.citations[0].chunk_ordinal == 0
    assert [m.role for m in result.recent_history] == ["user", "assistant"]
    assert result.recent_history[1].citations == tuple(result.citations)


@pytest.mark.asyncio
async def test_target_documents_restrict_retrieval(services, paris_doc):
    france = await services.ingestion.ingest(paris_doc, "facts.txt")
    await services.ingestion.ingest(b"The capital of Italy is Rome.", "italy.txt")

    result = await services.query.ask("What is the capital?", target_documents=[france.doc_id])

    assert {c.doc_id for c in result.citations} == {france.doc_id}
    assert result.document_ids == [france.doc_id]


@pytest.mark.asyncio
async def test_scope_persists_across_turns_until_replaced(services, paris_doc):
    france = await services.ingestion.ingest(paris_doc, "facts.txt")
    italy = await services.ingestion.ingest(b"The capital of Italy is Rome.", "italy.txt")

    first = await services.query.ask("capital?", session_id="s1", target_documents=[italy.doc_id])
    second = await services.query.ask("and again?", session_id="s1")
    third = await services.query.ask("capital?", session_id="s1", target_documents=[france.doc_id])

    assert first.document_ids == [italy.doc_id]
    assert second.document_ids == [italy.doc_id]
    assert third.document_ids == [france.doc_id]
    assert len(third.recent_history) == 6


@pytest.mark.asyncio
async def test_turn_eleven_prompt_carries_last_six_messages(services, paris_doc, chat_client):
    await services.ingestion.ingest(paris_doc, "facts.txt")
    for i in range(1, 11):
        await services.query.ask(f"France question {i:02d}", session_id="s1")

    result = await services.query.ask("France question 11", session_id="s1")

    prompt = chat_client.answer_prompts[-1]
    history = prompt.split("Conversation history (oldest to newest):\n", 1)[1].split("\n\nContext:", 1)[0]
    assert history.startswith("User: France question 08")
    assert "question 07" not in prompt
    assert sum(1 for line in prompt.splitlines() if line.startswith(("User: ", "Assistant: "))) <= 6
    assert len(result.recent_history) == 10


@pytest.mark.asyncio
async def test_blank_query_is_rejected(services):
    with pytest.raises(ValidationError):
        await services.query.ask("   ")


@pytest.mark.asyncio
async def test_generation_failure_keeps_session_without_turn(services, paris_doc, chat_client):
    await services.ingestion.ingest(paris_doc, "facts.txt")
    chat_client.answer_fn = lambda prompt: RuntimeError("upstream down")

    with pytest.raises(GenerativeModelError):
        await services.query.ask("What is the capital of France?", session_id="s1")

    session = await services.conversations.get_session("s1")
    assert session is not None
    assert session.messages == []


@pytest.mark.asyncio
async def test_ask_once_leaves_no_session(services, paris_doc):
    ingested = await services.ingestion.ingest(paris_doc, "facts.txt")

    answer, citations = await services.query.ask_once("What is the capital of France?", [ingested.doc_id])

    assert "Paris" in answer
    assert citations[0].doc_id == ingested.doc_id
    assert await services.conversations.list_sessions() == []
