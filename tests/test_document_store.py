import re

import pytest

from docintel.document_store import DocumentStore, new_document_id


@pytest.fixture
def store(test_settings) -> DocumentStore:
    return DocumentStore(test_settings.DATABASE_URL)


def test_new_document_ids_are_unique_and_time_ordered():
    ids = [new_document_id() for _ in range(50)]
    assert len(set(ids)) == 50
    assert all(re.fullmatch(r"\d{13}-[0-9a-f]{8}", i) for i in ids)
    assert [i.split("-")[0] for i in ids] == sorted(i.split("-")[0] for i in ids)


@pytest.mark.asyncio
async def test_raw_bytes_round_trip_and_are_immutable(store):
    await store.save_raw("doc-1", "report.pdf", b"original", "application/pdf")
    await store.save_raw("doc-1", "report.pdf", b"replacement", "application/pdf")

    raw = await store.get_raw("doc-1")
    assert raw.data == b"original"
    assert raw.filename == "report.pdf"
    assert raw.content_type == "application/pdf"
    assert await store.get_raw("missing") is None


@pytest.mark.asyncio
async def test_clean_text_can_be_rewritten(store):
    await store.save_raw("doc-1", "notes.txt", b"abc")
    assert await store.get_clean_text("doc-1") is None

    await store.save_clean_text("doc-1", "first")
    await store.save_clean_text("doc-1", "second")
    assert await store.get_clean_text("doc-1") == "second"


@pytest.mark.asyncio
async def test_list_processed_ids_skips_raw_only_documents(store):
    await store.save_raw("doc-a", "a.txt", b"a")
    await store.save_clean_text("doc-a", "A")
    await store.save_raw("doc-b", "b.txt", b"b")
    await store.save_raw("doc-c", "c.txt", b"c")
    await store.save_clean_text("doc-c", "C")

    assert await store.list_processed_ids() == ["doc-a", "doc-c"]


@pytest.mark.asyncio
async def test_get_info(store):
    await store.save_raw("doc-1", "notes.txt", b"12345")
    info = await store.get_info("doc-1")
    assert info.size == 5
    assert info.has_raw is True
    assert info.clean_text is None
    assert info.filename == "notes.txt"
    assert await store.get_info("missing") is None


@pytest.mark.asyncio
async def test_delete_counts_artifacts(store):
    await store.save_raw("doc-1", "notes.txt", b"abc")
    await store.save_clean_text("doc-1", "abc")
    await store.save_clean_text("doc-2", "text only")

    assert await store.delete("doc-1") == 2
    assert await store.delete("doc-1") == 0
    assert await store.delete("doc-2") == 1
    assert await store.get_raw("doc-1") is None
