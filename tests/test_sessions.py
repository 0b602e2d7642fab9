import fnmatch
from unittest.mock import AsyncMock

import pytest

from docintel.config import Settings
from docintel.services import build_services
from docintel.sessions import (
    ChatMessage,
    Citation,
    InMemorySessionStore,
    RedisSessionStore,
    Session,
    build_session_store,
)


class FakeRedis:
    """The subset of redis.asyncio.Redis the session store uses."""

    def __init__(self):
        self.data = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key

    async def aclose(self):
        self.closed = True


def _session() -> Session:
    session = Session(id="s1", target_documents=["doc-a"])
    session.messages.append(ChatMessage(role="user", content="What is it?", document_ids=("doc-a",)))
    session.messages.append(
        ChatMessage(
            role="assistant",
            content="It is a report [#1].",
            document_ids=("doc-a",),
            citations=(Citation("doc-a", 3),),
        )
    )
    return session


def test_session_dict_round_trip_keeps_citations():
    original = _session()
    restored = Session.from_dict(original.to_dict())
    assert restored == original
    assert restored.messages[1].citations == (Citation("doc-a", 3),)


@pytest.mark.asyncio
async def test_in_memory_store():
    store = InMemorySessionStore()
    await store.save(_session())
    assert (await store.get("s1")).target_documents == ["doc-a"]
    assert len(await store.list_all()) == 1
    assert await store.delete("s1") is True
    assert await store.delete("s1") is False
    assert await store.get("s1") is None


@pytest.mark.asyncio
async def test_redis_store_serializes_under_prefix():
    client = FakeRedis()
    client.data["unrelated:key"] = "{}"
    store = RedisSessionStore(client)

    await store.save(_session())

    assert "docintel:session:s1" in client.data
    loaded = await store.get("s1")
    assert loaded.target_documents == ["doc-a"]
    assert [m.role for m in loaded.messages] == ["user", "assistant"]
    assert [s.id for s in await store.list_all()] == ["s1"]
    assert await store.delete("s1") is True
    assert await store.get("s1") is None


def test_build_session_store_picks_backend():
    assert isinstance(build_session_store(Settings(_env_file=None, SESSION_BACKEND="memory")), InMemorySessionStore)
    redis_store = build_session_store(Settings(_env_file=None, SESSION_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
    assert isinstance(redis_store, RedisSessionStore)


@pytest.mark.asyncio
async def test_redis_store_close_releases_client():
    client = FakeRedis()
    await RedisSessionStore(client).close()
    assert client.closed is True


@pytest.mark.asyncio
async def test_services_close_closes_session_store(test_settings, index, embedder, generator):
    session_store = InMemorySessionStore()
    session_store.close = AsyncMock()
    services = build_services(
        test_settings, index=index, embedder=embedder, generator=generator, session_store=session_store
    )

    await services.close()

    session_store.close.assert_awaited_once()
