"""Conversation session models and storage backends.

Provides:
- Citation, ChatMessage, Session: the conversation data model.
- SessionStore: async storage interface used by the ConversationManager.
- InMemorySessionStore: process-local dict (default).
- RedisSessionStore: JSON documents in Redis under docintel:session:<id>.
- build_session_store: picks a backend from settings.SESSION_BACKEND.

Neither store locks: concurrent writers to one session are last-writer-wins.
"""
import abc
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

import redis.asyncio as aioredis

from docintel.config import Settings, settings as default_settings

Role = Literal["user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Citation:
    doc_id: str
    chunk_ordinal: int


@dataclass(frozen=True)
class ChatMessage:
    """A single turn fragment; never modified after being appended."""
    role: Role
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)
    document_ids: Optional[Tuple[str, ...]] = None
    citations: Optional[Tuple[Citation, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "document_ids": list(self.document_ids) if self.document_ids is not None else None,
            "citations": (
                [{"doc_id": c.doc_id, "chunk_ordinal": c.chunk_ordinal} for c in self.citations]
                if self.citations is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        doc_ids = data.get("document_ids")
        cites = data.get("citations")
        return cls(
            id=data["id"],
            role=data["role"],
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            document_ids=tuple(doc_ids) if doc_ids is not None else None,
            citations=tuple(Citation(c["doc_id"], int(c["chunk_ordinal"])) for c in cites) if cites is not None else None,
        )


@dataclass
class Session:
    id: str
    messages: List[ChatMessage] = field(default_factory=list)
    target_documents: Optional[List[str]] = None  # None searches all documents
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messages": [m.to_dict() for m in self.messages],
            "target_documents": self.target_documents,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            target_documents=data.get("target_documents"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


class SessionStore(abc.ABC):
    """Storage for sessions keyed by id."""

    @abc.abstractmethod
    async def get(self, session_id: str) -> Optional[Session]: ...

    @abc.abstractmethod
    async def save(self, session: Session) -> None: ...

    @abc.abstractmethod
    async def delete(self, session_id: str) -> bool: ...

    @abc.abstractmethod
    async def list_all(self) -> List[Session]: ...

    async def close(self) -> None:
        """Release backend connections; nothing to do by default."""


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    async def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    async def save(self, session: Session) -> None:
        self._sessions[session.id] = session

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_all(self) -> List[Session]:
        return list(self._sessions.values())


class RedisSessionStore(SessionStore):
    """Sessions serialized as JSON strings; no TTL, matching the in-memory store."""

    KEY_PREFIX = "docintel:session:"

    def __init__(self, client: aioredis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def get(self, session_id: str) -> Optional[Session]:
        raw = await self._redis.get(self._key(session_id))
        if not raw:
            return None
        return Session.from_dict(json.loads(raw))

    async def save(self, session: Session) -> None:
        await self._redis.set(self._key(session.id), json.dumps(session.to_dict()))

    async def delete(self, session_id: str) -> bool:
        return bool(await self._redis.delete(self._key(session_id)))

    async def list_all(self) -> List[Session]:
        sessions: List[Session] = []
        async for key in self._redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
            raw = await self._redis.get(key)
            if raw:
                sessions.append(Session.from_dict(json.loads(raw)))
        return sessions

    async def close(self) -> None:
        await self._redis.aclose()


def build_session_store(cfg: Optional[Settings] = None) -> SessionStore:
    cfg = cfg or default_settings
    if cfg.SESSION_BACKEND == "redis":
        return RedisSessionStore.from_url(cfg.REDIS_URL)
    return InMemorySessionStore()
