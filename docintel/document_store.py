"""Document Store: raw bytes and page-tagged text per document id.

The store is the source of truth for everything the metadata endpoint derives on
read (size, page count, processing status). SQLAlchemy calls are synchronous, so
each public coroutine runs its session work in a worker thread.
"""
from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from docintel.db import create_session_factory, session_scope
from docintel.models import StoredDocument


def new_document_id() -> str:
    """Return a time-ordered unique id: zero-padded epoch millis plus a random suffix."""
    return f"{int(time.time() * 1000):013d}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class RawDocument:
    id: str
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass(frozen=True)
class DocumentInfo:
    """Lightweight view of a stored document, without the raw blob."""
    id: str
    filename: str
    size: int
    has_raw: bool
    clean_text: Optional[str]
    created_at: datetime


class DocumentStore:
    """Persists raw uploads and cleaned text in a SQL database."""

    def __init__(self, database_url: str):
        self._factory: sessionmaker = create_session_factory(database_url)

    async def save_raw(self, doc_id: str, filename: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Create the document record with its raw bytes.

        Raw bytes are immutable: saving under an existing id keeps the original blob.
        """

        def _save() -> None:
            with session_scope(self._factory) as db:
                row = db.get(StoredDocument, doc_id)
                if row is not None and row.raw is not None:
                    return
                if row is None:
                    row = StoredDocument(id=doc_id, filename=filename, content_type=content_type)
                    db.add(row)
                row.raw = data
                row.size = len(data)

        await asyncio.to_thread(_save)

    async def save_clean_text(self, doc_id: str, text: str) -> None:
        def _save() -> None:
            with session_scope(self._factory) as db:
                row = db.get(StoredDocument, doc_id)
                if row is None:
                    row = StoredDocument(id=doc_id, filename=f"{doc_id}.md", size=0)
                    db.add(row)
                row.clean_text = text

        await asyncio.to_thread(_save)

    async def get_clean_text(self, doc_id: str) -> Optional[str]:
        def _get() -> Optional[str]:
            with session_scope(self._factory) as db:
                return db.execute(
                    select(StoredDocument.clean_text).where(StoredDocument.id == doc_id)
                ).scalar_one_or_none()

        return await asyncio.to_thread(_get)

    async def get_raw(self, doc_id: str) -> Optional[RawDocument]:
        def _get() -> Optional[RawDocument]:
            with session_scope(self._factory) as db:
                row = db.get(StoredDocument, doc_id)
                if row is None or row.raw is None:
                    return None
                return RawDocument(id=row.id, filename=row.filename, content_type=row.content_type, data=row.raw)

        return await asyncio.to_thread(_get)

    async def get_info(self, doc_id: str) -> Optional[DocumentInfo]:
        def _get() -> Optional[DocumentInfo]:
            with session_scope(self._factory) as db:
                row = db.execute(
                    select(
                        StoredDocument.id,
                        StoredDocument.filename,
                        StoredDocument.size,
                        StoredDocument.raw.is_not(None).label("has_raw"),
                        StoredDocument.clean_text,
                        StoredDocument.created_at,
                    ).where(StoredDocument.id == doc_id)
                ).one_or_none()
                if row is None:
                    return None
                return DocumentInfo(
                    id=row.id,
                    filename=row.filename,
                    size=row.size or 0,
                    has_raw=bool(row.has_raw),
                    clean_text=row.clean_text,
                    created_at=row.created_at,
                )

        return await asyncio.to_thread(_get)

    async def list_processed_ids(self) -> List[str]:
        """Ids of documents that have cleaned text, oldest first."""

        def _list() -> List[str]:
            with session_scope(self._factory) as db:
                rows = db.execute(
                    select(StoredDocument.id)
                    .where(StoredDocument.clean_text.is_not(None))
                    .order_by(StoredDocument.created_at, StoredDocument.id)
                ).scalars()
                return list(rows)

        return await asyncio.to_thread(_list)

    async def delete(self, doc_id: str) -> int:
        """Remove raw and cleaned artifacts; return how many were present (0..2)."""

        def _delete() -> int:
            with session_scope(self._factory) as db:
                row = db.get(StoredDocument, doc_id)
                if row is None:
                    return 0
                removed = int(row.raw is not None) + int(row.clean_text is not None)
                db.delete(row)
                return removed

        return await asyncio.to_thread(_delete)
