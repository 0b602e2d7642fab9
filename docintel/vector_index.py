"""Qdrant-backed vector index for document chunks.

Strategy:
- One collection (settings.QDRANT_COLLECTION), created lazily with the dimension
  of the first embedded batch and cosine distance.
- Point ids are UUIDv5 of "<docId>:<zero-padded ordinal>", so re-ingesting the
  same chunking overwrites instead of duplicating.
- Payload: {docId, ordinal, text, displayName}; search can be restricted to a
  set of docIds (any-of).

Backend failures surface as IndexUnavailableError so callers can decide whether
to degrade (delete/metadata paths) or fail (ingestion).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import AsyncQdrantClient, models

from docintel.config import Settings, settings as default_settings
from docintel.errors import IndexUnavailableError

logger = logging.getLogger(__name__)

# Deterministic namespace for point ids derived from (docId, ordinal)
_POINT_ID_NAMESPACE = uuid.UUID("3f0c5d0e-8a4b-4a53-9a59-6a8e1c2b7d41")


def point_id(doc_id: str, ordinal: int) -> str:
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, f"{doc_id}:{ordinal:06d}"))


@dataclass
class IndexPoint:
    id: str
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_chunk(cls, doc_id: str, ordinal: int, text: str, vector: List[float], display_name: str) -> "IndexPoint":
        return cls(
            id=point_id(doc_id, ordinal),
            vector=vector,
            payload={"docId": doc_id, "ordinal": ordinal, "text": text, "displayName": display_name},
        )


@dataclass(frozen=True)
class SearchHit:
    id: str
    score: float
    doc_id: str
    ordinal: int
    text: str
    display_name: Optional[str] = None


def _doc_filter(doc_id: str) -> models.Filter:
    return models.Filter(must=[models.FieldCondition(key="docId", match=models.MatchValue(value=doc_id))])


def _any_doc_filter(doc_ids: Sequence[str]) -> models.Filter:
    return models.Filter(
        should=[models.FieldCondition(key="docId", match=models.MatchValue(value=d)) for d in doc_ids]
    )


class VectorIndex:
    """Named collection of (vector, payload) points."""

    def __init__(self, client: AsyncQdrantClient, collection: str):
        self._client = client
        self.collection = collection

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "VectorIndex":
        """Build an index from settings.

        QDRANT_LOCATION selects embedded mode: ":memory:" keeps points in
        process, any other value is a local storage directory. Without it the
        client connects to QDRANT_URL.

        Args:
            cfg: Settings to read; the module-level settings by default.

        Returns:
            A VectorIndex bound to cfg.QDRANT_COLLECTION.
        """
        cfg = cfg or default_settings
        if cfg.QDRANT_LOCATION == ":memory:":
            client = AsyncQdrantClient(location=":memory:")
        elif cfg.QDRANT_LOCATION:
            client = AsyncQdrantClient(path=cfg.QDRANT_LOCATION)
        else:
            client = AsyncQdrantClient(url=cfg.QDRANT_URL, api_key=cfg.QDRANT_API_KEY)
        return cls(client, cfg.QDRANT_COLLECTION)

    @property
    def client(self) -> AsyncQdrantClient:
        return self._client

    async def _exists(self) -> bool:
        try:
            return await self._client.collection_exists(self.collection)
        except Exception as e:
            raise IndexUnavailableError("Could not reach vector index", collection=self.collection, details={"error": str(e)}) from e

    async def ensure_collection(self, dim: int) -> None:
        """Create the collection with vector size dim if it does not exist yet."""
        if dim <= 0:
            raise IndexUnavailableError("Embedding vector size is invalid", collection=self.collection, details={"vector_size": dim})

        if await self._exists():
            try:
                info = await self._client.get_collection(self.collection)
            except Exception as e:
                raise IndexUnavailableError("Could not read collection info", collection=self.collection, details={"error": str(e)}) from e
            try:
                current = info.config.params.vectors.size  # type: ignore[union-attr]
            except AttributeError:
                current = None
            if current is not None and int(current) != int(dim):
                raise IndexUnavailableError(
                    "Vector size mismatch for collection",
                    collection=self.collection,
                    details={"expected": dim, "actual": int(current)},
                )
            return

        try:
            await self._client.create_collection(
                collection_name=self.collection,
                vectors_config=models.VectorParams(size=dim, distance=models.Distance.COSINE),
            )
            await self._client.create_payload_index(
                collection_name=self.collection,
                field_name="docId",
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        except Exception as e:
            # another request may have created it in between
            if await self._exists():
                return
            raise IndexUnavailableError("Failed to create collection", collection=self.collection, details={"error": str(e)}) from e
        logger.info("Created collection %s (dim=%d)", self.collection, dim)

    async def upsert(self, points: List[IndexPoint]) -> None:
        """Insert or overwrite points by id.

        Args:
            points: Points to write; an empty list is a no-op.

        Raises:
            IndexUnavailableError: If the backend rejects the write.
        """
        if not points:
            return
        try:
            await self._client.upsert(
                collection_name=self.collection,
                points=[models.PointStruct(id=p.id, vector=p.vector, payload=p.payload) for p in points],
                wait=True,
            )
        except Exception as e:
            raise IndexUnavailableError("Failed to upsert points", collection=self.collection, details={"error": str(e)}) from e
        logger.info("Upserted %d points into %s", len(points), self.collection)

    async def search(self, query_vector: List[float], k: int, doc_ids: Optional[Sequence[str]] = None) -> List[SearchHit]:
        """k nearest points by cosine, optionally restricted to doc_ids.

        An absent collection yields no results rather than an error.

        Args:
            query_vector: Embedded query.
            k: Maximum number of hits.
            doc_ids: If non-empty, only points of these documents match.

        Returns:
            Hits ordered by descending score.
        """
        if not await self._exists():
            return []
        query_filter = _any_doc_filter(doc_ids) if doc_ids else None
        try:
            resp = await self._client.query_points(
                collection_name=self.collection,
                query=query_vector,
                limit=k,
                query_filter=query_filter,
                with_payload=True,
            )
        except Exception as e:
            raise IndexUnavailableError("Search failed", collection=self.collection, details={"error": str(e)}) from e

        hits: List[SearchHit] = []
        for p in resp.points:
            payload = p.payload or {}
            hits.append(
                SearchHit(
                    id=str(p.id),
                    score=float(p.score),
                    doc_id=str(payload.get("docId", "")),
                    ordinal=int(payload.get("ordinal", 0)),
                    text=str(payload.get("text", "")),
                    display_name=payload.get("displayName"),
                )
            )
        return hits

    async def delete_by_doc_id(self, doc_id: str) -> None:
        """Remove every point of a document. Idempotent."""
        if not await self._exists():
            return
        try:
            await self._client.delete(
                collection_name=self.collection,
                points_selector=models.FilterSelector(filter=_doc_filter(doc_id)),
                wait=True,
            )
        except Exception as e:
            raise IndexUnavailableError("Failed to delete points", collection=self.collection, details={"docId": doc_id, "error": str(e)}) from e

    async def display_name(self, doc_id: str) -> Optional[str]:
        """displayName stored on any point of the document, or None."""
        if not await self._exists():
            return None
        try:
            points, _ = await self._client.scroll(
                collection_name=self.collection,
                scroll_filter=_doc_filter(doc_id),
                limit=1,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise IndexUnavailableError("Failed to read document points", collection=self.collection, details={"docId": doc_id, "error": str(e)}) from e
        if points and points[0].payload:
            return points[0].payload.get("displayName")
        return None

    async def count(self, doc_id: Optional[str] = None) -> int:
        """Exact number of points, optionally for a single document.

        Args:
            doc_id: Restrict the count to this document's points.

        Returns:
            The point count; 0 when the collection does not exist.
        """
        if not await self._exists():
            return 0
        try:
            result = await self._client.count(
                collection_name=self.collection,
                count_filter=_doc_filter(doc_id) if doc_id else None,
                exact=True,
            )
        except Exception as e:
            raise IndexUnavailableError("Failed to count points", collection=self.collection, details={"error": str(e)}) from e
        return result.count

    async def close(self) -> None:
        await self._client.close()
