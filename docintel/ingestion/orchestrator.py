"""Ingestion Orchestrator: raw upload -> stored, extracted, named, chunked, embedded, indexed.

Failure policy:
- Unsupported, empty or oversized uploads raise ValidationError before anything is stored.
- Extraction and naming degrade (empty page / placeholder name) instead of failing.
- Index and embedding failures propagate; the raw bytes and cleaned text already
  written stay in place.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from docintel.chunker import Chunker
from docintel.config import Settings, settings as default_settings
from docintel.document_store import DocumentStore, new_document_id
from docintel.embedding import EmbeddingService
from docintel.errors import IndexUnavailableError, NotFoundError, ValidationError
from docintel.extractor import ExtractedPage, Extractor, PageQuality, detect_kind, to_page_tagged
from docintel.generation import FALLBACK_NAME, Generator
from docintel.obs import span
from docintel.vector_index import IndexPoint, VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    doc_id: str
    display_name: str
    chunks: int = 0
    flagged_pages: List[int] = field(default_factory=list)


class IngestionOrchestrator:
    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingService,
        index: VectorIndex,
        generator: Generator,
        extractor: Optional[Extractor] = None,
        chunker: Optional[Chunker] = None,
        cfg: Optional[Settings] = None,
    ):
        self._cfg = cfg or default_settings
        self._store = store
        self._embedder = embedder
        self._index = index
        self._generator = generator
        self._extractor = extractor or Extractor()
        self._chunker = chunker or Chunker.from_settings(self._cfg)

    def _validate(self, data: bytes, filename: str, content_type: Optional[str]) -> None:
        if detect_kind(filename, content_type) is None:
            raise ValidationError(
                "Unsupported document type; upload a PDF, text, Markdown or HTML file",
                details={"filename": filename, "content_type": content_type},
            )
        if not data:
            raise ValidationError("Uploaded file is empty", details={"filename": filename})
        if len(data) > self._cfg.MAX_UPLOAD_BYTES:
            raise ValidationError(
                "Uploaded file is too large",
                details={"filename": filename, "size": len(data), "max_bytes": self._cfg.MAX_UPLOAD_BYTES},
            )

    async def ingest(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        doc_id: Optional[str] = None,
    ) -> IngestResult:
        """Ingest one document and return its id and display name."""
        self._validate(data, filename, content_type)
        doc_id = doc_id or new_document_id()
        logger.info("Ingesting %s as %s (%d bytes)", filename, doc_id, len(data))

        await self._store.save_raw(doc_id, filename, data, content_type)

        with span("extract", {"doc_id": doc_id}):
            pages = await asyncio.to_thread(self._extractor.extract, data, filename, content_type)
        clean_text = to_page_tagged(pages)
        await self._store.save_clean_text(doc_id, clean_text)

        display_name = await self._generator.display_name(clean_text)
        result = await self._index_text(doc_id, pages, clean_text, display_name)
        logger.info("Ingested %s: name=%s chunks=%d", doc_id, display_name, result.chunks)
        return result

    async def reprocess(self, doc_id: str) -> IngestResult:
        """Regenerate cleaned text and index points from the stored raw bytes."""
        raw = await self._store.get_raw(doc_id)
        if raw is None:
            raise NotFoundError("Document not found", details={"id": doc_id})

        pages = await asyncio.to_thread(self._extractor.extract, raw.data, raw.filename, raw.content_type)
        clean_text = to_page_tagged(pages)
        await self._store.save_clean_text(doc_id, clean_text)

        display_name = None
        try:
            display_name = await self._index.display_name(doc_id)
        except IndexUnavailableError:
            logger.warning("Could not read existing display name for %s", doc_id, exc_info=True)
        if not display_name or display_name == FALLBACK_NAME:
            display_name = await self._generator.display_name(clean_text)
        await self._index.delete_by_doc_id(doc_id)
        return await self._index_text(doc_id, pages, clean_text, display_name)

    async def _index_text(self, doc_id: str, pages: List[ExtractedPage], clean_text: str, display_name: str) -> IngestResult:
        flagged = [p.number for p in pages if p.quality is PageQuality.NEEDS_REPROCESSING]
        result = IngestResult(doc_id=doc_id, display_name=display_name, flagged_pages=flagged)

        if not any(p.text.strip() for p in pages):
            logger.warning("No extractable text in %s; stored without index points", doc_id)
            return result

        chunks = self._chunker.chunk(clean_text, doc_id)
        with span("embed", {"doc_id": doc_id, "chunks": len(chunks)}):
            vectors = await self._embedder.embed([c.text for c in chunks])

        await self._index.ensure_collection(len(vectors[0]))
        points = [
            IndexPoint.for_chunk(doc_id, c.ordinal, c.text, v, display_name)
            for c, v in zip(chunks, vectors)
        ]
        await self._index.upsert(points)
        result.chunks = len(points)
        return result
