"""Document operations behind the /documents endpoints.

Status, size and page count are derived on every read from what the document
store holds; nothing is cached. Index lookups (display name, point deletion) are
best-effort: an unavailable index is logged and the operation carries on.
"""
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import PurePath
from typing import List, Optional

from docintel.chunker import Chunker
from docintel.document_store import DocumentStore, RawDocument
from docintel.errors import IndexUnavailableError, NotFoundError
from docintel.extractor import count_pages
from docintel.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class DocumentMetadata:
    id: str
    name: str
    status: str  # uploaded | processing | processed | unknown
    upload_date: str
    size: str
    type: str = "pdf"
    pages: Optional[int] = None
    summary: Optional[str] = None


def _format_size(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MB"


class DocumentService:
    """Read, list, delete and download stored documents."""

    def __init__(self, store: DocumentStore, index: VectorIndex, chunker: Chunker):
        self._store = store
        self._index = index
        self._chunker = chunker

    async def list_documents(self) -> List[str]:
        """Ids of documents that have cleaned text, in upload order."""
        return await self._store.list_processed_ids()

    async def metadata(self, doc_id: str) -> DocumentMetadata:
        """Derive display metadata from the stored artifacts.

        Args:
            doc_id: Document identifier; unknown ids yield status "unknown".

        Returns:
            DocumentMetadata with status processed when cleaned text exists,
            processing when only raw bytes exist, unknown otherwise.
        """
        info = await self._store.get_info(doc_id)
        suffix = PurePath(info.filename).suffix.lower() if info else ""
        ext = suffix or ".pdf"

        name = f"Document-{doc_id}{ext}"
        try:
            display_name = await self._index.display_name(doc_id)
            if display_name:
                name = f"{display_name}{ext}"
        except IndexUnavailableError as e:
            logger.warning("Display name lookup failed for %s: %s", doc_id, e.details)

        meta = DocumentMetadata(
            id=doc_id,
            name=name,
            status="unknown",
            upload_date=date.today().isoformat(),
            size="Unknown",
            type=ext.lstrip("."),
        )
        if info is None:
            return meta

        meta.upload_date = info.created_at.date().isoformat()
        if info.has_raw:
            meta.size = _format_size(info.size)
            meta.status = "uploaded"
        if info.clean_text is not None:
            meta.status = "processed"
            meta.pages = count_pages(info.clean_text) or 1
            meta.summary = f"Document with {meta.pages} page(s)"
        elif meta.status == "uploaded":
            meta.status = "processing"
        return meta

    async def chunks(self, doc_id: str) -> List[str]:
        """Re-chunk the stored cleaned text for display; unknown ids give no chunks."""
        clean_text = await self._store.get_clean_text(doc_id)
        return self._chunker.split(clean_text or "")

    async def delete(self, doc_id: str) -> int:
        """Remove index points and stored artifacts; returns the number of artifacts removed."""
        try:
            await self._index.delete_by_doc_id(doc_id)
        except IndexUnavailableError as e:
            logger.warning("Index delete failed for %s, continuing: %s", doc_id, e.details)
        removed = await self._store.delete(doc_id)
        logger.info("Deleted document %s (%d artifacts removed)", doc_id, removed)
        return removed

    async def download(self, doc_id: str) -> RawDocument:
        """Original bytes, filename and content type.

        Raises:
            NotFoundError: If no raw bytes are stored for doc_id.
        """
        raw = await self._store.get_raw(doc_id)
        if raw is None:
            raise NotFoundError("Document not found", details={"id": doc_id})
        return raw
