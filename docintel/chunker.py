"""Paragraph-aware chunking with a hard size ceiling.

Provides:
- Chunk: a bounded text span with its source document and ordinal.
- Chunker.split: page-tagged text -> list of chunk strings.
- Chunker.chunk: same, wrapped as Chunk objects for a document.

Every chunk returned is non-empty and at most max_chars long; the vector
index stores chunk text as payload and relies on that bound.
"""
from dataclasses import dataclass
from typing import List, Optional

from docintel.config import Settings, settings as default_settings

TRUNCATION_MARKER = " [...]"
_BOUNDARY_CHARS = ".!?\n"


@dataclass(frozen=True)
class Chunk:
    text: str
    doc_id: str
    ordinal: int


class Chunker:
    """Packs paragraphs into ~chunk_size chunks with overlap, then enforces max_chars.

    Args:
        chunk_size: Target characters per chunk.
        overlap: Characters of trailing context carried into the next chunk.
        max_chars: Hard ceiling; longer chunks are truncated and marked.
    """

    def __init__(self, chunk_size: int = 700, overlap: int = 80, max_chars: int = 750):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if max_chars <= len(TRUNCATION_MARKER):
            raise ValueError("max_chars too small for the truncation marker")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.max_chars = max_chars

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "Chunker":
        cfg = cfg or default_settings
        return cls(chunk_size=cfg.CHUNK_SIZE, overlap=cfg.CHUNK_OVERLAP, max_chars=cfg.CHUNK_MAX_CHARS)

    def _merge(self, splits: List[str], separator: str) -> List[str]:
        """Greedily pack splits up to chunk_size, keeping an overlap tail between chunks."""
        sep_len = len(separator)
        docs: List[str] = []
        current: List[str] = []
        total = 0
        for s in splits:
            n = len(s)
            if current and total + sep_len + n > self.chunk_size:
                docs.append(separator.join(current))
                # drop from the front until the tail fits the overlap and leaves room for s
                while current and (total > self.overlap or total + sep_len + n > self.chunk_size):
                    total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                    current.pop(0)
            current.append(s)
            total += n + (sep_len if len(current) > 1 else 0)
        if current:
            docs.append(separator.join(current))
        return docs

    def _cap(self, text: str) -> str:
        if len(text) <= self.max_chars:
            return text
        head = text[: self.max_chars - len(TRUNCATION_MARKER)]
        cut = max(head.rfind(c) for c in _BOUNDARY_CHARS)
        if cut > 0:
            head = head[: cut + 1]
        return head.rstrip() + TRUNCATION_MARKER

    def split(self, text: str) -> List[str]:
        """Split cleaned text into overlapping chunks.

        Paragraphs are packed up to chunk_size; a paragraph longer than that is
        split on line boundaries first. Every returned chunk is non-empty and at
        most max_chars long.

        Args:
            text: Cleaned document text, possibly with page markers.

        Returns:
            Chunk strings in document order.
        """
        if not text:
            return []
        pieces: List[str] = []
        for para in text.split("\n\n"):
            para = para.strip()
            if not para:
                continue
            if len(para) > self.chunk_size:
                # long paragraph: fall back to line boundaries before the ceiling applies
                lines = [ln.strip() for ln in para.split("\n") if ln.strip()]
                pieces.extend(self._merge(lines, "\n"))
            else:
                pieces.append(para)

        chunks = [c.strip() for c in self._merge(pieces, "\n\n")]
        return [self._cap(c) for c in chunks if c]

    def chunk(self, text: str, doc_id: str) -> List[Chunk]:
        """split() with ordinals assigned by final position."""
        return [Chunk(text=t, doc_id=doc_id, ordinal=i) for i, t in enumerate(self.split(text))]
