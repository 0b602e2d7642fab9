"""Text extraction from uploaded documents.

This module provides:
- detect_kind: maps a filename / declared content type to a supported format
- Extractor.extract: raw bytes -> ordered per-page text with a quality flag
- looks_garbled: heuristic deciding whether a page needs re-extraction (OCR)
- to_page_tagged / count_pages: the page-marker format stored as cleaned text

Extraction never raises on bad input: a document that cannot be parsed comes
back as a single empty page so ingestion degrades instead of aborting. OCR is
not performed; flagged pages keep their best-effort text.
"""
import enum
import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import List, Optional

import fitz  # PyMuPDF
from bs4 import BeautifulSoup
from bs4.element import Tag

logger = logging.getLogger(__name__)

PAGE_MARKER = "<!-- page:{n} -->"
PAGE_MARKER_RE = re.compile(r"<!-- page:\d+ -->")

_SUFFIX_KINDS = {
    ".pdf": "pdf",
    ".txt": "text",
    ".md": "text",
    ".markdown": "text",
    ".html": "html",
    ".htm": "html",
}
_CONTENT_TYPE_KINDS = {
    "application/pdf": "pdf",
    "text/plain": "text",
    "text/markdown": "text",
    "text/x-markdown": "text",
    "text/html": "html",
}

MIN_LETTER_RATIO = 0.2
MIN_PAGE_CHARS = 20


class PageQuality(str, enum.Enum):
    CLEAN = "clean"
    NEEDS_REPROCESSING = "needs_reprocessing"


@dataclass(frozen=True)
class ExtractedPage:
    number: int  # 1-based
    text: str
    quality: PageQuality


def detect_kind(filename: Optional[str], content_type: Optional[str] = None) -> Optional[str]:
    """Return 'pdf', 'text' or 'html' for a supported document, else None.

    The declared content type wins when it is recognized; otherwise the filename suffix decides.
    """
    if content_type:
        kind = _CONTENT_TYPE_KINDS.get(content_type.split(";")[0].strip().lower())
        if kind:
            return kind
    if filename:
        return _SUFFIX_KINDS.get(PurePath(filename).suffix.lower())
    return None


def looks_garbled(text: str) -> bool:
    """True when the page is mostly non-letters or nearly empty."""
    letters = sum(1 for ch in text if ("a" <= ch <= "z") or ("A" <= ch <= "Z"))
    ratio = letters / max(1, len(text))
    return ratio < MIN_LETTER_RATIO or len(text.strip()) < MIN_PAGE_CHARS


def _pdf_pages(data: bytes) -> List[str]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text("text") for page in doc]


def _text_pages(data: bytes) -> List[str]:
    # Form feeds separate pages in plain-text exports
    return data.decode("utf-8", errors="replace").split("\f")


def _html_pages(data: bytes) -> List[str]:
    """Flatten HTML into one page of heading-separated text blocks."""
    soup = BeautifulSoup(data, "lxml")

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    blocks: List[str] = []
    buffer: List[str] = []

    def flush():
        nonlocal buffer
        if buffer:
            text = re.sub(r"[ \t]+", " ", " ".join(buffer)).strip()
            if text:
                blocks.append(text)
        buffer = []

    for el in soup.body.descendants if soup.body else soup.descendants:
        if isinstance(el, Tag):
            if el.name in ["h1", "h2", "h3", "h4"]:
                flush()
                heading = el.get_text(" ", strip=True)
                if heading:
                    blocks.append(heading)
            elif el.name in ["p", "li", "td", "pre"]:
                txt = el.get_text(" ", strip=True)
                if txt:
                    buffer.append(txt)
                    # paragraph boundary for the chunker
                    flush()

    flush()
    if not blocks:
        text = re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()
        return [text]
    return ["\n\n".join(blocks)]


class Extractor:
    """Converts raw document bytes into per-page text."""

    def extract(self, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> List[ExtractedPage]:
        kind = detect_kind(filename, content_type) or "text"
        try:
            if kind == "pdf":
                texts = _pdf_pages(data)
            elif kind == "html":
                texts = _html_pages(data)
            else:
                texts = _text_pages(data)
        except Exception:
            logger.warning("Extraction failed for %s (kind=%s); continuing with an empty page", filename, kind, exc_info=True)
            texts = [""]

        if not texts:
            texts = [""]

        pages = [
            ExtractedPage(
                number=i,
                text=t,
                quality=PageQuality.NEEDS_REPROCESSING if looks_garbled(t) else PageQuality.CLEAN,
            )
            for i, t in enumerate(texts, start=1)
        ]
        flagged = [p.number for p in pages if p.quality is PageQuality.NEEDS_REPROCESSING]
        if flagged:
            logger.info("Pages flagged for re-extraction in %s: %s", filename, flagged)
        return pages


def to_page_tagged(pages: List[ExtractedPage]) -> str:
    """Join pages into the cleaned-text format, one page marker per page."""
    return "\n".join(
        f"\n\n{PAGE_MARKER.format(n=p.number)}\n\n{p.text.strip()}" for p in pages
    )


def count_pages(clean_text: str) -> int:
    """Number of page markers in cleaned text (at least 1 for non-empty text)."""
    found = len(PAGE_MARKER_RE.findall(clean_text))
    if found:
        return found
    return 1 if clean_text.strip() else 0
