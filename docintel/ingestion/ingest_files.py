"""Batch document ingestor.

Feeds local files and remote documents through the same IngestionOrchestrator
the /upload endpoint uses, so stored artifacts and index points are identical
whichever way a document arrives.

Capabilities:
- Local paths: content type is guessed from the filename suffix
- --url: fetched with requests; the response Content-Type is passed along and
  the filename is taken from the last URL path segment
- --reprocess DOC_ID: re-extract and re-index an already stored document from
  its raw bytes

Usage:
  python -m docintel.ingestion.ingest_files report.pdf notes.md
  python -m docintel.ingestion.ingest_files --url https://example.com/paper.pdf

Configuration:
- Storage: docintel.config.settings.DATABASE_URL
- Index: docintel.config.settings.QDRANT_URL / QDRANT_LOCATION / QDRANT_COLLECTION
- Embeddings: docintel.config.settings.EMBEDDING_PROVIDER
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests

from docintel.ingestion.orchestrator import IngestResult
from docintel.services import Services, build_services

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "DocIntel-Ingestor/1.0",
    "Accept": "application/pdf, text/html, text/plain, text/markdown, */*;q=0.5",
}


def fetch_document(url: str, timeout: int = 30) -> Tuple[bytes, str, Optional[str]]:
    """Download url and return (data, filename, content_type)."""
    logger.info("Fetching document: %s", url)
    resp = requests.get(url, headers=HEADERS, timeout=timeout)
    ctype = resp.headers.get("Content-Type", "")
    logger.info("HTTP %d from %s (content-type=%s, bytes=%d)", resp.status_code, url, ctype, len(resp.content or b""))
    resp.raise_for_status()

    filename = unquote(Path(urlparse(url).path).name) or "download"
    content_type = ctype.split(";")[0].strip() or None
    return resp.content, filename, content_type


def read_local(path: str) -> Tuple[bytes, str, Optional[str]]:
    p = Path(path)
    content_type, _ = mimetypes.guess_type(p.name)
    return p.read_bytes(), p.name, content_type


async def ingest_all(
    services: Services,
    paths: List[str],
    urls: List[str],
    reprocess: List[str],
) -> List[IngestResult]:
    results: List[IngestResult] = []
    for path in paths:
        data, filename, content_type = read_local(path)
        results.append(await services.ingestion.ingest(data, filename, content_type))
    for url in urls:
        data, filename, content_type = await asyncio.to_thread(fetch_document, url)
        results.append(await services.ingestion.ingest(data, filename, content_type))
    for doc_id in reprocess:
        results.append(await services.ingestion.reprocess(doc_id))
    return results


async def _run(args: argparse.Namespace) -> List[IngestResult]:
    services = build_services()
    try:
        return await ingest_all(services, args.paths, args.url, args.reprocess)
    finally:
        await services.close()


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Ingest documents into the DocIntel store and vector index.")
    parser.add_argument("paths", nargs="*", help="Local PDF, text, Markdown or HTML files")
    parser.add_argument("--url", action="append", default=[], help="Document URL to fetch and ingest (repeatable)")
    parser.add_argument(
        "--reprocess", action="append", default=[], metavar="DOC_ID", help="Re-index a stored document (repeatable)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args(argv)
    if not (args.paths or args.url or args.reprocess):
        parser.error("nothing to ingest: give at least one PATH, --url or --reprocess")

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logger.info("Starting ingestion: files=%d, urls=%d, reprocess=%d", len(args.paths), len(args.url), len(args.reprocess))

    try:
        results = asyncio.run(_run(args))
    except Exception:
        logger.exception("Ingestion failed")
        raise
    for r in results:
        print(f"{r.doc_id} -> {r.display_name}")
        if r.flagged_pages:
            print(f"  pages needing reprocessing: {', '.join(map(str, r.flagged_pages))}")


if __name__ == "__main__":
    main()
