"""Database ORM models.

Defines the persistent document record behind the Document Store:
- StoredDocument: raw upload bytes plus the derived page-tagged text. Either
  artifact may be absent; processing status is derived from which are present.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String, Text

from docintel.db import Base


class StoredDocument(Base):
    """One ingested document.

    Columns:
        raw: original upload bytes, written once and never modified.
        clean_text: page-tagged text produced by the extractor; may be rewritten.
        size: byte length of raw, kept so metadata reads skip loading the blob.
    """
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True)
    filename = Column(String(512), nullable=False)
    content_type = Column(String(128), nullable=True)

    raw = Column(LargeBinary, nullable=True)
    size = Column(Integer, nullable=False, default=0)
    clean_text = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
