"""Pydantic request/response schemas for the API.

Defines the public contracts used by the FastAPI endpoints. Field names are
snake_case in Python and camelCase on the wire (sessionId, targetDocuments,
chunkOrdinal, ...); inputs accept either spelling.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docintel.documents import DocumentMetadata
from docintel.sessions import ChatMessage, Citation, Session


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CitationOut(CamelModel):
    """A pointer from an answer to a retrieved chunk."""
    doc_id: str
    chunk_ordinal: int

    @classmethod
    def from_citation(cls, c: Citation) -> "CitationOut":
        return cls(doc_id=c.doc_id, chunk_ordinal=c.chunk_ordinal)


class ChatMessageOut(CamelModel):
    id: str
    role: str
    content: str
    timestamp: datetime
    document_ids: Optional[List[str]] = None
    citations: Optional[List[CitationOut]] = None

    @classmethod
    def from_message(cls, m: ChatMessage) -> "ChatMessageOut":
        return cls(
            id=m.id,
            role=m.role,
            content=m.content,
            timestamp=m.timestamp,
            document_ids=list(m.document_ids) if m.document_ids is not None else None,
            citations=[CitationOut.from_citation(c) for c in m.citations] if m.citations is not None else None,
        )


class ChatRequest(CamelModel):
    """Request body for a conversational question.

    Attributes:
        query: The user question.
        session_id: Existing session to continue; a new one is created when omitted or unknown.
        target_documents: Restrict retrieval to these document ids; null keeps the session's scope.
    """
    query: str = Field(..., min_length=1, description="User question")
    session_id: Optional[str] = None
    target_documents: Optional[List[str]] = None


class ChatResponse(CamelModel):
    session_id: str
    answer: str
    citations: List[CitationOut]
    chat_history: List[ChatMessageOut]
    document_ids: List[str]


class AskRequest(CamelModel):
    """Legacy single-turn request; doc_id optionally scopes retrieval to one document."""
    query: str = Field(..., min_length=1, description="User question")
    doc_id: Optional[str] = None


class AskResponse(CamelModel):
    answer: str
    citations: List[CitationOut]


class UploadResponse(CamelModel):
    id: str
    name: str


class DocumentSummary(CamelModel):
    id: str


class DocumentMetadataOut(CamelModel):
    id: str
    name: str
    status: str
    upload_date: str
    size: str
    type: str
    pages: Optional[int] = None
    summary: Optional[str] = None

    @classmethod
    def from_metadata(cls, m: DocumentMetadata) -> "DocumentMetadataOut":
        return cls(
            id=m.id,
            name=m.name,
            status=m.status,
            upload_date=m.upload_date,
            size=m.size,
            type=m.type,
            pages=m.pages,
            summary=m.summary,
        )


class DocumentChunksOut(CamelModel):
    id: str
    chunks: List[str]


class DeleteDocumentResponse(CamelModel):
    success: bool
    message: str
    files_removed: int


class SessionSummary(CamelModel):
    id: str
    message_count: int
    target_documents: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, s: Session) -> "SessionSummary":
        return cls(
            id=s.id,
            message_count=len(s.messages),
            target_documents=s.target_documents,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )


class SessionOut(CamelModel):
    id: str
    messages: List[ChatMessageOut]
    target_documents: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, s: Session) -> "SessionOut":
        return cls(
            id=s.id,
            messages=[ChatMessageOut.from_message(m) for m in s.messages],
            target_documents=s.target_documents,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )


class SetTargetRequest(CamelModel):
    """New document scope for a session; null (or omitted) searches all documents."""
    target_documents: Optional[List[str]] = None


class DeleteSessionResponse(CamelModel):
    success: bool


class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    details: Optional[Any] = None
