"""FastAPI application entrypoint and routes.

Exposes document ingestion and management, conversational /chat, the legacy
single-turn /ask, session administration and a health probe. Pipeline
components are built once at startup (see docintel.services) and shared by all
requests through app.state.

Every error leaves the API as a JSON body with at least {error, details}:
DocIntelError subclasses keep their status and code, request validation
failures become 400, anything unexpected becomes 500 without a stack trace.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from docintel.config import settings
from docintel.errors import DocIntelError, NotFoundError
from docintel.schemas import (
    AskRequest,
    AskResponse,
    ChatMessageOut,
    ChatRequest,
    ChatResponse,
    CitationOut,
    DeleteDocumentResponse,
    DeleteSessionResponse,
    DocumentChunksOut,
    DocumentMetadataOut,
    DocumentSummary,
    ErrorResponse,
    SessionOut,
    SessionSummary,
    SetTargetRequest,
    UploadResponse,
)
from docintel.services import Services, build_services

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

router = APIRouter()
_ERRORS = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the shared pipeline container."""
    return request.app.state.services


@router.get("/health")
def health():
    """Liveness probe endpoint.

    Returns:
        dict: {"status": "ok"} when the service is running.
    """
    return {"status": "ok"}


@router.post("/upload", response_model=UploadResponse, responses=_ERRORS)
async def upload(file: UploadFile = File(...), services: Services = Depends(get_services)) -> UploadResponse:
    """Ingest one uploaded document.

    Args:
        file: Multipart file; PDF, text, Markdown or HTML.

    Returns:
        UploadResponse: The new document id and its generated display name.
    """
    data = await file.read()
    result = await services.ingestion.ingest(data, file.filename or "upload", file.content_type)
    return UploadResponse(id=result.doc_id, name=result.display_name)


@router.get("/documents", response_model=List[DocumentSummary])
async def list_documents(services: Services = Depends(get_services)) -> List[DocumentSummary]:
    """List processed documents.

    Returns:
        list[DocumentSummary]: One entry per document with cleaned text, oldest first.
    """
    return [DocumentSummary(id=d) for d in await services.documents.list_documents()]


@router.get("/documents/{doc_id}/metadata", response_model=DocumentMetadataOut)
async def document_metadata(doc_id: str, services: Services = Depends(get_services)) -> DocumentMetadataOut:
    """Return display metadata for a document.

    Unknown ids are not an error; they report status "unknown".

    Args:
        doc_id: Document identifier.

    Returns:
        DocumentMetadataOut: Name, status, upload date, size, type and page count.
    """
    meta = await services.documents.metadata(doc_id)
    return DocumentMetadataOut.from_metadata(meta)


@router.get("/documents/{doc_id}/chunks", response_model=DocumentChunksOut)
async def document_chunks(doc_id: str, services: Services = Depends(get_services)) -> DocumentChunksOut:
    """Return the document's cleaned text re-chunked for display."""
    return DocumentChunksOut(id=doc_id, chunks=await services.documents.chunks(doc_id))


@router.delete("/documents/{doc_id}", response_model=DeleteDocumentResponse)
async def delete_document(doc_id: str, services: Services = Depends(get_services)) -> DeleteDocumentResponse:
    """Delete a document's stored artifacts and index points.

    Args:
        doc_id: Document identifier; deleting an unknown id succeeds.

    Returns:
        DeleteDocumentResponse: success flag and the number of artifacts removed.
    """
    removed = await services.documents.delete(doc_id)
    return DeleteDocumentResponse(success=True, message="Document deleted successfully", files_removed=removed)


@router.get("/documents/{doc_id}/download")
async def download_document(doc_id: str, services: Services = Depends(get_services)) -> Response:
    """Stream the original uploaded bytes as an attachment.

    Raises:
        NotFoundError: If no raw bytes are stored for doc_id.
    """
    raw = await services.documents.download(doc_id)
    return Response(
        content=raw.data,
        media_type=raw.content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{raw.filename}"'},
    )


@router.post("/chat", response_model=ChatResponse, responses=_ERRORS)
async def chat(req: ChatRequest, services: Services = Depends(get_services)) -> ChatResponse:
    """Answer a question within a conversation session.

    Creates the session on first use; target_documents, when given, replaces the
    session's document scope for this and later turns.
    """
    result = await services.query.ask(req.query, session_id=req.session_id, target_documents=req.target_documents)
    return ChatResponse(
        session_id=result.session_id,
        answer=result.answer,
        citations=[CitationOut.from_citation(c) for c in result.citations],
        chat_history=[ChatMessageOut.from_message(m) for m in result.recent_history],
        document_ids=result.document_ids,
    )


@router.post("/ask", response_model=AskResponse, responses=_ERRORS)
async def ask(req: AskRequest, services: Services = Depends(get_services)) -> AskResponse:
    """Legacy single-turn endpoint: no session continuity between calls."""
    target = [req.doc_id] if req.doc_id else None
    answer, citations = await services.query.ask_once(req.query, target_documents=target)
    return AskResponse(answer=answer, citations=[CitationOut.from_citation(c) for c in citations])


@router.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(services: Services = Depends(get_services)) -> List[SessionSummary]:
    """List session summaries, most recently updated first."""
    return [SessionSummary.from_session(s) for s in await services.conversations.list_sessions()]


@router.get("/sessions/{session_id}", response_model=SessionOut)
async def get_session(session_id: str, services: Services = Depends(get_services)) -> SessionOut:
    """Return a session with its full message history.

    Raises:
        NotFoundError: If the session does not exist.
    """
    session = await services.conversations.get_session(session_id)
    if session is None:
        raise NotFoundError("Session not found", details={"id": session_id})
    return SessionOut.from_session(session)


@router.delete("/sessions/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(session_id: str, services: Services = Depends(get_services)) -> DeleteSessionResponse:
    """Delete a session.

    Returns:
        DeleteSessionResponse: success is False when the session did not exist.
    """
    return DeleteSessionResponse(success=await services.conversations.delete_session(session_id))


@router.put("/sessions/{session_id}/target", response_model=SessionOut)
async def set_session_target(
    session_id: str, req: SetTargetRequest, services: Services = Depends(get_services)
) -> SessionOut:
    """Replace or clear (with null) the document scope of an existing session.

    Args:
        session_id: Session identifier.
        req: New targetDocuments list, or null to search all documents.

    Returns:
        SessionOut: The updated session.
    """
    session = await services.conversations.set_target(session_id, req.target_documents)
    if session is None:
        raise NotFoundError("Session not found", details={"id": session_id})
    return SessionOut.from_session(session)


async def _docintel_error(request: Request, exc: DocIntelError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "VALIDATION_ERROR", "details": jsonable_encoder(exc.errors())},
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the FastAPI app; components come from settings unless services is given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = services or build_services(settings)
        logger.info("DocIntel ready (collection=%s)", app.state.services.index.collection)
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(title="DocIntel API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_credentials=True,
        allow_headers=["*"],
    )
    app.add_exception_handler(DocIntelError, _docintel_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
    app.include_router(router)
    return app


app = create_app()
