"""Wiring of the pipeline components into one container.

build_services assembles store, index, embedder, generator, conversation
manager and orchestrators from Settings. Any component can be passed in
explicitly, which is how tests swap in embedded Qdrant and fake models.
"""
from dataclasses import dataclass
from typing import Optional

from docintel.chunker import Chunker
from docintel.config import Settings, settings as default_settings
from docintel.conversation import ConversationManager
from docintel.document_store import DocumentStore
from docintel.documents import DocumentService
from docintel.embedding import EmbeddingService, get_embedding_service
from docintel.generation import Generator
from docintel.ingestion.orchestrator import IngestionOrchestrator
from docintel.query import QueryOrchestrator
from docintel.sessions import SessionStore, build_session_store
from docintel.vector_index import VectorIndex


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    index: VectorIndex
    embedder: EmbeddingService
    generator: Generator
    conversations: ConversationManager
    ingestion: IngestionOrchestrator
    query: QueryOrchestrator
    documents: DocumentService

    async def close(self) -> None:
        """Close the vector index client and the session store."""
        try:
            await self.index.close()
        finally:
            await self.conversations.close()


def build_services(
    cfg: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    index: Optional[VectorIndex] = None,
    embedder: Optional[EmbeddingService] = None,
    generator: Optional[Generator] = None,
    session_store: Optional[SessionStore] = None,
) -> Services:
    cfg = cfg or default_settings
    store = store or DocumentStore(cfg.DATABASE_URL)
    index = index or VectorIndex.from_settings(cfg)
    if embedder is None:
        embedder = get_embedding_service() if cfg is default_settings else EmbeddingService(cfg)
    generator = generator or Generator(cfg)
    chunker = Chunker.from_settings(cfg)
    conversations = ConversationManager(session_store or build_session_store(cfg), cfg)

    return Services(
        settings=cfg,
        store=store,
        index=index,
        embedder=embedder,
        generator=generator,
        conversations=conversations,
        ingestion=IngestionOrchestrator(store, embedder, index, generator, chunker=chunker, cfg=cfg),
        query=QueryOrchestrator(conversations, embedder, index, generator, cfg),
        documents=DocumentService(store, index, chunker),
    )
