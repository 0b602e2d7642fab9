"""Query Orchestrator: the conversational `ask` operation.

Workflow per turn:
- Load or create the session (ConversationManager.open), applying any new scope
- Embed the query and search the index, restricted to the session's documents if set
- Empty retrieval short-circuits to a fixed reply without calling the model
- Otherwise build the prompt (with history when present), generate, cite, and record the turn

Nothing is rolled back on failure: a session created before a generation error
stays, without the failed turn's messages.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from docintel.config import Settings, settings as default_settings
from docintel.conversation import (
    ConversationManager,
    citations_for,
    distinct_doc_ids,
    no_results_message,
)
from docintel.embedding import EmbeddingService
from docintel.errors import ValidationError
from docintel.generation import Generator
from docintel.obs import span
from docintel.sessions import ChatMessage, Citation
from docintel.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class AskResult:
    session_id: str
    answer: str
    citations: List[Citation] = field(default_factory=list)
    recent_history: List[ChatMessage] = field(default_factory=list)
    document_ids: List[str] = field(default_factory=list)


class QueryOrchestrator:
    def __init__(
        self,
        conversations: ConversationManager,
        embedder: EmbeddingService,
        index: VectorIndex,
        generator: Generator,
        cfg: Optional[Settings] = None,
    ):
        self.conversations = conversations
        self._embedder = embedder
        self._index = index
        self._generator = generator
        self._top_k = (cfg or default_settings).TOP_K

    async def ask(
        self,
        query: str,
        session_id: Optional[str] = None,
        target_documents: Optional[List[str]] = None,
    ) -> AskResult:
        """Answer query within a session, creating the session on first use."""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Missing query")

        session_id = session_id or self.conversations.new_session_id()
        session = await self.conversations.open(session_id, target_documents)
        # an empty target list behaves like no scope
        scope = session.target_documents or None

        with span("retrieve", {"session_id": session_id, "scoped": bool(scope)}):
            query_vector = await self._embedder.embed_query(query)
            hits = await self._index.search(query_vector, self._top_k, doc_ids=scope)
        logger.info("Session %s: %d chunks retrieved (scoped=%s)", session_id, len(hits), bool(scope))

        if not hits:
            answer = no_results_message(scoped=bool(scope))
            await self.conversations.record_turn(session, query, answer, document_ids=[])
            return AskResult(
                session_id=session_id,
                answer=answer,
                recent_history=self.conversations.recent(session),
            )

        doc_ids = distinct_doc_ids(hits)
        prompt = self.conversations.build_prompt(session, [h.text for h in hits], query)
        with span("generate", {"session_id": session_id, "contexts": len(hits)}):
            answer = await self._generator.answer(prompt)

        citations = citations_for(hits)
        await self.conversations.record_turn(session, query, answer, document_ids=doc_ids, citations=citations)
        return AskResult(
            session_id=session_id,
            answer=answer,
            citations=citations,
            recent_history=self.conversations.recent(session),
            document_ids=doc_ids,
        )

    async def ask_once(
        self, query: str, target_documents: Optional[List[str]] = None
    ) -> Tuple[str, List[Citation]]:
        """Single-turn ask on a throwaway session, which is discarded afterwards."""
        session_id = f"oneshot-{self.conversations.new_session_id()}"
        try:
            result = await self.ask(query, session_id=session_id, target_documents=target_documents)
        finally:
            await self.conversations.delete_session(session_id)
        return result.answer, result.citations
