"""Multi-turn conversation state and prompt construction.

The ConversationManager owns everything session-shaped in the query path:
- loading or creating a session and applying a new document scope
- building the RAG prompt, with the recent history window when the session has one
- mapping retrieved chunks to citations
- appending the user/assistant pair once a turn completes

Storage is delegated to a SessionStore; no lock is taken, so two concurrent
turns on one session interleave (last writer wins).
"""
import logging
import uuid
from typing import List, Optional, Sequence

from docintel.config import Settings, settings as default_settings
from docintel.sessions import ChatMessage, Citation, Session, SessionStore, utcnow
from docintel.vector_index import SearchHit

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = (
    "I couldn't find any relevant information in your documents to answer that question. "
    "Try uploading a related document or rephrasing your question."
)
NO_RESULTS_SCOPED_MESSAGE = (
    "I couldn't find any relevant information in the selected documents to answer that question. "
    "Try selecting different documents or searching across all documents."
)

_ROLE_LABELS = {"user": "User", "assistant": "Assistant"}


def distinct_doc_ids(hits: Sequence[SearchHit]) -> List[str]:
    """docIds referenced by hits, first-seen order."""
    seen: List[str] = []
    for h in hits:
        if h.doc_id not in seen:
            seen.append(h.doc_id)
    return seen


def citations_for(hits: Sequence[SearchHit]) -> List[Citation]:
    # one per retrieved chunk, duplicates by document kept
    return [Citation(doc_id=h.doc_id, chunk_ordinal=h.ordinal) for h in hits]


def no_results_message(scoped: bool) -> str:
    return NO_RESULTS_SCOPED_MESSAGE if scoped else NO_RESULTS_MESSAGE


class ConversationManager:
    """Session lifecycle, history windows and prompt construction."""

    def __init__(self, store: SessionStore, cfg: Optional[Settings] = None):
        self._store = store
        cfg = cfg or default_settings
        self.history_messages = cfg.HISTORY_MESSAGES
        self.recent_history = cfg.RECENT_HISTORY

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex

    async def open(self, session_id: str, target_documents: Optional[List[str]] = None) -> Session:
        """Load session_id or create it active; a non-null target replaces the scope."""
        session = await self._store.get(session_id)
        if session is None:
            session = Session(id=session_id, target_documents=list(target_documents) if target_documents is not None else None)
            logger.info("Created session %s", session_id)
        else:
            session.updated_at = utcnow()
            if target_documents is not None:
                session.target_documents = list(target_documents)
        await self._store.save(session)
        return session

    def history_window(self, session: Session) -> List[ChatMessage]:
        if self.history_messages <= 0:
            return []
        return session.messages[-self.history_messages :]

    def recent(self, session: Session) -> List[ChatMessage]:
        """Last RECENT_HISTORY messages, as returned to chat clients."""
        if self.recent_history <= 0:
            return []
        return session.messages[-self.recent_history :]

    def build_prompt(self, session: Session, contexts: Sequence[str], query: str) -> str:
        """RAG prompt with numbered contexts; prior turns are included when the session has any."""
        numbered = "\n\n".join(f"[#{i}] {c}" for i, c in enumerate(contexts, start=1))
        history = self.history_window(session)

        parts = [
            "You are a helpful document analysis assistant. Provide comprehensive, detailed answers "
            "strictly from the provided context."
        ]
        if history:
            lines = [f"{_ROLE_LABELS[m.role]}: {m.content}" for m in history]
            parts.append("Conversation history (oldest to newest):\n" + "\n".join(lines))
        parts.append(f"Context:\n\n{numbered}")
        parts.append(f"Question: {query}")
        if history:
            parts.append(
                "Stay consistent with the conversation history above; resolve follow-up references "
                "against it, but take facts only from the context. Cite sources using [#index] format."
            )
        else:
            parts.append(
                "Provide a detailed, thorough answer with explanations and analysis where appropriate. "
                "Cite sources using [#index] format."
            )
        parts.append("Answer:")
        return "\n\n".join(parts)

    async def record_turn(
        self,
        session: Session,
        query: str,
        answer: str,
        document_ids: Sequence[str],
        citations: Optional[Sequence[Citation]] = None,
    ) -> None:
        """Append the user message then the assistant message, and persist."""
        doc_ids = tuple(document_ids)
        session.messages.append(ChatMessage(role="user", content=query, document_ids=doc_ids))
        session.messages.append(
            ChatMessage(
                role="assistant",
                content=answer,
                document_ids=doc_ids,
                citations=tuple(citations) if citations is not None else None,
            )
        )
        session.updated_at = utcnow()
        await self._store.save(session)

    async def list_sessions(self) -> List[Session]:
        sessions = await self._store.list_all()
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    async def get_session(self, session_id: str) -> Optional[Session]:
        return await self._store.get(session_id)

    async def delete_session(self, session_id: str) -> bool:
        return await self._store.delete(session_id)

    async def close(self) -> None:
        await self._store.close()

    async def set_target(self, session_id: str, target_documents: Optional[List[str]]) -> Optional[Session]:
        """Replace (or clear, with None) a session's document scope; None if the session is unknown."""
        session = await self._store.get(session_id)
        if session is None:
            return None
        session.target_documents = list(target_documents) if target_documents is not None else None
        session.updated_at = utcnow()
        await self._store.save(session)
        return session
