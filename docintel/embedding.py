"""Embedding utilities with a lazily-initialized, shared model.

Provides:
- EmbeddingService: embed (batch) / embed_query, backed by either a local
  sentence-transformers model or the OpenAI embeddings API.
- get_embedding_service: process-wide shared instance.

The backend is loaded on first use behind an asyncio lock, so concurrent first
callers await one initialization instead of each loading the model. Chunks and
queries go through the same backend so their vectors are comparable by cosine.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from openai import AsyncOpenAI

from docintel.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Encoder(Protocol):
    async def encode(self, texts: List[str]) -> List[List[float]]: ...


class _LocalEncoder:
    """sentence-transformers model; encoding runs in a worker thread."""

    def __init__(self, model, batch_size: int):
        self._model = model
        self._batch_size = batch_size

    async def encode(self, texts: List[str]) -> List[List[float]]:
        vectors = await asyncio.to_thread(
            self._model.encode,
            texts,
            batch_size=self._batch_size,
            normalize_embeddings=True,
            convert_to_numpy=True,
        )
        return vectors.tolist()


class _OpenAIEncoder:
    def __init__(self, client: AsyncOpenAI, model: str, batch_size: int):
        self._client = client
        self._model = model
        self._batch_size = batch_size

    async def encode(self, texts: List[str]) -> List[List[float]]:
        out: List[List[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            resp = await self._client.embeddings.create(model=self._model, input=batch)
            # the API may return items out of order; index restores input order
            out.extend(d.embedding for d in sorted(resp.data, key=lambda d: d.index))
        return out


Loader = Callable[[], Awaitable[Encoder]]


class EmbeddingService:
    """Maps texts to fixed-dimension vectors, order-preserving.

    Args:
        cfg: Settings selecting the backend and model.
        loader: Optional coroutine factory building the encoder; overrides the configured backend.
    """

    def __init__(self, cfg: Optional[Settings] = None, loader: Optional[Loader] = None):
        self._cfg = cfg or default_settings
        self._loader = loader or self._load_configured
        self._encoder: Optional[Encoder] = None
        self._lock = asyncio.Lock()

    async def _load_configured(self) -> Encoder:
        cfg = self._cfg
        if cfg.EMBEDDING_PROVIDER == "openai":
            logger.info("Using OpenAI embeddings: %s", cfg.OPENAI_EMBEDDING_MODEL)
            client = AsyncOpenAI(api_key=cfg.OPENAI_API_KEY)
            return _OpenAIEncoder(client, cfg.OPENAI_EMBEDDING_MODEL, cfg.EMBEDDING_BATCH_SIZE)

        # Imported lazily; torch import dominates cold start
        from sentence_transformers import SentenceTransformer

        logger.info("Loading local embedding model: %s", cfg.LOCAL_EMBEDDING_MODEL)
        model = await asyncio.to_thread(SentenceTransformer, cfg.LOCAL_EMBEDDING_MODEL)
        return _LocalEncoder(model, cfg.EMBEDDING_BATCH_SIZE)

    async def _get_encoder(self) -> Encoder:
        if self._encoder is not None:
            return self._encoder
        async with self._lock:
            if self._encoder is None:
                self._encoder = await self._loader()
        return self._encoder

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts; one vector per input, same order."""
        if not texts:
            return []
        encoder = await self._get_encoder()
        return await encoder.encode(list(texts))

    async def embed_query(self, text: str) -> List[float]:
        vectors = await self.embed([text])
        return vectors[0]


_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    """Return the process-wide EmbeddingService built from default settings."""
    global _service
    if _service is None:
        _service = EmbeddingService()
    return _service
