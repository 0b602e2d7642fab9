"""Shared pytest fixtures for the DocIntel test suite."""

from __future__ import annotations

import hashlib
import math
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from qdrant_client import AsyncQdrantClient

from docintel.config import Settings
from docintel.embedding import EmbeddingService
from docintel.generation import Generator
from docintel.services import Services, build_services
from docintel.sessions import InMemorySessionStore
from docintel.vector_index import VectorIndex

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

DIM = 64
_TOKEN_RE = re.compile(r"[a-z0-9]+")


class BagOfWordsEncoder:
    """Deterministic hashed bag-of-words vectors; shared words give cosine similarity."""

    def __init__(self, dim: int = DIM):
        self.dim = dim
        self.calls = 0

    def vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        vec[0] = 0.01  # keeps token-less texts off the zero vector
        for token in _TOKEN_RE.findall(text.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % (self.dim - 1) + 1
            vec[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        return [v / norm for v in vec]

    async def encode(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [self.vector(t) for t in texts]


def context_echo(prompt: str) -> str:
    """Answer with the prompt's context block, citing the first source."""
    context = prompt.split("Context:\n\n", 1)[1].split("\n\nQuestion:", 1)[0]
    return f"{context} [#1]"


def completion(text: Optional[str]) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text, refusal=None))])


class FakeChatClient:
    """Stands in for AsyncOpenAI: chat.completions.create returns scripted completions.

    Answer calls (those with a system message) go through answer_fn; naming calls
    return `name`. Either may be an exception instance, which is raised instead.
    """

    def __init__(self, answer_fn: Callable[[str], Any] = context_echo, name: Any = "France Capital Facts"):
        self.answer_fn = answer_fn
        self.name = name
        self.calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    @property
    def answer_prompts(self) -> List[str]:
        return [c["messages"][-1]["content"] for c in self.calls if c["messages"][0]["role"] == "system"]

    async def _create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        messages = kwargs["messages"]
        if messages[0]["role"] == "system":
            result = self.answer_fn(messages[-1]["content"])
        else:
            result = self.name
        if isinstance(result, Exception):
            raise result
        return completion(result)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="",
        DATABASE_URL=f"sqlite:///{tmp_path / 'docintel.db'}",
        QDRANT_LOCATION=":memory:",
        QDRANT_COLLECTION="test_docs",
        SESSION_BACKEND="memory",
    )


@pytest.fixture
def encoder() -> BagOfWordsEncoder:
    return BagOfWordsEncoder()


@pytest.fixture
def embedder(test_settings, encoder) -> EmbeddingService:
    async def load():
        return encoder

    return EmbeddingService(test_settings, loader=load)


@pytest.fixture
def index() -> VectorIndex:
    return VectorIndex(AsyncQdrantClient(location=":memory:"), "test_docs")


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def generator(test_settings, chat_client) -> Generator:
    return Generator(test_settings, client=chat_client)


@pytest.fixture
def services(test_settings, index, embedder, generator) -> Services:
    return build_services(
        test_settings,
        index=index,
        embedder=embedder,
        generator=generator,
        session_store=InMemorySessionStore(),
    )


@pytest.fixture
def paris_doc() -> bytes:
    return b"Paris is the capital of France."
