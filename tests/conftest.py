"""Shared pytest fixtures for the rag-feeder test suite."""

from __future__ import annotations

import io
import math
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from PIL import Image

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.embedding_provider import IEmbeddingProvider
from rag_feeder.interfaces.llm_provider import ILLMProvider
from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider
from rag_feeder.models.rag import ChatTurn, DocumentChunk, RetrievedChunk
from rag_feeder.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import CompletionProviderError, EmbeddingProviderError, StorageError

# ---------------------------------------------------------------------------
# Deterministic fakes
# ---------------------------------------------------------------------------

# Each keyword owns one axis; the last axis is a constant bias so that
# unrelated texts still have a small positive similarity.
KEYWORDS = ["oil", "filter", "torque", "brake", "tire", "coolant", "engine", "transmission"]
BIAS = 0.5


def keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    vec = [1.0 if word in lowered else 0.0 for word in KEYWORDS] + [BIAS]
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec]


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Embeds text as a normalised keyword-presence vector.

    ``fail_on_calls`` lists 1-based call numbers that raise
    EmbeddingProviderError; ``short_on_calls`` returns one vector too few.
    """

    def __init__(
        self,
        fail_on_calls: set[int] | None = None,
        short_on_calls: set[int] | None = None,
        max_batch_size: int = 2048,
    ) -> None:
        self.calls: list[list[str]] = []
        self.deadlines: list[Deadline | None] = []
        self._fail_on_calls = fail_on_calls or set()
        self._short_on_calls = short_on_calls or set()
        self._max_batch_size = max_batch_size

    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        self.calls.append(list(texts))
        self.deadlines.append(deadline)
        call_number = len(self.calls)
        if call_number in self._fail_on_calls:
            raise EmbeddingProviderError("rate limited", provider_name="keyword")
        vectors = [keyword_vector(t) for t in texts]
        if call_number in self._short_on_calls:
            return vectors[:-1]
        return vectors

    async def embed_single(self, text: str, deadline: Deadline | None = None) -> list[float]:
        return (await self.embed([text], deadline=deadline))[0]

    def get_dimension(self) -> int:
        return len(KEYWORDS) + 1

    def get_max_batch_size(self) -> int:
        return self._max_batch_size

    def get_provider_name(self) -> str:
        return "keyword"

    def is_available(self) -> bool:
        return True


class ScriptedLLMProvider(ILLMProvider):
    """Completion fake that cites the first source when context is present.

    Vision calls return ``page_texts`` in order; an entry that is an
    exception instance is raised instead.
    """

    def __init__(self, answer: str | None = None, page_texts: list[Any] | None = None) -> None:
        self.answer = answer
        self.page_texts = list(page_texts or [])
        self.complete_calls: list[dict[str, Any]] = []
        self.vision_calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: list[ChatTurn] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        deadline: Deadline | None = None,
    ) -> str:
        self.complete_calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "history": list(history or []),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "deadline": deadline,
            }
        )
        if self.answer is not None:
            return self.answer
        if "[Source 1:" in system_prompt:
            return "Torque the oil filter to 25 ft-lbs [Source 1]."
        return "I don't have that information in the knowledge base."

    async def vision_extract(
        self,
        image_bytes: bytes,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        deadline: Deadline | None = None,
    ) -> str:
        self.vision_calls.append({"image_bytes": image_bytes, "prompt": prompt, "system_prompt": system_prompt})
        index = len(self.vision_calls) - 1
        item = self.page_texts[index] if index < len(self.page_texts) else ""
        if isinstance(item, Exception):
            raise item
        return item

    def supports_vision(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


class InMemoryVectorStore(IVectorStoreProvider):
    """List-backed vector store with exact cosine search.

    ``fail_on_inserts`` lists 1-based insert calls that raise StorageError.
    """

    def __init__(self, fail_on_inserts: set[int] | None = None) -> None:
        self.chunks: list[DocumentChunk] = []
        self.insert_calls = 0
        self._fail_on_inserts = fail_on_inserts or set()

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        self.insert_calls += 1
        if self.insert_calls in self._fail_on_inserts:
            raise StorageError("disk full", provider_name="memory")
        existing = {c.chunk_id for c in self.chunks}
        if any(c.chunk_id in existing for c in chunks):
            raise StorageError("duplicate chunk id", provider_name="memory")
        self.chunks.extend(chunks)
        return len(chunks)

    async def search(
        self,
        query_vector: list[float],
        tenant_filter: str | None,
        top_k: int,
        min_similarity: float,
    ) -> list[RetrievedChunk]:
        hits = []
        for chunk in self.chunks:
            if tenant_filter is not None and chunk.tenant_id != tenant_filter:
                continue
            similarity = max(0.0, min(1.0, sum(a * b for a, b in zip(query_vector, chunk.embedding))))
            if similarity >= min_similarity:
                hits.append(RetrievedChunk(chunk=chunk, similarity=similarity))
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[:top_k]

    async def delete_by_document(self, document_id: str) -> int:
        before = len(self.chunks)
        self.chunks = [c for c in self.chunks if c.document_id != document_id]
        return before - len(self.chunks)

    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        return sorted((c for c in self.chunks if c.document_id == document_id), key=lambda c: c.chunk_index)

    async def count(self) -> int:
        return len(self.chunks)

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


def make_text(length: int, filler: str = "Check the oil filter torque before each service. ") -> str:
    """Return text of exactly *length* characters built from *filler*."""
    repeated = filler * (length // len(filler) + 1)
    return repeated[:length]


def make_png(width: int = 32, height: int = 32, color: str = "white") -> bytes:
    """Encode a solid-colour PNG with Pillow."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        document_db_path=str(tmp_path / "documents.db"),
    )


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal resolved configuration."""
    return {
        "app": {"name": "rag-feeder", "version": "0.1.0"},
        "api": {"cors_origins": ["*"]},
        "documents": {
            "allowed_types": ["manual", "oem", "transcription", "text", "other"],
            "default_vision_type": "manual",
            "default_vision_description": "Extracted via Vision AI from scanned document",
        },
    }


@pytest.fixture
def embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def llm_provider() -> ScriptedLLMProvider:
    return ScriptedLLMProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest_asyncio.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(tmp_path / "documents.db")
    await store.initialize()
    return store


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """MagicMock ILLMProvider; override ``complete`` / ``vision_extract`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.supports_vision.return_value = True
    mock.complete = AsyncMock(return_value="ok")
    mock.vision_extract = AsyncMock(return_value="")
    return mock


@pytest.fixture
def failing_llm_provider() -> ILLMProvider:
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = False
    mock.complete = AsyncMock(side_effect=CompletionProviderError("upstream 500", provider_name="mock-llm"))
    return mock
