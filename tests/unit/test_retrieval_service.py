"""Unit tests for RetrievalService -- tenant-filtered semantic search."""

from __future__ import annotations

import pytest

from conftest import InMemoryVectorStore, KeywordEmbeddingProvider, keyword_vector
from rag_feeder.config.settings import Settings
from rag_feeder.models.rag import DocumentChunk
from rag_feeder.services.retrieval_service import RetrievalService
from rag_feeder.utils.errors import ValidationError


def _chunk(chunk_id: str, content: str, tenant_id: str = "acme", index: int = 0) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=f"doc-{chunk_id}",
        tenant_id=tenant_id,
        chunk_index=index,
        content=content,
        embedding=keyword_vector(content),
    )


@pytest.fixture
def populated_store() -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    store.chunks = [
        _chunk("oil", "Oil filter torque: 25 ft-lbs."),
        _chunk("brake", "Brake pad minimum thickness is 3 mm."),
        _chunk("foreign", "Oil filter torque for another fleet.", tenant_id="other-co"),
    ]
    return store


def _service(embedder: KeywordEmbeddingProvider, store: InMemoryVectorStore) -> RetrievalService:
    return RetrievalService(embedder, store, Settings(_env_file=None))


class TestSearch:
    @pytest.mark.asyncio()
    async def test_best_match_first_and_tenant_scoped(self, populated_store: InMemoryVectorStore) -> None:
        hits = await _service(KeywordEmbeddingProvider(), populated_store).search(
            "oil filter torque", "acme", min_similarity=0.0
        )

        assert [h.chunk.chunk_id for h in hits] == ["oil", "brake"]
        assert hits[0].similarity == pytest.approx(1.0)
        assert all(h.chunk.tenant_id == "acme" for h in hits)

    @pytest.mark.asyncio()
    async def test_default_threshold_drops_weak_matches(self, populated_store: InMemoryVectorStore) -> None:
        hits = await _service(KeywordEmbeddingProvider(), populated_store).search("oil filter torque", "acme")
        assert [h.chunk.chunk_id for h in hits] == ["oil"]

    @pytest.mark.asyncio()
    async def test_threshold_above_best_score_returns_nothing(self, populated_store: InMemoryVectorStore) -> None:
        service = _service(KeywordEmbeddingProvider(), populated_store)

        # "oil filter" vs "oil filter torque" scores about 0.83.
        assert await service.search("oil filter", "acme", min_similarity=0.9) == []
        assert len(await service.search("oil filter", "acme", min_similarity=0.6)) == 1

    @pytest.mark.asyncio()
    async def test_top_k(self, populated_store: InMemoryVectorStore) -> None:
        hits = await _service(KeywordEmbeddingProvider(), populated_store).search(
            "oil filter torque", "acme", top_k=1, min_similarity=0.0
        )
        assert len(hits) == 1

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query_makes_no_provider_call(self, query: str, populated_store: InMemoryVectorStore) -> None:
        embedder = KeywordEmbeddingProvider()
        with pytest.raises(ValidationError, match="Query is required"):
            await _service(embedder, populated_store).search(query, "acme")
        assert embedder.calls == []

    @pytest.mark.asyncio()
    async def test_tenant_required(self, populated_store: InMemoryVectorStore) -> None:
        with pytest.raises(ValidationError, match="tenant_id"):
            await _service(KeywordEmbeddingProvider(), populated_store).search("oil", "")
