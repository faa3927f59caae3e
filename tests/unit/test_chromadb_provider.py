"""Unit tests for the ChromaDB vector store provider.

Runs against a real persistent client in a temporary directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rag_feeder.models.rag import DocumentChunk
from rag_feeder.providers.vector_store.chromadb_provider import ChromaDBProvider
from rag_feeder.utils.errors import StorageError


def _unit(*components: float) -> list[float]:
    norm = sum(c * c for c in components) ** 0.5
    return [c / norm for c in components]


def _make_chunk(
    chunk_id: str,
    document_id: str = "doc-1",
    tenant_id: str = "acme",
    chunk_index: int = 0,
    embedding: list[float] | None = None,
    tags: list[str] | None = None,
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=document_id,
        tenant_id=tenant_id,
        chunk_index=chunk_index,
        content=f"content of {chunk_id}",
        embedding=embedding or _unit(1.0, 0.0, 0.0),
        token_count=5,
        tags=tags if tags is not None else ["engine"],
    )


def _make_provider(tmp_path: Path, dimension: int = 0) -> ChromaDBProvider:
    return ChromaDBProvider(
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_chunks",
        dimension=dimension,
    )


class TestInsert:
    @pytest.mark.asyncio()
    async def test_insert_and_count(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)

        written = await provider.insert_chunks([_make_chunk("c1"), _make_chunk("c2", chunk_index=1)])

        assert written == 2
        assert await provider.count() == 2

    @pytest.mark.asyncio()
    async def test_empty_insert_is_noop(self, tmp_path: Path) -> None:
        assert await _make_provider(tmp_path).insert_chunks([]) == 0

    @pytest.mark.asyncio()
    async def test_existing_id_rejected(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks([_make_chunk("c1")])

        with pytest.raises(StorageError, match="already stored"):
            await provider.insert_chunks([_make_chunk("c1")])
        assert await provider.count() == 1

    @pytest.mark.asyncio()
    async def test_duplicate_ids_in_one_batch_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(StorageError):
            await _make_provider(tmp_path).insert_chunks([_make_chunk("c1"), _make_chunk("c1")])

    @pytest.mark.asyncio()
    async def test_dimension_mismatch_rejected(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path, dimension=3)
        with pytest.raises(StorageError, match="expects 3"):
            await provider.insert_chunks([_make_chunk("c1", embedding=[0.5, 0.5])])

    def test_reopen_with_other_dimension_fails(self, tmp_path: Path) -> None:
        import asyncio

        provider = _make_provider(tmp_path)
        asyncio.run(provider.insert_chunks([_make_chunk("c1")]))

        with pytest.raises(StorageError, match="dimension mismatch"):
            _make_provider(tmp_path, dimension=1536)


class TestSearch:
    @pytest.mark.asyncio()
    async def test_results_sorted_and_thresholded(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks(
            [
                _make_chunk("exact", chunk_index=0, embedding=_unit(1.0, 0.0, 0.0)),
                _make_chunk("close", chunk_index=1, embedding=_unit(1.0, 0.5, 0.0)),
                _make_chunk("orthogonal", chunk_index=2, embedding=_unit(0.0, 0.0, 1.0)),
            ]
        )

        hits = await provider.search(_unit(1.0, 0.0, 0.0), tenant_filter="acme", top_k=10, min_similarity=0.5)

        assert [h.chunk.chunk_id for h in hits] == ["exact", "close"]
        assert hits[0].similarity == pytest.approx(1.0, abs=1e-3)
        assert hits[1].similarity == pytest.approx(0.894, abs=1e-2)
        assert hits[0].chunk.tags == ["engine"]
        assert hits[0].chunk.document_id == "doc-1"

    @pytest.mark.asyncio()
    async def test_tenant_filter_isolates(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks(
            [
                _make_chunk("a1", document_id="doc-a", tenant_id="company-a"),
                _make_chunk("b1", document_id="doc-b", tenant_id="company-b"),
            ]
        )

        hits = await provider.search(_unit(1.0, 0.0, 0.0), tenant_filter="company-b", top_k=10, min_similarity=0.0)

        assert [h.chunk.chunk_id for h in hits] == ["b1"]
        assert all(h.chunk.tenant_id == "company-b" for h in hits)

    @pytest.mark.asyncio()
    async def test_top_k_limits_results(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks([_make_chunk(f"c{i}", chunk_index=i) for i in range(5)])

        hits = await provider.search(_unit(1.0, 0.0, 0.0), tenant_filter="acme", top_k=2, min_similarity=0.0)

        assert len(hits) == 2

    @pytest.mark.asyncio()
    async def test_empty_collection(self, tmp_path: Path) -> None:
        hits = await _make_provider(tmp_path).search(_unit(1.0, 0.0, 0.0), "acme", top_k=5, min_similarity=0.0)
        assert hits == []


class TestDocumentOperations:
    @pytest.mark.asyncio()
    async def test_list_chunks_in_index_order(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks([_make_chunk("c2", chunk_index=2), _make_chunk("c0", chunk_index=0)])
        await provider.insert_chunks([_make_chunk("c1", chunk_index=1)])

        chunks = await provider.list_chunks("doc-1")

        assert [c.chunk_index for c in chunks] == [0, 1, 2]

    @pytest.mark.asyncio()
    async def test_delete_by_document(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        await provider.insert_chunks(
            [
                _make_chunk("a0", document_id="doc-a", chunk_index=0),
                _make_chunk("a1", document_id="doc-a", chunk_index=1),
                _make_chunk("b0", document_id="doc-b", chunk_index=0),
            ]
        )

        assert await provider.delete_by_document("doc-a") == 2
        assert await provider.delete_by_document("doc-a") == 0
        assert await provider.count() == 1
        assert await provider.list_chunks("doc-a") == []


class TestMetadataHelpers:
    def test_round_trip_drops_embedding_only(self) -> None:
        chunk = _make_chunk("c1", tags=["oil", "filter"])
        meta = ChromaDBProvider._chunk_to_metadata(chunk)

        assert meta["tags"] == "oil,filter"
        restored = ChromaDBProvider._metadata_to_chunk("c1", meta, chunk.content)
        assert restored == chunk.model_copy(update={"embedding": []})

    def test_empty_tags(self) -> None:
        meta = ChromaDBProvider._chunk_to_metadata(_make_chunk("c1", tags=[]))
        assert ChromaDBProvider._metadata_to_chunk("c1", meta, "text").tags == []

    def test_provider_name_and_availability(self, tmp_path: Path) -> None:
        provider = _make_provider(tmp_path)
        assert provider.get_provider_name() == "chromadb"
        assert provider.is_available() is True
