"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search; a distance ``d`` is reported
as similarity ``1 - d`` clamped to ``[0, 1]``.

Every chunk carries ``tenant_id`` and ``document_id`` in its metadata so
searches and deletions are plain ``where`` clauses.
"""

from __future__ import annotations

import os
from typing import Any

# ChromaDB's bundled PostHog telemetry must be off before chromadb is
# imported; the env var, the SDK flag and the client Settings each cover
# different chromadb versions.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider
from rag_feeder.models.rag import DocumentChunk, RetrievedChunk
from rag_feeder.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    All vectors come from the embedding provider; without this ChromaDB
    would download its default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "rag-feeder stores pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Chunk store backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory holding the ChromaDB files.
    collection_name:
        Name of the chunk collection.
    dimension:
        Expected embedding length.  ``0`` adopts the length of the vectors
        already stored, or of the first insert into an empty collection.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "document_chunks",
        dimension: int = 0,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by an older chromadb with the default
        # embedding function refuse a different one; reopen without it.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._dimension = dimension
        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Compare one stored vector against the expected dimension.

        A mismatch means every query would compare vectors from different
        models, so it fails at startup.
        """
        if self._collection.count() == 0:
            return
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        if self._dimension and stored_dim != self._dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._dimension,
            )
            raise StorageError(
                message=(
                    f"Embedding dimension mismatch: collection has {stored_dim}-dim vectors "
                    f"but the embedding provider produces {self._dimension}-dim vectors. "
                    f"Set OPENAI_EMBEDDING_MODEL to the model used to build the collection."
                ),
                provider_name=self.get_provider_name(),
            )
        self._dimension = stored_dim
        logger.info("embedding_dimension_validated", dimension=stored_dim)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Append chunks; existing ids are rejected, never overwritten."""
        if not chunks:
            return 0

        ids = [c.chunk_id for c in chunks]
        if len(set(ids)) != len(ids):
            raise StorageError("Duplicate chunk ids in one insert", provider_name=self.get_provider_name())

        expected_dim = self._dimension or len(chunks[0].embedding)
        for chunk in chunks:
            if len(chunk.embedding) != expected_dim or expected_dim == 0:
                raise StorageError(
                    message=(
                        f"Chunk {chunk.chunk_id} has a {len(chunk.embedding)}-dim embedding, "
                        f"store expects {expected_dim}"
                    ),
                    provider_name=self.get_provider_name(),
                )

        try:
            existing = self._collection.get(ids=ids, include=["metadatas"])
            if existing["ids"]:
                raise StorageError(
                    message=f"Chunk ids already stored: {', '.join(existing['ids'][:5])}",
                    provider_name=self.get_provider_name(),
                )
            self._collection.add(
                ids=ids,
                embeddings=[c.embedding for c in chunks],
                documents=[c.content for c in chunks],
                metadatas=[self._chunk_to_metadata(c) for c in chunks],
            )
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB insert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._dimension = expected_dim
        logger.info(
            "chromadb_insert_chunks",
            count=len(chunks),
            document_id=chunks[0].document_id,
        )
        return len(chunks)

    async def search(
        self,
        query_vector: list[float],
        tenant_filter: str | None,
        top_k: int,
        min_similarity: float,
    ) -> list[RetrievedChunk]:
        """Cosine search restricted to one tenant, then cut at *min_similarity*."""
        if top_k <= 0:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(top_k, total),
                "include": ["documents", "metadatas", "distances"],
            }
            if tenant_filter is not None:
                kwargs["where"] = {"tenant_id": tenant_filter}

            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < min_similarity:
                continue
            # The where clause already filtered; re-check so a backend that
            # ignores it can never leak another tenant's chunk.
            if tenant_filter is not None and meta.get("tenant_id") != tenant_filter:
                continue
            retrieved.append(
                RetrievedChunk(chunk=self._metadata_to_chunk(chunk_id, meta, text), similarity=similarity)
            )

        retrieved.sort(key=lambda rc: rc.similarity, reverse=True)
        logger.info(
            "chromadb_search",
            tenant_id=tenant_filter,
            raw_results=len(ids),
            results_count=len(retrieved),
            top_score=retrieved[0].similarity if retrieved else 0.0,
        )
        return retrieved[:top_k]

    async def delete_by_document(self, document_id: str) -> int:
        try:
            existing = self._collection.get(where={"document_id": document_id}, include=["metadatas"])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(where={"document_id": document_id})
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        try:
            page = self._collection.get(
                where={"document_id": document_id},
                include=["documents", "metadatas"],
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = page["ids"] or []
        documents = page["documents"] or [""] * len(ids)
        metadatas = page["metadatas"] or [{}] * len(ids)
        chunks = [
            self._metadata_to_chunk(chunk_id, meta, text)
            for chunk_id, text, meta in zip(ids, documents, metadatas, strict=True)
        ]
        chunks.sort(key=lambda c: c.chunk_index)
        return chunks

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int]:
        """Flatten a chunk into ChromaDB metadata (scalars only; tags comma-joined)."""
        return {
            "document_id": chunk.document_id,
            "tenant_id": chunk.tenant_id,
            "chunk_index": chunk.chunk_index,
            "token_count": chunk.token_count,
            "tags": ",".join(chunk.tags),
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        """Rebuild a chunk (without its embedding) from stored metadata."""
        tags = meta.get("tags") or ""
        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=meta.get("document_id", ""),
            tenant_id=meta.get("tenant_id", ""),
            chunk_index=int(meta.get("chunk_index", 0)),
            content=text,
            token_count=int(meta.get("token_count", 0)),
            tags=[tag.strip() for tag in tags.split(",") if tag.strip()],
        )
