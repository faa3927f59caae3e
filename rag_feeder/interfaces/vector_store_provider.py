"""Abstract base class for vector-store service providers.

Defines the contract for storing and querying embedded document chunks.
The store is reached only through this adapter; the ingestion, retrieval
and chat services never touch the backend directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_feeder.models.rag import DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (rag_feeder/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the chunk store used by ingestion and retrieval.

    Chunks are append-only: they are inserted once and removed only
    together with their document.  Every query path takes a tenant filter,
    and a chunk of one tenant must never be returned for another.
    """

    @abstractmethod
    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Append embedded chunks.

        Parameters
        ----------
        chunks:
            Chunks whose ``embedding`` has the store's dimension.

        Returns
        -------
        int
            The number of chunks written.

        Raises
        ------
        rag_feeder.utils.errors.StorageError
            If a chunk id already exists, an embedding has the wrong length,
            or the backend fails.
        """

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        tenant_filter: str | None,
        top_k: int,
        min_similarity: float,
    ) -> list[RetrievedChunk]:
        """Return the most similar chunks, best first.

        Parameters
        ----------
        query_vector:
            Embedding of the query.
        tenant_filter:
            When given, only chunks with this ``tenant_id`` are considered.
        top_k:
            Maximum number of results.
        min_similarity:
            Results with cosine similarity below this value are dropped.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id* and return how many were removed."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return the chunks of *document_id* ordered by ``chunk_index``."""

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored chunks."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
