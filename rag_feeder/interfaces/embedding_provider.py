"""Abstract base class for text-embedding service providers.

Defines the contract for turning chunk text and queries into vectors.
The ingestion service embeds whole batches; the chat and retrieval
services embed a single query.  Implementations wrap a concrete backend
(OpenAI ``text-embedding-3-small`` by default) behind this interface so
the services never import an SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_feeder.utils.deadline import Deadline


# Concrete implementation: OpenAIEmbeddingProvider (rag_feeder/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and retrieval.

    Embeddings are consumed by
    :class:`~rag_feeder.interfaces.vector_store_provider.IVectorStoreProvider`
    for indexing and query-time similarity search.  Providers do not retry:
    a failed call surfaces immediately and the caller decides what to do.
    """

    @abstractmethod
    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One to :meth:`get_max_batch_size` strings.
        deadline:
            Bounds the provider call; ``None`` applies only the provider's
            own per-call timeout.

        Returns
        -------
        list[list[float]]
            One vector per input, in input order, each of length
            :meth:`get_dimension`.

        Raises
        ------
        rag_feeder.utils.errors.ValidationError
            If *texts* is empty or larger than the per-call limit.
        rag_feeder.utils.errors.EmbeddingProviderError
            If the API call fails or returns a malformed batch.
        rag_feeder.utils.errors.ProviderTimeoutError
            If *deadline* expires first.
        """

    @abstractmethod
    async def embed_single(self, text: str, deadline: Deadline | None = None) -> list[float]:
        """Embed one string, e.g. a search query."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider and equal to the dimension
        of every vector already in the vector store.
        """

    @abstractmethod
    def get_max_batch_size(self) -> int:
        """Return the largest number of inputs accepted by one :meth:`embed` call."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
