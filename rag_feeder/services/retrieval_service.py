"""Semantic search over a tenant's knowledge base.

Embeds the query and asks the vector store for the closest chunks of the
tenant, dropping anything below the similarity threshold.  Used directly
by the ``search`` entrypoint and, with tighter defaults, by the chat
service to gather context.
"""

from __future__ import annotations

import structlog

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.embedding_provider import IEmbeddingProvider
from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider
from rag_feeder.models.rag import RetrievedChunk
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import ValidationError
from rag_feeder.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


class RetrievalService:
    """Query embedding plus tenant-filtered similarity search.

    Parameters
    ----------
    embedding_provider:
        Embeds the query text.
    vector_store:
        Holds the embedded chunks.
    settings:
        Default ``top_k`` / ``min_similarity`` for :meth:`search`.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        settings: Settings,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._default_top_k = settings.search_default_top_k
        self._default_min_similarity = settings.search_default_min_similarity

    async def search(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
        min_similarity: float | None = None,
        deadline: Deadline | None = None,
    ) -> list[RetrievedChunk]:
        """Return the tenant's chunks most similar to *query*, best first.

        Parameters
        ----------
        query:
            Natural-language query; must contain non-whitespace text.
        tenant_id:
            Only this tenant's chunks are searched.
        top_k:
            Maximum number of results (default 10).
        min_similarity:
            Cosine similarity cutoff (default 0.7).

        Raises
        ------
        ValidationError
            If the query or tenant is empty.  No provider call is made.
        rag_feeder.utils.errors.ProviderError
            If the query cannot be embedded.
        """
        if not query or not query.strip():
            raise ValidationError("Query is required")
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("tenant_id is required")

        top_k = self._default_top_k if top_k is None else top_k
        min_similarity = self._default_min_similarity if min_similarity is None else min_similarity

        query_vector = await self._embedding_provider.embed_single(query, deadline=deadline)
        results = await self._vector_store.search(
            query_vector,
            tenant_filter=tenant_id,
            top_k=top_k,
            min_similarity=min_similarity,
        )
        logger.info(
            "retrieval_search",
            tenant_id=tenant_id,
            query_length=len(query),
            top_k=top_k,
            min_similarity=min_similarity,
            results=len(results),
        )
        return results
