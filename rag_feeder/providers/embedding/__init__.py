"""Embedding provider implementations.

Embeddings convert chunk text into vectors stored in ChromaDB and compared
at query time.  ``OpenAIEmbeddingProvider`` also serves any
OpenAI-compatible endpoint through ``OPENAI_BASE_URL``.
"""

from rag_feeder.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
