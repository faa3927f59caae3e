"""Vector store provider implementations."""

from rag_feeder.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
