"""Public interface definitions for every external service.

Each backend is reached only through one of these abstract base classes;
concrete adapters live in ``rag_feeder/providers/`` and are wired together
in ``rag_feeder/main.py`` (or the CLI).  Tests inject fakes implementing
the same contracts.

    Interface               ->  Concrete implementation
    ------------------------------------------------------------
    IEmbeddingProvider      ->  OpenAIEmbeddingProvider
    ILLMProvider            ->  OpenAILLMProvider
    IVectorStoreProvider    ->  ChromaDBProvider
    IDocumentStore          ->  SQLiteDocumentStore
"""

from rag_feeder.interfaces.document_store import IDocumentStore
from rag_feeder.interfaces.embedding_provider import IEmbeddingProvider
from rag_feeder.interfaces.llm_provider import ILLMProvider
from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
