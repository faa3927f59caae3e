"""Business logic services for rag-feeder.

- **ingestion** -- chunking, vision extraction and the background
  embed-and-store runs.
- **retrieval_service** -- tenant-filtered semantic search.
- **chat_service** -- retrieval-augmented answers with ``[Source N]`` citations.
"""

from rag_feeder.services.chat_service import ChatService
from rag_feeder.services.retrieval_service import RetrievalService

__all__ = ["ChatService", "RetrievalService"]
