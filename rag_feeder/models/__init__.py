"""rag-feeder domain models, re-exported for ``from rag_feeder.models import ...``.

    - rag.py       -- documents, chunks, retrieval hits, chat sources and
                      the result object of every entrypoint
    - requests.py  -- the ``action``-tagged request union dispatched by
                      :class:`~rag_feeder.pipeline.rag_feeder.RagFeeder`
"""

from __future__ import annotations

from rag_feeder.models.rag import (
    ChatResult,
    ChatTurn,
    DeleteResult,
    Document,
    DocumentChunk,
    IngestionAccepted,
    IngestionOutcome,
    PageImage,
    ProcessingStatus,
    ReprocessAccepted,
    RetrievedChunk,
    SourceChunk,
    SourceReference,
    VisionExtraction,
)
from rag_feeder.models.requests import (
    ChatRequest,
    DeleteRequest,
    RagRequest,
    ReprocessRequest,
    SearchRequest,
    TextIngestRequest,
    VisionIngestRequest,
    VisionPage,
)

__all__ = [
    "ChatRequest",
    "ChatResult",
    "ChatTurn",
    "DeleteRequest",
    "DeleteResult",
    "Document",
    "DocumentChunk",
    "IngestionAccepted",
    "IngestionOutcome",
    "PageImage",
    "ProcessingStatus",
    "RagRequest",
    "ReprocessAccepted",
    "ReprocessRequest",
    "RetrievedChunk",
    "SearchRequest",
    "SourceChunk",
    "SourceReference",
    "TextIngestRequest",
    "VisionExtraction",
    "VisionIngestRequest",
    "VisionPage",
]
