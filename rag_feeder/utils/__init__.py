"""Utility modules for rag-feeder.

- **errors** -- Domain exception hierarchy rooted at RagFeederError; each
  failure site raises its own subclass so callers (and the API middleware)
  can handle failures granularly.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **deadline** -- Deadline tokens bounding every provider call.
"""

from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import (
    CompletionProviderError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    ExtractionError,
    FatalProcessingError,
    PartialProcessingError,
    ProviderError,
    ProviderTimeoutError,
    RagFeederError,
    StorageError,
    ValidationError,
)
from rag_feeder.utils.logging import configure_logging, get_logger

__all__ = [
    "CompletionProviderError",
    "ConfigurationError",
    "Deadline",
    "DocumentNotFoundError",
    "EmbeddingProviderError",
    "ExtractionError",
    "FatalProcessingError",
    "PartialProcessingError",
    "ProviderError",
    "ProviderTimeoutError",
    "RagFeederError",
    "StorageError",
    "ValidationError",
    "configure_logging",
    "get_logger",
]
