"""rag-feeder API layer: routes, schemas, and middleware."""

from rag_feeder.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    request_validation_handler,
)
from rag_feeder.api.routes import router
from rag_feeder.api.schemas import (
    ChatResponse,
    DeleteResponse,
    DocumentListResponse,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    SearchResponse,
)

__all__ = [
    "ChatResponse",
    "DeleteResponse",
    "DocumentListResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "IngestResponse",
    "RequestLoggingMiddleware",
    "SearchResponse",
    "configure_cors",
    "request_validation_handler",
    "router",
]
