"""FastAPI route handlers for the rag-feeder API.

# ─── ENDPOINTS ─────────────────────────────────────────────────────────
#
#   POST   /api/v1/rag                          action-tagged operation
#   GET    /api/v1/documents                    list a tenant's documents
#   GET    /api/v1/documents/{id}               poll one document's status
#   GET    /api/v1/documents/{id}/chunks        stored chunks, in order
#   DELETE /api/v1/documents/{id}               delete document + chunks
#   GET    /api/v1/health                       provider availability
#
# ``POST /rag`` accepts one JSON body whose ``action`` field selects the
# operation (process_text, process_vision, process_document, search,
# chat, delete_document).  The body is parsed into the matching request
# model and handed to RagFeeder.dispatch.
#
# Handlers never build components themselves: everything comes from
# ``app.state`` (populated by the lifespan in main.py) through the
# Annotated ``XDep`` aliases below.  Errors raised by the services
# propagate to ErrorHandlingMiddleware, which maps them to status codes.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import pydantic
import structlog
from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import TypeAdapter

from rag_feeder.api.schemas import (
    ChatResponse,
    ChunkListResponse,
    ChunkResponse,
    DeleteResponse,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentSummary,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    ReprocessResponse,
    SearchHit,
    SearchResponse,
)
from rag_feeder.models.rag import ChatResult, DeleteResult, IngestionAccepted, ReprocessAccepted
from rag_feeder.models.requests import RagRequest
from rag_feeder.pipeline.rag_feeder import DispatchResult, RagFeeder
from rag_feeder.utils.errors import ValidationError

_logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api/v1")

_REQUEST_ADAPTER: TypeAdapter[RagRequest] = TypeAdapter(RagRequest)

_VERSION = "0.1.0"

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------


def _get_feeder(request: Request) -> RagFeeder:
    return request.app.state.feeder


FeederDep = Annotated[RagFeeder, Depends(_get_feeder)]


def _get_providers(request: Request) -> dict[str, Any]:
    state = request.app.state
    return {
        "embedding": state.embedding_provider,
        "llm": state.llm_provider,
        "vector_store": state.vector_store,
    }


ProvidersDep = Annotated[dict[str, Any], Depends(_get_providers)]


# ---------------------------------------------------------------------------
# Action-tagged operations
# ---------------------------------------------------------------------------


def _parse_request(payload: dict[str, Any]) -> RagRequest:
    """Validate a raw JSON body into one of the tagged request variants."""
    try:
        return _REQUEST_ADAPTER.validate_python(payload)
    except pydantic.ValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(detail or "Invalid request") from exc


def _to_response(result: DispatchResult) -> Any:
    match result:
        case IngestionAccepted():
            return IngestResponse(
                message="Document uploaded and processing started",
                document_id=result.document_id,
                chunk_count=result.chunk_count_planned,
                content_length=result.content_length,
                pages_processed=result.pages_processed,
                status=result.status,
                warning=result.warning,
            )
        case ReprocessAccepted():
            return ReprocessResponse(
                document_id=result.document_id,
                chunk_count=result.chunk_count_planned,
                status=result.status,
            )
        case DeleteResult():
            return DeleteResponse(
                success=result.success,
                message="Document deleted successfully",
                document_id=result.document_id,
                chunks_deleted=result.chunks_deleted,
            )
        case ChatResult():
            return ChatResponse(answer=result.answer, sources=result.sources)
        case list():
            return SearchResponse(results=[SearchHit.from_retrieved(hit) for hit in result])
    raise TypeError(f"Unexpected dispatch result: {type(result).__name__}")


@router.post(
    "/rag",
    responses=_ERROR_RESPONSES,
    summary="Run one ingestion, search or chat operation selected by `action`",
)
async def rag(
    feeder: FeederDep,
    payload: Annotated[dict[str, Any], Body()],
) -> IngestResponse | ReprocessResponse | DeleteResponse | ChatResponse | SearchResponse:
    """Dispatch an action-tagged request.

    Ingestion actions answer as soon as the document row exists; poll
    ``GET /documents/{id}`` for the terminal status.
    """
    request = _parse_request(payload)
    result = await feeder.dispatch(request)
    return _to_response(result)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List a tenant's documents, newest first",
)
async def list_documents(
    feeder: FeederDep,
    tenant_id: Annotated[str, Query(min_length=1)],
) -> DocumentListResponse:
    documents = await feeder.list_documents(tenant_id)
    return DocumentListResponse(
        documents=[DocumentSummary.from_document(doc) for doc in documents],
        total=len(documents),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document with its processing status",
)
async def get_document(
    document_id: str,
    feeder: FeederDep,
    tenant_id: Annotated[str, Query(min_length=1)],
) -> DocumentDetailResponse:
    document = await feeder.get_document(document_id, tenant_id)
    summary = DocumentSummary.from_document(document)
    return DocumentDetailResponse(
        **summary.model_dump(),
        content_length=len(document.content),
        content=document.content,
    )


@router.get(
    "/documents/{document_id}/chunks",
    response_model=ChunkListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List a document's stored chunks in index order",
)
async def list_chunks(
    document_id: str,
    feeder: FeederDep,
    tenant_id: Annotated[str, Query(min_length=1)],
) -> ChunkListResponse:
    chunks = await feeder.list_chunks(document_id, tenant_id)
    return ChunkListResponse(
        document_id=document_id,
        chunks=[ChunkResponse.from_chunk(chunk) for chunk in chunks],
        total=len(chunks),
    )


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete a document and all of its chunks",
)
async def delete_document(
    document_id: str,
    feeder: FeederDep,
    tenant_id: Annotated[str, Query(min_length=1)],
) -> DeleteResponse:
    result = await feeder.delete_document(document_id, tenant_id)
    return _to_response(result)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(feeder: FeederDep, providers: ProvidersDep) -> HealthResponse:
    availability = {name: bool(provider.is_available()) for name, provider in providers.items()}
    status = "healthy" if all(availability.values()) else "degraded"
    return HealthResponse(
        status=status,
        version=_VERSION,
        providers=availability,
        active_runs=feeder.supervisor.active_count(),
    )
