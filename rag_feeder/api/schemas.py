"""Pydantic response schemas for the rag-feeder API.

Request bodies reuse the tagged-union models of
:mod:`rag_feeder.models.requests`; this module defines what goes back.

# ─── CONVENTIONS ──────────────────────────────────────────────────────
#
# Every successful ``POST /api/v1/rag`` body carries ``success: true``
# plus the fields of the operation's result.  Failures are rendered by
# ErrorHandlingMiddleware as ``ErrorResponse{error, detail}`` with the
# status code of the raised RagFeederError.
#
# Listings never include raw document content; fetch a single document
# to get it.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from rag_feeder.models.rag import Document, DocumentChunk, ProcessingStatus, RetrievedChunk, SourceReference


class ErrorResponse(BaseModel):
    """Standard error body."""

    error: str
    detail: str | None = None


class IngestResponse(BaseModel):
    """Returned by ``process_text`` and ``process_vision``."""

    success: bool = True
    message: str
    document_id: str
    chunk_count: int = Field(description="Number of chunks the background run will embed.")
    content_length: int
    pages_processed: int | None = None
    status: ProcessingStatus
    warning: str | None = None


class ReprocessResponse(BaseModel):
    success: bool = True
    message: str = "Document processing started"
    document_id: str
    chunk_count: int
    status: ProcessingStatus


class DeleteResponse(BaseModel):
    success: bool
    message: str
    document_id: str
    chunks_deleted: int


class SearchHit(BaseModel):
    """One ranked chunk from a search."""

    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_retrieved(cls, hit: RetrievedChunk) -> SearchHit:
        return cls(
            chunk_id=hit.chunk.chunk_id,
            document_id=hit.chunk.document_id,
            chunk_index=hit.chunk.chunk_index,
            content=hit.chunk.content,
            similarity=hit.similarity,
            tags=hit.chunk.tags,
        )


class SearchResponse(BaseModel):
    success: bool = True
    results: list[SearchHit] = Field(default_factory=list)


class ChatResponse(BaseModel):
    success: bool = True
    answer: str
    sources: list[SourceReference] = Field(default_factory=list)


class DocumentSummary(BaseModel):
    """A document row without its content, for listings and polling."""

    document_id: str
    title: str
    description: str
    document_type: str
    file_name: str | None = None
    file_size: int | None = None
    tags: list[str] = Field(default_factory=list)
    processing_status: ProcessingStatus
    chunk_count: int
    error_message: str | None = None
    created_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentSummary:
        return cls(
            document_id=document.document_id,
            title=document.title,
            description=document.description,
            document_type=document.document_type,
            file_name=document.file_name,
            file_size=document.file_size,
            tags=document.tags,
            processing_status=document.processing_status,
            chunk_count=document.chunk_count,
            error_message=document.error_message,
            created_at=document.created_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentSummary] = Field(default_factory=list)
    total: int = 0


class DocumentDetailResponse(DocumentSummary):
    content_length: int
    content: str


class ChunkResponse(BaseModel):
    chunk_id: str
    chunk_index: int
    content: str
    token_count: int

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk) -> ChunkResponse:
        return cls(
            chunk_id=chunk.chunk_id,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            token_count=chunk.token_count,
        )


class ChunkListResponse(BaseModel):
    document_id: str
    chunks: list[ChunkResponse] = Field(default_factory=list)
    total: int = 0


class HealthResponse(BaseModel):
    """Health check payload."""

    status: str
    version: str
    providers: dict[str, bool] = Field(default_factory=dict)
    active_runs: int = 0
