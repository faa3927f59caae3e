"""Data models for the knowledge-base ingestion and retrieval pipeline.

Defines Pydantic v2 models for knowledge documents, their embedded chunks,
retrieval results, chat sources, and the results returned by each
entrypoint.  All models use frozen config to enforce immutability; state
changes go through ``model_copy(update=...)`` or the stores.

Overview:

    1. INGESTION: A manual, OEM bulletin or transcribed scan is stored as a
       :class:`Document` in ``processing`` state.
    2. CHUNKING: Its content is cut into overlapping character windows.
    3. EMBEDDING: Each window becomes a :class:`DocumentChunk` carrying an
       embedding vector, its index, and the tags of its parent document.
    4. RETRIEVAL: A query embedding is compared against the tenant's chunks;
       hits come back as :class:`RetrievedChunk` with a cosine similarity.
    5. CHAT: Hits are grouped per document into :class:`SourceReference`
       objects returned next to the generated answer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ProcessingStatus(str, Enum):
    """Lifecycle of a document: pending -> processing -> terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_PARTIAL = "completed-partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProcessingStatus.COMPLETED,
            ProcessingStatus.COMPLETED_PARTIAL,
            ProcessingStatus.FAILED,
        )


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Document: one row of the knowledge_documents table.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """A knowledge-base document owned by a single tenant."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Unique identifier (UUID) for this document.")
    tenant_id: str = Field(description="Owning company; the isolation boundary.")
    title: str
    description: str = ""
    document_type: str = Field(default="text", description="manual, oem, transcription, text, other.")
    content: str = Field(default="", description="Raw extracted text of the document.")
    # --- Source file metadata ---
    file_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    file_path: str | None = None
    uploaded_by: str | None = None
    tags: list[str] = Field(default_factory=list)
    # --- Processing state, polled by callers ---
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    chunk_count: int = Field(default=0, ge=0)
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# DocumentChunk: the unit of embedding and retrieval.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A window of a document's text with its embedding.

    Chunks inherit ``tenant_id`` and ``tags`` from their parent so that the
    vector store can filter without a join.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Identifier of the parent document.")
    tenant_id: str
    chunk_index: int = Field(ge=0, description="Position within the document, contiguous from 0.")
    content: str = Field(min_length=1)
    embedding: list[float] = Field(default_factory=list)
    token_count: int = Field(default=0, ge=0, description="Estimated as ceil(len(content) / 4).")
    tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# RetrievedChunk: a search hit.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A chunk returned by a similarity search, with its cosine similarity."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Chat models
# ---------------------------------------------------------------------------
class ChatTurn(BaseModel):
    """One prior message of the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str


class SourceChunk(BaseModel):
    """One retrieved excerpt that fed the answer, with its ``[Source N]`` index."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    content: str
    similarity: float
    source_index: int = Field(ge=1)


class SourceReference(BaseModel):
    """Retrieved chunks grouped by their parent document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    similarity: float = Field(description="Highest similarity among this document's chunks.")
    chunks: list[SourceChunk] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def chunk_count(self) -> int:
        return len(self.chunks)


class ChatResult(BaseModel):
    """Answer plus the sources it was grounded on."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[SourceReference] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Vision extraction
# ---------------------------------------------------------------------------
class PageImage(BaseModel):
    """A single rendered page of a scanned document."""

    model_config = ConfigDict(frozen=True)

    image_data: bytes
    page_number: int | None = Field(default=None, ge=1)


class VisionExtraction(BaseModel):
    """Aggregate transcription of a scanned document."""

    model_config = ConfigDict(frozen=True)

    text: str
    pages_processed: int = Field(ge=0)
    pages_failed: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Entrypoint results
# ---------------------------------------------------------------------------
class IngestionAccepted(BaseModel):
    """Returned synchronously once a document row exists and its run is launched."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_count_planned: int = Field(ge=0)
    status: ProcessingStatus
    content_length: int = Field(default=0, ge=0)
    pages_processed: int | None = None
    warning: str | None = None


class ReprocessAccepted(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_count_planned: int = Field(ge=0)
    status: ProcessingStatus


class DeleteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    success: bool
    chunks_deleted: int = Field(default=0, ge=0)


class IngestionOutcome(BaseModel):
    """Terminal state of one background ingestion run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    status: ProcessingStatus
    chunk_count: int = Field(ge=0)
    total_chunks: int = Field(ge=0)
    failed_batches: int = Field(default=0, ge=0)
    error_message: str | None = None
