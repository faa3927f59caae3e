"""Orchestrator for document ingestion.

Pipeline stages: **validate -> persist -> chunk -> (background) embed -> store**.

The :class:`IngestionService` coordinates the chunker, the embedding
provider, the vector store and the document store without any of them
knowing about each other.  Every ingestion entrypoint follows the same flow:

    1. Validate the request; nothing is persisted when this fails.
    2. Persist the document row in ``processing`` state.
    3. Chunk the content.  No chunks -> the document completes at once
       with a warning.
    4. Launch a background run on the :class:`TaskSupervisor` and return
       to the caller immediately.
    5. The run embeds and stores the chunks in batches, updating the
       document's ``chunk_count`` after each batch, and finally records
       ``completed``, ``completed-partial`` or ``failed``.

A failing batch is logged and skipped; it is not retried.  Callers learn
the outcome only by polling the document.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog

from rag_feeder.models.rag import (
    DeleteResult,
    Document,
    DocumentChunk,
    IngestionAccepted,
    IngestionOutcome,
    ProcessingStatus,
    ReprocessAccepted,
)
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import (
    DocumentNotFoundError,
    EmbeddingProviderError,
    FatalProcessingError,
    PartialProcessingError,
    RagFeederError,
    StorageError,
    ValidationError,
)
from rag_feeder.utils.logging import bind_run_context

if TYPE_CHECKING:
    from rag_feeder.config.settings import Settings
    from rag_feeder.interfaces.document_store import IDocumentStore
    from rag_feeder.interfaces.embedding_provider import IEmbeddingProvider
    from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider
    from rag_feeder.pipeline.task_supervisor import TaskSupervisor
    from rag_feeder.services.ingestion.chunker import TextChunker

logger = structlog.get_logger(logger_name=__name__)

NO_CONTENT_MESSAGE = "No substantial text content found."
NO_CHUNKS_WARNING = "Document uploaded but no chunks created."


class IngestionService:
    """Owns the document lifecycle: ingestion, reprocessing and deletion.

    Parameters
    ----------
    settings:
        Batch size, minimum content length and run deadline.
    chunker:
        Splits document content into overlapping windows.
    embedding_provider:
        Embeds each batch of chunk texts.
    vector_store:
        Receives the embedded chunks.
    document_store:
        Holds the document rows and their processing state.
    supervisor:
        Runs the detached background work.
    """

    def __init__(
        self,
        settings: Settings,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        supervisor: TaskSupervisor,
    ) -> None:
        self._settings = settings
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._documents = document_store
        self._supervisor = supervisor
        self._batch_size = min(settings.ingestion_batch_size, embedding_provider.get_max_batch_size())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @staticmethod
    def validate_metadata(title: str, tenant_id: str) -> None:
        """Reject a request without a title or tenant before any work is done."""
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("tenant_id is required")
        if not title or not title.strip():
            raise ValidationError("title is required")

    async def ingest_text(
        self,
        title: str,
        content: str,
        tenant_id: str,
        description: str = "",
        document_type: str = "text",
        tags: list[str] | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
        file_path: str | None = None,
        uploaded_by: str | None = None,
        pages_processed: int | None = None,
    ) -> IngestionAccepted:
        """Persist a document and start embedding its chunks in the background.

        Returns
        -------
        IngestionAccepted
            ``status`` is ``processing`` while the background run is active,
            or ``completed`` (with a warning) when the content produced no
            chunks.

        Raises
        ------
        ValidationError
            If the title or tenant is missing, or the content is empty or
            shorter than ``min_content_length``.
        """
        self.validate_metadata(title, tenant_id)
        if not content:
            raise ValidationError("No content provided - extraction may have failed")
        if len(content) < self._settings.min_content_length:
            raise ValidationError(
                f"Content too short ({len(content)} characters). "
                "PDF may be scanned or image-based."
            )
        self._supervisor.check_accepting()

        document = Document(
            document_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            title=title,
            description=description or "",
            document_type=document_type or "text",
            content=content,
            file_name=file_name,
            file_size=file_size,
            file_path=file_path,
            uploaded_by=uploaded_by,
            tags=list(tags or []),
            processing_status=ProcessingStatus.PROCESSING,
        )
        await self._documents.create(document)

        chunks = self._chunker.split(content)
        logger.info(
            "document_chunked",
            document_id=document.document_id,
            tenant_id=tenant_id,
            content_length=len(content),
            chunks=len(chunks),
        )

        if not chunks:
            await self._documents.update_status(
                document.document_id,
                ProcessingStatus.COMPLETED,
                chunk_count=0,
                error_message=NO_CONTENT_MESSAGE,
            )
            return IngestionAccepted(
                document_id=document.document_id,
                chunk_count_planned=0,
                status=ProcessingStatus.COMPLETED,
                content_length=len(content),
                pages_processed=pages_processed,
                warning=NO_CHUNKS_WARNING,
            )

        await self._launch(document.document_id, chunks)
        return IngestionAccepted(
            document_id=document.document_id,
            chunk_count_planned=len(chunks),
            status=ProcessingStatus.PROCESSING,
            content_length=len(content),
            pages_processed=pages_processed,
        )

    async def reprocess(self, document_id: str, tenant_id: str) -> ReprocessAccepted:
        """Discard a document's chunks and ingest its stored content again.

        The previous chunks are removed before the row returns to
        ``processing``; if that removal fails the row keeps its prior state.

        Raises
        ------
        DocumentNotFoundError
            If the tenant owns no such document.
        ValidationError
            If a background run, a delete or another reprocess is active
            for the document, or the service is shutting down.
        """
        self._supervisor.check_accepting()
        if self._supervisor.is_running(document_id):
            raise ValidationError(f"Document {document_id} is already processing")

        with self._supervisor.claim(document_id):
            document = await self._documents.get(document_id, tenant_id)
            if document is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")

            deleted = await self._vector_store.delete_by_document(document_id)
            chunks = self._chunker.split(document.content)
            logger.info(
                "document_reprocess_started",
                document_id=document_id,
                tenant_id=tenant_id,
                previous_chunks=deleted,
                chunks=len(chunks),
            )

            if not chunks:
                await self._documents.update_status(
                    document_id, ProcessingStatus.COMPLETED, chunk_count=0, error_message=NO_CONTENT_MESSAGE
                )
                return ReprocessAccepted(
                    document_id=document_id, chunk_count_planned=0, status=ProcessingStatus.COMPLETED
                )

            await self._documents.update_status(
                document_id, ProcessingStatus.PROCESSING, chunk_count=0, error_message=None
            )
            await self._launch(document_id, chunks)

        return ReprocessAccepted(
            document_id=document_id,
            chunk_count_planned=len(chunks),
            status=ProcessingStatus.PROCESSING,
        )

    async def delete_document(self, document_id: str, tenant_id: str) -> DeleteResult:
        """Delete a document and all of its chunks.

        The document is claimed on the supervisor for the whole cascade, so
        a concurrent reprocess is refused instead of writing chunks for a
        row that is about to disappear.

        Raises
        ------
        DocumentNotFoundError
            If the tenant owns no such document.
        ValidationError
            If a background run is still writing chunks for it, or another
            delete or reprocess holds it.
        """
        if self._supervisor.is_running(document_id):
            raise ValidationError(
                f"Document {document_id} is still processing; delete it once processing finishes"
            )

        with self._supervisor.claim(document_id):
            document = await self._documents.get(document_id, tenant_id)
            if document is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")

            chunks_deleted = await self._vector_store.delete_by_document(document_id)
            deleted = await self._documents.delete(document_id)

        logger.info(
            "document_delete_complete",
            document_id=document_id,
            tenant_id=tenant_id,
            chunks_deleted=chunks_deleted,
        )
        return DeleteResult(document_id=document_id, success=deleted, chunks_deleted=chunks_deleted)

    async def _launch(self, document_id: str, chunks: list[str]) -> None:
        """Start the background run; a refused launch leaves the row ``failed``."""
        try:
            self._supervisor.launch(document_id, self.run(document_id, chunks))
        except ValidationError as exc:
            logger.warning("ingestion_launch_refused", document_id=document_id, error=exc.message)
            await self._documents.update_status(document_id, ProcessingStatus.FAILED, error_message=exc.message)
            raise

    # ------------------------------------------------------------------
    # Background run
    # ------------------------------------------------------------------

    async def run(self, document_id: str, chunks: list[str]) -> IngestionOutcome:
        """Embed and store *chunks* for *document_id*, batch by batch.

        Never raises for ingestion failures: the outcome is written to the
        document row and returned.
        """
        total = len(chunks)
        success = 0
        failed_batches = 0
        deadline = Deadline.after(self._settings.ingestion_deadline_seconds)

        try:
            document = await self._documents.get(document_id)
            if document is None:
                raise FatalProcessingError(f"Document {document_id} not found")
            bind_run_context(document_id, document.tenant_id)
            logger.info("ingestion_run_started", total_chunks=total, batch_size=self._batch_size)

            for batch_start in range(0, total, self._batch_size):
                batch = chunks[batch_start : batch_start + self._batch_size]
                batch_number = batch_start // self._batch_size + 1
                try:
                    await self._process_batch(document, batch, batch_start, deadline)
                    success += len(batch)
                    logger.info(
                        "ingestion_batch_stored",
                        batch=batch_number,
                        chunks=f"{batch_start + 1}-{batch_start + len(batch)}",
                        stored=success,
                        total=total,
                    )
                except RagFeederError as exc:
                    failed_batches += 1
                    logger.warning(
                        "ingestion_batch_failed",
                        batch=batch_number,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                await self._documents.update_chunk_count(document_id, success)

            if success == total:
                status, error_message = ProcessingStatus.COMPLETED, None
            else:
                partial = PartialProcessingError(processed=success, total=total)
                logger.warning(
                    "ingestion_run_partial",
                    processed=partial.processed,
                    total=partial.total,
                    failed_batches=failed_batches,
                )
                status, error_message = ProcessingStatus.COMPLETED_PARTIAL, partial.message

            await self._documents.update_status(
                document_id, status, chunk_count=success, error_message=error_message
            )
            logger.info("ingestion_run_finished", status=status.value, chunk_count=success, total=total)
            return IngestionOutcome(
                document_id=document_id,
                status=status,
                chunk_count=success,
                total_chunks=total,
                failed_batches=failed_batches,
                error_message=error_message,
            )

        except Exception as exc:
            fatal = exc if isinstance(exc, FatalProcessingError) else FatalProcessingError(str(exc))
            logger.error(
                "ingestion_run_failed",
                document_id=document_id,
                error=fatal.message,
                error_type=type(exc).__name__,
            )
            try:
                await self._documents.update_status(
                    document_id, ProcessingStatus.FAILED, error_message=fatal.message
                )
            except StorageError as store_exc:
                logger.error("ingestion_failure_not_recorded", document_id=document_id, error=str(store_exc))
            return IngestionOutcome(
                document_id=document_id,
                status=ProcessingStatus.FAILED,
                chunk_count=success,
                total_chunks=total,
                failed_batches=failed_batches,
                error_message=fatal.message,
            )

    async def _process_batch(
        self,
        document: Document,
        batch: list[str],
        batch_start: int,
        deadline: Deadline,
    ) -> None:
        vectors = await self._embedding_provider.embed(batch, deadline=deadline)
        if len(vectors) != len(batch):
            raise EmbeddingProviderError(
                message=f"Expected {len(batch)} embeddings, got {len(vectors)}",
                provider_name=self._embedding_provider.get_provider_name(),
            )
        rows = [
            DocumentChunk(
                chunk_id=str(uuid.uuid4()),
                document_id=document.document_id,
                tenant_id=document.tenant_id,
                chunk_index=batch_start + offset,
                content=text,
                embedding=vector,
                token_count=self._chunker.estimate_tokens(text),
                tags=list(document.tags),
            )
            for offset, (text, vector) in enumerate(zip(batch, vectors, strict=True))
        ]
        await self._vector_store.insert_chunks(rows)
