"""Entrypoint facade for document ingestion, search and chat.

:class:`RagFeeder` is the single object the HTTP routes and the CLI talk
to.  It exposes one method per operation and a :meth:`RagFeeder.dispatch`
that routes an ``action``-tagged request (see
:mod:`rag_feeder.models.requests`) to the matching method with a
``match`` statement.

Every operation takes a mandatory ``tenant_id``; a tenant never sees,
reprocesses or deletes another tenant's documents.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import structlog

from rag_feeder.models.rag import (
    ChatResult,
    ChatTurn,
    DeleteResult,
    Document,
    DocumentChunk,
    IngestionAccepted,
    PageImage,
    ReprocessAccepted,
    RetrievedChunk,
)
from rag_feeder.models.requests import (
    ChatRequest,
    DeleteRequest,
    RagRequest,
    ReprocessRequest,
    SearchRequest,
    TextIngestRequest,
    VisionIngestRequest,
)
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import DocumentNotFoundError, ValidationError

if TYPE_CHECKING:
    from rag_feeder.config.settings import Settings
    from rag_feeder.interfaces.document_store import IDocumentStore
    from rag_feeder.interfaces.vector_store_provider import IVectorStoreProvider
    from rag_feeder.pipeline.task_supervisor import TaskSupervisor
    from rag_feeder.services.chat_service import ChatService
    from rag_feeder.services.ingestion.ingestion_service import IngestionService
    from rag_feeder.services.ingestion.vision_extractor import VisionExtractor
    from rag_feeder.services.retrieval_service import RetrievalService

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_VISION_DESCRIPTION = "Extracted via Vision AI from scanned document"
DEFAULT_VISION_TYPE = "manual"

DispatchResult = IngestionAccepted | ReprocessAccepted | DeleteResult | ChatResult | list[RetrievedChunk]


class RagFeeder:
    """Facade over the ingestion, retrieval and chat services.

    Parameters
    ----------
    settings:
        Application settings; supplies the vision extraction deadline.
    ingestion:
        Owns document creation, reprocessing and deletion.
    vision:
        Transcribes page images for :meth:`ingest_vision`.
    retrieval:
        Serves :meth:`search`.
    chat_service:
        Serves :meth:`chat`.
    document_store:
        Read access for status polling and listings.
    vector_store:
        Read access for :meth:`list_chunks`.
    supervisor:
        The background run supervisor, exposed for health and tests.
    allowed_types:
        Accepted ``document_type`` values; ``None`` accepts any.
    default_vision_description / default_vision_type:
        Applied to vision documents submitted without them.
    """

    def __init__(
        self,
        settings: Settings,
        ingestion: IngestionService,
        vision: VisionExtractor,
        retrieval: RetrievalService,
        chat_service: ChatService,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        supervisor: TaskSupervisor,
        allowed_types: Sequence[str] | None = None,
        default_vision_description: str = DEFAULT_VISION_DESCRIPTION,
        default_vision_type: str = DEFAULT_VISION_TYPE,
    ) -> None:
        self._settings = settings
        self._ingestion = ingestion
        self._vision = vision
        self._retrieval = retrieval
        self._chat = chat_service
        self._documents = document_store
        self._vector_store = vector_store
        self._supervisor = supervisor
        self._allowed_types = frozenset(allowed_types) if allowed_types else None
        self._default_vision_description = default_vision_description
        self._default_vision_type = default_vision_type

    @property
    def supervisor(self) -> TaskSupervisor:
        return self._supervisor

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, request: RagRequest) -> DispatchResult:
        """Route a validated request variant to its operation."""
        logger.info("rag_request", action=request.action, tenant_id=request.tenant_id)
        match request:
            case TextIngestRequest():
                return await self.ingest_text(
                    title=request.title,
                    content=request.content,
                    tenant_id=request.tenant_id,
                    description=request.description,
                    document_type=request.document_type,
                    tags=request.tags,
                    file_name=request.file_name,
                    file_size=request.file_size,
                    file_path=request.file_path,
                    uploaded_by=request.uploaded_by,
                )
            case VisionIngestRequest():
                return await self.ingest_vision(
                    title=request.title,
                    images=[page.to_page_image() for page in request.images],
                    tenant_id=request.tenant_id,
                    description=request.description,
                    document_type=request.document_type,
                    tags=request.tags,
                    file_name=request.file_name,
                    file_size=request.file_size,
                    file_path=request.file_path,
                    uploaded_by=request.uploaded_by,
                )
            case ReprocessRequest(document_id=document_id, tenant_id=tenant_id):
                return await self.reprocess(document_id, tenant_id)
            case SearchRequest():
                return await self.search(
                    request.query,
                    request.tenant_id,
                    top_k=request.top_k,
                    min_similarity=request.min_similarity,
                )
            case ChatRequest():
                return await self.chat(
                    request.query,
                    request.tenant_id,
                    history=request.history,
                    external_context=request.external_context,
                )
            case DeleteRequest(document_id=document_id, tenant_id=tenant_id):
                return await self.delete_document(document_id, tenant_id)
            case _:
                raise ValidationError(f"Unknown action: {getattr(request, 'action', None)}")

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

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
    ) -> IngestionAccepted:
        """Store pre-extracted text and embed it in the background."""
        self._check_document_type(document_type)
        return await self._ingestion.ingest_text(
            title=title,
            content=content,
            tenant_id=tenant_id,
            description=description,
            document_type=document_type,
            tags=tags,
            file_name=file_name,
            file_size=file_size,
            file_path=file_path,
            uploaded_by=uploaded_by,
        )

    async def ingest_vision(
        self,
        title: str,
        images: list[PageImage],
        tenant_id: str,
        description: str | None = None,
        document_type: str | None = None,
        tags: list[str] | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
        file_path: str | None = None,
        uploaded_by: str | None = None,
    ) -> IngestionAccepted:
        """Transcribe page images, then ingest the text like :meth:`ingest_text`.

        Raises
        ------
        ValidationError
            If metadata is missing or *images* is empty.
        ExtractionError
            If the pages yield too little text; no document is created.
        """
        document_type = document_type or self._default_vision_type
        self._ingestion.validate_metadata(title, tenant_id)
        self._check_document_type(document_type)
        if not images:
            raise ValidationError("No images provided")

        logger.info("vision_ingest_started", tenant_id=tenant_id, pages=len(images), title=title)
        extraction = await self._vision.extract(
            images, deadline=Deadline.after(self._settings.ingestion_deadline_seconds)
        )
        return await self._ingestion.ingest_text(
            title=title,
            content=extraction.text,
            tenant_id=tenant_id,
            description=description or self._default_vision_description,
            document_type=document_type,
            tags=tags,
            file_name=file_name,
            file_size=file_size,
            file_path=file_path,
            uploaded_by=uploaded_by,
            pages_processed=extraction.pages_processed,
        )

    async def reprocess(self, document_id: str, tenant_id: str) -> ReprocessAccepted:
        return await self._ingestion.reprocess(document_id, tenant_id)

    async def delete_document(self, document_id: str, tenant_id: str) -> DeleteResult:
        return await self._ingestion.delete_document(document_id, tenant_id)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
        min_similarity: float | None = None,
    ) -> list[RetrievedChunk]:
        return await self._retrieval.search(query, tenant_id, top_k=top_k, min_similarity=min_similarity)

    async def chat(
        self,
        query: str,
        tenant_id: str,
        history: Sequence[ChatTurn] = (),
        external_context: str | None = None,
    ) -> ChatResult:
        return await self._chat.chat(query, tenant_id, history=history, external_context=external_context)

    # ------------------------------------------------------------------
    # Status polling
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str, tenant_id: str) -> Document:
        document = await self._documents.get(document_id, tenant_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def list_documents(self, tenant_id: str) -> list[Document]:
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("tenant_id is required")
        return await self._documents.list_by_tenant(tenant_id)

    async def list_chunks(self, document_id: str, tenant_id: str) -> list[DocumentChunk]:
        await self.get_document(document_id, tenant_id)
        return await self._vector_store.list_chunks(document_id)

    def _check_document_type(self, document_type: str) -> None:
        if self._allowed_types is not None and document_type not in self._allowed_types:
            raise ValidationError(
                f"Unsupported document_type '{document_type}'; "
                f"expected one of {', '.join(sorted(self._allowed_types))}"
            )
