"""Abstract base class for the knowledge-document store.

Holds one row per ingested document: its metadata, raw content and the
processing state that callers poll while a background run is in flight.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_feeder.models.rag import Document, ProcessingStatus


# Concrete implementation: SQLiteDocumentStore (rag_feeder/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for document-row persistence.

    Reads that take a ``tenant_id`` return ``None`` / nothing for documents
    owned by another tenant.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the backing schema if it does not exist."""

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Insert a new document row and return it."""

    @abstractmethod
    async def get(self, document_id: str, tenant_id: str | None = None) -> Document | None:
        """Return the document, or ``None`` if missing or owned by another tenant.

        ``tenant_id=None`` skips the ownership check; only the background
        ingestion run uses that form.
        """

    @abstractmethod
    async def list_by_tenant(self, tenant_id: str) -> list[Document]:
        """Return the tenant's documents, newest first."""

    @abstractmethod
    async def get_titles(self, document_ids: list[str]) -> dict[str, str]:
        """Map each known id in *document_ids* to its title."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Set the processing state.

        ``chunk_count`` is left untouched when ``None``.  ``error_message``
        is always written, so passing ``None`` clears a previous error.
        """

    @abstractmethod
    async def update_chunk_count(self, document_id: str, chunk_count: int) -> None:
        """Record ingestion progress."""

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete the row; return ``False`` if it did not exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_documents"``."""
