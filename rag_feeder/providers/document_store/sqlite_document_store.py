"""SQLite-backed knowledge-document store.

Persists one row per document to a local SQLite database at
``data/knowledge_documents.db``.  Uses ``aiosqlite`` for async I/O and
opens a connection per operation.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from rag_feeder.interfaces.document_store import IDocumentStore
from rag_feeder.models.rag import Document, ProcessingStatus
from rag_feeder.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge_documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS knowledge_documents (
    id                 TEXT    PRIMARY KEY,
    tenant_id          TEXT    NOT NULL,
    title              TEXT    NOT NULL,
    description        TEXT    NOT NULL DEFAULT '',
    document_type      TEXT    NOT NULL DEFAULT 'text',
    content            TEXT    NOT NULL DEFAULT '',
    file_name          TEXT,
    file_size          INTEGER,
    file_path          TEXT,
    uploaded_by        TEXT,
    tags               TEXT    NOT NULL DEFAULT '[]',
    processing_status  TEXT    NOT NULL,
    chunk_count        INTEGER NOT NULL DEFAULT 0,
    error_message      TEXT,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_tenant ON knowledge_documents(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_tenant_created "
    "ON knowledge_documents(tenant_id, created_at);",
]

_INSERT_SQL = """\
INSERT INTO knowledge_documents (
    id, tenant_id, title, description, document_type, content,
    file_name, file_size, file_path, uploaded_by, tags,
    processing_status, chunk_count, error_message, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = (
    "id, tenant_id, title, description, document_type, content, file_name, file_size, "
    "file_path, uploaded_by, tags, processing_status, chunk_count, error_message, created_at"
)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite persistence for :class:`~rag_feeder.models.rag.Document` rows."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def create(self, document: Document) -> Document:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        document.document_id,
                        document.tenant_id,
                        document.title,
                        document.description,
                        document.document_type,
                        document.content,
                        document.file_name,
                        document.file_size,
                        document.file_path,
                        document.uploaded_by,
                        json.dumps(document.tags),
                        document.processing_status.value,
                        document.chunk_count,
                        document.error_message,
                        document.created_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Failed to insert document {document.document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_created",
            document_id=document.document_id,
            tenant_id=document.tenant_id,
            content_length=len(document.content),
        )
        return document

    async def get(self, document_id: str, tenant_id: str | None = None) -> Document | None:
        sql = f"SELECT {_SELECT_COLUMNS} FROM knowledge_documents WHERE id = ?"
        params: tuple[Any, ...] = (document_id,)
        if tenant_id is not None:
            sql += " AND tenant_id = ?"
            params = (document_id, tenant_id)

        rows = await self._fetch(sql, params)
        return self._row_to_document(rows[0]) if rows else None

    async def list_by_tenant(self, tenant_id: str) -> list[Document]:
        rows = await self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM knowledge_documents "
            "WHERE tenant_id = ? ORDER BY created_at DESC",
            (tenant_id,),
        )
        return [self._row_to_document(r) for r in rows]

    async def get_titles(self, document_ids: list[str]) -> dict[str, str]:
        if not document_ids:
            return {}
        placeholders = ", ".join("?" for _ in document_ids)
        rows = await self._fetch(
            f"SELECT id, title FROM knowledge_documents WHERE id IN ({placeholders})",
            tuple(document_ids),
        )
        return {r["id"]: r["title"] for r in rows}

    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> None:
        if chunk_count is None:
            await self._execute(
                "UPDATE knowledge_documents SET processing_status = ?, error_message = ?, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
                (status.value, error_message, document_id),
            )
        else:
            await self._execute(
                "UPDATE knowledge_documents SET processing_status = ?, chunk_count = ?, "
                "error_message = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
                (status.value, chunk_count, error_message, document_id),
            )
        logger.info(
            "document_status_updated",
            document_id=document_id,
            status=status.value,
            chunk_count=chunk_count,
        )

    async def update_chunk_count(self, document_id: str, chunk_count: int) -> None:
        await self._execute(
            "UPDATE knowledge_documents SET chunk_count = ?, "
            "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
            (chunk_count, document_id),
        )

    async def delete(self, document_id: str) -> bool:
        rowcount = await self._execute("DELETE FROM knowledge_documents WHERE id = ?", (document_id,))
        logger.info("document_deleted", document_id=document_id, found=rowcount > 0)
        return rowcount > 0

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_documents"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StorageError(message=f"Document query failed: {exc}", provider_name=self.get_provider_name()) from exc

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise StorageError(message=f"Document update failed: {exc}", provider_name=self.get_provider_name()) from exc

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        r = dict(row)
        return Document(
            document_id=r["id"],
            tenant_id=r["tenant_id"],
            title=r["title"],
            description=r["description"] or "",
            document_type=r["document_type"],
            content=r["content"] or "",
            file_name=r["file_name"],
            file_size=r["file_size"],
            file_path=r["file_path"],
            uploaded_by=r["uploaded_by"],
            tags=json.loads(r["tags"] or "[]"),
            processing_status=ProcessingStatus(r["processing_status"]),
            chunk_count=r["chunk_count"],
            error_message=r["error_message"],
            created_at=datetime.fromisoformat(r["created_at"]),
        )
