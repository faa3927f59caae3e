"""rag-feeder FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

``build_components`` is also used by the command-line feeder
(:mod:`rag_feeder.cli.feeder`) so the server and the CLI share one wiring.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from rag_feeder.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    request_validation_handler,
)
from rag_feeder.api.routes import router as api_router
from rag_feeder.config.loader import load_config
from rag_feeder.config.settings import Settings
from rag_feeder.pipeline.rag_feeder import DEFAULT_VISION_DESCRIPTION, DEFAULT_VISION_TYPE, RagFeeder
from rag_feeder.pipeline.task_supervisor import TaskSupervisor
from rag_feeder.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from rag_feeder.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from rag_feeder.providers.llm.openai_provider import OpenAILLMProvider
from rag_feeder.providers.vector_store.chromadb_provider import ChromaDBProvider
from rag_feeder.services.chat_service import ChatService
from rag_feeder.services.ingestion.chunker import TextChunker
from rag_feeder.services.ingestion.ingestion_service import IngestionService
from rag_feeder.services.ingestion.vision_extractor import VisionExtractor
from rag_feeder.services.retrieval_service import RetrievalService
from rag_feeder.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level setup
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=settings.app_env == "production",
)

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Dependency wiring
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service with proper dependency injection.

    Parameters
    ----------
    app_settings:
        The settings every component is built from.
    config:
        Resolved YAML configuration (see :func:`load_config`); supplies the
        accepted document types and vision defaults.
    overrides:
        Pre-built components keyed like the returned dict
        (``embedding_provider``, ``llm_provider``, ``vector_store``,
        ``document_store``); used instead of the default implementations.

    Returns
    -------
    dict
        Named components, stored on ``app.state`` by the lifespan.
    """
    config = config if config is not None else load_config(settings=app_settings)
    overrides = overrides or {}
    documents_cfg = config.get("documents", {})

    # -- Shared HTTP client (connection pooling for both OpenAI clients) --
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            app_settings.provider_timeout_seconds,
            connect=app_settings.provider_connect_timeout_seconds,
        )
    )

    embedding_provider = overrides.get("embedding_provider") or OpenAIEmbeddingProvider(
        app_settings, http_client=http_client
    )
    llm_provider = overrides.get("llm_provider") or OpenAILLMProvider(app_settings, http_client=http_client)
    vector_store = overrides.get("vector_store") or ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        dimension=embedding_provider.get_dimension(),
    )
    document_store = overrides.get("document_store") or SQLiteDocumentStore(app_settings.document_db_path)

    supervisor = TaskSupervisor()
    chunker = TextChunker(chunk_size=app_settings.chunk_size, overlap=app_settings.chunk_overlap)

    ingestion = IngestionService(
        settings=app_settings,
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        document_store=document_store,
        supervisor=supervisor,
    )
    vision = VisionExtractor(llm_provider, app_settings)
    retrieval = RetrievalService(embedding_provider, vector_store, app_settings)
    chat_service = ChatService(retrieval, llm_provider, document_store, app_settings)

    feeder = RagFeeder(
        settings=app_settings,
        ingestion=ingestion,
        vision=vision,
        retrieval=retrieval,
        chat_service=chat_service,
        document_store=document_store,
        vector_store=vector_store,
        supervisor=supervisor,
        allowed_types=documents_cfg.get("allowed_types"),
        default_vision_description=documents_cfg.get("default_vision_description", DEFAULT_VISION_DESCRIPTION),
        default_vision_type=documents_cfg.get("default_vision_type", DEFAULT_VISION_TYPE),
    )

    return {
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "vector_store": vector_store,
        "document_store": document_store,
        "supervisor": supervisor,
        "feeder": feeder,
    }


async def close_components(components: dict[str, Any], shutdown_timeout: float | None = None) -> None:
    """Drain background runs, then close the shared HTTP client."""
    supervisor: TaskSupervisor = components["supervisor"]
    await supervisor.shutdown(timeout=shutdown_timeout)
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Components are built inside the lifespan, so constructing the app has
    no side effects until it starts serving.
    """
    app_settings = app_settings or settings
    config = config if config is not None else load_config(settings=app_settings)

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        components = build_components(app_settings, config, overrides)
        for key, value in components.items():
            setattr(application.state, key, value)

        await components["document_store"].initialize()

        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=app_settings.app_env,
            embedding_provider=components["embedding_provider"].get_provider_name(),
            llm_provider=components["llm_provider"].get_provider_name(),
            vector_store=components["vector_store"].get_provider_name(),
        )

        yield

        await close_components(components, app_settings.shutdown_timeout_seconds)
        _logger.info("app_shutdown", message="Background runs drained, HTTP client closed")

    application = FastAPI(
        title="rag-feeder API",
        version=_VERSION,
        description=(
            "Ingest technical documents (text or scanned page images) into a "
            "tenant-isolated vector knowledge base, then search it or chat "
            "with answers that cite their sources."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("api", {}).get("cors_origins"))
    application.add_exception_handler(RequestValidationError, request_validation_handler)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "rag_feeder.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
