"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers (TogetherAI,
Azure proxies) via custom ``base_url`` and model name settings.

The client is built with ``max_retries=0``: a failed batch surfaces at
once and the ingestion service records it.  Every call runs inside the
caller's :class:`~rag_feeder.utils.deadline.Deadline`.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.embedding_provider import IEmbeddingProvider
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import EmbeddingProviderError, ProviderTimeoutError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.  Unknown models lock their dimension
# from the first response.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "togethercomputer/m2-bert-80M-8k-retrieval": 768,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  When
    ``openai_base_url`` is configured the client points at that URL and
    uses ``openai_embedding_model`` if set.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "max_retries": 0,
            "timeout": openai.Timeout(
                settings.provider_timeout_seconds,
                connect=settings.provider_connect_timeout_seconds,
            ),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client

        # The SDK refuses an empty key; without one the provider reports
        # itself unavailable and every call fails with a provider error.
        self._client: openai.AsyncOpenAI | None = (
            openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        )
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = settings.embedding_dimension or _MODEL_DIMENSIONS.get(self._model, 0)
        self._call_timeout = settings.provider_timeout_seconds
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        """Embed one batch of texts in a single API call."""
        if not texts:
            raise ValidationError("Cannot embed an empty batch", provider_name=self._provider_label)
        if len(texts) > _OPENAI_BATCH_LIMIT:
            raise ValidationError(
                f"Batch of {len(texts)} exceeds the {_OPENAI_BATCH_LIMIT}-input limit",
                provider_name=self._provider_label,
            )

        deadline = deadline or Deadline.unbounded()
        try:
            response = await deadline.run(
                self._get_client().embeddings.create(input=texts, model=self._model),
                call_timeout=self._call_timeout,
                provider_name=self._provider_label,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"{self._provider_label} timed out after {self._call_timeout:.0f}s",
                provider_name=self._provider_label,
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self._provider_label,
            ) from exc

        # The API may return items out of order; ``index`` is authoritative.
        items = sorted(response.data, key=lambda item: item.index)
        vectors = [list(item.embedding) for item in items]
        self._check_batch(vectors, expected=len(texts))

        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(texts),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return vectors

    async def embed_single(self, text: str, deadline: Deadline | None = None) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text], deadline=deadline)
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_batch_size(self) -> int:
        return _OPENAI_BATCH_LIMIT

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise EmbeddingProviderError(
                message="OPENAI_API_KEY is not set", provider_name=self._provider_label
            )
        return self._client

    def _check_batch(self, vectors: list[list[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise EmbeddingProviderError(
                message=f"Expected {expected} embeddings, got {len(vectors)}",
                provider_name=self._provider_label,
            )
        if self._dimension == 0 and vectors:
            self._dimension = len(vectors[0])
            logger.info("embedding_dimension_locked", model=self._model, dimension=self._dimension)
        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingProviderError(
                    message=f"Embedding has {len(vector)} dimensions, expected {self._dimension}",
                    provider_name=self._provider_label,
                )
