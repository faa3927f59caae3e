"""Custom exception hierarchy for rag-feeder.

All application exceptions inherit from :class:`RagFeederError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai_embedding", "chromadb", "sqlite") caused the
failure, and an ``http_status`` used by the API error middleware.

The hierarchy is organized by where the failure happens:

    RagFeederError  (base -- catch-all for any rag-feeder error)
    +-- ValidationError          (bad input, rejected before persistence)
    +-- DocumentNotFoundError    (unknown document for the tenant)
    +-- ExtractionError          (vision transcription produced too little text)
    +-- ProviderError            (embedding / completion API failure)
    |   +-- EmbeddingProviderError
    |   +-- CompletionProviderError
    |   +-- ProviderTimeoutError (deadline expired before the provider answered)
    +-- StorageError             (document store / vector store failure)
    +-- PartialProcessingError   (some ingestion batches failed, non-fatal)
    +-- FatalProcessingError     (ingestion run aborted, document marked failed)
    +-- ConfigurationError       (invalid settings)

Background ingestion never raises the last three processing errors to a
caller: they are logged and recorded on the document row.
"""


class RagFeederError(Exception):
    """Base exception for all rag-feeder errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------

class ValidationError(RagFeederError):
    """Raised when a request is rejected before any provider call or write."""

    http_status = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(RagFeederError):
    """Raised when a document id does not exist for the requesting tenant."""

    http_status = 404

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(RagFeederError):
    """Raised when vision transcription yields less than the minimum text."""

    http_status = 422

    def __init__(
        self,
        message: str = "Could not extract meaningful content from images",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(RagFeederError):
    """Raised when an embedding or completion API call fails.

    The upstream message is kept in ``message`` so it can be surfaced to
    the caller (synchronous paths) or written to the document row
    (background ingestion).
    """

    http_status = 502

    def __init__(
        self,
        message: str = "Provider API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingProviderError(ProviderError):
    """Raised when the embedding API fails or returns a malformed batch."""

    def __init__(
        self,
        message: str = "Embedding API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CompletionProviderError(ProviderError):
    """Raised when a chat completion or vision call fails."""

    def __init__(
        self,
        message: str = "Completion API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call outlives its deadline."""

    http_status = 504

    def __init__(
        self,
        message: str = "Provider call exceeded its deadline",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(RagFeederError):
    """Raised when the document store or the vector store fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion run outcomes
# ---------------------------------------------------------------------------

class PartialProcessingError(RagFeederError):
    """Some ingestion batches failed; the document completes as partial."""

    def __init__(self, processed: int, total: int) -> None:
        self.processed = processed
        self.total = total
        super().__init__(message=f"Processed {processed}/{total} chunks")


class FatalProcessingError(RagFeederError):
    """An exception escaped the batch loop; the document is marked failed."""

    def __init__(
        self,
        message: str = "Ingestion run failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagFeederError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
