"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority
# order):
#
#   1. **Environment variables**: e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file**: key=value lines in the project root .env file
#
# Field `openai_api_key` maps to env var `OPENAI_API_KEY`.  Defaults apply
# when neither source sets a field.
#
# A single Settings instance is built in main.py (or the CLI) and passed
# to every provider and service constructor.  Components never read the
# environment themselves, so tests can build a Settings(...) with explicit
# values and get fully deterministic wiring.
#
# SECURITY: provider credentials live here and only here.  They are sent
# as bearer tokens by the OpenAI SDK and never returned by the API.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rag_feeder.utils.errors import ConfigurationError


class Settings(BaseSettings):
    """rag-feeder application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider credentials / endpoints ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, Azure proxy, ...)
    openai_text_model: str = ""  # defaults to gpt-4o-mini
    openai_vision_model: str = ""  # defaults to gpt-4o-mini
    openai_embedding_model: str = ""  # defaults to text-embedding-3-small
    embedding_dimension: int = 0  # 0 = look up from the known-model table / first response
    provider_timeout_seconds: float = 60.0
    provider_connect_timeout_seconds: float = 5.0

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_content_length: int = 50

    # === Ingestion ===
    ingestion_batch_size: int = 50
    ingestion_deadline_seconds: float = 900.0

    # === Vision extraction ===
    vision_min_text_length: int = 50
    vision_max_image_dim: int = 2048
    vision_max_tokens: int = 2000
    vision_temperature: float = 0.2

    # === Retrieval / chat ===
    search_default_top_k: int = 10
    search_default_min_similarity: float = 0.7
    chat_top_k: int = 5
    chat_min_similarity: float = 0.5
    chat_history_turns: int = 6
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1000
    chat_deadline_seconds: float = 90.0
    shutdown_timeout_seconds: float = 30.0

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "document_chunks"
    document_db_path: str = "data/knowledge_documents.db"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_chunk_window(self) -> "Settings":
        # A non-positive advance would make the chunker loop forever.
        if self.chunk_size <= 0 or not 0 <= self.chunk_overlap < self.chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({self.chunk_overlap}) must be >= 0 and smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if self.ingestion_batch_size <= 0:
            raise ConfigurationError("ingestion_batch_size must be positive")
        if self.chat_history_turns < 0:
            raise ConfigurationError("chat_history_turns must be >= 0")
        return self

    def has_provider_credentials(self) -> bool:
        """Return ``True`` when an API key for the OpenAI-compatible endpoint is set."""
        return bool(self.openai_api_key)
