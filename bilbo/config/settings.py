"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

  1. Environment variables, e.g. ``MISTRAL_API_KEY=...``
  2. A ``.env`` file in the working directory (local development)

Field ``mistral_api_key`` maps to env var ``MISTRAL_API_KEY``; pydantic-settings
matches names case-insensitively.  Defaults apply when neither source sets a
value.  An empty string means "not configured": :func:`bilbo.main.build_context`
skips the embedding and generation providers when the key is empty, and every
service treats the missing provider as an optional capability.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Bilbo application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Mistral (OpenAI-compatible endpoint) ===
    mistral_api_key: str = ""
    mistral_base_url: str = "https://api.mistral.ai/v1"
    embedding_model: str = "mistral-embed"
    chat_model: str = "mistral-small-latest"
    # Per-call client timeout; the client never retries on its own.
    llm_timeout_seconds: float = Field(default=60.0, gt=0)

    # === Metadata store ===
    database_path: str = "data/bilbo.db"

    # === Vector store ===
    chromadb_persist_dir: str = "data/chromadb"
    chromadb_collection: str = "book_chunks"

    # === Ingestion ===
    data_dir: str = "data"
    processed_dirname: str = "processed"
    failed_dirname: str = "failed"

    # === Search ===
    search_default_page_size: int = Field(default=20, ge=1)
    search_max_page_size: int = Field(default=100, ge=1)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def has_mistral(self) -> bool:
        """Return ``True`` when embedding and generation can be configured."""
        return bool(self.mistral_api_key.strip())
