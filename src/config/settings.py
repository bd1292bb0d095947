"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. ``.env`` file in the working directory (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults apply
when neither source sets a value.  Ingestion tuning knobs also exist in
``config/config.yaml``; :func:`src.config.loader.load_config` merges the two,
with env values winning.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ingestion service settings.

    Environment variables override defaults. Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding providers ===
    # Empty string = "not configured"; the factory in src/main.py falls
    # through to the local Nomic/Ollama provider.
    openai_api_key: str = ""
    # OpenAI-compatible endpoint, e.g. Gemini's
    # https://generativelanguage.googleapis.com/v1beta/openai/
    openai_base_url: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    embedding_dimension: int = 768

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "document_chunks"

    # === Ingestion limits (None = use config.yaml / built-in default) ===
    max_chunks_per_document: int | None = None
    ingestion_budget_s: float | None = None

    # === App config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def has_openai_credentials(self) -> bool:
        """Return ``True`` when an OpenAI-compatible API key is configured."""
        return bool(self.openai_api_key)
