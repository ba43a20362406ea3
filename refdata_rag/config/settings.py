"""Application settings loaded from environment variables via pydantic-settings.

Two sources are read, environment variables first and then a local ``.env``
file.  Field ``ollama_base_url`` maps to env var ``OLLAMA_BASE_URL`` and so
on; defaults apply when neither source sets a value.

Secrets (Jira/Confluence API tokens) belong in ``.env`` or the deployment
environment, never in ``config/config.yaml``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """refdata-rag application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Ollama (embedding + generation) ===
    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"
    ollama_generation_model: str = "phi3.5"
    ollama_timeout_seconds: float = 120.0

    # Bounded exponential backoff for model calls: delays 1s, 2s, ...
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0.0)

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "document_chunks"

    # === Document sources ===
    # Empty values disable the corresponding loader.
    documents_base_path: str = "/data/documents"
    jira_base_url: str = ""
    jira_username: str = ""
    jira_api_token: str = ""
    jira_jql: str = "project = REF"
    confluence_base_url: str = ""
    confluence_username: str = ""
    confluence_api_token: str = ""
    confluence_space_key: str = "REF"
    # Comma-separated list of page URLs for the web page loader.
    web_page_urls: str = ""

    # === Chunking ===
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)

    # === Retrieval ===
    rag_top_k: int = Field(default=5, gt=0)
    rag_min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)

    # === Scheduled ingestion ===
    ingestion_schedule_enabled: bool = True
    ingestion_interval_seconds: float = Field(default=3600.0, gt=0)
    ingestion_run_on_startup: bool = True

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_web_page_urls(self) -> list[str]:
        """Return the configured web page URLs as a list, skipping blanks."""
        return [url.strip() for url in self.web_page_urls.split(",") if url.strip()]
