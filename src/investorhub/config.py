"""Configuration for the investor ingestion service."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INVESTORHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Local document store
    db_path: Path = Field(
        default=Path("investorhub.db"),
        description="Path to the SQLite database file",
    )
    store_max_retries: int = Field(
        default=3,
        description="Attempts for a store write that fails with a transient database error",
    )

    # Bulk pipeline
    chunk_size: int = Field(
        default=1000,
        description="Number of records submitted per unordered bulk insert",
    )

    # Async jobs
    scratch_dir: Path | None = Field(
        default=None,
        description="Directory for uploaded files awaiting processing (system temp dir if unset)",
    )
    worker_threads: int = Field(default=4, description="Maximum concurrent ingestion jobs")
    worker_queue_capacity: int = Field(
        default=10,
        description="Jobs allowed to wait for a free worker before submissions are rejected",
    )

    @model_validator(mode="after")
    def validate_sizes(self) -> Settings:
        """Ensure pool and chunk sizes are usable."""
        if self.chunk_size < 1:
            raise ValueError("INVESTORHUB_CHUNK_SIZE must be at least 1")
        if self.worker_threads < 1:
            raise ValueError("INVESTORHUB_WORKER_THREADS must be at least 1")
        if self.worker_queue_capacity < 0:
            raise ValueError("INVESTORHUB_WORKER_QUEUE_CAPACITY cannot be negative")
        if self.store_max_retries < 1:
            raise ValueError("INVESTORHUB_STORE_MAX_RETRIES must be at least 1")
        return self
