"""Centralized configuration for tinysearch using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tinysearch.search.tokenizer import TokenizeOptions, get_analyzer


_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Variables are matched case-insensitively (``PORT``, ``DATABASE_PATH``,
    ``INDEX_BATCH_SIZE``...) and may also come from a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="HTTP bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP bind port")

    # Document store
    database_path: Path = Field(default=Path("data/documents.sqlite3"), description="SQLite document store path")

    # Indexing
    index_batch_size: int = Field(default=1000, ge=1, description="Documents fetched per keyset page")
    index_persist_path: Path | None = Field(default=None, description="Write the index artifact here after builds")
    index_load_path: Path | None = Field(default=None, description="Load this index artifact at startup")
    seed_index: bool = Field(default=True, description="Install the three-document demo corpus at startup")
    skip_seed_index: bool = Field(default=False, description="Legacy switch; true disables the demo corpus")
    analyzer: str = Field(default="default", description="Tokenizer profile shared by index builds and queries")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    access_log: bool = Field(default=False, description="Keep uvicorn access logs at the root level")

    # Tracing
    otlp_endpoint: str | None = Field(default=None, description="OTLP collector endpoint for span export")
    otlp_protocol: Literal["grpc", "http"] = Field(default="http", description="OTLP transport")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return normalized

    @field_validator("analyzer")
    @classmethod
    def _check_analyzer(cls, value: str) -> str:
        return get_analyzer(value).name

    @model_validator(mode="after")
    def _resolve_seed(self) -> "Settings":
        if self.skip_seed_index:
            self.seed_index = False
        return self

    def tokenize_options(self) -> TokenizeOptions:
        return get_analyzer(self.analyzer).options

    def should_seed(self) -> bool:
        """Seed the demo corpus only when no artifact is configured to load."""
        return self.seed_index and self.index_load_path is None
