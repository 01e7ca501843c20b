"""Centralized configuration for docs-quicksearch using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docs_quicksearch.search.version import MajorMinorVersion, parse_target_version


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``DOCS_QUICKSEARCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCS_QUICKSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Index resolution
    search_roots: str = Field(
        default="",
        description="Comma-separated directories scanned for index files, highest priority first",
    )
    target_version: str = Field(
        default="",
        description="Documentation version to select, as 'major.minor' or a 'major.minor.patch' platform version",
    )

    # Index building
    index_output_dir: Path = Field(default=Path("."), description="Directory where built index files are written")
    docs_index_path: str = Field(
        default="en/ScriptReference/docdata/index.json",
        description="Raw search data, relative to the offline documentation root",
    )
    docs_version_path: str = Field(
        default="en/ScriptReference/index.html",
        description="Page the documentation version is read from, relative to the documentation root",
    )
    docs_url_prefix: str = Field(
        default="en/ScriptReference",
        description="Directory holding the page HTML files, relative to the documentation root",
    )

    # Result links
    docs_base_url: str = Field(
        default="https://docs.unity3d.com/ScriptReference/",
        description="Online documentation base used to build browsable page links",
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON log lines")

    # Tracing export
    otlp_endpoint: str = Field(default="", description="OTLP collector endpoint; tracing export is off when empty")
    otlp_protocol: Literal["grpc", "http"] = Field(default="http", description="OTLP transport")
    otlp_timeout_seconds: int = Field(default=10, ge=1, description="OTLP export timeout in seconds")
    otlp_insecure: bool = Field(default=True, description="Disable TLS for gRPC export")

    @field_validator("target_version")
    @classmethod
    def _check_target_version(cls, value: str) -> str:
        value = value.strip()
        if value:
            # Fail fast on startup rather than at the first query
            parse_target_version(value)
        return value

    def get_search_roots(self) -> list[Path]:
        """Get the index search roots in priority order."""
        if not self.search_roots:
            return []
        return [Path(root.strip()).expanduser() for root in self.search_roots.split(",") if root.strip()]

    def get_target_version(self) -> MajorMinorVersion | None:
        """Get the configured target version, or None when unset."""
        if not self.target_version:
            return None
        return parse_target_version(self.target_version)

