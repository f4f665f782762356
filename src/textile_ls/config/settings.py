"""Application settings using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from textile_ls.domain.enums import DiagnosticLevel


class Settings(BaseSettings):
    """Application settings loaded from ``TEXTILE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TEXTILE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    log_level: str = "INFO"
    log_json: bool = False

    # Link validation
    validate_enabled: bool = False
    validate_reference_links: DiagnosticLevel = DiagnosticLevel.IGNORE
    validate_header_links: DiagnosticLevel = DiagnosticLevel.IGNORE
    validate_file_links: DiagnosticLevel = DiagnosticLevel.IGNORE
    validate_file_link_fragments: DiagnosticLevel | None = None
    validate_ignore_links: list[str] = Field(default_factory=list)

    # Scheduling
    diagnostic_debounce_ms: int = 300
    file_link_concurrency: int = 10
    workspace_scan_concurrency: int = 20

    # Editor
    editor_uri_scheme: str = "vscode"

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def diagnostic_debounce_seconds(self) -> float:
        return self.diagnostic_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
