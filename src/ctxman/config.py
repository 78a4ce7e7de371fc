"""ctxman Configuration Module.

Provides centralized configuration for the store, MCP server and CLI.
All settings support environment variable overrides with CTXMAN_ prefix.
The workspace root is additionally read from WORKSPACE_PATH.
"""

from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CtxmanSettings(BaseSettings):
    """ctxman configuration.

    All settings can be overridden via environment variables with CTXMAN_
    prefix. For example, CTXMAN_MAX_CONTEXTS=50 sets max_contexts to 50.
    """

    model_config = SettingsConfigDict(
        env_prefix="CTXMAN_",
        populate_by_name=True,
    )

    # Paths
    workspace_path: Path = Field(
        default_factory=Path.cwd,
        validation_alias=AliasChoices("CTXMAN_WORKSPACE_PATH", "WORKSPACE_PATH"),
        description="Workspace root the store belongs to",
    )
    store_dirname: str = Field(
        default=".context-manager",
        description="Store directory, relative to the workspace root",
    )
    store_filename: str = Field(
        default="contexts.json",
        description="Store file name inside the store directory",
    )

    # Store settings
    max_contexts: int = Field(
        default=100,
        ge=1,
        description="Retention cap; oldest entries beyond it are dropped",
    )
    format_version: str = Field(
        default="1.0.0",
        description="Version written to the store file metadata",
    )

    # Tool settings
    default_importance: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Importance given to new contexts when none is supplied",
    )
    default_limit: int = Field(
        default=10,
        description="Default number of results for list and search",
    )
    max_limit: int = Field(
        default=1000,
        description="Largest limit a caller may request",
    )
    max_content_length: int = Field(
        default=10000,
        description="Maximum length for context content",
    )

    # Server settings
    server_host: str = Field(
        default="127.0.0.1",
        description="HTTP server host",
    )
    server_port: int = Field(
        default=6336,
        description="HTTP server port",
    )
    log_level: str = Field(
        default="info",
        description="Logging level (debug, info, warning, error)",
    )
    log_format: str = Field(
        default="console",
        description="Log renderer (console or json)",
    )

    @field_validator("workspace_path")
    @classmethod
    def resolve_workspace_path(cls, value: Path) -> Path:
        """Make the workspace root absolute so stored project paths are too."""
        return value.expanduser().resolve()

    @property
    def store_dir(self) -> Path:
        """Directory holding the store file."""
        return self.workspace_path / self.store_dirname

    @property
    def store_path(self) -> Path:
        """Full path to the store file."""
        return self.store_dir / self.store_filename

    @property
    def project_name(self) -> str:
        """Workspace directory name."""
        return self.workspace_path.name


# Module-level singleton
settings = CtxmanSettings()
