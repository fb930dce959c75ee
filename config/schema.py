"""Configuration schema for seeq using Pydantic.

Groups:
- sandbox: root directory, audit log location, path strictness
- storage: SQLite database location
- model: chat model used by every collaborator role, with per-role temperatures
- indexer: paths the recursive indexer never walks into
- history: description length and listing size
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Default model used across the codebase, single source of truth
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

DEFAULT_SANDBOX_ROOT = "~/seeq/sandbox"
DEFAULT_DB_PATH = "~/.seeq/seeq.db"


# ============================================================================
# Sandbox
# ============================================================================


class SandboxConfig(BaseModel):
    """Filesystem sandbox configuration."""

    root: str = Field(DEFAULT_SANDBOX_ROOT, description="Sandbox root directory")
    audit_log: str | None = Field(None, description="Operations log path (default <root>/logs/operations.log)")
    strict_paths: bool = Field(False, description="Reject absolute paths outside the root")

    @field_validator("root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Sandbox root must not be empty")
        return v

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser().resolve()

    @property
    def audit_log_path(self) -> Path:
        if self.audit_log:
            return Path(self.audit_log).expanduser()
        return self.root_path / "logs" / "operations.log"


# ============================================================================
# Storage
# ============================================================================


class StorageConfig(BaseModel):
    """Persistent store configuration."""

    db_path: str = Field(DEFAULT_DB_PATH, description="SQLite database for the tag index and history")

    @property
    def db_file(self) -> Path:
        return Path(self.db_path).expanduser()


# ============================================================================
# Model
# ============================================================================


class RoleTemperatures(BaseModel):
    """Sampling temperature per collaborator role."""

    indexing: float = Field(0.0, ge=0.0, le=2.0)
    retrieval: float = Field(0.5, ge=0.0, le=2.0)
    summary: float = Field(0.3, ge=0.0, le=2.0)
    recommendation: float = Field(1.0, ge=0.0, le=2.0)


class ModelConfig(BaseModel):
    """Chat model configuration, passed through to init_chat_model."""

    model: str = Field(DEFAULT_MODEL, description="Model name")
    provider: str | None = Field(None, description="Explicit provider (anthropic/openai/etc)")
    api_key: str | None = Field(None, description="API key (falls back to provider env vars)")
    base_url: str | None = Field(None, description="Base URL for the API")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens")
    model_kwargs: dict[str, Any] = Field(default_factory=dict, description="Extra kwargs for init_chat_model")
    temperatures: RoleTemperatures = Field(default_factory=RoleTemperatures)

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Ensure base_url ends with /v1 for OpenAI-compatible APIs."""
        if not v:
            return v
        v = v.rstrip("/")
        if v.endswith("/v1") or "/v1/" in v:
            return v
        return f"{v}/v1"


# ============================================================================
# Indexer / history
# ============================================================================


class IndexerConfig(BaseModel):
    exclude: list[str] = Field(default_factory=list, description="Extra paths the indexer skips")
    index_on_startup: bool = Field(True, description="Run the recursive indexer when the web app starts")


class HistoryConfig(BaseModel):
    max_description_length: int = Field(50, gt=0)
    list_limit: int = Field(20, gt=0, description="Default number of records returned by listings")


# ============================================================================
# Main Settings
# ============================================================================


class SeeqSettings(BaseModel):
    """Main seeq configuration.

    Configuration priority (highest to lowest):
    1. CLI / keyword overrides
    2. Environment variables (SEEQ_SANDBOX_ROOT, SEEQ_DB_PATH, SEEQ_MODEL, SEEQ_API_KEY)
    3. Project config (<sandbox root>/.seeq/runtime.json|yaml)
    4. User config (~/.seeq/runtime.json|yaml)
    5. System defaults (config/defaults/runtime.json)

    Note: This uses BaseModel instead of BaseSettings so that environment
    loading stays inside the tiered loader.
    """

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
