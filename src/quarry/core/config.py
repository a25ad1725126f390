# src/quarry/core/config.py
"""
Configuration schema and loading for the quarry engine.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from quarry.contracts.data import ColumnDef
from quarry.contracts.enums import ColumnType


class ColumnSettings(BaseModel):
    """One declared dataset column.

    Example YAML:
        dataset:
          columns:
            - name: pclass
              type: numeric
            - name: cabin
              type: categorical
              required: false
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(description="Column name as it appears in raw rows")
    type: ColumnType = Field(description="Declared column type")
    required: bool = Field(
        default=True,
        description="Ingestion fails if no row carries this column",
    )

    def to_column_def(self) -> ColumnDef:
        """Convert to the ingestion contract type."""
        return ColumnDef(name=self.name, type=self.type, required=self.required)


class DatasetSettings(BaseModel):
    """Default schema declaration used when ingest() is called without one."""

    model_config = {"frozen": True, "extra": "forbid"}

    columns: list[ColumnSettings] = Field(
        default_factory=list,
        description="Ordered column declarations",
    )

    @field_validator("columns")
    @classmethod
    def validate_unique_names(cls, v: list[ColumnSettings]) -> list[ColumnSettings]:
        """Column names must be unique."""
        seen: set[str] = set()
        for column in v:
            if column.name in seen:
                raise ValueError(f"Duplicate column name: '{column.name}'")
            seen.add(column.name)
        return v

    def schema(self) -> list[ColumnDef]:
        """Declared columns as ingestion contract types."""
        return [column.to_column_def() for column in self.columns]


class QuerySettings(BaseModel):
    """Query engine limits."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_page_size: int = Field(
        default=500,
        gt=0,
        description="Largest page a single query may request",
    )
    default_page_size: int = Field(
        default=50,
        gt=0,
        description="Page size applied when a request omits one",
    )

    @model_validator(mode="after")
    def validate_default_within_max(self) -> "QuerySettings":
        """Default page must itself be a legal page."""
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) exceeds "
                f"max_page_size ({self.max_page_size})"
            )
        return self


class CacheSettings(BaseModel):
    """Computation cache budget and worker pool."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_size_bytes: int = Field(
        default=64 * 1024 * 1024,
        gt=0,
        description="Total size estimate above which LRU eviction starts",
    )
    compute_workers: int = Field(
        default=4,
        gt=0,
        description="Threads running shared computations",
    )
    wait_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="How long a caller waits on a shared computation (None = forever)",
    )


class LoggingSettings(BaseModel):
    """structlog output configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = Field(
        default=False,
        description="Render JSON lines instead of the console renderer",
    )


class QuarrySettings(BaseModel):
    """Top-level engine settings.

    Example YAML:
        query:
          max_page_size: 200
        cache:
          max_size_bytes: 16777216
          compute_workers: 2
        dataset:
          columns:
            - {name: pclass, type: numeric}
            - {name: survived, type: numeric}
    """

    model_config = {"frozen": True, "extra": "forbid"}

    dataset: DatasetSettings = Field(
        default_factory=DatasetSettings,
        description="Default schema declaration",
    )
    query: QuerySettings = Field(
        default_factory=QuerySettings,
        description="Query engine limits",
    )
    cache: CacheSettings = Field(
        default_factory=CacheSettings,
        description="Computation cache configuration",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )


def load_settings(config_path: Path) -> QuarrySettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (QUARRY_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: QUARRY_CACHE__MAX_SIZE_BYTES for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated QuarrySettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="QUARRY",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # Also filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _lower_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return QuarrySettings(**raw_config)


def _lower_keys(value: Any) -> Any:
    """Lowercase nested mapping keys produced by environment overrides."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


def resolve_config(settings: QuarrySettings) -> dict[str, Any]:
    """Convert validated settings to a plain dict (explicit + defaults)."""
    return settings.model_dump(mode="json")
