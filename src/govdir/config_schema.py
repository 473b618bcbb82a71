"""Configuration file schema for govdir.

Pydantic models for the YAML config structure, with one section per
concern, and an adapter that turns a validated file into the flat
fallback dict consumed by ``govdir.config.load_config``.

Usage:
    from govdir.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

GitSafety = Literal["none", "warn", "block"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Where the store lives."""

    db: str | None = Field(default=None, description="SQLite database file")
    ref: str = Field(default="working", description="Ref holding the root")

    model_config = {"frozen": True, "extra": "forbid"}


class SyncConfig(BaseModel):
    """External entity tree settings.

    Attributes:
        data_dir: Root of the git-managed TOML tree.
        git_safety: What export does when the tree has uncommitted
            changes: ``none`` (ignore), ``warn`` (log), ``block`` (refuse).
    """

    data_dir: str | None = Field(default=None, description="Data directory")
    git_safety: GitSafety = Field(
        default="block", description="Uncommitted-changes policy for export"
    )

    model_config = {"frozen": True, "extra": "forbid"}


class RecordsConfig(BaseModel):
    """Record validation settings."""

    person_id_max_length: int | None = Field(
        default=None,
        ge=1,
        le=255,
        description="Reject writes to longer person ids (unset: no limit)",
    )

    model_config = {"frozen": True, "extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(
        default="text", description="Log record format"
    )

    model_config = {"frozen": True, "extra": "forbid"}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    records: RecordsConfig = Field(default_factory=RecordsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the merged dict from ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a section has unknown keys or bad
            values.
    """
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten *unified* into ``load_config`` fallback keys.

    Unset (``None``) values are left out so the built-in defaults apply.
    """
    flat = {
        "db": unified.store.db,
        "ref": unified.store.ref,
        "data_dir": unified.sync.data_dir,
        "git_safety": unified.sync.git_safety,
        "person_id_max_length": unified.records.person_id_max_length,
        "log_level": unified.logging.level,
        "log_file": unified.logging.file,
        "log_format": unified.logging.format,
    }
    return {k: v for k, v in flat.items() if v is not None}
