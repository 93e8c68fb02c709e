"""Unified configuration schema for cartograph.

Defines Pydantic models for the unified config structure with dedicated
sections for the project layout, the StringProc formatter, and logging.
Includes an adapter function that flattens the sections into the
``Config`` dataclass used at runtime.

Usage:
    from cartograph.config_schema import (
        UnifiedConfig, build_config, to_legacy_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_legacy_config(unified, cli_overrides={"world": "dragonrealms"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

World = Literal["gemstone", "dragonrealms"]

DEFAULT_FORMATTER_COMMAND = ["standardrb", "--fix-unsafely"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ProjectConfig(BaseModel):
    """Where mapdb files live and which game world they describe.

    All fields are optional to support zero-config: the work directory
    defaults to ``$TMPDIR/cartograph/<world>``.
    """

    world: World = Field(
        default="gemstone", description="Game world of the mapdb"
    )
    work_dir: str | None = Field(
        default=None,
        description="Directory holding the downloaded map.json",
    )
    output_dir: str | None = Field(
        default=None,
        description="Root of the per-room git tree (defaults to work_dir)",
    )
    remote_url: str | None = Field(
        default=None,
        description="Override the download URL of the monolithic mapdb",
    )

    model_config = {"frozen": True}


class FormatterConfig(BaseModel):
    """External StringProc formatter settings."""

    enabled: bool = Field(
        default=True, description="Run the formatter after a git pass"
    )
    command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FORMATTER_COMMAND),
        min_length=1,
        description="Formatter executable and its fixed arguments",
    )
    batch_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum files per formatter invocation (1-10000)",
    )
    timeout: float | None = Field(
        default=300.0,
        gt=0,
        description="Seconds before a formatter invocation is abandoned",
    )
    ok_exit_codes: list[int] = Field(
        default_factory=lambda: [0, 1],
        description="Exit codes meaning 'ran, possibly reporting issues'",
    )
    max_parallel_writes: int = Field(
        default=32,
        ge=1,
        le=256,
        description="Concurrent file writes before formatting (1-256)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    formatter: FormatterConfig = Field(default_factory=FormatterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the flat ``Config`` dataclass,
    applying CLI overrides on top.

    The precedence applied here is:
        CLI override > unified config value > default

    CLI overrides dict keys: world, work_dir, output_dir, remote_url.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        ``Config`` dataclass instance (NOT validated; caller should run
        ``validate_config()`` separately if needed).
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import Config

    overrides = cli_overrides or {}

    return Config(
        world=overrides.get("world") or unified.project.world,
        work_dir=overrides.get("work_dir") or unified.project.work_dir,
        output_dir=overrides.get("output_dir")
        or unified.project.output_dir,
        remote_url=overrides.get("remote_url")
        or unified.project.remote_url,
        formatter_enabled=unified.formatter.enabled,
        formatter_command=list(unified.formatter.command),
        batch_size=unified.formatter.batch_size,
        formatter_timeout=unified.formatter.timeout,
        ok_exit_codes=list(unified.formatter.ok_exit_codes),
        max_parallel_writes=unified.formatter.max_parallel_writes,
    )
