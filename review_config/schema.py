"""
ReviewConfig schema.

Typed, frozen settings for the review kernel.  YAML is parsed into these
types by the loader; ``get_active_config()`` hands the result to callers
and the bridges turn it into wired kernel objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowSettings:
    """Workflow coordinator tuning."""

    # Load/evaluate/save rounds per request before ConcurrentModificationError.
    max_save_attempts: int = 2


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for the SQL plan store."""

    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    """Level for the review_kernel logger hierarchy."""

    level: str = "INFO"

    @property
    def level_number(self) -> int:
        return logging.getLevelNamesMapping()[self.level]


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewConfig:
    """Complete configuration for one deployment of the review kernel."""

    config_id: str
    version: int
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
