"""
Configuration Loader (``review_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``review_config.schema`` dataclasses, validating every value on the way.
Runtime callers go through ``review_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Unknown keys are rejected, so a misspelt setting never falls back to
  its default unnoticed.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError``.
* Wrong type, out-of-range value or unknown key  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from review_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    ReviewConfig,
    WorkflowSettings,
)

_ROOT_KEYS = frozenset({"config_id", "version", "workflow", "database", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root in {path} must be a mapping")
    return data


def _section(data: dict[str, Any], name: str, allowed: frozenset[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping, got {type(section).__name__}")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {sorted(unknown)}")
    return section


def _int(value: Any, key: str, minimum: int) -> int:
    # bool is an int subclass; "true" is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    """Parse WorkflowSettings from the ``workflow`` section."""
    section = _section(data, "workflow", frozenset({"max_save_attempts"}))
    defaults = WorkflowSettings()
    return WorkflowSettings(
        max_save_attempts=_int(
            section.get("max_save_attempts", defaults.max_save_attempts),
            "workflow.max_save_attempts", 1,
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse DatabaseSettings from the ``database`` section."""
    section = _section(
        data, "database", frozenset({"url", "echo", "pool_size", "max_overflow"}),
    )
    defaults = DatabaseSettings()

    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url.strip():
        raise ValueError(f"'database.url' must be a non-empty string, got {url!r}")

    echo = section.get("echo", defaults.echo)
    if not isinstance(echo, bool):
        raise ValueError(f"'database.echo' must be true or false, got {echo!r}")

    return DatabaseSettings(
        url=url.strip(),
        echo=echo,
        pool_size=_int(
            section.get("pool_size", defaults.pool_size), "database.pool_size", 1,
        ),
        max_overflow=_int(
            section.get("max_overflow", defaults.max_overflow),
            "database.max_overflow", 0,
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    """Parse LoggingSettings from the ``logging`` section."""
    section = _section(data, "logging", frozenset({"level"}))
    level = section.get("level", LoggingSettings().level)
    if not isinstance(level, str):
        raise ValueError(f"'logging.level' must be a string, got {level!r}")
    level = level.upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"Unknown logging level {level!r}")
    return LoggingSettings(level=level)


def parse_config(data: dict[str, Any]) -> ReviewConfig:
    """Parse a complete ReviewConfig from a loaded YAML document."""
    unknown = set(data) - _ROOT_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    config_id = data["config_id"]
    if not isinstance(config_id, str) or not config_id:
        raise ValueError(f"'config_id' must be a non-empty string, got {config_id!r}")

    return ReviewConfig(
        config_id=config_id,
        version=_int(data["version"], "version", 1),
        workflow=parse_workflow(data),
        database=parse_database(data),
        logging=parse_logging(data),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of the loaded document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
