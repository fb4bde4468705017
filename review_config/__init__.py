"""
review_config -- single public entrypoint for review kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  Returns a frozen ``ReviewConfig``.

Architecture position:
    Configuration -- sits above ``review_kernel``.  The kernel MUST NEVER
    import from ``review_config``; ``review_config.bridges`` translates a
    ``ReviewConfig`` into wired kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the config id, version and checksum, tying each running
    deployment to the exact settings it was started with.
"""

from __future__ import annotations

from pathlib import Path

from review_config.loader import load_yaml_file, parse_config
from review_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    ReviewConfig,
    WorkflowSettings,
)
from review_kernel.logging_config import get_logger

_logger = get_logger("config")

# Packaged default configuration
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> ReviewConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``review_config/sets/default.yaml``.

    Returns:
        A validated, frozen ``ReviewConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        KeyError: If ``config_id`` or ``version`` is missing.
        ValueError: If any value fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "LoggingSettings",
    "ReviewConfig",
    "WorkflowSettings",
    "get_active_config",
]
