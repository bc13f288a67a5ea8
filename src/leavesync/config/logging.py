"""Logging setup shared by the CLI and scripts."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "LEAVESYNC_LOG_LEVEL"


def resolve_log_level(value: int | str | None = None) -> int:
    """Translate a level name (or the ``LEAVESYNC_LOG_LEVEL`` override) into a number."""

    candidate = value if value is not None else os.getenv(LOG_LEVEL_ENV)
    if candidate is None:
        return logging.INFO
    if isinstance(candidate, int):
        return candidate
    named = logging.getLevelNamesMapping().get(candidate.strip().upper())
    return named if named is not None else logging.INFO


def configure_logging(*, level: int | str | None = None, force: bool = False) -> None:
    """Initialise the root logger once. Pass ``force=True`` to reconfigure during tests."""

    logging.basicConfig(
        level=resolve_log_level(level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
