"""Logging helpers for the check-in scanner."""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def parse_level(raw: str | int | None, default: int = logging.INFO) -> int:
    if isinstance(raw, int):
        return raw
    if not raw:
        return default
    value = logging.getLevelName(str(raw).strip().upper())
    return value if isinstance(value, int) else default


def configure_logging(level: int = logging.INFO, log_path: str | Path | None = None) -> None:
    """Configure default logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
    )
