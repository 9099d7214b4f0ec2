"""Process-wide logging setup."""

from __future__ import annotations

import logging

from app.config import Settings, settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def resolve_level(cfg: Settings = settings) -> int:
    """Explicit LOG_LEVEL wins; otherwise production is quiet (no debug)."""
    if cfg.log_level:
        level = logging.getLevelName(cfg.log_level.upper())
        if isinstance(level, int):
            return level
    return logging.INFO if cfg.is_prod else logging.DEBUG


def setup_logging(cfg: Settings = settings) -> None:
    logging.basicConfig(level=resolve_level(cfg), format=LOG_FORMAT)
    # httpx logs every request at INFO, too chatty next to our own lines
    logging.getLogger("httpx").setLevel(logging.WARNING)
