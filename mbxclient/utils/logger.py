"""Logging setup shared across the library."""

from __future__ import annotations

import logging
from logging import Logger
from logging.config import dictConfig
from pathlib import Path
from typing import Any, Dict

from ..config import get_settings

_LOG_CONFIGURED = False


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _build_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping from settings."""
    settings = get_settings()
    logging_settings = settings.logging
    log_path = logging_settings.resolve_log_path(settings.root_dir)

    formatter = {
        "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
    }
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": logging_settings.normalized_level,
        },
    }
    if log_path is not None:
        _ensure_directory(log_path)
        handlers["file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "standard",
            "level": logging_settings.normalized_level,
            "filename": str(log_path),
            "when": logging_settings.rotation_when,
            "interval": logging_settings.rotation_interval,
            "backupCount": logging_settings.backup_count,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": formatter},
        "handlers": handlers,
        "loggers": {
            "mbxclient": {
                "level": logging_settings.normalized_level,
                "handlers": list(handlers),
                "propagate": False,
            },
        },
    }


def configure_logging(force: bool = False) -> None:
    """Install the library's logging configuration once."""
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED and not force:
        return
    dictConfig(_build_logging_config())
    _LOG_CONFIGURED = True


def get_logger(name: str) -> Logger:
    """Return a configured logger."""
    configure_logging()
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
