# src/chatmemory/logging_config.py
"""
Handler setup driven by :class:`~chatmemory.config.LoggingConfig`.

Library modules only call ``logging.getLogger(__name__)``. When
``config.logging.enabled`` is set, ``ConversationMemoryManager.create`` calls
:func:`configure_logging` once to install a console handler and, optionally,
a log file.

The console is "silent" by default: its handler only lets through records
logged with ``extra={"display": True}`` (see :func:`log_display`), so an
operator sees lifecycle messages while per-call chatter goes to the file.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .config.models import LoggingConfig

_handlers: list[logging.Handler] = []
_log_file_path: Optional[Path] = None


def _level(name: str | int) -> int:
    if isinstance(name, int):
        return name
    resolved = logging.getLevelName(name.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return resolved


class DisplayFilter(logging.Filter):
    """Pass display-marked records at or above ``min_level``, or everything when ``passthrough``."""

    def __init__(self, passthrough: bool = False, min_level: int = logging.INFO) -> None:
        super().__init__()
        self.passthrough = passthrough
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.passthrough:
            return True
        return bool(getattr(record, "display", False)) and record.levelno >= self.min_level


def _file_handler(settings: LoggingConfig) -> Optional[logging.Handler]:
    global _log_file_path
    directory = Path(os.path.expanduser(settings.file_directory))
    try:
        directory.mkdir(parents=True, exist_ok=True)
        if settings.file_mode == "single":
            path = directory / f"{settings.app_name}.log"
            handler: logging.Handler = RotatingFileHandler(
                path,
                maxBytes=settings.rotation_max_bytes,
                backupCount=settings.rotation_backup_count,
                encoding="utf-8",
            )
        else:
            path = directory / f"{settings.app_name}_{datetime.now():%Y%m%d_%H%M%S}.log"
            handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        sys.stderr.write(f"Warning: cannot open log file in {directory}: {e}\n")
        return None
    handler.setLevel(_level(settings.file_level))
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)"
    ))
    _log_file_path = path
    return handler


def configure_logging(settings: Optional[LoggingConfig] = None, force: bool = False) -> Optional[Path]:
    """
    Install chatmemory's handlers on the root logger.

    Only the first call has an effect unless ``force`` is set; a forced call
    removes the handlers installed earlier (and only those).

    Returns:
        The log file path, or None when file logging is off or failed.
    """
    if _handlers and not force:
        return _log_file_path

    settings = settings or LoggingConfig()
    root = logging.getLogger()
    reset_logging()

    console = logging.StreamHandler(sys.stderr)
    # The filter alone gates a silent console
    console.setLevel(_level(settings.console_level) if settings.console_enabled else logging.DEBUG)
    console.addFilter(DisplayFilter(settings.console_enabled, _level(settings.display_min_level)))
    console.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
    _handlers.append(console)

    if settings.file_enabled:
        handler = _file_handler(settings)
        if handler is not None:
            _handlers.append(handler)

    root.setLevel(logging.DEBUG)
    for handler in _handlers:
        root.addHandler(handler)
    for name, level in settings.components.items():
        logging.getLogger(name).setLevel(_level(level))

    logging.getLogger(__name__).debug(f"Logging configured for '{settings.app_name}'; file: {_log_file_path}")
    return _log_file_path


def reset_logging() -> None:
    """Remove and close the handlers installed by :func:`configure_logging`."""
    global _log_file_path
    root = logging.getLogger()
    while _handlers:
        handler = _handlers.pop()
        root.removeHandler(handler)
        handler.close()
    _log_file_path = None


def get_log_file_path() -> Optional[Path]:
    return _log_file_path


def log_display(logger: logging.Logger, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
    """Log ``msg`` and mark it for the console even when the console is silent."""
    extra = dict(kwargs.pop("extra", None) or {})
    extra["display"] = True
    logger.log(level, msg, *args, extra=extra, **kwargs)
