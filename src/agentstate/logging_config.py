# src/agentstate/logging_config.py
"""
Process-wide logging setup for applications embedding agentstate.

Library modules only ever call ``logging.getLogger(__name__)``. Installing
handlers is left to the application, which usually does it through
:meth:`agentstate.storage.StorageManager.configure_logging` so that the
``[logging]`` section of the storage config takes effect.

Console output is quiet by default: with ``console_enabled = false`` the
console handler only lets through records logged with
``extra={"display": True}`` (see :func:`log_display`), so an operator sees
messages like "Rebuilt memory catalog with 42 records" while debug output
goes to the log file only.

Log files are written per run (``file_mode = "per_run"``, one timestamped
file per process) or to one rotating file (``file_mode = "single"``).
"""

import logging
import os
import sys
import threading
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

LevelLike = Union[str, int]

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "display_min_level": "INFO",
    "file_enabled": True,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/agentstate/logs",
    "file_mode": "per_run",
    "file_name_pattern": "{app}_{timestamp:%Y%m%d_%H%M%S}.log",
    "file_single_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s",
    "rotation_max_bytes": 10 * 1024 * 1024,
    "rotation_backup_count": 5,
    "components": {
        "agentstate": "INFO",
        "chromadb": "WARNING",
        "sentence_transformers": "WARNING",
    },
}

FILE_MODES = ("per_run", "single")


def to_level(value: LevelLike, fallback: int = logging.INFO) -> int:
    """Translate a level name or number into a logging level, using ``fallback`` for unknown names."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else fallback


class DisplayFilter(logging.Filter):
    """
    Console gate.

    Passes everything when the console is enabled; otherwise only records
    flagged with ``display=True`` at or above ``min_level``.
    """

    def __init__(self, console_enabled: bool = False, min_level: int = logging.INFO):
        super().__init__()
        self.console_enabled = console_enabled
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_enabled:
            return True
        return bool(getattr(record, "display", False)) and record.levelno >= self.min_level


class _LoggingState:
    """Handlers installed by :func:`configure_logging`, so they can be adjusted or removed later."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.configured = False
        self.console_handler: Optional[logging.Handler] = None
        self.file_handler: Optional[logging.Handler] = None
        self.log_file_path: Optional[Path] = None

    def detach(self) -> None:
        root = logging.getLogger()
        for handler in (self.console_handler, self.file_handler):
            if handler is not None:
                root.removeHandler(handler)
                handler.close()
        self.console_handler = None
        self.file_handler = None
        self.log_file_path = None
        self.configured = False


_state = _LoggingState()


def _console_handler(settings: Dict[str, Any]) -> logging.Handler:
    console_enabled = bool(settings["console_enabled"])
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(settings["console_format"]))
    # With the console disabled the display filter alone decides what is shown.
    handler.setLevel(to_level(settings["console_level"], logging.WARNING) if console_enabled else logging.DEBUG)
    handler.addFilter(DisplayFilter(console_enabled, to_level(settings["display_min_level"])))
    return handler


def _file_handler(settings: Dict[str, Any], app_name: str) -> Tuple[Optional[logging.Handler], Optional[Path]]:
    """Create the file handler, or report to stderr and return (None, None) when the file cannot be opened."""
    log_dir = Path(os.path.expanduser(settings["file_directory"]))
    handler: logging.Handler
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if settings["file_mode"] == "single":
            path = log_dir / settings["file_single_name"].format(app=app_name)
            handler = RotatingFileHandler(path, maxBytes=settings["rotation_max_bytes"],
                                          backupCount=settings["rotation_backup_count"], encoding="utf-8")
        else:
            path = log_dir / settings["file_name_pattern"].format(app=app_name, timestamp=datetime.now())
            handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        # No handler exists yet that could carry this message.
        sys.stderr.write(f"agentstate: file logging disabled, cannot open log in {log_dir}: {e}\n")
        return None, None
    handler.setLevel(to_level(settings["file_level"], logging.DEBUG))
    handler.setFormatter(logging.Formatter(settings["file_format"]))
    return handler, path


def configure_logging(
    app_name: str = "agentstate",
    config: Optional[Dict[str, Any]] = None,
    force_reconfigure: bool = False,
) -> Optional[Path]:
    """
    Install console and file handlers on the root logger.

    Only the first call has an effect unless ``force_reconfigure`` is set.

    Args:
        app_name: Used in log file names.
        config: ``[logging]`` settings; missing keys take their value from
            :data:`DEFAULT_LOGGING_CONFIG`.
        force_reconfigure: Replace handlers installed by an earlier call.

    Returns:
        The log file path, or None when file logging is off or failed.
    """
    settings = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
    with _state.lock:
        if _state.configured and not force_reconfigure:
            return _state.log_file_path
        _state.detach()

        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        _state.console_handler = _console_handler(settings)
        root.addHandler(_state.console_handler)
        if settings["file_enabled"]:
            _state.file_handler, _state.log_file_path = _file_handler(settings, app_name)
            if _state.file_handler is not None:
                root.addHandler(_state.file_handler)

        for component, level in settings["components"].items():
            logging.getLogger(component).setLevel(to_level(level))
        _state.configured = True
        path = _state.log_file_path

    logging.getLogger(__name__).debug(f"Logging configured for '{app_name}', log file: {path}")
    return path


def reset_logging() -> None:
    """Remove the handlers installed by :func:`configure_logging`."""
    with _state.lock:
        _state.detach()


def is_logging_configured() -> bool:
    return _state.configured


def get_log_file_path() -> Optional[Path]:
    return _state.log_file_path


def set_console_level(level: LevelLike) -> None:
    if _state.console_handler is not None:
        _state.console_handler.setLevel(to_level(level, logging.WARNING))


def set_component_level(component: str, level: LevelLike) -> None:
    logging.getLogger(component).setLevel(to_level(level))


def log_display(logger: logging.Logger, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
    """``logger.log`` with ``extra={"display": True}`` merged into any caller supplied ``extra``."""
    extra = dict(kwargs.pop("extra", None) or {})
    extra["display"] = True
    logger.log(level, msg, *args, extra=extra, **kwargs)
