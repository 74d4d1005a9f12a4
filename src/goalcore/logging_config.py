# src/goalcore/logging_config.py
"""
Logging Configuration for goalcore.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records end up.

Key concepts:

    **Display filter**: When ``console_enabled=False`` (the default), the
    console handler still exists but only passes through log records that
    carry ``extra={"display": True}``.  User-facing notifications (approval
    requests, progress updates, completion presentations) are logged that
    way so they reach the console while the scheduler's background chatter
    stays file-only.

    **File rotation**: file logging uses a ``RotatingFileHandler`` with a
    configurable max size and backup count.

Usage:
    from goalcore.logging_config import configure_logging, log_display

    configure_logging(app_name="goalcore", config={"console_enabled": True})

    logger = logging.getLogger("goalcore.autonomous.lifecycle")
    log_display(logger, logging.INFO, "Goal %s completed", goal.title)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": False,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/goalcore/logs",
    "file_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "goalcore": "INFO",
        "asyncio": "WARNING",
        "aiosqlite": "WARNING",
        "httpx": "WARNING",
        "httpcore": "WARNING",
    },
}


# ---------------------------------------------------------------------------
# DisplayFilter
# ---------------------------------------------------------------------------


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    When console is globally enabled, everything passes and the handler's
    own level does the filtering.  Otherwise only records with
    ``record.display = True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True

        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level

        return False


def _level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


def configure_logging(
    app_name: str = "goalcore",
    config: dict[str, Any] | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """
    Configure root logging for an application embedding goalcore.

    Args:
        app_name: Name of the application (used in the log filename).
        config: Logging settings; missing keys fall back to
            ``DEFAULT_LOGGING_CONFIG``.
        force_reconfigure: Replace handlers installed by a previous call.

    Returns:
        Path to the log file, or None when file logging is disabled.
    """
    log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
    root_logger = logging.getLogger()

    already = [h for h in root_logger.handlers if getattr(h, "_goalcore", False)]
    if already and not force_reconfigure:
        return getattr(already[0], "baseFilename", None) and Path(already[0].baseFilename)
    for handler in already:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(logging.DEBUG)

    console_enabled = bool(log_config.get("console_enabled", False))
    console_handler = logging.StreamHandler(sys.stderr)
    if console_enabled:
        console_handler.setLevel(_level(log_config["console_level"], logging.WARNING))
    else:
        # The filter is the sole gate in quiet mode.
        console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(log_config["console_format"]))
    console_handler.addFilter(
        DisplayFilter(
            console_globally_enabled=console_enabled,
            display_min_level=_level(log_config["display_min_level"], logging.INFO),
        )
    )
    console_handler._goalcore = True  # type: ignore[attr-defined]
    root_logger.addHandler(console_handler)

    log_file_path: Path | None = None
    if log_config.get("file_enabled"):
        log_dir = Path(os.path.expanduser(log_config["file_directory"]))
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file_path = log_dir / log_config["file_name"].format(app=app_name)
            file_handler = RotatingFileHandler(
                log_file_path,
                maxBytes=log_config["rotation_max_bytes"],
                backupCount=log_config["rotation_backup_count"],
                encoding="utf-8",
            )
        except (OSError, PermissionError) as e:
            sys.stderr.write(f"Warning: Cannot create log file in {log_dir}: {e}\n")
            log_file_path = None
        else:
            file_handler.setLevel(_level(log_config["file_level"], logging.DEBUG))
            file_handler.setFormatter(logging.Formatter(log_config["file_format"]))
            file_handler._goalcore = True  # type: ignore[attr-defined]
            root_logger.addHandler(file_handler)

    for component_name, level_str in log_config.get("components", {}).items():
        logging.getLogger(component_name).setLevel(_level(level_str, logging.INFO))

    if log_file_path:
        logging.getLogger(__name__).debug("Logging configured. Log file: %s", log_file_path)

    return log_file_path


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also appears on console even in quiet mode.

    The ``extra`` kwarg is merged (not replaced) to preserve the caller's
    extra data.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def set_component_level(component: str, level: str | int) -> None:
    """Change a specific component's log level at runtime."""
    logging.getLogger(component).setLevel(_level(level, logging.INFO))
