"""
Process-wide logging setup with an explicit lifecycle.

configure_logging() is called once at application startup and returns the
handlers it installed; shutdown_logging() flushes and closes them. Nothing
is opened at import time, so importing any module never touches the disk.

Modules never configure logging themselves. They use:

    logger = logging.getLogger(__name__)
"""

import logging
import logging.handlers
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class LoggingHandle:
    """Handlers installed by configure_logging(), owned by the caller."""

    log_dir: Path | None
    handlers: list[logging.Handler] = field(default_factory=list)


def configure_logging(
    log_dir: str | Path | None = None,
    level: int | str = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> LoggingHandle:
    """
    Install console and (optionally) rotating file handlers on the root logger.

    Args:
        log_dir: Directory for app.log and error.log. None logs to console only.
        level: Root log level
        max_bytes: Rotation threshold per file
        backup_count: Rotated files to keep

    Returns:
        LoggingHandle to pass to shutdown_logging()
    """
    formatter = logging.Formatter(DEFAULT_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)

    handle = LoggingHandle(log_dir=Path(log_dir) if log_dir else None)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    handle.handlers.append(console)

    if handle.log_dir is not None:
        handle.log_dir.mkdir(parents=True, exist_ok=True)

        app_file = logging.handlers.RotatingFileHandler(
            handle.log_dir / "app.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        app_file.setFormatter(formatter)
        handle.handlers.append(app_file)

        error_file = logging.handlers.RotatingFileHandler(
            handle.log_dir / "error.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        handle.handlers.append(error_file)

    for handler in handle.handlers:
        root.addHandler(handler)

    logging.getLogger(__name__).info(
        "Logging configured (level=%s, dir=%s)",
        logging.getLevelName(root.level),
        handle.log_dir,
    )
    return handle


def shutdown_logging(handle: LoggingHandle) -> None:
    """Flush, detach and close every handler installed by configure_logging()."""
    root = logging.getLogger()
    for handler in handle.handlers:
        handler.flush()
        root.removeHandler(handler)
        handler.close()
    handle.handlers.clear()
