"""
Logging for Atelier Dispatch.

One service process serves one workshop, so every line is tagged with the
atelier id next to the name of the thread that wrote it: Flask request
threads and the single ``Sync`` thread interleave their output.

    2026-10-19 10:15:31 [INFO    ] [Thread-3] [atelier-diop] atelier_dispatch.services.dispatch - Order CMD-7QX2AB claimed
    2026-10-19 10:15:32 [INFO    ] [Sync] [atelier-diop] atelier_dispatch.services.sync_service - Aggregate flushed

Production adds two rotating files under ``LOG_DIR``: the full log and an
errors-only log.

Usage:
    from logging_config import get_logger

    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_NAMESPACE = "atelier_dispatch"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] [%(atelier_id)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs every request at INFO; the sync thread writes once per debounce window
NOISY_LIBRARIES = ("httpx", "httpcore")


class LogContextFilter(logging.Filter):
    """Stamp each record with the writing thread and the atelier it serves."""

    def __init__(self, atelier_id: str = "-"):
        super().__init__()
        self.atelier_id = atelier_id or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        record.atelier_id = self.atelier_id
        return True


def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    context: LogContextFilter,
    max_bytes: int,
    backup_count: int,
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(context)
    return handler


def setup_logging(
    atelier_id: str = "-",
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the ``atelier_dispatch`` logger tree.

    Safe to call again (the app factory runs once per test): existing
    handlers are replaced, not stacked.

    Args:
        atelier_id: Workshop served by this process, shown on every line
        log_level: Minimum level for console and app log
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Add the rotating app and error files
        max_bytes / backup_count: Rotation settings for both files

    Returns:
        The namespace root logger
    """
    logger = logging.getLogger(APP_NAMESPACE)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    context = LogContextFilter(atelier_id)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context)
    logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = Path(log_dir) if log_dir else Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log = log_dir / f"{APP_NAMESPACE}.log"
        logger.addHandler(_rotating_handler(app_log, log_level, formatter, context, max_bytes, backup_count))
        logger.addHandler(_rotating_handler(
            log_dir / f"{APP_NAMESPACE}_error.log", logging.ERROR, formatter, context, max_bytes, backup_count
        ))
        logger.info(f"File logging enabled: {app_log}")

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application namespace (pass ``__name__``)."""
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


def get_order_logger(order_id: str) -> logging.Logger:
    """
    Logger for one order: ``atelier_dispatch.order.<first 8 chars of id>``.

    Lets every line about an order be grepped together, whichever service
    or thread wrote it.
    """
    return logging.getLogger(f"{APP_NAMESPACE}.order.{order_id[:8]}")


def set_thread_name(name: str) -> None:
    """Rename the current thread; the name shows up in ``[thread_name]``."""
    threading.current_thread().name = name
