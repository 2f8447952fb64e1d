"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

from infrastructure.settings import APP_DIR

DEFAULT_LOG_DIR = APP_DIR / "logs"
LOG_FILE_GLOB = "gallery_*.log"
DELETE_LOG_GLOB = "delete_*.csv"


def init_logging(
    log_dir: str | Path | None = None, level: str = "INFO", console: bool = False
) -> Path:
    """Send loguru output to a daily rotating file under `log_dir`.

    With `console`, warnings and errors are echoed to stderr as well.
    Returns the directory the file sink writes to.
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "gallery_{time:YYYYMMDD}.log"),
        level=level,
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
    if console:
        logger.add(sys.stderr, level="WARNING", format="{level}: {message}")
    return log_path


def _newest(directory: Path, pattern: str) -> Path | None:
    try:
        candidates = list(directory.glob(pattern)) if directory.is_dir() else []
        return max(candidates, key=lambda p: p.stat().st_mtime, default=None)
    except OSError:
        return None


def find_latest_log_file(log_dir: str | Path | None = None) -> Path | None:
    """Most recently written application log, if any."""
    return _newest(Path(log_dir) if log_dir else DEFAULT_LOG_DIR, LOG_FILE_GLOB)


def find_latest_delete_log(delete_log_dir: str | Path | None) -> Path | None:
    """Most recent delete audit CSV written by `DeleteService`."""
    if not delete_log_dir:
        return None
    return _newest(Path(delete_log_dir), DELETE_LOG_GLOB)
