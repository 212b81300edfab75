"""Logging for the waveplan CLI.

Console output goes to stderr; when a project is configured, records are
also appended to a per-day log file under ``logging.log_dir`` so the
history of a run survives across the many short CLI invocations.
"""

import logging
import sys
from datetime import date, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.models import WaveplanConfig

LOG_FILE_PREFIX = "waveplan-"

_LEVEL_COLORS = {
    logging.DEBUG: "\033[2m",  # Dim
    logging.INFO: "\033[32m",  # Green
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[1;31m",  # Bold red
}
_RESET = "\033[0m"


class WaveplanFormatter(logging.Formatter):
    """``[HH:MM:SS] LEVEL    area: message`` with optional level colors.

    ``area`` is the logger name without the ``waveplan.`` prefix, e.g.
    ``state.machine``.
    """

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        if self.use_colors and sys.stderr.isatty():
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"

        area = record.name
        if area.startswith("waveplan."):
            area = area[len("waveplan."):]

        line = f"[{self.formatTime(record, self.datefmt)}] {level} {area}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def log_file_for(log_dir: Path, day: Optional[date] = None) -> Path:
    """Daily log file inside log_dir."""
    day = day or date.today()
    return log_dir / f"{LOG_FILE_PREFIX}{day:%Y%m%d}.log"


def prune_logs(log_dir: Path, retention_days: int) -> list[Path]:
    """Delete waveplan log files older than retention_days.

    Args:
        log_dir: Directory holding log files
        retention_days: Age limit; <= 0 keeps everything

    Returns:
        Paths that were removed
    """
    if retention_days <= 0 or not log_dir.is_dir():
        return []

    cutoff = datetime.now().timestamp() - retention_days * 86400
    removed = []
    for path in log_dir.glob(f"{LOG_FILE_PREFIX}*.log*"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed.append(path)
        except FileNotFoundError:
            continue
    return removed


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
    use_colors: bool = True,
    rotation_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_file: Append records to this file (size-rotated)
        console: Log to stderr
        use_colors: Color the level on a TTY
        rotation_mb: File size that triggers rotation
        backup_count: Rotated files to keep
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    if console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(WaveplanFormatter(use_colors=use_colors))
        root.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=max(1, rotation_mb) * 1024 * 1024,
            backupCount=max(0, backup_count),
        )
        handler.setFormatter(WaveplanFormatter(use_colors=False))
        root.addHandler(handler)


def configure_logging(
    config: WaveplanConfig,
    verbose: bool = False,
    write_files: bool = True,
) -> Optional[Path]:
    """Set up logging from a project configuration.

    ``logging.log_dir`` is resolved against the project root. Verbose mode
    forces DEBUG and echoes records to the console; otherwise only the log
    file receives them.

    Args:
        config: Loaded configuration
        verbose: Enable console output at DEBUG level
        write_files: Write to the project's log directory

    Returns:
        Active log file, or None when file logging is off
    """
    settings = config.logging
    log_file = None

    if write_files:
        log_dir = settings.log_dir
        if not log_dir.is_absolute():
            log_dir = config.project.root / log_dir
        prune_logs(log_dir, settings.retention_days)
        log_file = log_file_for(log_dir)

    setup_logging(
        level="DEBUG" if verbose else settings.level,
        log_file=log_file,
        console=verbose,
        use_colors=verbose,
        rotation_mb=settings.rotation_mb,
    )
    return log_file
