"""
Logging configuration for the what-if simulator.

One log file per calendar day, named after the day and the process start
time, with old files pruned after a retention window.
"""

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "what_if"
LOG_FILE_PREFIX = "whatif"
DEFAULT_RETENTION_DAYS = 14
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_LOG_FILE_PATTERN = re.compile(rf"^{LOG_FILE_PREFIX}_(\d{{8}})_\d{{6}}\.log$")

# Fixed once per process so every daily file of a run shares the suffix
_PROCESS_START_TIME: Optional[str] = None


def _process_start() -> str:
    global _PROCESS_START_TIME
    if _PROCESS_START_TIME is None:
        _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")
    return _PROCESS_START_TIME


def prune_old_logs(log_dir: Union[str, Path], retention_days: int, today: Optional[datetime] = None) -> int:
    """
    Delete whatif_YYYYMMDD_HHMMSS.log files older than retention_days.

    Files not matching the naming scheme are left alone. Returns the number
    of files removed.
    """
    if retention_days <= 0:
        return 0
    cutoff = ((today or datetime.now()) - timedelta(days=retention_days)).strftime("%Y%m%d")

    removed = 0
    for path in Path(log_dir).glob(f"{LOG_FILE_PREFIX}_*.log"):
        match = _LOG_FILE_PATTERN.match(path.name)
        if match and match.group(1) < cutoff:
            path.unlink()
            removed += 1
    return removed


class DailyRotatingFileHandler(logging.FileHandler):
    """
    Writes logs/whatif_YYYYMMDD_<START_HHMMSS>.log.

    The date part follows the calendar; START_HHMMSS stays fixed for the
    process. Each time a new day's file is opened, files older than
    `retention_days` are pruned (0 keeps everything).
    """

    def __init__(
        self,
        log_dir: Union[str, Path] = "logs",
        encoding: str = "utf-8",
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.retention_days = retention_days
        self._start_hhmmss = _process_start()
        self._current_date = datetime.now().strftime("%Y%m%d")

        prune_old_logs(self.log_dir, self.retention_days)
        super().__init__(self._path_for(self._current_date), mode="a", encoding=encoding)

    def _path_for(self, date_str: str) -> str:
        return str(self.log_dir / f"{LOG_FILE_PREFIX}_{date_str}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        today = datetime.now().strftime("%Y%m%d")
        if today != self._current_date:
            self.close()
            self._current_date = today
            self.baseFilename = self._path_for(today)
            prune_old_logs(self.log_dir, self.retention_days)
            self.stream = self._open()

        super().emit(record)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Union[str, Path] = "logs",
    log_to_file: bool = True,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> logging.Logger:
    """
    Configure the what_if logger and return it.

    Console output goes to stderr so command output on stdout stays clean.
    Calling this again replaces the previous handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: directory for daily log files
        log_to_file: attach the daily rotating file handler
        retention_days: days of log files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        file_handler = DailyRotatingFileHandler(log_dir=log_dir, retention_days=retention_days)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info(f"Logging started - level: {log_level}, log file: {file_handler.baseFilename}")
    else:
        logger.info(f"Logging started - level: {log_level}, console only")

    return logger
