"""
Logging setup for the relayout service.

Log files roll over per day and per size:
relayout_2026-01-12.log, relayout_2026-01-12_01.log, relayout_2026-01-12_02.log
"""

import logging
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

MAX_BYTES = 50 * 1024 * 1024
BACKUP_COUNT = 10
BACKUP_DAYS = 30

logger = logging.getLogger(__name__)


def _today() -> str:
    return datetime.now().strftime(DATE_FORMAT)


class DailyRotatingFileHandler(RotatingFileHandler):
    """
    Opens a new file each calendar day and numbers size rollovers within it.
    Files older than BACKUP_DAYS are removed when the handler starts.
    """

    def __init__(self, log_dir: str, base_name: str = "relayout"):
        self.log_dir = Path(log_dir)
        self.base_name = base_name
        self._current_date: Optional[str] = None

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._update_filename()
        super().__init__(
            filename=str(self._current_file),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        self._cleanup_old_logs()

    def _update_filename(self) -> None:
        today = _today()
        if self._current_date != today:
            self._current_date = today
            self._current_file = self.log_dir / f"{self.base_name}_{today}.log"

    def shouldRollover(self, record):
        if self._current_date != _today():
            return True
        return super().shouldRollover(record)

    def doRollover(self):
        if self._current_date == _today():
            super().doRollover()
            return
        # New day: switch files instead of numbering backups.
        if self.stream:
            self.stream.close()
            self.stream = None
        self._update_filename()
        self.baseFilename = str(self._current_file)
        self.stream = self._open()

    def rotation_filename(self, default_name):
        # relayout_2026-01-12.log.1 -> relayout_2026-01-12_01.log
        if ".log." in default_name:
            base, num = default_name.rsplit(".log.", 1)
            return f"{base}_{num.zfill(2)}.log"
        return default_name

    def _cleanup_old_logs(self) -> None:
        cutoff = datetime.now() - timedelta(days=BACKUP_DAYS)
        for log_file in self.log_dir.glob(f"{self.base_name}_*.log"):
            date_str = log_file.stem[len(self.base_name) + 1:].split("_")[0]
            try:
                file_date = datetime.strptime(date_str, DATE_FORMAT)
            except ValueError:
                continue
            if file_date < cutoff:
                try:
                    log_file.unlink()
                except OSError as e:
                    logger.warning(f"Could not remove old log file {log_file}: {e}")


def _file_handler(log_dir: str, base_name: str, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = DailyRotatingFileHandler(log_dir, base_name=base_name)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def setup_logging(log_dir: str = "logs", log_level: str = "INFO") -> None:
    """Console output plus a full pipeline log and an errors-only log under log_dir."""
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_file_handler(log_dir, "relayout", logging.DEBUG, formatter))
    root_logger.addHandler(_file_handler(log_dir, "error", logging.ERROR, formatter))

    # Quiet down chatty client libraries.
    for noisy in ("httpx", "httpcore", "uvicorn.access", "google_genai", "google.auth", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(f"Logging initialized, dir: {Path(log_dir).absolute()}")
