import datetime
import logging
from pathlib import Path
from typing import IO, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import settings

LOGGER_NAME = "aiguide"

_LOGGING_CONFIGURED = False


class LocalTimezoneFormatter(logging.Formatter):
    """
    Formatter rendering timestamps in LOG_TIMEZONE, falling back to the
    system local timezone when unset or unknown.
    """

    def __init__(self, *args, timezone_name: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._tzinfo = self._resolve_tzinfo(timezone_name)

    @staticmethod
    def _resolve_tzinfo(timezone_name: Optional[str]) -> datetime.tzinfo:
        if timezone_name:
            try:
                return ZoneInfo(timezone_name)
            except ZoneInfoNotFoundError:
                pass
        return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.datetime.fromtimestamp(record.created, tz=self._tzinfo)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="milliseconds")


class DailyFileHandler(logging.Handler):
    """
    Writes each day's records into <log_dir>/<prefix>-YYYY-MM-DD.log and
    keeps at most ``backup_count`` of those files around.
    """

    terminator = "\n"

    def __init__(
        self,
        log_dir: Path,
        filename_prefix: str = LOGGER_NAME,
        backup_count: int = 7,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__()
        self.log_dir = log_dir
        self.filename_prefix = filename_prefix
        self.backup_count = backup_count
        self.encoding = encoding
        self._day: Optional[datetime.date] = None
        self._stream: Optional[IO[str]] = None
        self._open_for_today()

    def _path_for(self, day: datetime.date) -> Path:
        return self.log_dir / f"{self.filename_prefix}-{day.isoformat()}.log"

    def _prune(self) -> None:
        if self.backup_count <= 0:
            return
        files = sorted(self.log_dir.glob(f"{self.filename_prefix}-*.log"))
        for stale in files[: max(0, len(files) - self.backup_count)]:
            try:
                stale.unlink()
            except OSError:
                # Another process may have removed it already.
                pass

    def _close_stream(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except OSError:
                pass
            self._stream = None

    def _open_for_today(self) -> None:
        today = datetime.date.today()
        if self._stream is not None and self._day == today:
            return
        self._close_stream()
        self._day = today
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._stream = open(self._path_for(today), "a", encoding=self.encoding)
        self._prune()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            self._open_for_today()
            if self._stream is None:
                return
            self._stream.write(line + self.terminator)
            self._stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            self._close_stream()
        finally:
            super().close()


def setup_logging() -> None:
    """
    Configure application logging once per process.

    Records from the "aiguide" logger go to a daily file under LOG_DIR;
    everything (uvicorn included) is echoed to the console via the root logger.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level_value = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    formatter = LocalTimezoneFormatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        timezone_name=settings.log_timezone,
    )

    file_handler = DailyFileHandler(log_dir=Path(settings.log_dir))
    file_handler.setFormatter(formatter)
    file_handler.addFilter(lambda record: record.name.startswith(LOGGER_NAME))

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level_value)
    app_logger.propagate = True
    app_logger.addHandler(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level_value)
    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root_logger.handlers
    )
    if not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _LOGGING_CONFIGURED = True


logger = logging.getLogger(LOGGER_NAME)
