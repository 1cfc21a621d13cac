import contextvars
import logging
import logging.handlers
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

LOGS_DIR = Path(os.getenv("LOG_DIR", "log"))

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(job)s] %(message)s'

# "<job>:<run id>" of the job run the current task belongs to
_job_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("job_context", default=None)


class JobContextFilter(logging.Filter):
    """Stamps every record with the job run it was emitted from ('-' outside jobs)."""

    def filter(self, record):
        record.job = _job_context.get() or "-"
        return True


@contextmanager
def job_log_context(job: str, run_id: str):
    token = _job_context.set(f"{job}:{run_id}")
    try:
        yield
    finally:
        _job_context.reset(token)


def current_job_context() -> Optional[str]:
    return _job_context.get()


class LineRotatingFileHandler(logging.FileHandler):
    """File handler that rotates based on number of lines, not size."""

    def __init__(self, filename, maxLines=500, backupCount=5, encoding=None, delay=False):
        super().__init__(filename, 'a', encoding, delay)
        self.maxLines = maxLines
        self.backupCount = backupCount
        self.lineCount = self._count_lines()

    def _count_lines(self):
        try:
            with open(self.baseFilename, 'r', encoding=self.encoding) as f:
                return sum(1 for _ in f)
        except OSError:
            return 0

    def emit(self, record):
        super().emit(record)
        self.lineCount += 1
        if self.lineCount >= self.maxLines:
            self.doRollover()

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None

        for i in range(self.backupCount - 1, 0, -1):
            sfn = f"{self.baseFilename}.{i}"
            dfn = f"{self.baseFilename}.{i + 1}"
            if os.path.exists(sfn):
                if os.path.exists(dfn):
                    os.remove(dfn)
                os.rename(sfn, dfn)

        dfn = f"{self.baseFilename}.1"
        if os.path.exists(dfn):
            os.remove(dfn)
        if os.path.exists(self.baseFilename):
            os.rename(self.baseFilename, dfn)

        self.lineCount = 0

        if not self.delay:
            self.stream = self._open()


_logger = None
_handlers = []


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None):
    """Setup logging to file + console"""
    global _logger, _handlers

    _logger = logging.getLogger()
    _logger.setLevel(log_level)

    # setup_logging runs again once the DB log level is known
    for handler in list(_handlers):
        _logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    context_filter = JobContextFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    _logger.addHandler(console_handler)
    _handlers = [console_handler]

    logs_dir = Path(log_dir) if log_dir else LOGS_DIR
    log_file = logs_dir / "nastools.log"
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = LineRotatingFileHandler(log_file, maxLines=500, backupCount=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        _logger.addHandler(file_handler)
        _handlers.append(file_handler)
    except OSError as e:
        _logger.warning(f"File logging disabled, cannot write to {log_file}: {e}")

    # Reduce noise from external libraries
    for noisy in ("apscheduler", "httpx", "aiohttp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _logger.info(f"✓ Logging initialized - Level: {log_level}, File: {log_file}")


def change_log_level_runtime(new_level: str) -> bool:
    """Change the log level of the root logger and all installed handlers"""
    if not _logger:
        return False

    try:
        new_level = new_level.upper()
        _logger.setLevel(new_level)
        for handler in _handlers:
            handler.setLevel(new_level)
        logging.getLogger(__name__).info(f"Log-Level changed to {new_level}")
        return True
    except (ValueError, TypeError) as e:
        logging.getLogger(__name__).error(f"Failed to change log level: {e}")
        return False
