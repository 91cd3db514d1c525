import logging
import sys
import threading
from contextlib import contextmanager
from typing import Iterable

REDACTED = "***"


class ContextFormatter(logging.Formatter):
    """Custom formatter that handles optional run_id and stage fields."""
    def format(self, record):
        # Add default values for run_id and stage if not present
        if not hasattr(record, 'run_id'):
            record.run_id = '-'
        if not hasattr(record, 'stage'):
            record.stage = '-'
        return super().format(record)


class SecretRedactionFilter(logging.Filter):
    """Masks the values of secrets held by active runs in every record it sees."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._values: dict[str, int] = {}

    def add(self, values: Iterable[str]) -> None:
        with self._lock:
            for v in values:
                if v:
                    self._values[v] = self._values.get(v, 0) + 1

    def discard(self, values: Iterable[str]) -> None:
        with self._lock:
            for v in values:
                count = self._values.get(v, 0) - 1
                if count > 0:
                    self._values[v] = count
                else:
                    self._values.pop(v, None)

    def mask(self, text: str) -> str:
        with self._lock:
            values = sorted(self._values, key=len, reverse=True)
        for v in values:
            text = text.replace(v, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._values:
            return True
        record.msg = self.mask(record.getMessage())
        record.args = None
        # render the traceback now so the exception text goes out masked
        if record.exc_info:
            record.exc_text = _traceback_formatter.formatException(record.exc_info)
            record.exc_info = None
        if record.exc_text:
            record.exc_text = self.mask(record.exc_text)
        if record.stack_info:
            record.stack_info = self.mask(record.stack_info)
        return True


_traceback_formatter = logging.Formatter()


secret_filter = SecretRedactionFilter()


@contextmanager
def masking(values: Iterable[str]):
    """Register secret values with the log filter for the duration of a run."""
    values = [v for v in values if v]
    secret_filter.add(values)
    try:
        yield
    finally:
        secret_filter.discard(values)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [run_id=%(run_id)s stage=%(stage)s] - %(message)s"
    ))
    handler.addFilter(secret_filter)
    logging.basicConfig(
        level=level,
        handlers=[handler],
    )
