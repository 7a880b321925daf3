"""Process logging with readable lines and JSON-encoded extras."""

import json
import logging
import sys

from theme_scout.config import settings

LOGGER_NAME = "theme_scout"

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONExtrasFormatter(logging.Formatter):
    """Render `timestamp | LEVEL | logger | message {extras}`.

    Example:
        2025-06-04 10:30:45 | INFO     | theme_scout.services.theme_scout | Scout job completed {"asset_id": "a1"}
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        timestamp = self.formatTime(record, self.datefmt)
        line = f"{timestamp} | {record.levelname:<8} | {record.name} | {record.message}"

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extras:
            try:
                line = f"{line} {json.dumps(extras, default=str, ensure_ascii=False)}"
            except (TypeError, ValueError):
                pass

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line = f"{line}\n{record.exc_text}"
        return line


def setup_logging(level: str | None = None) -> None:
    """Attach a stdout handler to the package logger once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level or settings.log_level)

    if logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONExtrasFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
