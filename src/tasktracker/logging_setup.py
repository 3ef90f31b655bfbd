from __future__ import annotations

import logging
import sys
from pathlib import Path

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - all tasktracker logs
    - uvicorn startup/access lines
    - other third-party loggers only at WARNING+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "tasktracker" or name.startswith("tasktracker."):
            return True
        if name.startswith("uvicorn"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
) -> None:
    """
    Configure the root logger with a filtered stderr handler and, when
    log_file is given, a file handler that records everything at DEBUG.

    Call this ONCE, before the first log line.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
