"""Logging bootstrap.

Console output goes through a RichHandler on the shared console. Each build
also gets a JSONL run log in its output directory, which always records at
DEBUG regardless of the console level.
"""

import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

from rich.logging import RichHandler

from .console import console

DEFAULT_CONSOLE_LEVEL = "WARNING"
RUN_LOG_NAME = "mle-loader.log.jsonl"

_RESERVED_ATTRS = frozenset(
    {
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "name",
        "taskName",
    }
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            base = {
                "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "schema": {"name": "mle-loader.log", "ver": "1.0.0"},
                "logger": record.name,
                "message": record.getMessage(),
            }
            # Attach any extra fields on the record
            for k, v in record.__dict__.items():
                if k in _RESERVED_ATTRS:
                    continue
                base.setdefault(k, v)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(base, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def _console_level(verbose: bool, level: str | None) -> int:
    if verbose:
        return logging.INFO
    name = (level or DEFAULT_CONSOLE_LEVEL).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.WARNING


def init_console_logging(verbose: bool = False, level: str | None = None) -> RichHandler:
    """Install the console handler on the root logger, replacing any earlier one."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        if isinstance(h, RichHandler):
            root.removeHandler(h)

    handler = RichHandler(console=console, show_time=False, show_path=False, markup=False)
    handler.setLevel(_console_level(verbose, level))
    root.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return handler


def init_json_logging(output_dir: Path) -> JsonlHandler:
    """Record everything from this run to ``<output_dir>/mle-loader.log.jsonl``."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Remove existing handlers of the same kind to avoid duplicates
    for h in list(root.handlers):
        if isinstance(h, JsonlHandler):
            root.removeHandler(h)
    handler = JsonlHandler(Path(output_dir) / RUN_LOG_NAME)
    handler.setLevel(logging.DEBUG)
    root.addHandler(handler)
    return handler


def forced_info(logger: logging.Logger, message: str) -> None:
    """Show an INFO message on the console even when the console level is higher."""
    logger.info(message)
    root = logging.getLogger()
    for h in root.handlers:
        if isinstance(h, RichHandler) and h.level > logging.INFO:
            record = logger.makeRecord(logger.name, logging.INFO, "(forced)", 0, message, (), None)
            h.handle(record)
