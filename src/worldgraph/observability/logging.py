"""Logging setup for the ``wg`` command line.

Events always go to stderr through rich. With ``--log`` they are also
appended, one JSON object per line, to ``<root>/logs/wg.jsonl``. The CLI
binds the running command and the project root once per invocation, so
every event in the file can be traced back to the run that produced it.

Records from the standard library (sqlite errors, third-party loggers) pass
through the same processors as structlog events.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import EventDict, FilteringBoundLogger, Processor

LOGS_DIRNAME = "logs"
LOG_FILENAME = "wg.jsonl"

# Keys rich already renders, or that only matter in the file.
_CONSOLE_HIDDEN_KEYS = ("level", "timestamp", "logger", "command", "root")

_file_handler: logging.FileHandler | None = None

_PRE_CHAIN: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _hide_console_keys(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    for key in _CONSOLE_HIDDEN_KEYS:
        event_dict.pop(key, None)
    return event_dict


def _console_handler(level: int, verbosity: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_PRE_CHAIN,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _hide_console_keys,
                structlog.processors.KeyValueRenderer(key_order=["event"], drop_missing=True),
            ],
        )
    )
    return handler


def _jsonl_handler(root: Path) -> logging.FileHandler:
    logs_dir = root / LOGS_DIRNAME
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(logs_dir / LOG_FILENAME, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_PRE_CHAIN,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.dict_tracebacks,
                structlog.processors.JSONRenderer(default=str),
            ],
        )
    )
    return handler


def configure_logging(verbosity: int = 0, log_root: Path | None = None) -> None:
    """Configure console logging, and file logging when *log_root* is given.

    Args:
        verbosity: 0 shows warnings, 1 adds info, 2 or more adds debug.
        log_root: Project root; events are appended to
            ``<log_root>/logs/wg.jsonl`` at debug level regardless of
            *verbosity*.
    """
    global _file_handler

    close_file_logging()

    console_level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    handlers: list[logging.Handler] = [_console_handler(console_level, verbosity)]
    if log_root is not None:
        _file_handler = _jsonl_handler(log_root)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if log_root is not None else console_level
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )


def bind_run_context(command: str | None, root: Path) -> None:
    """Attach the running command and project root to every later event."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command or "", root=str(root))


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    logger: FilteringBoundLogger = structlog.get_logger(name)
    return logger


def close_file_logging() -> None:
    """Detach and close the JSONL file handler, if one is open."""
    global _file_handler
    if _file_handler is None:
        return
    logging.getLogger().removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None
