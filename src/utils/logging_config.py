"""Logging setup for the plot_png entrypoints.

Handlers:
    - Console (stderr): "<Level>: <message>", the form the user sees for
      non-fatal problems, e.g. "Warning: No x variable provided ..."
    - File (optional): timestamped lines or JSON lines carrying the context
      fields from push_context(), with optional size/time rotation
    - Python warnings are routed into logging

Public API:
    setup_logging(log_level="WARNING", context={"app": "plot_png"})
    push_context(mode="surface")
    pop_context(keys=["mode"])
    shutdown()

File format examples:
    Human: 2026-10-19T13:45:12.345Z | WARNING  | app=plot_png mode=curve | Message
    JSON: {"t": "2026-10-19T13:45:12.345000+00:00", "lvl": "WARNING", "app": "plot_png", "msg": "..."}

Idempotent: a second setup_logging() call replaces the handlers of the first.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import fs


# Contextual fields merged into file records
_context_var = contextvars.ContextVar('logging_context', default={})

# Handlers owned by setup_logging(); anything else on the root logger is left alone
_installed_handlers: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'

FORMAT_MODES = ("console", "human", "json")


class ContextFormatter(logging.Formatter):
    """Formatter with three layouts.

    console
        ``Warning: <message>``; the level word is coloured on a tty
    human
        ``<UTC timestamp> | <LEVEL> | k=v ... | <message>``
    json
        one object per line with ``t``, ``lvl``, ``name``, ``pid``, ``msg``
        and the context fields
    """

    def __init__(self, fmt_mode: str = "console", use_color: bool = False):
        super().__init__()
        if fmt_mode not in FORMAT_MODES:
            raise ValueError(f"Unknown format mode: {fmt_mode}. Use one of {FORMAT_MODES}.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self.fmt_mode == "json":
            return self._format_json(record)

        if self.fmt_mode == "console":
            line = self._format_console(record)
        else:
            line = self._format_human(record)

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line

    def _format_console(self, record: logging.LogRecord) -> str:
        heading = record.levelname.capitalize()
        if self.use_color:
            heading = f"{_LEVEL_COLORS.get(record.levelname, '')}{heading}{_RESET}"
        return f"{heading}: {record.getMessage()}"

    def _format_human(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        parts = [ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', '|', f"{record.levelname:8s}", '|']
        context = _context_var.get()
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()) + ' |')
        parts.append(record.getMessage())
        return ' '.join(parts)

    def _format_json(self, record: logging.LogRecord) -> str:
        payload = {
            't': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'msg': record.getMessage(),
        }
        payload.update(_context_var.get())
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    log_level: str = "WARNING",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Configure the root logger (idempotent).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Log file path; None for no file logging
    json : bool
        JSON lines in the log file instead of human lines, default False
    color : bool
        Colour the console level word when stderr is a tty, default True
    to_stderr : bool
        Install the console handler, default True
    rotate : dict, optional
        File rotation, as produced by ``LogRotateConfig.model_dump()``:
        - {"mode": "size", "max_bytes": 10_000_000, "backup_count": 3}
        - {"mode": "time", "when": "D", "interval": 1, "backup_count": 7}
    capture_warnings : bool
        Route Python warnings to logging, default True
    quiet_libs : list[str], optional
        Loggers pinned to WARNING, default ["PIL"]
    context : dict, optional
        Initial contextual fields (e.g. {"app": "plot_png"})

    Returns
    -------
    dict
        {"handlers": [...]} as installed
    """
    shutdown()

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper()))

    if to_stderr:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ContextFormatter("console", use_color=color))
        _install(console_handler)

    if log_file:
        _install(_create_file_handler(log_file, rotate, json))

    if context:
        push_context(**context)

    for lib in quiet_libs or ['PIL']:
        logging.getLogger(lib).setLevel(logging.WARNING)

    if capture_warnings:
        route_warnings()

    return {'handlers': list(_installed_handlers)}


def _install(handler: logging.Handler) -> None:
    logging.getLogger().addHandler(handler)
    _installed_handlers.append(handler)


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    json_format: bool
) -> logging.Handler:
    """File handler for ``log_file``; its directory is created if needed."""
    fs.ensure_dir(Path(log_file).parent)

    mode = rotate.get('mode', 'size') if rotate else None
    if mode is None:
        handler = logging.FileHandler(log_file)
    elif mode == 'size':
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=rotate.get('max_bytes', 10_000_000),
            backupCount=rotate.get('backup_count', 3)
        )
    elif mode == 'time':
        handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when=rotate.get('when', 'D'),
            interval=rotate.get('interval', 1),
            backupCount=rotate.get('backup_count', 7),
            utc=True
        )
    else:
        raise ValueError(f"Unknown rotation mode: {mode}. Use 'size' or 'time'.")

    handler.setFormatter(ContextFormatter("json" if json_format else "human"))
    return handler


def push_context(**kwargs) -> None:
    """Add contextual fields to subsequent file records.

    Examples
    --------
    >>> push_context(app="plot_png", mode="curve")
    """
    _context_var.set({**_context_var.get(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove contextual fields; all of them if ``keys`` is None."""
    if keys is None:
        _context_var.set({})
        return
    remaining = {k: v for k, v in _context_var.get().items() if k not in keys}
    _context_var.set(remaining)


def route_warnings() -> None:
    """Route Python warnings to logging.warning()."""
    logging.captureWarnings(True)
    logging.getLogger('py.warnings').setLevel(logging.WARNING)


def shutdown() -> None:
    """Detach, flush and close the handlers installed by setup_logging().

    A handler whose stream was closed underneath it (a swapped-out
    sys.stderr, for instance) is detached without error, as in
    ``logging.shutdown``.
    """
    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
    _installed_handlers.clear()
