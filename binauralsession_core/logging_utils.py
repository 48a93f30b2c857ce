"""Log setup for the command line and a crash log for failed sessions.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed by :func:`configure_logging`, which the CLI calls once.
"""

from __future__ import annotations

import logging
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_LOG_DIR_ENV = "BINAURALSESSION_LOG_DIR"
_LOG_FILE = "binauralsession.log"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_log_dir() -> Path:
    configured = os.environ.get(_LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "binauralsession" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def configure_logging(level: Union[int, str] = logging.INFO, *, to_file: bool = False) -> None:
    """Send package logs to stderr (and optionally the log file)."""
    handlers = [logging.StreamHandler()]
    if to_file:
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(level=level, format=_FORMAT, handlers=handlers, force=True)


def log_exception(context: str, exc: BaseException) -> Optional[Path]:
    """Append ``exc`` and its traceback to the crash log.

    The entry starts with a header in the same layout as the stderr format.
    Returns the log path, or None when the file could not be written; this
    function never raises.
    """
    header = f"{datetime.now():%Y-%m-%d %H:%M:%S} ERROR {context}: {type(exc).__name__}: {exc}"
    details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as log_file:
            log_file.write(f"{header}\n{details}\n")
    except OSError:
        logger.warning("Could not append to crash log %s", path, exc_info=True)
        return None
    return path
