"""Root logger setup for the iso-manager CLI.

Fetch, chmod/chown and mount decisions all go through the standard
``logging`` module. The CLI owns a file handler and a stderr handler on the
root logger; calling :func:`configure_logging` again replaces them, so a
long-lived caller (or a test session) can point the log somewhere else.

When the requested log file cannot be opened, for example an unprivileged
``--dry-run`` or ``--status`` against ``/var/log``, the run continues with
stderr only rather than scattering log files into the working directory.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_installed: List[logging.Handler] = []


def _open_log_file(path: str) -> Optional[logging.Handler]:
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8")
    except OSError:
        return None


def _remove_installed(root: logging.Logger) -> None:
    while _installed:
        h = _installed.pop()
        root.removeHandler(h)
        h.close()


def configure_logging(
    log_path: Optional[str] = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    console: bool = True,
) -> Optional[str]:
    """Install the CLI's handlers on the root logger.

    Returns the log file in use, or None when logging goes to stderr only.
    """

    root = logging.getLogger()
    root.setLevel(level)
    _remove_installed(root)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    file_handler = _open_log_file(log_path) if log_path else None

    handlers: List[logging.Handler] = []
    if file_handler is not None:
        handlers.append(file_handler)
    if console or file_handler is None:
        handlers.append(logging.StreamHandler(sys.stderr))

    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)
        _installed.append(h)

    log = logging.getLogger(__name__)
    if log_path and file_handler is None:
        log.warning("Cannot open log file %s; logging to stderr only", log_path)
    else:
        log.debug("Logging to %s", log_path or "stderr")
    return log_path if file_handler is not None else None
