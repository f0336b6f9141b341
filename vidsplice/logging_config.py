"""Logging helpers for the CLI and web UI."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_LOG_FILE: Path | None = None
_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    prefix: str,
    *,
    log_dir: Path | None = None,
    verbose: bool = False,
) -> Path | None:
    """Configure root logging; returns the log file path, if any.

    Logs go to stderr. A timestamped file is added under *log_dir* or
    ``$VIDSPLICE_LOG_DIR`` when either is set. Calling again is a no-op.
    """
    global _CONFIGURED, _LOG_FILE

    if _CONFIGURED:
        return _LOG_FILE

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    env_dir = os.getenv("VIDSPLICE_LOG_DIR")
    if log_dir is None and env_dir:
        log_dir = Path(env_dir).expanduser()

    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"{prefix}-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    _CONFIGURED = True
    _LOG_FILE = log_file
    if log_file is not None:
        root.info("Logging to %s", log_file)
    return log_file
