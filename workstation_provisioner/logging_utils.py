from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Tuple

DEFAULT_LOG_PATH = str(Path.home() / ".local/state/workstation-provisioner/provision.log")
FALLBACK_LOG_NAME = "workstation-provisioner.log"

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(log_path: str) -> Tuple[logging.Handler, str]:
    """Open the provisioning log, or one in the working directory if that fails."""

    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback, encoding="utf-8"), fallback


def _console_handler() -> logging.Handler:
    # The rendered report goes to stdout; stderr only carries problems.
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.WARNING)
    return handler


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Attach the provisioning log to the root logger and return its path.

    The file receives every step transition and command at `level`. Repeated
    calls in one process reuse the first configuration.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_provisioner_configured", False):
        return getattr(root, "_provisioner_log_path", log_path)

    file_handler, actual_path = _file_handler(log_path)
    handlers = [file_handler]
    if also_console:
        handlers.append(_console_handler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    root._provisioner_configured = True  # type: ignore[attr-defined]
    root._provisioner_log_path = actual_path  # type: ignore[attr-defined]

    if actual_path != log_path:
        logging.getLogger(__name__).warning("Cannot write %s; logging to %s", log_path, actual_path)
    logging.getLogger(__name__).info("Provisioning log: %s", actual_path)
    return actual_path
