"""
Logging setup for the registration API.

``setup_logging`` gives the root logger a console handler, and a file
handler when ``LOG_FILE`` is set, using one
``time [LEVEL] logger: message`` format.  Handlers are attached only
once; if uvicorn, pytest or an earlier ``create_app`` call already
configured the root logger, its handlers are left alone.  Loggers in
``QUIET_LOGGERS`` are lowered on every call.
"""

import logging
from pathlib import Path
from typing import Dict, Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs each request URL at INFO; the Google tokeninfo URL carries
# the attendee's id_token in its query string.
QUIET_LOGGERS: Dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _quiet_third_party() -> None:
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger for the application.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"`` or ``"info"``; unknown names
        fall back to INFO.
    logfile : Optional[str]
        Optional path of a UTF‑8 log file, resolved against the
        working directory.
    """
    _quiet_third_party()

    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
