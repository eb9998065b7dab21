"""
Logging setup for examguard.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where the records go and how proctoring events are formatted.
"""
import logging
import sys
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("examguard.proctor")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(handler)

    # Uvicorn access lines are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a proctoring event as a single ``[PROCTOR]`` line.

    Args:
        session_id: Session the event belongs to
        event_type: session_start, advisory, session_end, ...
        details: Optional key/value pairs appended to the line
        level: Logging level for the record
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"
    if details:
        message += " " + " ".join(f"{k}={v}" for k, v in details.items())
    logger.log(level, message)
