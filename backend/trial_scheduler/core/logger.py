# trial_scheduler/core/logger.py
"""
Shared application logger
"""
import logging
import sys

from trial_scheduler.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    resolved = (level or settings.LOG_LEVEL or "INFO").upper()
    root.setLevel(resolved)

    if not any(getattr(h, "_trial_scheduler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._trial_scheduler = True
        root.addHandler(handler)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


configure_logging()

logger = logging.getLogger("trial_scheduler")
