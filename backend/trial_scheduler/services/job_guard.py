"""
services/job_guard.py

Per-job overlap guard and the isolate-and-continue helper shared by every
batch loop in the scheduler.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class JobGuard:
    """
    Refuses to admit a tick while a previous tick of the same job is running.

        async with guard.admit() as admitted:
            if not admitted:
                return None
            ...

    The busy flag is cleared in a finally block, so a failing tick never
    wedges the job.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._busy = False
        self.started_at: Optional[datetime] = None
        self.skipped = 0

    @property
    def busy(self) -> bool:
        return self._busy

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[bool]:
        # Check-and-set happens without an await in between, so two ticks on
        # the same event loop can never both be admitted.
        if self._busy:
            self.skipped += 1
            logger.info("Job %s already running since %s, skipping this cycle", self.name, self.started_at)
            yield False
            return

        self._busy = True
        self.started_at = datetime.utcnow()
        try:
            yield True
        finally:
            self._busy = False
            self.started_at = None


# ============================================================================
# Isolate-and-continue
# ============================================================================

@dataclass
class ItemResult:
    key: Any
    ok: bool
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class BatchReport:
    """Per-item outcomes of one batch loop."""
    label: str
    results: list[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> ItemResult:
        self.results.append(result)
        return result

    def skip(self, key: Any, reason: str) -> ItemResult:
        return self.add(ItemResult(key=key, ok=True, error=reason, skipped=True))

    @property
    def succeeded(self) -> list[Any]:
        return [r.key for r in self.results if r.ok and not r.skipped]

    @property
    def failed(self) -> list[Any]:
        return [r.key for r in self.results if not r.ok]

    @property
    def skipped(self) -> list[Any]:
        return [r.key for r in self.results if r.skipped]

    def summary(self) -> dict:
        return {
            "label": self.label,
            "total": len(self.results),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }


async def isolate(
    label: str,
    key: Any,
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> ItemResult:
    """
    Await one side-effecting step and turn any exception into a logged,
    failed ItemResult so the surrounding loop can continue.
    """
    try:
        await fn(*args, **kwargs)
        return ItemResult(key=key, ok=True)
    except Exception as e:
        logger.warning("%s failed for %s: %s: %s", label, key, type(e).__name__, e)
        logger.debug("%s traceback for %s", label, key, exc_info=True)
        return ItemResult(key=key, ok=False, error=f"{type(e).__name__}: {e}")
