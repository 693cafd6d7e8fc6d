"""
Background expiry sweep.

Periodically finalizes in_progress attempts whose deadline has passed, so
abandoned attempts become auto_submitted (and get scored) without waiting
for the student to come back. Each pass opens its own database session and
runs the blocking work in a worker thread.

Readers never depend on the sweep having run: effective status is always
computed from end_time and server time.
"""
import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.attempts import Clock, SweepReport, SystemClock
from app.core.config import settings
from app.models import SessionLocal
from app.observability import metrics
from app.services.attempt_sessions import build_session_manager

logger = logging.getLogger(__name__)


def run_sweep_once(
    session_factory: Callable[[], Session] = SessionLocal,
    clock: Optional[Clock] = None,
    limit: Optional[int] = None,
) -> SweepReport:
    """Run one sweep pass in a fresh session."""
    db = session_factory()
    try:
        manager = build_session_manager(db, clock or SystemClock())
        return manager.sweep_expired(limit=limit or settings.EXPIRY_SWEEP_BATCH_SIZE)
    finally:
        db.close()


class ExpirySweeper:
    """
    Runs ``run_sweep_once`` on a fixed interval until stopped.

    A failing pass is logged and counted; the loop keeps going.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Optional[Clock] = None,
    ):
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.EXPIRY_SWEEP_INTERVAL_SECONDS
        )
        self.session_factory = session_factory
        self.clock = clock
        self.passes = 0
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Expiry sweeper already running")
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info(f"Expiry sweeper started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info(f"Expiry sweeper stopped after {self.passes} pass(es)")

    async def run_pass(self) -> Optional[SweepReport]:
        try:
            report = await asyncio.to_thread(
                run_sweep_once, self.session_factory, self.clock
            )
        except Exception:
            logger.exception("Expiry sweep pass failed")
            metrics.record_error(error_type="ExpirySweepFailure")
            return None
        finally:
            self.passes += 1
        return report

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.run_pass()
            try:
                await asyncio.wait_for(
                    self._stopping.wait(), timeout=self.interval_seconds
                )
            except asyncio.TimeoutError:
                continue
