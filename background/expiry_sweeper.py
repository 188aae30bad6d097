# background/expiry_sweeper.py
"""
Expiry sweeper - demotes finished CONFIRMED bookings to EXPIRED.
Uses APScheduler for the periodic run.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import Config
from booking_system.services.booking_service import BookingService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Background sweeper for booking expiry.

    One APScheduler interval job plus an asyncio.Lock, so a scheduled run
    and an on-demand runOnce() never overlap.
    """

    JOB_ID = 'booking_expiry'

    def __init__(
            self,
            bookingService: BookingService,
            intervalSeconds: Optional[int] = None,
            initialDelaySeconds: Optional[int] = None
    ):
        self.bookingService = bookingService
        self.intervalSeconds = intervalSeconds or Config.get(Config.SWEEP_INTERVAL_SECONDS, 3600)
        self.initialDelaySeconds = (
            initialDelaySeconds if initialDelaySeconds is not None
            else Config.get(Config.SWEEP_INITIAL_DELAY_SECONDS, 60)
        )
        self.isRunning = False
        self._lock = asyncio.Lock()

        self.scheduler = AsyncIOScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one sweep at a time
                'misfire_grace_time': 300
            }
        )

        # Statistics
        self.stats = {
            "sweepsExecuted": 0,
            "sweepsSkipped": 0,
            "bookingsExpired": 0,
            "errors": 0,
            "lastError": None,
            "startedAt": None,
            "lastExecutedAt": None
        }

    async def start(self):
        """Register the sweep job and start the scheduler."""
        if self.isRunning:
            logger.warning("Expiry sweeper already running")
            return

        self.isRunning = True
        self.stats["startedAt"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self._safe_sweep_wrapper,
            trigger=IntervalTrigger(seconds=self.intervalSeconds),
            id=self.JOB_ID,
            name='Booking Expiry Sweep',
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=self.initialDelaySeconds),
            replace_existing=True
        )
        self.scheduler.start()

        logger.info(
            f"✓ Expiry sweeper started (every {self.intervalSeconds}s, "
            f"first run in {self.initialDelaySeconds}s)"
        )

    async def stop(self):
        """Stop scheduler; an in-flight sweep finishes its current booking first."""
        if not self.isRunning:
            return

        logger.info("Stopping expiry sweeper...")
        self.isRunning = False

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        # Wait for an in-flight sweep
        async with self._lock:
            pass

        logger.info("✓ Expiry sweeper stopped")

    async def runOnce(self) -> Optional[int]:
        """
        Sweep now.

        Returns:
            Number of bookings expired, or None if a sweep was already running
        """
        if self._lock.locked():
            logger.info("Expiry sweep already in progress, skipping")
            self.stats["sweepsSkipped"] += 1
            return None

        async with self._lock:
            expired = await self.bookingService.sweepExpiredBookings()

        self.stats["sweepsExecuted"] += 1
        self.stats["bookingsExpired"] += expired
        self.stats["lastExecutedAt"] = datetime.now(timezone.utc)
        return expired

    # ═══════════════════════════════════════════════════════════════════
    # SAFE WRAPPER (error handling for APScheduler jobs)
    # ═══════════════════════════════════════════════════════════════════

    async def _safe_sweep_wrapper(self):
        """Safe wrapper for the scheduled sweep."""
        try:
            await self.runOnce()
        except Exception as e:
            logger.error(f"Error in expiry sweep job: {e}", exc_info=True)
            self.stats["errors"] += 1
            self.stats["lastError"] = str(e)

    def getStatus(self) -> dict:
        """Get sweeper status."""
        job = self.scheduler.get_job(self.JOB_ID) if self.scheduler.running else None
        return {
            "isRunning": self.isRunning,
            "schedulerRunning": self.scheduler.running,
            "nextRun": job.next_run_time.isoformat() if job and job.next_run_time else None,
            "currentTime": self.bookingService.clock.now.isoformat(),
            "isTestMode": self.bookingService.clock.isTestMode,
            "stats": self.stats
        }
