# booking_system/utils/time_machine.py
"""
Clock abstraction for the booking core.

Real wall-clock time by default; tests and admins can pin a virtual time
so the expiry sweep and the 24-hour cancellation cutoff are reproducible.
All values are naive UTC datetimes, matching what the ledger stores.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TimeMachine:
    """Wall clock with an optional virtual override."""

    def __init__(self, virtualTime: Optional[datetime] = None):
        self._virtualTime: Optional[datetime] = None
        self._isTestMode = False
        if virtualTime is not None:
            self.setTime(virtualTime)

    @property
    def now(self) -> datetime:
        """Current time (virtual if set, otherwise real UTC)."""
        if self._isTestMode and self._virtualTime is not None:
            return self._virtualTime
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @property
    def isTestMode(self) -> bool:
        return self._isTestMode

    def setTime(self, value: datetime) -> None:
        """Pin the clock to a virtual time."""
        self._virtualTime = _to_naive_utc(value)
        self._isTestMode = True
        logger.info(f"TimeMachine: virtual time set to {self._virtualTime}")

    def advance(self, delta: timedelta) -> datetime:
        """Move virtual time forward (starting from real time if not pinned)."""
        self.setTime(self.now + delta)
        return self._virtualTime

    def resetToRealTime(self) -> None:
        self._virtualTime = None
        self._isTestMode = False
        logger.info("TimeMachine: reset to real time")


# Process-wide default clock; services accept their own instance.
timeMachine = TimeMachine()
