"""
Time sources.

All timestamps are naive UTC, matching how the database columns store them.
Services take a clock so OTP expiry and reminder date arithmetic can be
driven deterministically.
"""
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in naive UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Manually advanced clock, used by tests and backfills"""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency for the active time source."""
    return system_clock
