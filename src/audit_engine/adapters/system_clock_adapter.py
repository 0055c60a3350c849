from datetime import datetime, timezone


class SystemClockAdapter:
    """UTC wall clock implementing ClockPort."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
