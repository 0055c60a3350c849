from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    """Wall-clock source used to stamp `last_checked_at`."""

    def now(self) -> datetime:  # pragma: no cover - protocol
        ...
