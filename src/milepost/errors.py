"""Exception types shared by the scheduler, reconciler and tracker gateways."""
from __future__ import annotations

from typing import Optional


class MilepostError(Exception):
    """Base class for all Milepost failures."""


class InvalidInterval(MilepostError, ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Unknown interval '{value}'. Use daily, weekly or monthly.")
        self.value = value


class InvalidWindow(MilepostError, ValueError):
    def __init__(self, advance_days: int) -> None:
        super().__init__(f"Advance window must be zero or more days, got {advance_days}.")
        self.advance_days = advance_days


class InvariantViolation(MilepostError):
    """Raised when the desired milestone set repeats a title."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Duplicate milestone title in desired set: '{title}'")
        self.title = title


class TrackerError(MilepostError):
    """A tracker API call failed; ``status`` is the HTTP status when known."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
