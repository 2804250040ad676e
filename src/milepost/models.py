"""Value types passed between the scheduler, reconciler and gateways."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

STATE_OPEN = "open"
STATE_CLOSED = "closed"


@dataclass(frozen=True)
class MilestoneDescriptor:
    title: str
    start_date: date
    due_date: date


@dataclass(frozen=True)
class RemoteMilestone:
    id: str
    title: str
    state: str
    due_date: Optional[date] = None
    start_date: Optional[date] = None

    @property
    def is_open(self) -> bool:
        return self.state == STATE_OPEN


@dataclass
class ReconciliationResult:
    to_create: List[MilestoneDescriptor] = field(default_factory=list)
    to_reactivate: List[RemoteMilestone] = field(default_factory=list)
    satisfied: List[RemoteMilestone] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.to_create and not self.to_reactivate


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse tracker date strings (``2024-01-10`` or ``2024-01-10T00:00:00Z``)."""
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    if "T" not in value and " " not in value:
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    value = value.replace(" ", "T")
    if value.endswith("Z"):
        value = value[:-1]
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None
