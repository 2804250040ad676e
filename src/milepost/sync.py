"""Run one scheduling pass: plan milestones, diff with the tracker, apply."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Union

from .errors import TrackerError
from .models import ReconciliationResult, RemoteMilestone
from .reconcile import reconcile
from .schedule import Interval, generate_descriptors
from .trackers import TrackerGateway

logger = logging.getLogger(__name__)

ACTION_CREATE = "create"
ACTION_REOPEN = "reopen"


@dataclass(frozen=True)
class ItemFailure:
    title: str
    action: str
    error: str


@dataclass
class SyncReport:
    planned: ReconciliationResult
    dry_run: bool = False
    created: List[RemoteMilestone] = field(default_factory=list)
    reopened: List[RemoteMilestone] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def satisfied(self) -> List[RemoteMilestone]:
        return self.planned.satisfied

    @property
    def ok(self) -> bool:
        return not self.failures


def apply_plan(gateway: TrackerGateway, plan: ReconciliationResult) -> SyncReport:
    """Create then reopen everything in ``plan``; a failed item does not stop the batch."""
    report = SyncReport(planned=plan)
    for descriptor in plan.to_create:
        try:
            created = gateway.create_milestone(descriptor)
        except TrackerError as exc:
            logger.warning("Could not create milestone %s: %s", descriptor.title, exc)
            report.failures.append(ItemFailure(descriptor.title, ACTION_CREATE, str(exc)))
            continue
        logger.info("Created milestone %s (%s .. %s)", created.title, descriptor.start_date, descriptor.due_date)
        report.created.append(created)

    for milestone in plan.to_reactivate:
        try:
            reopened = gateway.reopen_milestone(milestone.id)
        except TrackerError as exc:
            logger.warning("Could not reopen milestone %s: %s", milestone.title, exc)
            report.failures.append(ItemFailure(milestone.title, ACTION_REOPEN, str(exc)))
            continue
        logger.info("Reopened milestone %s", reopened.title)
        report.reopened.append(reopened)
    return report


def run_sync(
    gateway: TrackerGateway,
    interval: Union[str, Interval],
    advance_days: int,
    reference_date: date,
    dry_run: bool = False,
) -> SyncReport:
    """Bring the tracker's milestones up to date for the advance window.

    The tracker is listed exactly once and every action is derived from that
    listing. A listing failure propagates before anything is written.
    """
    desired = generate_descriptors(interval, advance_days, reference_date)
    remote = gateway.list_milestones()
    logger.debug("Tracker returned %d milestones", len(remote))
    plan = reconcile(desired, remote)
    if dry_run:
        return SyncReport(planned=plan, dry_run=True)
    return apply_plan(gateway, plan)
