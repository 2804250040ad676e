"""Diff desired milestones against the tracker's current milestones."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Set

from .errors import InvariantViolation
from .models import MilestoneDescriptor, ReconciliationResult, RemoteMilestone

logger = logging.getLogger(__name__)


def _index_remote(remote: Iterable[RemoteMilestone]) -> Dict[str, RemoteMilestone]:
    # An open milestone outranks closed ones sharing its title; among closed
    # ones the first listed is kept.
    by_title: Dict[str, RemoteMilestone] = {}
    for milestone in remote:
        current = by_title.get(milestone.title)
        if current is None or (milestone.is_open and not current.is_open):
            by_title[milestone.title] = milestone
    return by_title


def reconcile(
    desired: Iterable[MilestoneDescriptor],
    remote: Iterable[RemoteMilestone],
) -> ReconciliationResult:
    """Split ``desired`` into milestones to create, to reopen, and already open.

    Matching is by exact title. Remote milestones with no desired counterpart
    are left out of the result entirely; reopened milestones keep their own
    dates.
    """
    by_title = _index_remote(remote)
    result = ReconciliationResult()
    seen: Set[str] = set()
    for descriptor in desired:
        if descriptor.title in seen:
            logger.error("Duplicate milestone title generated: %s", descriptor.title)
            raise InvariantViolation(descriptor.title)
        seen.add(descriptor.title)

        match = by_title.get(descriptor.title)
        if match is None:
            result.to_create.append(descriptor)
        elif match.is_open:
            result.satisfied.append(match)
        else:
            result.to_reactivate.append(match)

    logger.debug(
        "Reconciled %d desired milestones: %d to create, %d to reopen, %d already open",
        len(seen),
        len(result.to_create),
        len(result.to_reactivate),
        len(result.satisfied),
    )
    return result
