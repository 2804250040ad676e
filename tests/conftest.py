"""Shared fixtures: an in-memory tracker and a fake ``urlopen`` transport."""
from __future__ import annotations

import io
import json
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib import error as urllib_error

import pytest

from milepost import trackers
from milepost.errors import TrackerError
from milepost.models import STATE_OPEN, MilestoneDescriptor, RemoteMilestone


class FakeGateway:
    """Tracker stand-in that records every call."""

    flavor = "fake"

    def __init__(
        self,
        milestones: Optional[Iterable[RemoteMilestone]] = None,
        fail_create: Iterable[str] = (),
        fail_reopen: Iterable[str] = (),
        fail_list: bool = False,
    ) -> None:
        self.milestones: List[RemoteMilestone] = list(milestones or [])
        self.fail_create = set(fail_create)
        self.fail_reopen = set(fail_reopen)
        self.fail_list = fail_list
        self.list_calls = 0
        self.created: List[str] = []
        self.reopened: List[str] = []

    def list_milestones(self) -> List[RemoteMilestone]:
        self.list_calls += 1
        if self.fail_list:
            raise TrackerError("listing failed", status=500)
        return list(self.milestones)

    def create_milestone(self, descriptor: MilestoneDescriptor) -> RemoteMilestone:
        if descriptor.title in self.fail_create:
            raise TrackerError(f"cannot create {descriptor.title}", status=422)
        milestone = RemoteMilestone(
            id=str(len(self.milestones) + 1),
            title=descriptor.title,
            state=STATE_OPEN,
            due_date=descriptor.due_date,
            start_date=descriptor.start_date,
        )
        self.milestones.append(milestone)
        self.created.append(descriptor.title)
        return milestone

    def reopen_milestone(self, milestone_id: str) -> RemoteMilestone:
        for index, milestone in enumerate(self.milestones):
            if milestone.id == milestone_id:
                if milestone.title in self.fail_reopen:
                    raise TrackerError(f"cannot reopen {milestone.title}", status=404)
                reopened = replace(milestone, state=STATE_OPEN)
                self.milestones[index] = reopened
                self.reopened.append(milestone.title)
                return reopened
        raise TrackerError(f"milestone {milestone_id} not found", status=404)


class FakeResponse:
    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = b"" if body is None else json.dumps(body).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


class FakeTransport:
    """Replacement for ``urllib.request.urlopen`` keyed by method and full URL."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Tuple[int, Any]]] = {}
        self.requests: List[Any] = []

    def add(self, method: str, url: str, status: int = 200, body: Any = None) -> None:
        """Queue a response; the last one queued for a route keeps answering."""
        self.routes.setdefault((method, url), []).append((status, body))

    def __call__(self, request: Any, timeout: Optional[float] = None) -> FakeResponse:
        self.requests.append(request)
        key = (request.get_method(), request.full_url)
        if key not in self.routes:
            raise urllib_error.URLError(f"no route for {key}")
        queued = self.routes[key]
        status, body = queued.pop(0) if len(queued) > 1 else queued[0]
        if status >= 400:
            payload = json.dumps(body or {"message": "error"}).encode("utf-8")
            raise urllib_error.HTTPError(request.full_url, status, "error", None, io.BytesIO(payload))
        return FakeResponse(status, body)

    def payload(self, index: int) -> Dict[str, Any]:
        return json.loads(self.requests[index].data.decode("utf-8"))


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()
    monkeypatch.setattr(trackers.urllib_request, "urlopen", fake)
    return fake
