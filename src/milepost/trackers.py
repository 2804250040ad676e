"""GitLab and GitHub milestone gateways over ``urllib``."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from .errors import TrackerError
from .models import STATE_CLOSED, STATE_OPEN, MilestoneDescriptor, RemoteMilestone, parse_date

logger = logging.getLogger(__name__)

GITLAB = "gitlab"
GITHUB = "github"
FLAVORS = (GITLAB, GITHUB)
DEFAULT_TIMEOUT = 30.0
PAGE_SIZE = 100
MAX_PAGES = 1000


class TrackerGateway(Protocol):
    flavor: str

    def list_milestones(self) -> List[RemoteMilestone]:
        ...

    def create_milestone(self, descriptor: MilestoneDescriptor) -> RemoteMilestone:
        ...

    def reopen_milestone(self, milestone_id: str) -> RemoteMilestone:
        ...


def normalize_base_url(base_url: str) -> str:
    """Force ``https`` on the tracker URL, accepting bare hosts such as ``dev.example.com``."""
    raw = (base_url or "").strip()
    if not raw:
        raise TrackerError("Tracker URL is empty.")
    if "://" not in raw:
        raw = f"https://{raw.lstrip('/')}"
    parts = urllib_parse.urlsplit(raw)
    if not parts.netloc:
        raise TrackerError(f"Tracker URL '{base_url}' has no host.")
    path = parts.path.rstrip("/")
    return urllib_parse.urlunsplit(("https", parts.netloc, path, "", ""))


def _gitlab_headers(token: str) -> Dict[str, str]:
    return {"PRIVATE-TOKEN": token}


def _github_headers(token: str) -> Dict[str, str]:
    return {
        "Accept": "application/vnd.github.v3+json",
        "Authorization": f"token {token}",
    }


def _with_query(url: str, params: Optional[Dict[str, Any]]) -> str:
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urllib_parse.urlencode(params)}"


def _request_json(
    method: str,
    url: str,
    headers: Dict[str, str],
    payload: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    data = None
    request_headers = dict(headers)
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        request_headers["Content-Type"] = "application/json"
    request_obj = urllib_request.Request(url, data=data, headers=request_headers, method=method)
    logger.debug("%s %s", method, url)
    try:
        with urllib_request.urlopen(request_obj, timeout=timeout) as response:
            body = response.read()
    except urllib_error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace").strip()
        raise TrackerError(f"{method} {url} failed with HTTP {exc.code}: {detail}", status=exc.code) from exc
    except (urllib_error.URLError, ConnectionError, TimeoutError) as exc:
        raise TrackerError(f"Unable to reach {url}: {exc}") from exc
    if not body:
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except ValueError as exc:
        raise TrackerError(f"{method} {url} returned invalid JSON.") from exc


def _paginate(url: str, headers: Dict[str, str], params: Dict[str, Any], timeout: float) -> List[Dict[str, Any]]:
    results: List[Dict[str, Any]] = []
    previous: Optional[List[Dict[str, Any]]] = None
    for page in range(1, MAX_PAGES + 1):
        batch = _request_json("GET", _with_query(url, {**params, "per_page": PAGE_SIZE, "page": page}), headers, timeout=timeout)
        if not isinstance(batch, list):
            raise TrackerError(f"GET {url} returned an unexpected payload.")
        if batch == previous:
            raise TrackerError(f"GET {url} returned page {page} twice; the server ignores pagination.")
        results.extend(batch)
        if len(batch) < PAGE_SIZE:
            return results
        previous = batch
    raise TrackerError(f"GET {url} returned more than {MAX_PAGES} pages.")


def _require_fields(data: Any, fields: tuple, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict) or any(data.get(name) is None for name in fields):
        raise TrackerError(f"{what} returned an unexpected payload: {data!r}")
    return data


class GitLabGateway:
    flavor = GITLAB

    def __init__(self, base_url: str, token: str, namespace: str, project: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.api_root = f"{base_url}/api/v4"
        self.namespace = namespace
        self.project = project
        self.timeout = timeout
        self._headers = _gitlab_headers(token)
        self._project_id: Optional[str] = None

    @property
    def project_id(self) -> str:
        """Numeric project id, looked up once from ``namespace/project``."""
        if self._project_id is None:
            path = urllib_parse.quote(f"{self.namespace}/{self.project}", safe="")
            try:
                data = _request_json("GET", f"{self.api_root}/projects/{path}", self._headers, timeout=self.timeout)
            except TrackerError as exc:
                if exc.status == 404:
                    raise TrackerError(f"project {self.project} not found", status=404) from exc
                raise
            data = _require_fields(data, ("id",), f"Project lookup for {self.namespace}/{self.project}")
            self._project_id = str(data["id"])
        return self._project_id

    def _milestones_url(self) -> str:
        return f"{self.api_root}/projects/{self.project_id}/milestones"

    @staticmethod
    def _to_remote(data: Any) -> RemoteMilestone:
        data = _require_fields(data, ("id", "title"), "GitLab milestone call")
        state = STATE_CLOSED if data.get("state") == "closed" else STATE_OPEN
        return RemoteMilestone(
            id=str(data["id"]),
            title=data["title"],
            state=state,
            due_date=parse_date(data.get("due_date")),
            start_date=parse_date(data.get("start_date")),
        )

    def list_milestones(self) -> List[RemoteMilestone]:
        rows = _paginate(self._milestones_url(), self._headers, {}, self.timeout)
        return [self._to_remote(row) for row in rows]

    def create_milestone(self, descriptor: MilestoneDescriptor) -> RemoteMilestone:
        payload = {
            "title": descriptor.title,
            "start_date": descriptor.start_date.isoformat(),
            "due_date": descriptor.due_date.isoformat(),
        }
        data = _request_json("POST", self._milestones_url(), self._headers, payload, self.timeout)
        return self._to_remote(data)

    def reopen_milestone(self, milestone_id: str) -> RemoteMilestone:
        url = f"{self._milestones_url()}/{milestone_id}"
        data = _request_json("PUT", url, self._headers, {"state_event": "activate"}, self.timeout)
        return self._to_remote(data)


class GitHubGateway:
    flavor = GITHUB

    def __init__(self, base_url: str, token: str, namespace: str, project: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.repo_root = f"{base_url}/repos/{namespace}/{project}"
        self.timeout = timeout
        self._headers = _github_headers(token)

    @staticmethod
    def _to_remote(data: Any) -> RemoteMilestone:
        data = _require_fields(data, ("number", "title"), "GitHub milestone call")
        state = STATE_CLOSED if data.get("state") == "closed" else STATE_OPEN
        return RemoteMilestone(
            id=str(data["number"]),
            title=data["title"],
            state=state,
            due_date=parse_date(data.get("due_on")),
        )

    def list_milestones(self) -> List[RemoteMilestone]:
        rows = _paginate(f"{self.repo_root}/milestones", self._headers, {"state": "all"}, self.timeout)
        return [self._to_remote(row) for row in rows]

    def create_milestone(self, descriptor: MilestoneDescriptor) -> RemoteMilestone:
        # GitHub milestones have no start date field.
        payload = {
            "title": descriptor.title,
            "due_on": f"{descriptor.due_date.isoformat()}T00:00:00Z",
            "description": f"Starts {descriptor.start_date.isoformat()}",
        }
        data = _request_json("POST", f"{self.repo_root}/milestones", self._headers, payload, self.timeout)
        return self._to_remote(data)

    def reopen_milestone(self, milestone_id: str) -> RemoteMilestone:
        url = f"{self.repo_root}/milestones/{milestone_id}"
        data = _request_json("PATCH", url, self._headers, {"state": "open"}, self.timeout)
        return self._to_remote(data)


def _probe(url: str, headers: Dict[str, str], timeout: float) -> int:
    request_obj = urllib_request.Request(url, headers=headers, method="GET")
    try:
        with urllib_request.urlopen(request_obj, timeout=timeout) as response:
            return response.status
    except urllib_error.HTTPError as exc:
        return exc.code
    except (urllib_error.URLError, ConnectionError, TimeoutError) as exc:
        raise TrackerError(f"Unable to reach {url}: {exc}") from exc


def detect_flavor(base_url: str, token: str, namespace: str, project: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Work out whether ``base_url`` serves the GitLab or the GitHub API."""
    probes = (
        (GITLAB, f"{base_url}/api/v4/version", _gitlab_headers(token)),
        (GITHUB, f"{base_url}/repos/{namespace}/{project}", _github_headers(token)),
    )
    status = None
    for flavor, url, headers in probes:
        status = _probe(url, headers, timeout)
        logger.debug("Probe %s answered HTTP %s", url, status)
        if status == 200:
            return flavor
        if status == 403:
            raise TrackerError("Provided token is invalid. Access Denied.", status=403)
    # GitLab's probe is the version page, so only GitHub can report a missing project here.
    if status == 404:
        raise TrackerError(f"project {project} not found", status=404)
    raise TrackerError("could not access GitLab or GitHub APIs", status=status)


def build_gateway(
    base_url: str,
    token: str,
    namespace: str,
    project: str,
    api: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> TrackerGateway:
    url = normalize_base_url(base_url)
    flavor = (api or "").strip().lower() or detect_flavor(url, token, namespace, project, timeout)
    if flavor == GITLAB:
        gateway: TrackerGateway = GitLabGateway(url, token, namespace, project, timeout)
    elif flavor == GITHUB:
        gateway = GitHubGateway(url, token, namespace, project, timeout)
    else:
        raise TrackerError(f"Unsupported tracker API '{api}'. Use gitlab or github.")
    logger.info("Using %s API at %s", flavor, url)
    return gateway
