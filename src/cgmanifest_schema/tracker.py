from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .client import CgManifestClient
from .types import PullRequestStatus

log = logging.getLogger("cgmanifest_schema.tracker")


@dataclass
class Tally:
    merged: int = 0
    open: int = 0
    closed: int = 0

    def add(self, status: PullRequestStatus) -> None:
        if status == "merged":
            self.merged += 1
        elif status == "open":
            self.open += 1
        elif status == "closed":
            self.closed += 1
        else:
            raise ValueError(f"Unknown pull request status: {status!r}")

    @property
    def total(self) -> int:
        return self.merged + self.open + self.closed

    def lines(self) -> List[str]:
        return [f"merged: {self.merged}", f"open: {self.open}", f"closed: {self.closed}"]


@dataclass
class ProgressReport:
    items: List[Tuple[str, PullRequestStatus]] = field(default_factory=list)
    tally: Tally = field(default_factory=Tally)


def classify(node: Dict[str, Any]) -> PullRequestStatus:
    # GraphQL reports merged PRs as state MERGED; older payloads as CLOSED + merged.
    if node.get("merged") or node.get("state") == "MERGED":
        return "merged"
    if node.get("state") == "OPEN":
        return "open"
    return "closed"


def describe(node: Dict[str, Any]) -> str:
    url = node.get("url")
    if url:
        return url
    repo = node.get("repository") or {}
    owner = (repo.get("owner") or {}).get("login")
    return f"{owner}/{repo.get('name')}#{node.get('number')}"


def track_progress(client: CgManifestClient, owner: Optional[str] = None) -> ProgressReport:
    """
    Tallies the campaign pull requests opened by the current user in repos
    owned by `owner` (default: the current user, where the forks live).
    """
    report = ProgressReport()

    results = client.search_pull_requests(owner)
    log.info("Found %d pull requests", len(results))

    for result in results:
        node = client.get_pull_request_node(result["node_id"])
        status = classify(node)
        name = describe(node)
        report.tally.add(status)
        report.items.append((name, status))

        if status == "closed":
            log.warning("%s is %s", name, status)
        else:
            log.info("%s is %s", name, status)

    return report
