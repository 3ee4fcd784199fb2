"""
Adds `$schema` to every cgmanifest.json of an organization through forks.

Each repository is carried through a fixed sequence of steps as a
RepoContext value:

    DISCOVERED -> SKIPPED_INACCESSIBLE
               -> FORKED -> SKIPPED_PR_EXISTS
                         -> BRANCH_READY -> MANIFEST_EDITED -> PR_CREATED

Once forked, every call addresses the fork, never the upstream repository.
Reruns are safe: an existing fork is reused, a repository whose fork already
carries the campaign pull request is skipped, and a leftover maintenance
branch is deleted and recreated from the current default-branch tip.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

from .client import CgManifestClient, ManifestSearchResult
from .exceptions import GitHubApiError, ManifestFormatError
from .manifest import add_schema
from .types import Found

log = logging.getLogger("cgmanifest_schema.orchestrator")


class RepoState(str, Enum):
    DISCOVERED = "discovered"
    SKIPPED_INACCESSIBLE = "skipped_inaccessible"
    FORKED = "forked"
    SKIPPED_PR_EXISTS = "skipped_pr_exists"
    BRANCH_READY = "branch_ready"
    MANIFEST_EDITED = "manifest_edited"
    PR_CREATED = "pr_created"
    DRY_RUN = "dry_run"
    FAILED = "failed"


TERMINAL_STATES = (
    RepoState.PR_CREATED,
    RepoState.SKIPPED_PR_EXISTS,
    RepoState.SKIPPED_INACCESSIBLE,
    RepoState.DRY_RUN,
    RepoState.FAILED,
)


@dataclass(frozen=True)
class RepoContext:
    upstream_owner: str
    upstream_repo: str
    manifest_path: str
    state: RepoState = RepoState.DISCOVERED

    # Effective target once the fork is resolved
    owner: Optional[str] = None
    repo: Optional[str] = None
    default_branch: Optional[str] = None

    content_sha: Optional[str] = None
    new_content: Optional[str] = None
    pr_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_search(cls, result: ManifestSearchResult) -> "RepoContext":
        return cls(upstream_owner=result.owner, upstream_repo=result.repo, manifest_path=result.path)

    @property
    def upstream_full_name(self) -> str:
        return f"{self.upstream_owner}/{self.upstream_repo}"

    @property
    def target(self) -> Tuple[str, str]:
        if not self.owner or not self.repo:
            raise RuntimeError(f"{self.upstream_full_name}: fork not resolved yet")
        return self.owner, self.repo


class RepoLogger(logging.LoggerAdapter):
    """Prefixes every record with the upstream owner/repo."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['scope']}] {msg}", kwargs


# -----------------------------
# Steps
# -----------------------------

def resolve_fork(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    lookup = client.find_fork(ctx.upstream_owner, ctx.upstream_repo)
    if isinstance(lookup, Found):
        fork_owner = lookup.value["owner"]["login"]
        fork_name = lookup.value["name"]
        rlog.info("Fork already exists %s/%s", fork_owner, fork_name)
        fork = client.get_repository(fork_owner, fork_name)
    else:
        rlog.info("Forking to %s/%s", client.current_user, ctx.upstream_repo)
        fork = client.create_fork(ctx.upstream_owner, ctx.upstream_repo)

    return replace(
        ctx,
        state=RepoState.FORKED,
        owner=fork["owner"]["login"],
        repo=fork["name"],
        default_branch=fork["default_branch"],
    )


def edit_manifest(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    owner, repo = ctx.target
    rlog.info("Getting %s", ctx.manifest_path)
    manifest = client.read_manifest(owner, repo, ctx.manifest_path)
    new_content = add_schema(manifest.content, client.config.schema_url)
    return replace(ctx, content_sha=manifest.sha, new_content=new_content)


def prepare_branch(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    owner, repo = ctx.target
    branch = client.config.branch_name

    if isinstance(client.find_branch(owner, repo), Found):
        rlog.warning("Branch '%s' already exists. Deleting...", branch)
        client.delete_branch(owner, repo)

    tip = client.get_branch(owner, repo, ctx.default_branch)
    rlog.info("Creating '%s' branch at %s", branch, tip[:7])
    client.create_branch(owner, repo, tip)
    return replace(ctx, state=RepoState.BRANCH_READY)


def commit_manifest(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    owner, repo = ctx.target
    rlog.info("Updating %s", ctx.manifest_path)
    client.write_manifest(owner, repo, ctx.new_content, ctx.manifest_path, ctx.content_sha)
    return replace(ctx, state=RepoState.MANIFEST_EDITED)


def open_pull_request(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    owner, repo = ctx.target
    rlog.info("Creating pull request")
    pr = client.create_pull_request(owner, repo, ctx.default_branch)
    url = pr.get("html_url")
    rlog.info("Pull request created: %s", url)
    return replace(ctx, state=RepoState.PR_CREATED, pr_url=url)


def preview(client: CgManifestClient, ctx: RepoContext, rlog: RepoLogger) -> RepoContext:
    """Read-only rendition of the mutating steps."""
    lookup = client.find_fork(ctx.upstream_owner, ctx.upstream_repo)
    if isinstance(lookup, Found):
        owner, repo = lookup.value["owner"]["login"], lookup.value["name"]
        if client.pull_request_exists(owner, repo):
            rlog.info("Pull request already exists %s/%s", owner, repo)
            return replace(ctx, state=RepoState.SKIPPED_PR_EXISTS, owner=owner, repo=repo)
        rlog.info("DRY-RUN: would reuse fork %s/%s", owner, repo)
    else:
        owner, repo = ctx.upstream_owner, ctx.upstream_repo
        rlog.info("DRY-RUN: would fork to %s/%s", client.current_user, ctx.upstream_repo)

    manifest = client.read_manifest(owner, repo, ctx.manifest_path)
    new_content = add_schema(manifest.content, client.config.schema_url)
    rlog.info(
        "DRY-RUN: would commit %s (%d bytes) on '%s' and open '%s'",
        ctx.manifest_path,
        len(new_content.encode("utf-8")),
        client.config.branch_name,
        client.config.pr_title,
    )
    return replace(ctx, state=RepoState.DRY_RUN, content_sha=manifest.sha, new_content=new_content)


def process_repository(
    client: CgManifestClient,
    result: ManifestSearchResult,
    *,
    dry_run: bool = False,
) -> RepoContext:
    ctx = RepoContext.from_search(result)
    rlog = RepoLogger(log, {"scope": ctx.upstream_full_name})

    if client.is_archived_or_private(ctx.upstream_owner, ctx.upstream_repo):
        rlog.warning("Repository is archived or private. Skipping...")
        return replace(ctx, state=RepoState.SKIPPED_INACCESSIBLE)

    if dry_run:
        return preview(client, ctx, rlog)

    ctx = resolve_fork(client, ctx, rlog)

    owner, repo = ctx.target
    if client.pull_request_exists(owner, repo):
        rlog.info("Pull request already exists %s/%s", owner, repo)
        return replace(ctx, state=RepoState.SKIPPED_PR_EXISTS)

    ctx = edit_manifest(client, ctx, rlog)
    ctx = prepare_branch(client, ctx, rlog)
    ctx = commit_manifest(client, ctx, rlog)
    return open_pull_request(client, ctx, rlog)


# -----------------------------
# Campaign
# -----------------------------

def run_campaign(
    client: CgManifestClient,
    *,
    org: Optional[str] = None,
    dry_run: bool = False,
    max_repos: Optional[int] = None,
    continue_on_error: Optional[bool] = None,
) -> List[RepoContext]:
    """
    Processes every repository with a manifest, one at a time.

    With continue_on_error (default: the client's config), GitHubApiError and
    ManifestFormatError are recorded as FAILED and the run moves on;
    otherwise the first error aborts the run.
    """
    if continue_on_error is None:
        continue_on_error = client.config.continue_on_error

    log.info("Fetching repositories with %s...", client.config.manifest_filename)
    results = client.search_manifests(org)
    log.info("Found %d repositories", len(results))

    if max_repos is not None and max_repos > 0:
        results = results[:max_repos]

    outcomes: List[RepoContext] = []
    for result in results:
        try:
            outcome = process_repository(client, result, dry_run=dry_run)
        except (GitHubApiError, ManifestFormatError) as e:
            if not continue_on_error:
                raise
            log.error("[%s] Failed: %s", result.full_name, e, exc_info=True)
            outcome = replace(RepoContext.from_search(result), state=RepoState.FAILED, error=str(e))
        outcomes.append(outcome)

    return outcomes


def summarize(outcomes: List[RepoContext]) -> Dict[str, int]:
    counts = Counter(o.state for o in outcomes)
    return {state.value: counts[state] for state in TERMINAL_STATES if counts[state]}
