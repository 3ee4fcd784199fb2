from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import quote

from .config import CampaignConfig
from .exceptions import GitHubNotFoundError, ManifestNotAFileError
from .rest import GitHubRestClient
from .types import Found, Lookup, NotFound
from .utils import b64encode_text

log = logging.getLogger(__name__)

PULL_REQUEST_NODE_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on PullRequest {
      url
      number
      state
      merged
      repository {
        name
        owner { login }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class ManifestSearchResult:
    owner: str
    repo: str
    path: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class ManifestFile:
    path: str
    content: str  # base64, as returned by the Contents API
    sha: str


@dataclass
class CgManifestClient:
    """
    Campaign-level operations over the REST client. Existence lookups
    (find_fork, find_branch, find_pull_request) return Found/NotFound;
    everything else lets GitHubApiError propagate.
    """
    gh: GitHubRestClient
    config: CampaignConfig = field(default_factory=CampaignConfig)
    current_user: str = ""

    @classmethod
    def create(cls, gh: GitHubRestClient, config: CampaignConfig | None = None) -> "CgManifestClient":
        """Authenticates and caches the login of the token's user. GitHubAuthError propagates."""
        me = gh.request("GET", "/user").json()
        login = me.get("login")
        if not login:
            raise RuntimeError("GET /user returned no login for the configured token.")
        log.debug("Authenticated as %s", login)
        return cls(gh=gh, config=config or CampaignConfig(), current_user=login)

    def _branch_ref(self) -> str:
        return f"heads/{quote(self.config.branch_name)}"

    # -----------------------------
    # Discovery
    # -----------------------------

    def search_manifests(self, org: str | None = None) -> List[ManifestSearchResult]:
        org = org or self.config.org
        filename = self.config.manifest_filename
        params = {"q": f"org:{org} filename:{filename}", "per_page": 100}

        results = set()
        for item in self.gh.paginate_items("/search/code", params=params):
            # filename: also matches e.g. cgmanifest.json.template
            if item.get("name") != filename:
                continue
            repo = item.get("repository") or {}
            owner = (repo.get("owner") or {}).get("login")
            name = repo.get("name")
            path = item.get("path")
            if not owner or not name or not path:
                continue
            results.add(ManifestSearchResult(owner=owner, repo=name, path=path))

        return sorted(results, key=lambda r: (r.repo.lower(), r.owner.lower(), r.path))

    def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return self.gh.request("GET", f"/repos/{owner}/{repo}").json()

    def is_archived_or_private(self, owner: str, repo: str) -> bool:
        data = self.get_repository(owner, repo)
        return bool(data.get("archived")) or bool(data.get("private"))

    # -----------------------------
    # Forks
    # -----------------------------

    def find_fork(self, owner: str, repo: str) -> Lookup[Dict[str, Any]]:
        try:
            for fork in self.gh.paginate(f"/repos/{owner}/{repo}/forks", params={"per_page": 100}):
                fork_owner = (fork.get("owner") or {}).get("login") or ""
                if fork_owner.lower() == self.current_user.lower():
                    return Found(fork)
        except GitHubNotFoundError:
            return NotFound()
        return NotFound()

    def fork_exists(self, owner: str, repo: str) -> bool:
        return isinstance(self.find_fork(owner, repo), Found)

    def create_fork(self, owner: str, repo: str) -> Dict[str, Any]:
        # GitHub forks asynchronously; the POST response can be incomplete.
        fork = self.gh.request("POST", f"/repos/{owner}/{repo}/forks", json_body={}).json()
        fork_owner = (fork.get("owner") or {}).get("login") or self.current_user
        return self.get_repository(fork_owner, fork.get("name") or repo)

    # -----------------------------
    # Manifest contents
    # -----------------------------

    def read_manifest(self, owner: str, repo: str, path: str) -> ManifestFile:
        data = self.gh.request("GET", f"/repos/{owner}/{repo}/contents/{quote(path)}").json()
        if isinstance(data, list):
            raise ManifestNotAFileError(owner, repo, path, "dir")
        kind = data.get("type")
        if kind != "file":
            raise ManifestNotAFileError(owner, repo, path, str(kind))
        return ManifestFile(path=data.get("path") or path, content=data["content"], sha=data["sha"])

    def write_manifest(self, owner: str, repo: str, content: str, path: str, previous_sha: str) -> Dict[str, Any]:
        """
        Commits `content` to the maintenance branch. `previous_sha` must be the
        blob sha from the latest read; GitHub answers 409 if the file moved on.
        """
        identity = self.config.commit_identity.as_payload()
        body = {
            "message": self.config.commit_message,
            "content": b64encode_text(content),
            "sha": previous_sha,
            "branch": self.config.branch_name,
            "author": identity,
            "committer": identity,
        }
        return self.gh.request("PUT", f"/repos/{owner}/{repo}/contents/{quote(path)}", json_body=body).json()

    # -----------------------------
    # Branches
    # -----------------------------

    def get_branch(self, owner: str, repo: str, name: str) -> str:
        ref = self.gh.request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{quote(name)}").json()
        return ref["object"]["sha"]

    def find_branch(self, owner: str, repo: str) -> Lookup[str]:
        try:
            return Found(self.get_branch(owner, repo, self.config.branch_name))
        except GitHubNotFoundError:
            return NotFound()

    def branch_exists(self, owner: str, repo: str) -> bool:
        return isinstance(self.find_branch(owner, repo), Found)

    def delete_branch(self, owner: str, repo: str) -> None:
        self.gh.request("DELETE", f"/repos/{owner}/{repo}/git/refs/{self._branch_ref()}")

    def create_branch(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        return self.gh.request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json_body={"ref": f"refs/heads/{self.config.branch_name}", "sha": sha},
        ).json()

    # -----------------------------
    # Pull requests
    # -----------------------------

    def find_pull_request(self, owner: str, repo: str) -> Lookup[Dict[str, Any]]:
        """Any-state PR with the campaign title opened by the current user."""
        try:
            for pr in self.gh.paginate(f"/repos/{owner}/{repo}/pulls", params={"state": "all", "per_page": 100}):
                author = (pr.get("user") or {}).get("login") or ""
                if pr.get("title") == self.config.pr_title and author.lower() == self.current_user.lower():
                    return Found(pr)
        except GitHubNotFoundError:
            return NotFound()
        return NotFound()

    def pull_request_exists(self, owner: str, repo: str) -> bool:
        return isinstance(self.find_pull_request(owner, repo), Found)

    def create_pull_request(self, owner: str, repo: str, base: str) -> Dict[str, Any]:
        body = {
            "title": self.config.pr_title,
            "head": f"{self.current_user}:{self.config.branch_name}",
            "base": base,
            "body": self.config.render_pr_body(),
        }
        return self.gh.request("POST", f"/repos/{owner}/{repo}/pulls", json_body=body).json()

    # -----------------------------
    # Progress tracking
    # -----------------------------

    def search_pull_requests(self, owner: str | None = None) -> List[Dict[str, Any]]:
        owner = owner or self.current_user
        q = (
            f"is:pr author:{self.current_user} user:{owner} "
            f'in:title "{self.config.title_search_text}"'
        )
        params = {"q": q, "sort": "updated", "order": "desc", "per_page": 100}
        return list(self.gh.paginate_items("/search/issues", params=params))

    def get_pull_request_node(self, node_id: str) -> Dict[str, Any]:
        data = self.gh.graphql(PULL_REQUEST_NODE_QUERY, {"id": node_id})
        node = data.get("node")
        if not node:
            raise GitHubNotFoundError(404, f"No pull request node with id {node_id}")
        return node
