from __future__ import annotations

from typing import Optional

from .auth import get_token_from_env, get_token_from_gh_cli
from .client import CgManifestClient, ManifestFile, ManifestSearchResult
from .config import CampaignConfig, CommitIdentity
from .exceptions import (
    GitHubApiError,
    GitHubAuthError,
    GitHubConflictError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    ManifestFormatError,
    ManifestNotAFileError,
)
from .rest import GitHubRestClient
from .types import Found, Lookup, NotFound

def create_client(
    config: Optional[CampaignConfig] = None,
    *,
    base_url: str = "https://api.github.com",
    api_version: str = "2022-11-28",
    hostname_for_gh: str = "github.com",
    dotenv_path: Optional[str] = None,
) -> CgManifestClient:
    """
    Builds an authenticated campaign client using:
      1) env token (GITHUB_TOKEN or GH_TOKEN, .env merged in)
      2) gh auth token
    """
    token = get_token_from_env(dotenv_path) or get_token_from_gh_cli(hostname_for_gh)
    if not token:
        raise RuntimeError(
            "No GitHub token found. Set GITHUB_TOKEN/GH_TOKEN (or add it to .env) "
            "or authenticate with `gh auth login`."
        )
    rest = GitHubRestClient(token=token, base_url=base_url, api_version=api_version)
    return CgManifestClient.create(rest, config)

__all__ = [
    "CampaignConfig",
    "CgManifestClient",
    "CommitIdentity",
    "Found",
    "GitHubApiError",
    "GitHubAuthError",
    "GitHubConflictError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubRestClient",
    "Lookup",
    "ManifestFile",
    "ManifestFormatError",
    "ManifestNotAFileError",
    "ManifestSearchResult",
    "NotFound",
    "create_client",
]
