from __future__ import annotations
from typing import Any

class GitHubApiError(RuntimeError):
    def __init__(
        self,
        status: int,
        message: str,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(f"GitHub API error ({status}): {message}")
        self.status = status
        self.response_json = response_json
        self.request_id = request_id


class GitHubAuthError(GitHubApiError):
    """401"""


class GitHubNotFoundError(GitHubApiError):
    """404"""


class ManifestNotAFileError(GitHubNotFoundError):
    """The manifest path resolved to a directory, symlink or submodule."""

    def __init__(self, owner: str, repo: str, path: str, kind: str):
        super().__init__(404, f"{owner}/{repo}:{path} is a {kind}, not a file")
        self.path = path
        self.kind = kind


class GitHubConflictError(GitHubApiError):
    """409 - stale blob sha on a contents update"""


class GitHubRateLimitError(GitHubApiError):
    """403/429 - Rate Limit Exceeded"""

    def __init__(
        self,
        status: int,
        message: str,
        reset_epoch: int | None,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(status, message, response_json=response_json, request_id=request_id)
        self.reset_epoch = reset_epoch


class ManifestFormatError(ValueError):
    """cgmanifest.json could not be decoded into a JSON object."""
