from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import requests

from .exceptions import (
    GitHubApiError,
    GitHubAuthError,
    GitHubConflictError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from .utils import (
    is_absolute_url,
    is_rate_limited,
    parse_link_header,
    req_id,
    safe_json,
    sleep_backoff,
    try_get_rate_limit_reset,
)

log = logging.getLogger(__name__)

@dataclass
class GitHubRestClient:
    token: str
    base_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    timeout_s: int = 30

    # Transient-fault handling of the transport (5xx, connection errors)
    max_retries: int = 4
    backoff_base_s: float = 0.8
    max_backoff_s: float = 10.0

    user_agent: str = "cgmanifest-schema-campaign/1.0"

    def __post_init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": self.user_agent,
        })

    def _build_url(self, path_or_url: str) -> str:
        if is_absolute_url(path_or_url):
            return path_or_url
        return self.base_url.rstrip("/") + path_or_url

    @property
    def graphql_url(self) -> str:
        # GHES serves REST under /api/v3 and GraphQL under /api/graphql
        base = self.base_url.rstrip("/")
        if base.endswith("/api/v3"):
            return base[: -len("/v3")] + "/graphql"
        return base + "/graphql"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = self._build_url(path)
        last_err: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                log.debug("%s %s", method.upper(), url)
                resp = self.session.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json_body,
                    timeout=self.timeout_s,
                )

                if resp.status_code == 429:
                    reset = try_get_rate_limit_reset(resp)
                    raise GitHubRateLimitError(
                        resp.status_code,
                        "Rate limit hit (429).",
                        reset_epoch=reset,
                        response_json=safe_json(resp),
                        request_id=req_id(resp),
                    )

                if resp.status_code == 403 and is_rate_limited(resp):
                    reset = try_get_rate_limit_reset(resp)
                    raise GitHubRateLimitError(
                        resp.status_code,
                        "Rate limit exceeded (403).",
                        reset_epoch=reset,
                        response_json=safe_json(resp),
                        request_id=req_id(resp),
                    )

                if resp.status_code >= 400:
                    self._raise_for_status(resp)

                return resp

            except GitHubRateLimitError as e:
                # Only short waits are absorbed here; long ones abort the run.
                last_err = e
                if e.reset_epoch is not None and attempt < self.max_retries:
                    sleep_s = max(0, e.reset_epoch - int(time.time()))
                    if sleep_s <= 15:
                        log.warning("Rate limited; sleeping %ss before retrying %s", sleep_s + 1, url)
                        time.sleep(sleep_s + 1)
                        continue
                raise

            except (requests.Timeout, requests.ConnectionError) as e:
                last_err = e
                if attempt >= self.max_retries:
                    raise
                sleep_backoff(attempt, self.backoff_base_s, self.max_backoff_s)
                continue

            except GitHubApiError as e:
                last_err = e
                if e.status in (500, 502, 503, 504) and attempt < self.max_retries:
                    sleep_backoff(attempt, self.backoff_base_s, self.max_backoff_s)
                    continue
                raise

        if last_err:
            raise last_err
        raise RuntimeError("Unexpected request() control flow.")

    def paginate(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Any]:
        """
        Generic pagination:
        - Supports endpoints returning JSON arrays.
        - Follows GitHub's Link: rel="next" header.
        """
        next_url: str | None = path
        params_local = dict(params or {})

        while next_url:
            resp = self.request("GET", next_url, params=params_local)
            data = resp.json()

            if not isinstance(data, list):
                raise GitHubApiError(
                    resp.status_code,
                    "Expected list response for paginated endpoint.",
                    response_json=data,
                    request_id=req_id(resp),
                )

            for item in data:
                yield item

            links = parse_link_header(resp.headers.get("Link", ""))
            next_url = links.get("next")
            # When following a full URL, params are already embedded
            params_local = {} if next_url else params_local

    def paginate_items(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        key: str = "items",
    ) -> Iterator[Any]:
        """
        Pagination for search endpoints, whose pages look like
        {"total_count": N, "incomplete_results": false, "items": [...]}.
        """
        next_url: str | None = path
        params_local = dict(params or {})

        while next_url:
            resp = self.request("GET", next_url, params=params_local)
            data = resp.json()

            if not isinstance(data, dict) or not isinstance(data.get(key), list):
                raise GitHubApiError(
                    resp.status_code,
                    f"Expected object with '{key}' list for paginated search endpoint.",
                    response_json=data,
                    request_id=req_id(resp),
                )

            if data.get("incomplete_results"):
                log.warning("Search results for %s are incomplete (GitHub timed out).", path)

            for item in data[key]:
                yield item

            links = parse_link_header(resp.headers.get("Link", ""))
            next_url = links.get("next")
            params_local = {} if next_url else params_local

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = self.request("POST", self.graphql_url, json_body={"query": query, "variables": variables or {}})
        payload = resp.json()
        if isinstance(payload, dict) and payload.get("errors"):
            raise GitHubApiError(resp.status_code, "GraphQL error", response_json=payload, request_id=req_id(resp))
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise GitHubApiError(
                resp.status_code,
                "Unexpected GraphQL payload",
                response_json={"payload": payload},
                request_id=req_id(resp),
            )
        return payload["data"]

    def _raise_for_status(self, resp: requests.Response) -> None:
        payload = safe_json(resp)
        if isinstance(payload, dict) and "message" in payload:
            msg = str(payload.get("message", ""))
        else:
            msg = resp.text[:200]

        request_id = req_id(resp)

        if resp.status_code == 401:
            raise GitHubAuthError(resp.status_code, msg or "Unauthorized", response_json=payload, request_id=request_id)
        if resp.status_code == 404:
            raise GitHubNotFoundError(resp.status_code, msg or "Not Found", response_json=payload, request_id=request_id)
        if resp.status_code == 409:
            raise GitHubConflictError(resp.status_code, msg or "Conflict", response_json=payload, request_id=request_id)

        raise GitHubApiError(resp.status_code, msg or "Request failed", response_json=payload, request_id=request_id)
