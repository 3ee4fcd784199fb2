import unittest
from unittest.mock import MagicMock, patch

import requests

from cgmanifest_schema.exceptions import (
    GitHubApiError,
    GitHubAuthError,
    GitHubConflictError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from cgmanifest_schema.rest import GitHubRestClient


def _response(status=200, payload=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = payload
    resp.text = "" if payload is None else str(payload)
    return resp


class TestGitHubRestClientSession(unittest.TestCase):
    def test_session_headers(self) -> None:
        client = GitHubRestClient(token="test-token")

        headers = client.session.headers
        self.assertEqual(headers["Authorization"], "Bearer test-token")
        self.assertEqual(headers["Accept"], "application/vnd.github+json")
        self.assertEqual(headers["X-GitHub-Api-Version"], "2022-11-28")
        self.assertIn("User-Agent", headers)

    def test_relative_paths_join_base_url(self) -> None:
        client = GitHubRestClient(token="t", base_url="https://ghe.example.com/api/v3/")
        client.session.request = MagicMock(return_value=_response(payload={"login": "me"}))

        client.request("get", "/user")

        kwargs = client.session.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "GET")
        self.assertEqual(kwargs["url"], "https://ghe.example.com/api/v3/user")


class TestErrorMapping(unittest.TestCase):
    def _client_returning(self, resp):
        client = GitHubRestClient(token="t", max_retries=0)
        client.session.request = MagicMock(return_value=resp)
        return client

    def test_401_raises_auth_error(self) -> None:
        client = self._client_returning(_response(401, {"message": "Bad credentials"}))
        with self.assertRaises(GitHubAuthError) as ctx:
            client.request("GET", "/user")
        self.assertEqual(ctx.exception.status, 401)
        self.assertIn("Bad credentials", str(ctx.exception))

    def test_404_raises_not_found(self) -> None:
        client = self._client_returning(_response(404, {"message": "Not Found"}))
        with self.assertRaises(GitHubNotFoundError):
            client.request("GET", "/repos/acme/widgets/git/ref/heads/nope")

    def test_409_raises_conflict(self) -> None:
        message = "cgmanifest.json does not match 0123abc"
        client = self._client_returning(_response(409, {"message": message}))
        with self.assertRaises(GitHubConflictError) as ctx:
            client.request("PUT", "/repos/me/widgets/contents/cgmanifest.json", json_body={})
        self.assertIn(message, str(ctx.exception))

    def test_422_raises_generic_api_error(self) -> None:
        client = self._client_returning(_response(422, {"message": "Reference already exists"}))
        with self.assertRaises(GitHubApiError) as ctx:
            client.request("POST", "/repos/me/widgets/git/refs", json_body={})
        self.assertEqual(type(ctx.exception), GitHubApiError)
        self.assertEqual(ctx.exception.status, 422)

    def test_403_with_exhausted_quota_raises_rate_limit(self) -> None:
        resp = _response(
            403,
            {"message": "API rate limit exceeded"},
            headers={"X-RateLimit-Remaining": "0"},
        )
        client = self._client_returning(resp)
        with self.assertRaises(GitHubRateLimitError) as ctx:
            client.request("GET", "/search/code")
        self.assertIsNone(ctx.exception.reset_epoch)

    def test_persistent_rate_limit_raises_rate_limit_error(self) -> None:
        client = GitHubRestClient(token="t", max_retries=2)
        reset = {"X-RateLimit-Reset": "1700000003"}
        client.session.request = MagicMock(return_value=_response(429, {"message": "slow down"}, headers=reset))

        with patch("cgmanifest_schema.rest.time.time", return_value=1700000000), \
                patch("cgmanifest_schema.rest.time.sleep") as mock_sleep:
            with self.assertRaises(GitHubRateLimitError) as ctx:
                client.request("GET", "/search/code")

        self.assertEqual(ctx.exception.reset_epoch, 1700000003)
        self.assertEqual(client.session.request.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    def test_short_rate_limit_is_waited_out(self) -> None:
        client = GitHubRestClient(token="t", max_retries=2)
        reset = {"X-RateLimit-Reset": "1700000003"}
        client.session.request = MagicMock(
            side_effect=[_response(429, {"message": "slow down"}, headers=reset), _response(200, {"ok": True})]
        )

        with patch("cgmanifest_schema.rest.time.time", return_value=1700000000), \
                patch("cgmanifest_schema.rest.time.sleep") as mock_sleep:
            resp = client.request("GET", "/search/code")

        self.assertEqual(resp.json(), {"ok": True})
        mock_sleep.assert_called_once_with(4)

    def test_server_errors_are_retried(self) -> None:
        client = GitHubRestClient(token="t", max_retries=2)
        client.session.request = MagicMock(
            side_effect=[_response(502, {"message": "Bad Gateway"}), _response(200, {"ok": True})]
        )

        with patch("cgmanifest_schema.rest.sleep_backoff") as mock_sleep:
            resp = client.request("GET", "/user")

        self.assertEqual(resp.json(), {"ok": True})
        self.assertEqual(client.session.request.call_count, 2)
        mock_sleep.assert_called_once()

    def test_connection_errors_propagate_after_retries(self) -> None:
        client = GitHubRestClient(token="t", max_retries=1)
        client.session.request = MagicMock(side_effect=requests.ConnectionError("boom"))

        with patch("cgmanifest_schema.rest.sleep_backoff"):
            with self.assertRaises(requests.ConnectionError):
                client.request("GET", "/user")
        self.assertEqual(client.session.request.call_count, 2)


class TestPagination(unittest.TestCase):
    def test_paginate_follows_link_header(self) -> None:
        client = GitHubRestClient(token="t")
        next_url = "https://api.github.com/repositories/1/forks?per_page=100&page=2"
        client.session.request = MagicMock(
            side_effect=[
                _response(payload=[{"id": 1}, {"id": 2}], headers={"Link": f'<{next_url}>; rel="next"'}),
                _response(payload=[{"id": 3}]),
            ]
        )

        items = list(client.paginate("/repos/acme/widgets/forks", params={"per_page": 100}))

        self.assertEqual([i["id"] for i in items], [1, 2, 3])
        second = client.session.request.call_args_list[1].kwargs
        self.assertEqual(second["url"], next_url)
        self.assertEqual(second["params"], {})

    def test_paginate_rejects_object_pages(self) -> None:
        client = GitHubRestClient(token="t")
        client.session.request = MagicMock(return_value=_response(payload={"items": []}))
        with self.assertRaises(GitHubApiError):
            list(client.paginate("/repos/acme/widgets/forks"))

    def test_paginate_items_unwraps_search_pages(self) -> None:
        client = GitHubRestClient(token="t")
        next_url = "https://api.github.com/search/code?q=x&page=2"
        client.session.request = MagicMock(
            side_effect=[
                _response(
                    payload={"total_count": 3, "incomplete_results": False, "items": [{"n": 1}, {"n": 2}]},
                    headers={"Link": f'<{next_url}>; rel="next", <{next_url}>; rel="last"'},
                ),
                _response(payload={"total_count": 3, "incomplete_results": False, "items": [{"n": 3}]}),
            ]
        )

        items = list(client.paginate_items("/search/code", params={"q": "x"}))

        self.assertEqual([i["n"] for i in items], [1, 2, 3])
        self.assertEqual(client.session.request.call_count, 2)


class TestGraphQL(unittest.TestCase):
    def test_returns_data(self) -> None:
        client = GitHubRestClient(token="t")
        client.session.request = MagicMock(return_value=_response(payload={"data": {"node": {"state": "OPEN"}}}))

        data = client.graphql("query($id: ID!) { node(id: $id) { id } }", {"id": "PR_1"})

        self.assertEqual(data, {"node": {"state": "OPEN"}})
        kwargs = client.session.request.call_args.kwargs
        self.assertEqual(kwargs["url"], "https://api.github.com/graphql")
        self.assertEqual(kwargs["json"]["variables"], {"id": "PR_1"})

    def test_enterprise_server_endpoint(self) -> None:
        client = GitHubRestClient(token="t", base_url="https://ghe.example.com/api/v3/")
        client.session.request = MagicMock(return_value=_response(payload={"data": {"viewer": {"login": "me"}}}))

        client.graphql("query { viewer { login } }")

        self.assertEqual(client.graphql_url, "https://ghe.example.com/api/graphql")
        self.assertEqual(client.session.request.call_args.kwargs["url"], "https://ghe.example.com/api/graphql")

    def test_errors_raise(self) -> None:
        client = GitHubRestClient(token="t")
        client.session.request = MagicMock(
            return_value=_response(payload={"data": None, "errors": [{"message": "Could not resolve"}]})
        )
        with self.assertRaises(GitHubApiError):
            client.graphql("query { viewer { login } }")


if __name__ == "__main__":
    unittest.main()
