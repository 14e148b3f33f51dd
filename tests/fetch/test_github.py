"""Tests for the GitHub REST fetcher."""

from __future__ import annotations

import base64
import io
import json
import socket
from urllib.error import HTTPError, URLError

import pytest

from codescope.config import GitHubConfig
from codescope.fetch import FetchError, GitHubFetcher, RepositoryNotFoundError, parse_repo_url


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def read(self):
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _install(monkeypatch, responses):
    """Route urlopen calls to ``responses[path]`` and record the requests."""
    captured = []

    def fake_urlopen(request, timeout=None):
        captured.append(
            {
                "url": request.full_url,
                "headers": {k.lower(): v for k, v in request.header_items()},
                "timeout": timeout,
            }
        )
        path = request.full_url.split("://", 1)[1].split("/", 1)[1]
        result = responses["/" + path]
        if isinstance(result, Exception):
            raise result
        return FakeResponse(result)

    monkeypatch.setattr("codescope.fetch.github.urlopen", fake_urlopen)
    return captured


def _http_error(code: int, message: str) -> HTTPError:
    body = io.BytesIO(json.dumps({"message": message}).encode("utf-8"))
    return HTTPError("https://api.github.com/x", code, message, {}, body)


@pytest.mark.parametrize(
    "value",
    [
        "acme/shop",
        "https://github.com/acme/shop",
        "https://github.com/acme/shop.git",
        "https://www.github.com/acme/shop/",
        "git@github.com:acme/shop.git",
    ],
)
def test_parse_repo_url_accepts_common_forms(value: str) -> None:
    assert parse_repo_url(value) == ("acme", "shop")


@pytest.mark.parametrize("value", ["", "acme", "https://gitlab.com/acme/shop", "a/b/c"])
def test_parse_repo_url_rejects_other_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_repo_url(value)


def test_get_repository_maps_metadata_and_sends_headers(monkeypatch) -> None:
    captured = _install(
        monkeypatch,
        {
            "/repos/acme/shop": {
                "stargazers_count": 12,
                "forks_count": 3,
                "open_issues_count": 4,
                "default_branch": "trunk",
                "pushed_at": "2024-05-01T10:00:00Z",
                "private": True,
                "description": "Storefront",
                "size": 2048,
            }
        },
    )
    fetcher = GitHubFetcher(GitHubConfig(token="secret-token", request_timeout=7.5))

    snapshot = fetcher.get_repository("acme", "shop")

    assert snapshot.stars == 12
    assert snapshot.forks == 3
    assert snapshot.open_issues == 4
    assert snapshot.default_branch == "trunk"
    assert snapshot.is_private is True
    assert snapshot.description == "Storefront"
    assert snapshot.languages == {}
    request = captured[0]
    assert request["url"] == "https://api.github.com/repos/acme/shop"
    assert request["timeout"] == 7.5
    assert request["headers"]["authorization"] == "Bearer secret-token"
    assert request["headers"]["accept"] == "application/vnd.github+json"


def test_no_authorization_header_without_token(monkeypatch) -> None:
    captured = _install(monkeypatch, {"/repos/acme/shop/languages": {"Go": 10}})

    assert GitHubFetcher().get_languages("acme", "shop") == {"Go": 10}
    assert "authorization" not in captured[0]["headers"]


def test_missing_repository_raises_not_found(monkeypatch) -> None:
    _install(monkeypatch, {"/repos/acme/gone": _http_error(404, "Not Found")})

    with pytest.raises(RepositoryNotFoundError):
        GitHubFetcher().get_repository("acme", "gone")


def test_http_errors_carry_github_message(monkeypatch) -> None:
    _install(monkeypatch, {"/repos/acme/shop": _http_error(403, "API rate limit exceeded")})

    with pytest.raises(FetchError, match="403: API rate limit exceeded"):
        GitHubFetcher().get_repository("acme", "shop")


def test_network_failures_become_fetch_errors(monkeypatch) -> None:
    _install(
        monkeypatch,
        {
            "/repos/acme/shop/languages": URLError("connection refused"),
            "/repos/acme/slow/languages": socket.timeout("timed out"),
        },
    )
    fetcher = GitHubFetcher()

    with pytest.raises(FetchError, match="connection refused"):
        fetcher.get_languages("acme", "shop")
    with pytest.raises(FetchError, match="timed out"):
        fetcher.get_languages("acme", "slow")


def test_get_tree_flattens_entries(monkeypatch) -> None:
    _install(
        monkeypatch,
        {
            "/repos/acme/shop/git/trees/main?recursive=1": {
                "truncated": False,
                "tree": [
                    {"path": "src", "type": "tree"},
                    {"path": "src/app.ts", "type": "blob", "size": 120},
                    {"path": "vendor/lib", "type": "commit"},
                ],
            }
        },
    )

    tree = GitHubFetcher().get_tree("acme", "shop", "main")

    assert [(entry.path, entry.type, entry.size) for entry in tree] == [
        ("src", "dir", None),
        ("src/app.ts", "file", 120),
    ]


def test_get_file_content_decodes_base64(monkeypatch) -> None:
    encoded = base64.b64encode("const a = 1;\n".encode("utf-8")).decode("ascii")
    _install(
        monkeypatch,
        {"/repos/acme/shop/contents/src/app.ts": {"content": encoded, "encoding": "base64"}},
    )

    assert GitHubFetcher().get_file_content("acme", "shop", "src/app.ts") == "const a = 1;\n"


def test_get_file_content_rejects_directories(monkeypatch) -> None:
    _install(monkeypatch, {"/repos/acme/shop/contents/src": [{"name": "app.ts"}]})

    with pytest.raises(FetchError):
        GitHubFetcher().get_file_content("acme", "shop", "src")
