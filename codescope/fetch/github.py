"""GitHub REST API adapter for the content fetcher contract."""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .base import ContentFetcher, FetchError, RepositoryNotFoundError
from ..config import GitHubConfig
from ..logging import get_logger
from ..models import RepoSnapshot, TreeEntry

_REPO_REF = re.compile(
    r"^(?:https?://(?:www\.)?github\.com/|git@github\.com:)?"
    r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<name>[A-Za-z0-9_.-]+?)(?:\.git)?/?$"
)
_USER_AGENT = "codescope-scanner"


def parse_repo_url(value: str) -> tuple[str, str]:
    """Split ``owner/name`` or a GitHub URL into ``(owner, name)``."""
    match = _REPO_REF.match(value.strip())
    if not match:
        raise ValueError(f"Not a GitHub repository reference: {value!r}")
    return match.group("owner"), match.group("name")


class GitHubFetcher(ContentFetcher):
    """Reads repositories through api.github.com (or a GitHub Enterprise base URL)."""

    name = "GitHub API"

    def __init__(self, config: GitHubConfig | None = None) -> None:
        self.config = config or GitHubConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.logger = get_logger("fetch.github")

    def get_repository(self, owner: str, name: str) -> RepoSnapshot:
        try:
            data = self._get_json(f"/repos/{_seg(owner)}/{_seg(name)}")
        except _NotFound as exc:
            raise RepositoryNotFoundError(f"Repository {owner}/{name} not found") from exc
        if not isinstance(data, dict):
            raise FetchError("GitHub returned an unexpected repository payload")
        return RepoSnapshot(
            stars=int(data.get("stargazers_count") or 0),
            forks=int(data.get("forks_count") or 0),
            open_issues=int(data.get("open_issues_count") or 0),
            default_branch=str(data.get("default_branch") or "main"),
            last_push=str(data.get("pushed_at") or ""),
            is_private=bool(data.get("private")),
            description=data.get("description") if isinstance(data.get("description"), str) else None,
            size=int(data.get("size") or 0),
        )

    def get_languages(self, owner: str, name: str) -> Dict[str, int]:
        data = self._get_json(f"/repos/{_seg(owner)}/{_seg(name)}/languages")
        if not isinstance(data, dict):
            raise FetchError("GitHub returned an unexpected languages payload")
        return {str(key): int(value) for key, value in data.items() if isinstance(value, int)}

    def get_tree(self, owner: str, name: str, ref: str) -> List[TreeEntry]:
        data = self._get_json(
            f"/repos/{_seg(owner)}/{_seg(name)}/git/trees/{_seg(ref)}?recursive=1"
        )
        items = data.get("tree") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise FetchError("GitHub returned an unexpected tree payload")
        if data.get("truncated"):
            self.logger.warning("Tree for %s/%s was truncated by GitHub", owner, name)

        entries: List[TreeEntry] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind not in {"blob", "tree"}:
                continue
            size = item.get("size")
            entries.append(
                TreeEntry(
                    path=str(item.get("path") or ""),
                    type="file" if kind == "blob" else "dir",
                    size=size if isinstance(size, int) else None,
                )
            )
        return entries

    def get_file_content(self, owner: str, name: str, path: str) -> str:
        encoded_path = quote(path.lstrip("/"), safe="/")
        data = self._get_json(f"/repos/{_seg(owner)}/{_seg(name)}/contents/{encoded_path}")
        if not isinstance(data, dict) or "content" not in data:
            raise FetchError(f"{path} is not a file")
        if data.get("encoding") != "base64":
            raise FetchError(f"{path} uses unsupported encoding {data.get('encoding')!r}")
        try:
            raw = base64.b64decode(str(data["content"]))
        except (binascii.Error, ValueError) as exc:
            raise FetchError(f"{path} has invalid base64 content") from exc
        return raw.decode("utf-8", errors="replace")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": self.config.api_version,
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _get_json(self, endpoint: str) -> Any:
        url = f"{self.base_url}{endpoint}"
        request = Request(url, headers=self._headers(), method="GET")
        self.logger.debug("GET %s", url)
        try:
            with urlopen(request, timeout=self.config.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            if exc.code == 404:
                raise _NotFound(url) from exc
            detail = _error_detail(exc)
            raise FetchError(f"GitHub request failed with status {exc.code}: {detail}") from exc
        except URLError as exc:
            raise FetchError(f"GitHub request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise FetchError(f"GitHub request timed out after {self.config.request_timeout}s") from exc

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FetchError("GitHub returned invalid JSON") from exc


class _NotFound(FetchError):
    pass


def _seg(value: str) -> str:
    return quote(value, safe="")


def _error_detail(exc: HTTPError) -> str:
    try:
        body = exc.read().decode("utf-8", errors="ignore")
    except OSError:
        body = ""
    message: Optional[str] = None
    if body:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            message = payload["message"]
    return message or body.strip() or str(exc.reason)


__all__ = ["GitHubFetcher", "parse_repo_url"]
