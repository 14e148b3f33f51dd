"""Source-host adapters."""

from .base import ContentFetcher, FetchError, RepositoryNotFoundError
from .github import GitHubFetcher, parse_repo_url

__all__ = [
    "ContentFetcher",
    "FetchError",
    "GitHubFetcher",
    "RepositoryNotFoundError",
    "parse_repo_url",
]
