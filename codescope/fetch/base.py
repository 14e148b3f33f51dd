"""Contract for retrieving repository metadata and contents from a source host."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from ..models import RepoSnapshot, TreeEntry


class FetchError(RuntimeError):
    """Raised when the source host cannot supply the requested data."""


class RepositoryNotFoundError(FetchError):
    """Raised when the repository does not exist or is not accessible."""


class ContentFetcher(ABC):
    """Source-host adapter consumed by the scan orchestrator."""

    name: str = "source host"

    @abstractmethod
    def get_repository(self, owner: str, name: str) -> RepoSnapshot:
        """Return repository metadata or raise ``RepositoryNotFoundError``."""

    @abstractmethod
    def get_languages(self, owner: str, name: str) -> Dict[str, int]:
        """Return a language -> bytes histogram."""

    @abstractmethod
    def get_tree(self, owner: str, name: str, ref: str) -> List[TreeEntry]:
        """Return the full recursive tree at ``ref`` as a flat list."""

    @abstractmethod
    def get_file_content(self, owner: str, name: str, path: str) -> str:
        """Return the decoded text of one file."""


__all__ = ["ContentFetcher", "FetchError", "RepositoryNotFoundError"]
