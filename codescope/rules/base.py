"""Base class for rule families and the text helpers they share."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..models import Finding


class RuleFamily(ABC):
    """Contract for a group of rules sharing one per-file firing policy."""

    name: str = "family"

    @abstractmethod
    def evaluate(self, path: str, content: str) -> List[Finding]:
        """Return the findings this family raises for one file."""


def line_number(content: str, index: int) -> int:
    """Return the 1-based line containing character ``index``."""
    return content.count("\n", 0, index) + 1


def context_snippet(content: str, line: int, context_lines: int = 2) -> str:
    """Render ``context_lines`` lines either side of ``line`` as ``n | text`` rows."""
    lines = content.split("\n")
    start = max(0, line - context_lines - 1)
    end = min(len(lines), line + context_lines)
    return "\n".join(f"{start + offset + 1} | {text}" for offset, text in enumerate(lines[start:end]))


def redact(value: str, *, keep_start: int = 12, keep_end: int = 4) -> str:
    """Keep the head and tail of a secret and elide the middle."""
    if len(value) <= keep_start + keep_end:
        head = value[: max(1, len(value) // 3)]
        return f"{head}..."
    return f"{value[:keep_start]}...{value[-keep_end:]}"


__all__ = ["RuleFamily", "context_snippet", "line_number", "redact"]
