"""Per-file rule evaluation and scan-target selection."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from .config import LimitsConfig
from .models import Finding, TreeEntry
from .rules import RuleFamily, RuleSet, discover_families


class RuleEngine:
    """Applies rule families to file text; a pure function of (path, content)."""

    def __init__(
        self,
        ruleset: RuleSet,
        limits: LimitsConfig | None = None,
        *,
        families: Sequence[RuleFamily] | None = None,
        enabled_families: Sequence[str] | None = None,
    ) -> None:
        self.ruleset = ruleset
        self.limits = limits or LimitsConfig()
        if families is not None:
            self.families: List[RuleFamily] = list(families)
        else:
            self.families = discover_families(
                ruleset,
                context_lines=self.limits.snippet_context,
                enabled=enabled_families,
            )

    def should_scan(self, entry: TreeEntry) -> bool:
        if not entry.is_file:
            return False
        if _extension(entry.path) not in self.ruleset.scannable_extensions:
            return False
        return (entry.size or 0) < self.limits.max_file_size

    def select_files(self, tree: Iterable[TreeEntry]) -> List[TreeEntry]:
        """Return scannable files in tree order, capped at ``max_files``."""
        selected = [entry for entry in tree if self.should_scan(entry)]
        return selected[: self.limits.max_files]

    def scan_file(self, path: str, content: str) -> List[Finding]:
        findings: List[Finding] = []
        for family in self.families:
            findings.extend(family.evaluate(path, content))
        return findings


def _extension(path: str) -> str:
    return "." + path.rsplit(".", 1)[-1].lower()


__all__ = ["RuleEngine"]
