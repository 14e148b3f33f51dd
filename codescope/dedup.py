"""Collapse repeated detections of the same issue in the same file."""

from __future__ import annotations

from typing import Iterable, List, Optional, Set, Tuple

from .models import Finding


def deduplicate_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Drop findings whose (title, file path) was already seen; first occurrence wins."""
    seen: Set[Tuple[str, Optional[str]]] = set()
    unique: List[Finding] = []
    for finding in findings:
        key = finding.signature()
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)
    return unique


__all__ = ["deduplicate_findings"]
