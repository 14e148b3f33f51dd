"""Tests for codescope.dedup."""

from __future__ import annotations

from codescope.dedup import deduplicate_findings
from codescope.models import Finding


def _finding(title: str, path: str | None, severity: str = "low") -> Finding:
    return Finding(
        category="security",
        severity=severity,
        title=title,
        description="",
        business_impact="",
        fix_steps="",
        file_path=path,
    )


def test_first_occurrence_wins_and_order_is_stable() -> None:
    findings = [
        _finding("A", "x.js", "high"),
        _finding("B", "x.js"),
        _finding("A", "x.js", "low"),
        _finding("A", "y.js"),
        _finding("C", None),
        _finding("C", None),
    ]

    unique = deduplicate_findings(findings)

    assert [(item.title, item.file_path) for item in unique] == [
        ("A", "x.js"),
        ("B", "x.js"),
        ("A", "y.js"),
        ("C", None),
    ]
    assert unique[0].severity == "high"


def test_deduplication_is_idempotent() -> None:
    findings = [_finding("A", "x"), _finding("A", "x"), _finding("B", None)]

    once = deduplicate_findings(findings)

    assert deduplicate_findings(once) == once


def test_empty_input() -> None:
    assert deduplicate_findings([]) == []
