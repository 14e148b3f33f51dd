"""Category health scores derived from weighted findings."""

from __future__ import annotations

from typing import Dict, Iterable

from .models import CATEGORIES, CategoryScores, Finding, round_half_up

SEVERITY_PENALTIES: Dict[str, float] = {
    "critical": 3.0,
    "high": 2.0,
    "medium": 1.0,
    "low": 0.3,
}
UNKNOWN_SEVERITY_PENALTY = 0.5
MAX_SCORE = 10
MIN_SCORE = 0


def calculate_scores(findings: Iterable[Finding]) -> CategoryScores:
    """Score each category independently: start at 10, subtract penalties, round, clamp."""
    totals = {category: float(MAX_SCORE) for category in CATEGORIES}
    for finding in findings:
        if finding.category not in totals:
            continue
        totals[finding.category] -= SEVERITY_PENALTIES.get(
            finding.severity, UNKNOWN_SEVERITY_PENALTY
        )
    return CategoryScores(
        **{
            category: max(MIN_SCORE, min(MAX_SCORE, round_half_up(score)))
            for category, score in totals.items()
        }
    )


__all__ = ["SEVERITY_PENALTIES", "calculate_scores"]
