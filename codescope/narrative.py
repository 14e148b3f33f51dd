"""Executive summary and phased remediation plan for a finished scan."""

from __future__ import annotations

from typing import List, Sequence

from .models import CategoryScores, Finding, RemediationPhase

MAX_PHASE_TASKS = 5
WEAK_SCORE = 4

MAINTENANCE_TASKS = (
    "Continue monitoring for new vulnerabilities",
    "Keep dependencies up to date",
)


def generate_summary(
    owner: str,
    repo: str,
    findings: Sequence[Finding],
    scores: CategoryScores,
) -> str:
    """Render the deterministic summary paragraph."""
    criticals = _count(findings, "critical")
    highs = _count(findings, "high")
    mediums = _count(findings, "medium")

    parts: List[str] = [
        f"Automated scan of {owner}/{repo} identified {len(findings)} issues: ",
        f"{criticals} critical, {highs} high, {mediums} medium severity. ",
        f"Overall health score: {scores.mean()}/10. ",
    ]

    if criticals > 0:
        parts.append(
            f"Immediate attention required for {criticals} critical finding(s) that pose "
            "significant security or stability risks. "
        )
    if scores.security <= WEAK_SCORE:
        parts.append("Security posture needs significant improvement. ")
    if scores.stability <= WEAK_SCORE:
        parts.append("Build stability is at risk due to configuration or dependency issues. ")
    # Fires when there are no CI/CD findings, i.e. when workflows were found.
    # Kept as-is; see DESIGN.md "CI/CD summary clause".
    if not any(finding.category == "cicd" for finding in findings):
        parts.append("CI/CD is not configured, leaving the deployment pipeline unprotected.")

    return "".join(parts)


def generate_remediation_plan(findings: Sequence[Finding]) -> List[RemediationPhase]:
    """Group critical, high and medium findings into up to three ordered phases."""
    criticals = _titles(findings, "critical")
    highs = _titles(findings, "high")
    mediums = _titles(findings, "medium")

    plan: List[RemediationPhase] = []
    if criticals:
        plan.append(RemediationPhase("Stop the Bleeding", "Day 1-2", criticals[:MAX_PHASE_TASKS]))
    if highs:
        days = "Day 3-7" if criticals else "Day 1-5"
        plan.append(RemediationPhase("Stabilize", days, highs[:MAX_PHASE_TASKS]))
    if mediums:
        if criticals:
            days = "Day 8-14"
        elif highs:
            days = "Day 6-14"
        else:
            days = "Day 1-7"
        plan.append(RemediationPhase("Harden", days, mediums[:MAX_PHASE_TASKS]))

    if not plan:
        plan.append(RemediationPhase("Maintenance", "Ongoing", list(MAINTENANCE_TASKS)))
    return plan


def _count(findings: Sequence[Finding], severity: str) -> int:
    return sum(1 for finding in findings if finding.severity == severity)


def _titles(findings: Sequence[Finding], severity: str) -> List[str]:
    return [finding.title for finding in findings if finding.severity == severity]


__all__ = ["generate_remediation_plan", "generate_summary"]
