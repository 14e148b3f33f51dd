"""Render a finished audit as a Markdown report."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import CATEGORIES, SEVERITIES, Audit, Finding

_TEMPLATE_NAME = "report.md.j2"

_CATEGORY_LABELS = {
    "security": "Security",
    "stability": "Stability",
    "maintainability": "Maintainability",
    "scalability": "Scalability",
    "cicd": "CI/CD",
}


class ReportRenderer:
    """Fills the report template from an audit and its findings."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, audit: Audit, findings: Sequence[Finding]) -> str:
        template = self._env.get_template(_TEMPLATE_NAME)
        scores = audit.scores.as_dict() if audit.scores is not None else {}
        context = {
            "audit": audit,
            "meta": audit.repo_meta,
            "languages": _top_languages(audit.repo_meta.languages if audit.repo_meta else {}),
            "scores": [(_CATEGORY_LABELS[name], scores[name]) for name in CATEGORIES if name in scores],
            "overall": audit.scores.mean() if audit.scores is not None else None,
            "groups": _group_by_severity(findings),
            "total": len(findings),
        }
        return template.render(**context).rstrip() + "\n"


def render_report(audit: Audit, findings: Sequence[Finding]) -> str:
    return ReportRenderer().render(audit, findings)


def _group_by_severity(findings: Sequence[Finding]) -> List[tuple[str, List[Finding]]]:
    grouped: Dict[str, List[Finding]] = {severity: [] for severity in SEVERITIES}
    for finding in findings:
        grouped.setdefault(finding.severity, []).append(finding)
    return [(severity, items) for severity, items in grouped.items() if items]


def _top_languages(languages: Dict[str, int], limit: int = 5) -> List[tuple[str, float]]:
    total = sum(languages.values())
    if total <= 0:
        return []
    ranked = sorted(languages.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [(name, round(100.0 * size / total, 1)) for name, size in ranked]


__all__ = ["ReportRenderer", "render_report"]
