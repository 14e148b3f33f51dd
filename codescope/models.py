"""Core data models shared across codescope components."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

CATEGORIES = ("security", "stability", "maintainability", "scalability", "cicd")

# Ordered by risk, highest first.
SEVERITIES = ("critical", "high", "medium", "low")

EFFORTS = ("S", "M", "L")

LOG_STATUSES = ("ok", "warn", "error")

FINDING_STATUSES = ("open", "acknowledged", "resolved", "wont_fix")

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETE = "complete"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round`` uses banker's rounding)."""
    return int(math.floor(value + 0.5))


@dataclass
class Finding:
    """One detected issue with its remediation guidance."""

    category: str
    severity: str
    title: str
    description: str
    business_impact: str
    fix_steps: str
    effort: str = "S"
    file_path: Optional[str] = None
    line_start: Optional[int] = None
    line_end: Optional[int] = None
    code_snippet: Optional[str] = None
    status: str = "open"
    auto_detected: bool = True
    id: Optional[str] = None
    audit_id: Optional[str] = None

    def signature(self) -> tuple[str, Optional[str]]:
        """Identity used when collapsing duplicate detections."""
        return (self.title, self.file_path)


@dataclass(frozen=True)
class ScanLogEntry:
    """A single step recorded while a scan runs."""

    step: str
    status: str
    message: str
    timestamp: str


@dataclass(frozen=True)
class RepoSnapshot:
    """Repository metadata captured once per scan."""

    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    default_branch: str = "main"
    last_push: str = ""
    is_private: bool = False
    description: Optional[str] = None
    size: int = 0
    languages: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TreeEntry:
    """Flat file-tree entry; directory membership is inferred from path prefixes."""

    path: str
    type: str = "file"
    size: Optional[int] = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass(frozen=True)
class CategoryScores:
    """Per-category health scores in the range 0-10."""

    security: int = 10
    stability: int = 10
    maintainability: int = 10
    scalability: int = 10
    cicd: int = 10

    def as_dict(self) -> Dict[str, int]:
        return {category: getattr(self, category) for category in CATEGORIES}

    def mean(self) -> int:
        values = self.as_dict().values()
        return round_half_up(sum(values) / len(CATEGORIES))


@dataclass
class RemediationPhase:
    """A block of remediation work in the phased plan."""

    phase: str
    days: str
    tasks: List[str] = field(default_factory=list)


@dataclass
class Audit:
    """A scan target and the state produced by its latest run."""

    id: str
    owner_name: str
    repo_name: str
    repo_url: str = ""
    status: str = STATUS_PENDING
    scores: Optional[CategoryScores] = None
    executive_summary: Optional[str] = None
    remediation_plan: Optional[List[RemediationPhase]] = None
    repo_meta: Optional[RepoSnapshot] = None
    file_tree: List[TreeEntry] = field(default_factory=list)
    scan_log: List[ScanLogEntry] = field(default_factory=list)
    scanned_at: Optional[str] = None
    created_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner_name}/{self.repo_name}"


__all__ = [
    "Audit",
    "CATEGORIES",
    "CategoryScores",
    "EFFORTS",
    "FINDING_STATUSES",
    "Finding",
    "LOG_STATUSES",
    "RemediationPhase",
    "RepoSnapshot",
    "SEVERITIES",
    "STATUS_COMPLETE",
    "STATUS_IN_PROGRESS",
    "STATUS_PENDING",
    "ScanLogEntry",
    "TreeEntry",
    "round_half_up",
]
