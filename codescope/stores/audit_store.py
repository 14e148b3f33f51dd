"""Audit and finding persistence with an optional JSON file mirror."""

from __future__ import annotations

import copy
import json
import os
import threading
import uuid
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..failsafe import build_error_summary
from ..logging import get_logger
from ..models import (
    FINDING_STATUSES,
    STATUS_COMPLETE,
    STATUS_IN_PROGRESS,
    Audit,
    CategoryScores,
    Finding,
    RemediationPhase,
    RepoSnapshot,
    ScanLogEntry,
    TreeEntry,
)
from ..scanlog import utc_timestamp

_STORE_VERSION = 1
_AUDIT_FIELDS = {item.name for item in fields(Audit)}
_FINDING_FIELDS = {item.name for item in fields(Finding)}
_INTERRUPTED_REASON = "scan interrupted"


class AuditStore:
    """Holds audits and findings; every mutation is serialised and mirrored to disk."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._audits: Dict[str, Audit] = {}
        self._findings: Dict[str, Finding] = {}
        self.logger = get_logger("stores.audit")
        if self._path is not None:
            self._load(self._path)
            self._close_interrupted_runs()

    # ------------------------------------------------------------------
    # Audits

    def create_audit(self, owner_name: str, repo_name: str, *, repo_url: str = "") -> Audit:
        audit = Audit(
            id=str(uuid.uuid4()),
            owner_name=owner_name,
            repo_name=repo_name,
            repo_url=repo_url or f"https://github.com/{owner_name}/{repo_name}",
            created_at=utc_timestamp(),
        )
        with self._lock:
            self._audits[audit.id] = audit
            self._persist()
            return copy.deepcopy(audit)

    def get_audit(self, audit_id: str) -> Optional[Audit]:
        with self._lock:
            audit = self._audits.get(audit_id)
            return copy.deepcopy(audit) if audit is not None else None

    def list_audits(self) -> List[Audit]:
        with self._lock:
            ordered = sorted(self._audits.values(), key=lambda audit: audit.created_at)
            return [copy.deepcopy(audit) for audit in ordered]

    def update_audit(self, audit_id: str, **changes: Any) -> Optional[Audit]:
        """Apply a partial update to an audit and return the stored result."""
        rejected = (set(changes) - _AUDIT_FIELDS) | ({"id"} & set(changes))
        if rejected:
            raise ValueError(f"Cannot update audit fields: {', '.join(sorted(rejected))}")
        with self._lock:
            current = self._audits.get(audit_id)
            if current is None:
                return None
            updated = replace(current, **copy.deepcopy(changes))
            self._audits[audit_id] = updated
            self._persist()
            return copy.deepcopy(updated)

    def delete_audit(self, audit_id: str) -> bool:
        """Remove an audit together with its findings.

        Raises ``ValueError`` while a scan of the audit is still running.
        """
        with self._lock:
            audit = self._audits.get(audit_id)
            if audit is None:
                return False
            if audit.status == STATUS_IN_PROGRESS:
                raise ValueError(f"Audit {audit_id} has a scan in progress")
            del self._audits[audit_id]
            self._findings = {
                key: finding
                for key, finding in self._findings.items()
                if finding.audit_id != audit_id
            }
            self._persist()
            return True

    # ------------------------------------------------------------------
    # Findings

    def list_findings(self, audit_id: str) -> List[Finding]:
        with self._lock:
            return [
                copy.deepcopy(finding)
                for finding in self._findings.values()
                if finding.audit_id == audit_id
            ]

    def get_finding(self, finding_id: str) -> Optional[Finding]:
        with self._lock:
            finding = self._findings.get(finding_id)
            return copy.deepcopy(finding) if finding is not None else None

    def create_finding(self, audit_id: str, finding: Finding) -> Finding:
        stored = replace(finding, id=str(uuid.uuid4()), audit_id=audit_id)
        with self._lock:
            if audit_id not in self._audits:
                raise KeyError(f"Audit {audit_id} not found")
            self._findings[stored.id] = stored  # type: ignore[index]
            self._persist()
            return copy.deepcopy(stored)

    def update_finding(self, finding_id: str, **changes: Any) -> Optional[Finding]:
        """Apply a partial update to a finding; ``None`` when it does not exist."""
        rejected = (set(changes) - _FINDING_FIELDS) | ({"id", "audit_id"} & set(changes))
        if rejected:
            raise ValueError(f"Cannot update finding fields: {', '.join(sorted(rejected))}")
        status = changes.get("status")
        if status is not None and status not in FINDING_STATUSES:
            raise ValueError(f"Unknown finding status: {status}")
        with self._lock:
            current = self._findings.get(finding_id)
            if current is None:
                return None
            updated = replace(current, **copy.deepcopy(changes))
            self._findings[finding_id] = updated
            self._persist()
            return copy.deepcopy(updated)

    def delete_finding(self, finding_id: str) -> bool:
        with self._lock:
            removed = self._findings.pop(finding_id, None)
            if removed is not None:
                self._persist()
            return removed is not None

    # ------------------------------------------------------------------
    # Internal helpers

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _STORE_VERSION,
            "audits": {key: asdict(audit) for key, audit in self._audits.items()},
            "findings": {key: asdict(finding) for key, finding in self._findings.items()},
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def _close_interrupted_runs(self) -> None:
        """Finish audits whose scan died with the previous process."""
        with self._lock:
            interrupted = [
                audit for audit in self._audits.values() if audit.status == STATUS_IN_PROGRESS
            ]
            for audit in interrupted:
                self.logger.warning("Closing interrupted scan of audit %s", audit.id)
                self._audits[audit.id] = replace(
                    audit,
                    status=STATUS_COMPLETE,
                    scanned_at=utc_timestamp(),
                    executive_summary=build_error_summary(_INTERRUPTED_REASON),
                )
            if interrupted:
                self._persist()

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable audit store %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            self.logger.warning("Ignoring audit store %s with unsupported version", path)
            return

        audits = data.get("audits")
        if isinstance(audits, dict):
            for key, raw in audits.items():
                audit = _audit_from_dict(raw)
                if audit is not None and audit.id == key:
                    self._audits[key] = audit

        findings = data.get("findings")
        if isinstance(findings, dict):
            for key, raw in findings.items():
                finding = _finding_from_dict(raw)
                if finding is not None and finding.id == key:
                    self._findings[key] = finding


def _audit_from_dict(payload: object) -> Optional[Audit]:
    if not isinstance(payload, dict):
        return None
    if not all(isinstance(payload.get(key), str) for key in ("id", "owner_name", "repo_name")):
        return None
    data = {key: value for key, value in payload.items() if key in _AUDIT_FIELDS}
    try:
        if isinstance(data.get("scores"), dict):
            data["scores"] = CategoryScores(**data["scores"])
        if isinstance(data.get("repo_meta"), dict):
            data["repo_meta"] = RepoSnapshot(**data["repo_meta"])
        if isinstance(data.get("remediation_plan"), list):
            data["remediation_plan"] = [RemediationPhase(**phase) for phase in data["remediation_plan"]]
        data["file_tree"] = [TreeEntry(**entry) for entry in data.get("file_tree") or []]
        data["scan_log"] = [ScanLogEntry(**entry) for entry in data.get("scan_log") or []]
        return Audit(**data)
    except TypeError:
        return None


def _finding_from_dict(payload: object) -> Optional[Finding]:
    if not isinstance(payload, dict):
        return None
    try:
        return Finding(**{key: value for key, value in payload.items() if key in _FINDING_FIELDS})
    except TypeError:
        return None


__all__ = ["AuditStore"]
