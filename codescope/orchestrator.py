"""Scan pipeline orchestration: state transitions, stages and persistence."""

from __future__ import annotations

import functools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Generic, List, Optional, Sequence, TypeVar

from .config import CodeScopeConfig
from .dedup import deduplicate_findings
from .engine import RuleEngine
from .failsafe import build_error_summary, build_unreachable_summary
from .fetch import ContentFetcher, GitHubFetcher
from .logging import get_logger
from .models import (
    CATEGORIES,
    STATUS_COMPLETE,
    STATUS_IN_PROGRESS,
    Audit,
    Finding,
    RepoSnapshot,
    TreeEntry,
)
from .narrative import generate_remediation_plan, generate_summary
from .rules import RuleSet, build_ruleset
from .scanlog import ScanLog, utc_timestamp
from .scorer import calculate_scores
from .stores import AuditStore
from .structure import MANIFEST_NAME, ManifestError, StructuralChecker

T = TypeVar("T")

_LEVELS = {"ok": "info", "warn": "warning", "error": "error"}


@dataclass
class ScanStart:
    """Acknowledgement returned to whoever requested a scan."""

    accepted: bool
    reason: str


@dataclass
class StageResult(Generic[T]):
    """Value produced by one pipeline stage plus the log line describing it."""

    value: T
    step: str
    status: str
    message: str


class ScanOrchestrator:
    """Runs audit scans on a background executor, one run per audit at a time."""

    def __init__(
        self,
        store: AuditStore,
        fetcher: ContentFetcher,
        *,
        config: CodeScopeConfig | None = None,
        ruleset: RuleSet | None = None,
        engine: RuleEngine | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.config = config or CodeScopeConfig(root=Path.cwd())
        self.ruleset = ruleset or build_ruleset(self.config.rules)
        self.engine = engine or RuleEngine(
            self.ruleset,
            self.config.limits,
            enabled_families=self.config.rules.families or None,
        )
        self.structure = StructuralChecker(self.ruleset)
        self.logger = get_logger("orchestrator")
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.limits.scan_workers,
            thread_name_prefix="codescope-scan",
        )
        self._lock = threading.RLock()
        self._runs: Dict[str, Future[Optional[Audit]]] = {}

    def start_scan(self, audit_id: str) -> ScanStart:
        """Reset the audit and hand its run to the executor; never blocks on the run."""
        with self._lock:
            audit = self.store.get_audit(audit_id)
            if audit is None:
                return ScanStart(False, "Audit not found")
            if audit.status == STATUS_IN_PROGRESS:
                self.logger.info("Rejected scan for %s: already in progress", audit.full_name)
                return ScanStart(False, "Scan already in progress")

            removed = self._clear_detected_findings(audit_id)
            self.store.update_audit(
                audit_id,
                status=STATUS_IN_PROGRESS,
                scores=None,
                executive_summary=None,
                remediation_plan=None,
                scan_log=[],
                scanned_at=None,
            )
            try:
                future = self._executor.submit(self.run_scan, audit_id)
            except RuntimeError as exc:
                self.logger.error("Could not schedule scan for %s: %s", audit.full_name, exc)
                self.store.update_audit(
                    audit_id,
                    status=STATUS_COMPLETE,
                    scanned_at=utc_timestamp(),
                    executive_summary=build_error_summary(str(exc)),
                )
                return ScanStart(False, "Scanner is shutting down")
            self._runs[audit_id] = future
            # Runs on this thread when the scan already finished; the lock is reentrant.
            future.add_done_callback(functools.partial(self._forget_run, audit_id))

        self.logger.info(
            "Scan started for %s (%d previous detections cleared)", audit.full_name, removed
        )
        return ScanStart(True, "Scan started")

    def run_scan(self, audit_id: str) -> Optional[Audit]:
        """Execute one run to completion; failures end the run instead of escaping."""
        log = ScanLog(listener=lambda entries: self.store.update_audit(audit_id, scan_log=entries))
        try:
            self._run(audit_id, log)
        except Exception as exc:
            self.logger.exception("Scan for audit %s failed", audit_id)
            log.add("error", "error", str(exc))
            self.store.update_audit(
                audit_id,
                status=STATUS_COMPLETE,
                scanned_at=utc_timestamp(),
                executive_summary=build_error_summary(str(exc)),
            )
        return self.store.get_audit(audit_id)

    def wait(self, audit_id: str, timeout: float | None = None) -> Optional[Audit]:
        """Block until the latest run for ``audit_id`` finishes and return the audit."""
        with self._lock:
            future = self._runs.get(audit_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.store.get_audit(audit_id)

    def _forget_run(self, audit_id: str, future: Future[Optional[Audit]]) -> None:
        with self._lock:
            if self._runs.get(audit_id) is future:
                del self._runs[audit_id]

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Pipeline

    def _run(self, audit_id: str, log: ScanLog) -> None:
        audit = self.store.get_audit(audit_id)
        if audit is None:
            raise LookupError(f"Audit {audit_id} not found")
        owner, name = audit.owner_name, audit.repo_name
        self.logger.info("Scanning %s", audit.full_name)
        log.add("connect", "ok", f"Connected to {self.fetcher.name}")

        repo = self._fetch_repository(owner, name)
        self._record(log, repo)
        if repo.value is None:
            self.store.update_audit(
                audit_id,
                status=STATUS_COMPLETE,
                scanned_at=utc_timestamp(),
                executive_summary=build_unreachable_summary(),
            )
            return

        languages = self._fetch_languages(owner, name)
        self._record(log, languages)
        snapshot = replace(repo.value, languages=languages.value)
        self.store.update_audit(audit_id, repo_meta=snapshot)

        tree_result = self._fetch_tree(owner, name, snapshot.default_branch)
        self._record(log, tree_result)
        tree = tree_result.value
        self.store.update_audit(audit_id, file_tree=tree)

        findings: List[Finding] = []
        sensitive = self.structure.sensitive_files(tree)
        for finding in sensitive:
            log.add("sensitive_file", "warn", f"Found sensitive file: {finding.file_path}")
        findings.extend(sensitive)
        findings.extend(self.structure.layout(tree))

        key_files = self.structure.important_files(tree)
        if key_files:
            log.add("key_files", "ok", f"Detected key files: {', '.join(key_files)}")
        else:
            log.add("key_files", "warn", "No recognised project files detected")

        targets = self.engine.select_files(tree)
        log.add("scan_files", "ok", f"Scanning {len(targets)} files for patterns")

        scanned = 0
        for result in self._scan_files(owner, name, targets):
            if result.value is None:
                self._record(log, result)
                continue
            scanned += 1
            findings.extend(result.value)
        log.add("pattern_scan", "ok", f"Scanned {scanned} files, found {len(findings)} issues")

        if self.structure.has_root_manifest(tree):
            manifest = self._analyze_manifest(owner, name, tree)
            self._record(log, manifest)
            findings.extend(manifest.value)

        unique = deduplicate_findings(findings)
        for finding in unique:
            self.store.create_finding(audit_id, finding)

        scores = calculate_scores(unique)
        summary = generate_summary(owner, name, unique, scores)
        plan = generate_remediation_plan(unique)
        average = sum(scores.as_dict().values()) / len(CATEGORIES)
        log.add("complete", "ok", f"Scan complete: {len(unique)} findings, {average:g} avg score")

        self.store.update_audit(
            audit_id,
            status=STATUS_COMPLETE,
            scores=scores,
            executive_summary=summary,
            remediation_plan=plan,
            scanned_at=utc_timestamp(),
        )
        self.logger.info("Scan of %s finished with %d findings", audit.full_name, len(unique))

    def _fetch_repository(self, owner: str, name: str) -> StageResult[Optional[RepoSnapshot]]:
        try:
            snapshot = self.fetcher.get_repository(owner, name)
        except Exception as exc:
            return StageResult(None, "fetch_repo", "error", f"Cannot access repo: {exc}")
        return StageResult(snapshot, "fetch_repo", "ok", f"Fetched repository: {owner}/{name}")

    def _fetch_languages(self, owner: str, name: str) -> StageResult[Dict[str, int]]:
        try:
            languages = self.fetcher.get_languages(owner, name)
        except Exception as exc:
            self.logger.debug("Language fetch for %s/%s failed: %s", owner, name, exc)
            return StageResult({}, "languages", "warn", "Could not fetch language data")
        detected = ", ".join(languages) or "none"
        return StageResult(dict(languages), "languages", "ok", f"Detected languages: {detected}")

    def _fetch_tree(self, owner: str, name: str, ref: str) -> StageResult[List[TreeEntry]]:
        try:
            tree = self.fetcher.get_tree(owner, name, ref)
        except Exception as exc:
            return StageResult([], "file_tree", "error", f"Cannot fetch file tree: {exc}")
        return StageResult(list(tree), "file_tree", "ok", f"Found {len(tree)} files/directories")

    def _scan_files(
        self, owner: str, name: str, targets: Sequence[TreeEntry]
    ) -> List[StageResult[Optional[List[Finding]]]]:
        if not targets:
            return []
        workers = min(self.config.limits.fetch_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="codescope-fetch") as pool:
            # map() yields in submission order, keeping discovery order stable.
            return list(pool.map(lambda entry: self._scan_one(owner, name, entry), targets))

    def _scan_one(
        self, owner: str, name: str, entry: TreeEntry
    ) -> StageResult[Optional[List[Finding]]]:
        try:
            content = self.fetcher.get_file_content(owner, name, entry.path)
        except Exception as exc:
            return StageResult(None, "fetch_file", "warn", f"Skipped {entry.path}: {exc}")
        return StageResult(
            self.engine.scan_file(entry.path, content), "fetch_file", "ok", f"Scanned {entry.path}"
        )

    def _analyze_manifest(
        self, owner: str, name: str, tree: Sequence[TreeEntry]
    ) -> StageResult[List[Finding]]:
        try:
            text = self.fetcher.get_file_content(owner, name, MANIFEST_NAME)
        except Exception as exc:
            self.logger.debug("Manifest fetch for %s/%s failed: %s", owner, name, exc)
            return StageResult([], "package_analysis", "warn", f"Could not fetch {MANIFEST_NAME}")
        try:
            report = self.structure.analyze_manifest(tree, text)
        except ManifestError as exc:
            self.logger.debug("Manifest parse for %s/%s failed: %s", owner, name, exc)
            return StageResult([], "package_analysis", "warn", f"Could not parse {MANIFEST_NAME}")
        return StageResult(
            report.findings,
            "package_analysis",
            "ok",
            f"Analyzed {MANIFEST_NAME}: {report.dependency_count} dependencies",
        )

    def _record(self, log: ScanLog, result: StageResult[object]) -> None:
        log.add(result.step, result.status, result.message)
        getattr(self.logger, _LEVELS[result.status])("[%s] %s", result.step, result.message)

    def _clear_detected_findings(self, audit_id: str) -> int:
        removed = 0
        for finding in self.store.list_findings(audit_id):
            if finding.auto_detected and finding.id is not None:
                removed += int(self.store.delete_finding(finding.id))
        return removed


def build_orchestrator(
    config: CodeScopeConfig,
    *,
    store_path: Path | None = None,
    fetcher: ContentFetcher | None = None,
) -> ScanOrchestrator:
    """Wire a store, GitHub fetcher and rule set from configuration."""
    store = AuditStore(store_path or config.storage.path)
    return ScanOrchestrator(
        store,
        fetcher or GitHubFetcher(config.github),
        config=config,
    )


__all__ = ["ScanOrchestrator", "ScanStart", "StageResult", "build_orchestrator"]
