"""Tests for tree-level structural checks."""

from __future__ import annotations

import json

import pytest

from codescope.models import TreeEntry
from codescope.structure import ManifestError, StructuralChecker


def _tree(*paths: str) -> list[TreeEntry]:
    return [TreeEntry(path, "file", 10) for path in paths]


def _titles(findings) -> list[str]:
    return [finding.title for finding in findings]


def test_missing_lockfile_then_added(checker: StructuralChecker) -> None:
    base = _tree(".gitignore", "package.json", ".github/workflows/ci.yml")

    findings = checker.layout(base)
    lock = [finding for finding in findings if finding.title == "Missing Package Lock File"]
    assert len(lock) == 1
    assert lock[0].severity == "high"
    assert lock[0].category == "stability"

    assert checker.layout(base + _tree("yarn.lock")) == []


def test_nested_lockfile_does_not_count(checker: StructuralChecker) -> None:
    tree = _tree(".gitignore", "package.json", "web/yarn.lock", ".github/workflows/ci.yml")
    assert _titles(checker.layout(tree)) == ["Missing Package Lock File"]


def test_ci_finding_suppressed_by_any_workflow_entry(checker: StructuralChecker) -> None:
    without = checker.layout(_tree(".gitignore"))
    ci = [finding for finding in without if finding.category == "cicd"]
    assert len(ci) == 1
    assert ci[0].severity == "medium"
    assert ci[0].title == "No CI/CD Pipeline Configured"

    with_workflow = checker.layout(_tree(".gitignore", ".github/workflows/deploy.yaml"))
    assert [finding for finding in with_workflow if finding.category == "cicd"] == []


def test_gitignore_accepted_at_any_depth(checker: StructuralChecker) -> None:
    tree = _tree("app/.gitignore", ".github/workflows/ci.yml")
    assert checker.layout(tree) == []

    missing = checker.layout(_tree("src/main.py", ".github/workflows/ci.yml"))
    assert _titles(missing) == ["Missing .gitignore File"]
    assert missing[0].severity == "high"


def test_sensitive_files_report_first_match_only(checker: StructuralChecker) -> None:
    tree = _tree("config/.env", "deploy/.env", "keys/id_rsa", "src/app.ts")

    findings = checker.sensitive_files(tree)

    assert _titles(findings) == [".env File Committed to Repository", "SSH Private Key Committed"]
    assert findings[0].file_path == "config/.env"
    assert findings[0].severity == "critical"
    assert "git rm --cached config/.env" in findings[0].fix_steps


def test_sensitive_file_directories_are_ignored(checker: StructuralChecker) -> None:
    tree = [TreeEntry("secrets/.env", "dir")]
    assert checker.sensitive_files(tree) == []


def test_important_files_in_catalog_order(checker: StructuralChecker) -> None:
    tree = _tree("tsconfig.json", "package.json", ".github/workflows/ci.yml", "src/index.ts")

    assert checker.important_files(tree) == ["package.json", ".github/workflows", "tsconfig.json"]


def test_manifest_without_linter_and_tsconfig(checker: StructuralChecker) -> None:
    text = json.dumps({"dependencies": {"react": "^18"}, "devDependencies": {"typescript": "^5"}})

    report = checker.analyze_manifest(_tree("package.json"), text)

    assert report.dependency_count == 2
    assert _titles(report.findings) == [
        "No Linter Configured",
        "TypeScript Installed but tsconfig.json Missing",
    ]
    assert [finding.severity for finding in report.findings] == ["low", "medium"]
    assert all(finding.file_path == "package.json" for finding in report.findings)


def test_manifest_with_linter_and_tsconfig_is_clean(checker: StructuralChecker) -> None:
    text = json.dumps({"devDependencies": {"eslint": "^9", "typescript": "^5"}})

    report = checker.analyze_manifest(_tree("package.json", "tsconfig.json"), text)

    assert report.findings == []


@pytest.mark.parametrize("text", ["{not json", "[1, 2, 3]"])
def test_manifest_parse_failures_raise(checker: StructuralChecker, text: str) -> None:
    with pytest.raises(ManifestError):
        checker.analyze_manifest(_tree("package.json"), text)


def test_manifest_detection(checker: StructuralChecker) -> None:
    nested = _tree("web/package.json")
    assert checker.has_manifest(nested)
    assert not checker.has_root_manifest(nested)
    assert checker.has_root_manifest(_tree("package.json"))
