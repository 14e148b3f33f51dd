"""Tree-level checks that do not depend on file contents."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .models import Finding, TreeEntry
from .rules.catalog import RuleSet

MANIFEST_NAME = "package.json"
WORKFLOW_PREFIX = ".github/workflows/"


class ManifestError(ValueError):
    """Raised when a dependency manifest cannot be parsed."""


@dataclass
class ManifestReport:
    """Outcome of analysing the root dependency manifest."""

    findings: List[Finding] = field(default_factory=list)
    dependency_count: int = 0


class StructuralChecker:
    """Inspects the flat file tree for missing or misplaced project files."""

    def __init__(self, ruleset: RuleSet) -> None:
        self.ruleset = ruleset

    def sensitive_files(self, tree: Sequence[TreeEntry]) -> List[Finding]:
        files = _file_paths(tree)
        findings: List[Finding] = []
        for sensitive in self.ruleset.sensitive_files:
            match = next(
                (
                    path
                    for path in files
                    if path.endswith(sensitive.path) or f"/{sensitive.path}" in path
                ),
                None,
            )
            if match is None:
                continue
            findings.append(
                Finding(
                    category="security",
                    severity=sensitive.severity,
                    title=sensitive.title,
                    description=(
                        f'The file "{match}" should never be committed to version control. It likely '
                        "contains secrets, credentials, or sensitive configuration."
                    ),
                    file_path=match,
                    business_impact=(
                        "Anyone with access to the repository (including if it becomes public) can "
                        "extract secrets from this file and gain unauthorized access to your systems."
                    ),
                    fix_steps=(
                        f"1. Remove the file from the repository: git rm --cached {match}\n"
                        "2. Add it to .gitignore\n"
                        "3. Rotate any secrets that were in the file\n"
                        "4. Use git filter-branch or BFG to remove from history"
                    ),
                    effort="S",
                )
            )
        return findings

    def layout(self, tree: Sequence[TreeEntry]) -> List[Finding]:
        files = _file_paths(tree)
        findings: List[Finding] = []

        if not any(path == ".gitignore" or path.endswith("/.gitignore") for path in files):
            findings.append(
                Finding(
                    category="security",
                    severity="high",
                    title="Missing .gitignore File",
                    description=(
                        "No .gitignore file found in the repository. Without it, sensitive files, "
                        "build artifacts, and dependency folders may be committed."
                    ),
                    business_impact=(
                        "Secrets, node_modules, .env files, and other sensitive/unnecessary files may "
                        "be committed to the repo."
                    ),
                    fix_steps=(
                        "1. Create a .gitignore file at the project root\n"
                        "2. Use a template from gitignore.io for your stack\n"
                        "3. At minimum include: node_modules/, .env*, dist/, build/, *.log"
                    ),
                    effort="S",
                )
            )

        if self.has_manifest(tree) and not any(path in self.ruleset.lockfiles for path in files):
            findings.append(
                Finding(
                    category="stability",
                    severity="high",
                    title="Missing Package Lock File",
                    description=(
                        f"No {', '.join(self.ruleset.lockfiles[:-1])}, or {self.ruleset.lockfiles[-1]} "
                        "found. Builds are non-deterministic without a lockfile."
                    ),
                    business_impact=(
                        "Different installs will get different dependency versions. This leads to "
                        "'works on my machine' bugs and can introduce breaking changes without warning."
                    ),
                    fix_steps=(
                        "1. Run npm install (or yarn/pnpm install) to generate a lockfile\n"
                        "2. Commit the lockfile to version control\n"
                        "3. Use npm ci in CI/CD for deterministic builds"
                    ),
                    effort="S",
                )
            )

        if not any(entry.path.startswith(WORKFLOW_PREFIX) for entry in tree):
            findings.append(
                Finding(
                    category="cicd",
                    severity="medium",
                    title="No CI/CD Pipeline Configured",
                    description=(
                        "No GitHub Actions workflows found. There are no automated checks running on "
                        "pull requests or deployments."
                    ),
                    business_impact=(
                        "Without CI/CD, bugs and security issues reach production unchecked. Manual "
                        "deployments are error-prone and not auditable."
                    ),
                    fix_steps=(
                        "1. Create .github/workflows/ci.yml\n"
                        "2. Add steps for: lint, type-check, test, dependency audit\n"
                        "3. Enable branch protection requiring CI to pass\n"
                        "4. Consider adding secret scanning (gitleaks)"
                    ),
                    effort="M",
                )
            )

        return findings

    def has_manifest(self, tree: Sequence[TreeEntry]) -> bool:
        return any(
            path == MANIFEST_NAME or path.endswith(f"/{MANIFEST_NAME}") for path in _file_paths(tree)
        )

    def has_root_manifest(self, tree: Sequence[TreeEntry]) -> bool:
        return MANIFEST_NAME in _file_paths(tree)

    def important_files(self, tree: Sequence[TreeEntry]) -> List[str]:
        """Return catalog key files present in the tree, in catalog order."""
        paths = {entry.path for entry in tree}
        present: List[str] = []
        for name in self.ruleset.important_files:
            if name in paths or any(path.startswith(f"{name}/") for path in paths):
                present.append(name)
        return present

    def analyze_manifest(self, tree: Sequence[TreeEntry], text: str) -> ManifestReport:
        """Check the root package.json for linting and type-checking setup."""
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ManifestError(f"Could not parse {MANIFEST_NAME}: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise ManifestError(f"{MANIFEST_NAME} must contain a JSON object")

        dependencies = _merge_dependencies(payload, ("dependencies", "devDependencies"))
        report = ManifestReport(dependency_count=len(dependencies))

        if not any(dependencies.get(name) for name in self.ruleset.linter_packages):
            report.findings.append(
                Finding(
                    category="maintainability",
                    severity="low",
                    title="No Linter Configured",
                    description=(
                        "No ESLint or Biome found in dependencies. Code quality is not being "
                        "enforced automatically."
                    ),
                    file_path=MANIFEST_NAME,
                    business_impact=(
                        "Without a linter, code quality degrades over time and common bugs go undetected."
                    ),
                    fix_steps=(
                        "1. Install ESLint: npm install -D eslint\n"
                        "2. Create .eslintrc configuration\n"
                        "3. Add lint script to package.json\n"
                        "4. Consider adding to CI pipeline"
                    ),
                    effort="S",
                )
            )

        config_name = self.ruleset.typecheck_config
        if dependencies.get(self.ruleset.typecheck_package) and config_name not in _file_paths(tree):
            report.findings.append(
                Finding(
                    category="stability",
                    severity="medium",
                    title=f"TypeScript Installed but {config_name} Missing",
                    description=(
                        f"TypeScript is in dependencies but no {config_name} found. TypeScript may "
                        "not be properly configured."
                    ),
                    file_path=MANIFEST_NAME,
                    business_impact=(
                        "Without proper TypeScript configuration, type checking may be too loose or "
                        "not running at all."
                    ),
                    fix_steps=(
                        f"1. Run npx tsc --init to generate {config_name}\n"
                        "2. Configure strict mode for best type safety\n"
                        "3. Set appropriate target and module settings"
                    ),
                    effort="S",
                )
            )

        return report


def _file_paths(tree: Iterable[TreeEntry]) -> List[str]:
    return [entry.path for entry in tree if entry.is_file]


def _merge_dependencies(payload: Dict[str, object], keys: Sequence[str]) -> Dict[str, object]:
    merged: Dict[str, object] = {}
    for key in keys:
        section = payload.get(key)
        if isinstance(section, dict):
            merged.update(section)
    return merged


__all__ = ["ManifestError", "ManifestReport", "StructuralChecker"]
