"""Built-in rule families: fire-once, fire-on-threshold and the file-size check."""

from __future__ import annotations

import re
from abc import abstractmethod
from typing import List, Optional, Sequence

from .base import RuleFamily, context_snippet, line_number, redact
from .catalog import PatternRule, RuleSet
from ..models import Finding


class FireOnceFamily(RuleFamily):
    """Emits one finding per rule per file, located at the first match."""

    def __init__(self, rules: Sequence[PatternRule], *, context_lines: int = 2) -> None:
        self.rules = tuple(rules)
        self.context_lines = context_lines

    def evaluate(self, path: str, content: str) -> List[Finding]:
        findings: List[Finding] = []
        for rule in self.rules:
            matches = self._matches(rule, content)
            if not matches:
                continue
            findings.append(self.build_finding(rule, path, content, matches))
        return findings

    def _matches(self, rule: PatternRule, content: str) -> List[re.Match[str]]:
        return list(rule.pattern.finditer(content))

    @abstractmethod
    def build_finding(
        self,
        rule: PatternRule,
        path: str,
        content: str,
        matches: Sequence[re.Match[str]],
    ) -> Finding:
        """Turn the matches of one rule into a single finding."""


class SecretFamily(FireOnceFamily):
    """Hardcoded credentials; evidence is redacted before it leaves the engine."""

    name = "secrets"

    def __init__(
        self,
        rules: Sequence[PatternRule],
        *,
        context_lines: int = 2,
        ruleset: Optional[RuleSet] = None,
    ) -> None:
        super().__init__(rules, context_lines=context_lines)
        self.ruleset = ruleset

    def _matches(self, rule: PatternRule, content: str) -> List[re.Match[str]]:
        matches = super()._matches(rule, content)
        if self.ruleset is None or not self.ruleset.secret_allowlist:
            return matches
        return [match for match in matches if not self.ruleset.is_allowlisted(match.group(0))]

    def build_finding(
        self,
        rule: PatternRule,
        path: str,
        content: str,
        matches: Sequence[re.Match[str]],
    ) -> Finding:
        first = matches[0]
        line = line_number(content, first.start())
        # Redact before slicing so matches spanning lines never reach the snippet.
        masked = content
        for match in reversed(matches):
            masked = masked[: match.start()] + _redact_lines(match.group(0)) + masked[match.end() :]
        snippet = context_snippet(masked, line, self.context_lines)
        return Finding(
            category=rule.category,
            severity=rule.severity,
            title=f"{rule.name} Found in Source Code",
            description=(
                f"A {rule.name.lower()} was detected in {path}. This secret is accessible to "
                "anyone who can read the repository."
            ),
            file_path=path,
            line_start=line,
            line_end=line,
            code_snippet=snippet,
            business_impact=rule.impact,
            fix_steps=rule.fix,
            effort="S",
        )


def _redact_lines(value: str) -> str:
    """Redact each line of a match separately so snippet line numbers stay aligned."""
    return "\n".join(redact(part) if part.strip() else part for part in value.split("\n"))


class SecurityFamily(FireOnceFamily):
    """Security anti-patterns reported with their surrounding lines."""

    name = "security"

    def build_finding(
        self,
        rule: PatternRule,
        path: str,
        content: str,
        matches: Sequence[re.Match[str]],
    ) -> Finding:
        line = line_number(content, matches[0].start())
        return Finding(
            category=rule.category,
            severity=rule.severity,
            title=f"{rule.name} in {path}",
            description=(
                f"Pattern detected: {rule.name}. Found {len(matches)} occurrence(s) in this file."
            ),
            file_path=path,
            line_start=line,
            line_end=line,
            code_snippet=context_snippet(content, line, self.context_lines),
            business_impact=rule.impact,
            fix_steps=rule.fix,
            effort="S",
        )


class ThresholdFamily(RuleFamily):
    """Emits a finding only when a rule matches more than ``threshold`` times in one file."""

    def __init__(
        self,
        name: str,
        rules: Sequence[PatternRule],
        *,
        threshold: int,
        title_template: str,
        locate: bool,
    ) -> None:
        self.name = name
        self.rules = tuple(rules)
        self.threshold = threshold
        self.title_template = title_template
        self.locate = locate

    def evaluate(self, path: str, content: str) -> List[Finding]:
        findings: List[Finding] = []
        for rule in self.rules:
            matches = list(rule.pattern.finditer(content))
            count = len(matches)
            if count <= self.threshold:
                continue
            findings.append(
                Finding(
                    category=rule.category,
                    severity=rule.severity,
                    title=self.title_template.format(name=rule.name, count=count, path=path),
                    description=f"Found {count} instances of this pattern in a single file.",
                    file_path=path,
                    line_start=line_number(content, matches[0].start()) if self.locate else None,
                    business_impact=rule.impact,
                    fix_steps=rule.fix,
                    effort="S",
                )
            )
        return findings


def stability_family(rules: Sequence[PatternRule]) -> ThresholdFamily:
    return ThresholdFamily(
        "stability",
        rules,
        threshold=2,
        title_template="{name} ({count} occurrences in {path})",
        locate=True,
    )


def maintainability_family(rules: Sequence[PatternRule]) -> ThresholdFamily:
    return ThresholdFamily(
        "maintainability",
        rules,
        threshold=3,
        title_template="{name} ({count} in {path})",
        locate=False,
    )


class LargeFileFamily(RuleFamily):
    """Flags files whose length makes them hard to review."""

    name = "large_file"

    def __init__(self, *, warn_lines: int = 500, escalate_lines: int = 1000) -> None:
        self.warn_lines = warn_lines
        self.escalate_lines = escalate_lines

    def evaluate(self, path: str, content: str) -> List[Finding]:
        line_count = len(content.split("\n"))
        if line_count <= self.warn_lines:
            return []
        return [
            Finding(
                category="maintainability",
                severity="medium" if line_count > self.escalate_lines else "low",
                title=f"Large File: {path} ({line_count} lines)",
                description=(
                    f"This file has {line_count} lines. Large files are harder to review, test, "
                    "and maintain."
                ),
                file_path=path,
                line_start=1,
                line_end=line_count,
                business_impact=(
                    "Large files increase cognitive load, slow down code reviews, and make it "
                    "harder to isolate bugs."
                ),
                fix_steps=(
                    "1. Identify distinct responsibilities in the file\n"
                    "2. Split into smaller modules by domain/function\n"
                    "3. Use barrel exports (index.ts) for clean imports"
                ),
                effort="M",
            )
        ]


__all__ = [
    "FireOnceFamily",
    "LargeFileFamily",
    "SecretFamily",
    "SecurityFamily",
    "ThresholdFamily",
    "maintainability_family",
    "stability_family",
]
