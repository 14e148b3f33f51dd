"""Static detection tables and the immutable rule-set value built from them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Pattern, Sequence, Tuple

from ..config import RulesConfig


@dataclass(frozen=True)
class PatternRule:
    """A lexical rule: everything needed to turn a match into a finding."""

    name: str
    pattern: Pattern[str]
    severity: str
    category: str
    impact: str
    fix: str


@dataclass(frozen=True)
class SensitiveFile:
    """A filename that should never be committed."""

    path: str
    severity: str
    title: str


SECRET_IMPACT = (
    "Exposed credentials can be used by attackers to access your systems, steal data, "
    "or incur charges on your accounts."
)
SECRET_FIX = (
    "1. Immediately rotate this credential\n"
    "2. Move it to an environment variable\n"
    "3. Add the file pattern to .gitignore if appropriate\n"
    "4. Use git filter-branch or BFG to remove from git history"
)


def _secret(pattern: str, name: str, severity: str, flags: int = 0) -> PatternRule:
    return PatternRule(
        name=name,
        pattern=re.compile(pattern, flags),
        severity=severity,
        category="security",
        impact=SECRET_IMPACT,
        fix=SECRET_FIX,
    )


SECRET_RULES: Tuple[PatternRule, ...] = (
    _secret(r"(?:sk_live_|sk_test_)[a-zA-Z0-9]{20,}", "Stripe Secret Key", "critical"),
    _secret(r"(?:AKIA|ASIA)[A-Z0-9]{16}", "AWS Access Key", "critical"),
    _secret(r"ghp_[a-zA-Z0-9]{36}", "GitHub Personal Access Token", "critical"),
    _secret(r"gho_[a-zA-Z0-9]{36}", "GitHub OAuth Token", "critical"),
    _secret(r"xox[bpors]-[a-zA-Z0-9\-]{10,}", "Slack Token", "critical"),
    _secret(r"(?:mongodb(?:\+srv)?://)[^\s'\"]+", "MongoDB Connection String", "critical"),
    _secret(r"postgres(?:ql)?://[^\s'\"]+", "PostgreSQL Connection String", "critical"),
    _secret(
        r"(?:password|passwd|pwd)\s*[:=]\s*['\"][^'\"]{4,}['\"]",
        "Hardcoded Password",
        "high",
        re.IGNORECASE,
    ),
    _secret(
        r"(?:api[_-]?key|apikey)\s*[:=]\s*['\"][^'\"]{8,}['\"]",
        "Hardcoded API Key",
        "high",
        re.IGNORECASE,
    ),
    _secret(
        r"(?:secret|token)\s*[:=]\s*['\"][^'\"]{8,}['\"]",
        "Hardcoded Secret/Token",
        "high",
        re.IGNORECASE,
    ),
    _secret(r"-----BEGIN (?:RSA |EC )?PRIVATE KEY-----", "Private Key in Source", "critical"),
)

SECURITY_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        name="Potential SQL Injection (template literal)",
        pattern=re.compile(r"(?:query|execute|exec)\s*\(\s*[`'\"].*\$\{"),
        severity="high",
        category="security",
        impact=(
            "User input interpolated directly into SQL queries can allow attackers to read, "
            "modify, or delete your entire database."
        ),
        fix="Use parameterized queries or your ORM's query builder instead of string interpolation in SQL.",
    ),
    PatternRule(
        name="SQL Injection via String Concatenation",
        pattern=re.compile(r"\.query\s*\(\s*['\"].*\+\s*(?:req\.|input|user|params|body)"),
        severity="high",
        category="security",
        impact="Concatenating user input into SQL strings allows arbitrary query execution.",
        fix="Replace string concatenation with parameterized queries using placeholders ($1, ?, etc.).",
    ),
    PatternRule(
        name="Unsafe CORS Configuration",
        pattern=re.compile(r"cors\(\s*\{?\s*origin\s*:\s*(?:true|['\"]\*['\"]|\[.*\*.*\])"),
        severity="medium",
        category="security",
        impact=(
            "Allowing all origins means any website can make authenticated requests to your API, "
            "enabling CSRF-like attacks."
        ),
        fix="Restrict CORS origin to your specific domain(s): cors({ origin: 'https://yourdomain.com' })",
    ),
    PatternRule(
        name="Use of eval()",
        pattern=re.compile(r"eval\s*\("),
        severity="high",
        category="security",
        impact=(
            "eval() executes arbitrary code and can be exploited for remote code execution if "
            "user input reaches it."
        ),
        fix=(
            "Remove eval() and use safe alternatives like JSON.parse() for data parsing or "
            "Function constructors for dynamic code."
        ),
    ),
    PatternRule(
        name="dangerouslySetInnerHTML Usage",
        pattern=re.compile(r"dangerouslySetInnerHTML"),
        severity="medium",
        category="security",
        impact=(
            "Rendering unescaped HTML can lead to Cross-Site Scripting (XSS) attacks if the "
            "content comes from user input."
        ),
        fix="Sanitize HTML with a library like DOMPurify before rendering, or use safe React patterns instead.",
    ),
    PatternRule(
        name="Open Redirect Vulnerability",
        pattern=re.compile(r"(?:res|response)\.redirect\s*\(\s*(?:req\.|params|query|body)"),
        severity="medium",
        category="security",
        impact=(
            "Redirecting to user-supplied URLs can be used in phishing attacks to trick users "
            "into visiting malicious sites."
        ),
        fix="Validate redirect URLs against a whitelist of allowed domains before redirecting.",
    ),
)

STABILITY_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        name="Empty Catch Block",
        pattern=re.compile(r"catch\s*\(\s*(?:e|err|error)?\s*\)\s*\{\s*\}"),
        severity="medium",
        category="stability",
        impact=(
            "Silently swallowing errors makes debugging impossible and can hide critical "
            "failures in production."
        ),
        fix=(
            "At minimum, log the error: catch(err) { console.error('Context:', err); }. "
            "Better: add proper error handling logic."
        ),
    ),
    PatternRule(
        name="Console.log in Production Code",
        pattern=re.compile(r"console\.log\s*\("),
        severity="low",
        category="stability",
        impact=(
            "Console logs can leak sensitive data and clutter production output. They indicate "
            "a lack of structured logging."
        ),
        fix="Replace with a structured logger (winston, pino) and remove debug console.logs before shipping.",
    ),
    PatternRule(
        name="process.exit() Call",
        pattern=re.compile(r"process\.exit\s*\("),
        severity="medium",
        category="stability",
        impact=(
            "Abrupt process termination prevents graceful shutdown, can corrupt data, and drops "
            "in-flight requests."
        ),
        fix="Use proper shutdown handlers and let the process exit naturally after cleanup.",
    ),
)

MAINTAINABILITY_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        name="TODO Comment",
        pattern=re.compile(r"//\s*TODO", re.IGNORECASE),
        severity="low",
        category="maintainability",
        impact="Unresolved TODOs indicate incomplete work that may be forgotten and become technical debt.",
        fix="Track TODOs as issues in your project management tool and address them before shipping.",
    ),
    PatternRule(
        name="HACK/FIXME Comment",
        pattern=re.compile(r"//\s*HACK|//\s*FIXME|//\s*XXX", re.IGNORECASE),
        severity="medium",
        category="maintainability",
        impact="These comments flag known problematic code that needs attention. Shipping with these is risky.",
        fix="Address the underlying issue or create a tracked ticket with a deadline.",
    ),
    PatternRule(
        name="TypeScript 'any' Type Usage",
        pattern=re.compile(r"any(?:\s*[;,\)\]])"),
        severity="low",
        category="maintainability",
        impact=(
            "Using 'any' defeats TypeScript's type safety, allowing bugs that the type system "
            "would normally catch."
        ),
        fix="Replace 'any' with proper types. Use 'unknown' if the type is genuinely unknown and add type guards.",
    ),
)

SENSITIVE_FILES: Tuple[SensitiveFile, ...] = (
    SensitiveFile(".env", "critical", ".env File Committed to Repository"),
    SensitiveFile(".env.local", "critical", ".env.local File Committed"),
    SensitiveFile(".env.production", "critical", ".env.production File Committed"),
    SensitiveFile(".env.development", "high", ".env.development File Committed"),
    SensitiveFile("id_rsa", "critical", "SSH Private Key Committed"),
    SensitiveFile("id_ed25519", "critical", "SSH Private Key Committed"),
    SensitiveFile(".npmrc", "high", ".npmrc File May Contain Auth Token"),
    SensitiveFile("firebase-adminsdk", "critical", "Firebase Admin SDK Credentials File"),
    SensitiveFile("service-account", "critical", "GCP Service Account Key File"),
    SensitiveFile("credentials.json", "critical", "Credentials File Committed"),
)

IMPORTANT_FILES: Tuple[str, ...] = (
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    ".gitignore",
    "requirements.txt",
    "Pipfile",
    "pyproject.toml",
    "Gemfile",
    "go.mod",
    "Cargo.toml",
    "docker-compose.yml",
    "Dockerfile",
    ".github/workflows",
    "tsconfig.json",
    "next.config.js",
    "next.config.ts",
    "vite.config.ts",
    "vite.config.js",
)

SCANNABLE_EXTENSIONS: Tuple[str, ...] = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".rb", ".go", ".rs", ".java",
    ".env", ".yml", ".yaml", ".json", ".toml",
    ".sql", ".graphql", ".gql",
    ".php", ".cs", ".swift", ".kt",
)

LOCKFILES: Tuple[str, ...] = ("package-lock.json", "yarn.lock", "pnpm-lock.yaml")

LINTER_PACKAGES: Tuple[str, ...] = ("eslint", "biome", "@biomejs/biome")

TYPECHECK_PACKAGE = "typescript"
TYPECHECK_CONFIG = "tsconfig.json"


@dataclass(frozen=True)
class RuleSet:
    """Immutable bundle of every table the engine and structural checks consume."""

    secrets: Tuple[PatternRule, ...] = SECRET_RULES
    security: Tuple[PatternRule, ...] = SECURITY_RULES
    stability: Tuple[PatternRule, ...] = STABILITY_RULES
    maintainability: Tuple[PatternRule, ...] = MAINTAINABILITY_RULES
    sensitive_files: Tuple[SensitiveFile, ...] = SENSITIVE_FILES
    important_files: Tuple[str, ...] = IMPORTANT_FILES
    scannable_extensions: Tuple[str, ...] = SCANNABLE_EXTENSIONS
    lockfiles: Tuple[str, ...] = LOCKFILES
    linter_packages: Tuple[str, ...] = LINTER_PACKAGES
    typecheck_package: str = TYPECHECK_PACKAGE
    typecheck_config: str = TYPECHECK_CONFIG
    secret_allowlist: Tuple[Pattern[str], ...] = field(default_factory=tuple)

    def is_allowlisted(self, value: str) -> bool:
        """Return True when a secret match is a known non-secret."""
        return any(pattern.search(value) for pattern in self.secret_allowlist)

    def rule_names(self) -> Iterable[str]:
        for rules in (self.secrets, self.security, self.stability, self.maintainability):
            for rule in rules:
                yield rule.name


def default_ruleset() -> RuleSet:
    """Return the built-in detection tables."""
    return RuleSet()


def build_ruleset(config: Optional[RulesConfig] = None, base: RuleSet | None = None) -> RuleSet:
    """Derive a rule set honouring disabled rules and the secret allowlist."""
    ruleset = base or default_ruleset()
    if config is None:
        return ruleset

    disabled = {name.strip().lower() for name in config.disabled if name.strip()}
    unknown = disabled - {name.lower() for name in ruleset.rule_names()}
    if unknown:
        raise ValueError(f"Unknown rules in disabled list: {', '.join(sorted(unknown))}")

    allowlist = tuple(_compile_allowlist(config.secret_allowlist))
    return replace(
        ruleset,
        secrets=_without(ruleset.secrets, disabled),
        security=_without(ruleset.security, disabled),
        stability=_without(ruleset.stability, disabled),
        maintainability=_without(ruleset.maintainability, disabled),
        secret_allowlist=ruleset.secret_allowlist + allowlist,
    )


def _without(rules: Sequence[PatternRule], disabled: set[str]) -> Tuple[PatternRule, ...]:
    return tuple(rule for rule in rules if rule.name.lower() not in disabled)


def _compile_allowlist(patterns: Sequence[str]) -> Iterable[Pattern[str]]:
    for raw in patterns:
        try:
            yield re.compile(raw)
        except re.error as exc:
            raise ValueError(f"Invalid secret allowlist pattern {raw!r}: {exc}") from exc


__all__ = [
    "IMPORTANT_FILES",
    "LINTER_PACKAGES",
    "LOCKFILES",
    "MAINTAINABILITY_RULES",
    "PatternRule",
    "RuleSet",
    "SCANNABLE_EXTENSIONS",
    "SECRET_RULES",
    "SECURITY_RULES",
    "SENSITIVE_FILES",
    "STABILITY_RULES",
    "SensitiveFile",
    "build_ruleset",
    "default_ruleset",
]
