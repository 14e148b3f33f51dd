"""Configuration loading for codescope (.codescope.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".codescope.yml"
ENV_TOKEN_KEYS = ("CODESCOPE_GITHUB_TOKEN", "GITHUB_TOKEN")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GitHubConfig:
    """Connection settings for the GitHub REST API."""

    base_url: str = "https://api.github.com"
    token: Optional[str] = None
    request_timeout: float = 15.0
    api_version: str = "2022-11-28"


@dataclass
class LimitsConfig:
    """Bounds on the work a single scan may perform."""

    max_files: int = 80
    max_file_size: int = 200_000
    snippet_context: int = 2
    fetch_workers: int = 8
    scan_workers: int = 4


@dataclass
class RulesConfig:
    """Rule enablement and false-positive suppression."""

    disabled: List[str] = field(default_factory=list)
    secret_allowlist: List[str] = field(default_factory=list)
    families: List[str] = field(default_factory=list)


@dataclass
class StorageConfig:
    """Where audit state is persisted."""

    path: Optional[Path] = None


@dataclass
class CodeScopeConfig:
    """Represents the settings defined in .codescope.yml."""

    root: Path
    github: GitHubConfig = field(default_factory=GitHubConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(config_path: Path) -> CodeScopeConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return _apply_env(CodeScopeConfig(root=root))

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    github = GitHubConfig()
    github_data = _as_dict(data.get("github"))
    if github_data:
        github.base_url = (_as_str(github_data.get("base_url")) or github.base_url).rstrip("/")
        github.token = _as_str(github_data.get("token"))
        github.request_timeout = _positive_float(
            github_data.get("request_timeout"), github.request_timeout
        )
        github.api_version = _as_str(github_data.get("api_version")) or github.api_version

    limits = LimitsConfig()
    limits_data = _as_dict(data.get("limits"))
    if limits_data:
        limits.max_files = _positive_int(limits_data.get("max_files"), limits.max_files)
        limits.max_file_size = _positive_int(
            limits_data.get("max_file_size"), limits.max_file_size
        )
        snippet_context = _as_int(limits_data.get("snippet_context"))
        if snippet_context is not None and snippet_context >= 0:
            limits.snippet_context = snippet_context
        limits.fetch_workers = _positive_int(
            limits_data.get("fetch_workers"), limits.fetch_workers
        )
        limits.scan_workers = _positive_int(
            limits_data.get("scan_workers"), limits.scan_workers
        )

    rules = RulesConfig()
    rules_data = _as_dict(data.get("rules"))
    if rules_data:
        rules.disabled = _as_str_list(rules_data.get("disabled"))
        rules.secret_allowlist = _as_str_list(rules_data.get("secret_allowlist"))
        rules.families = _as_str_list(rules_data.get("families"))

    storage = StorageConfig()
    storage_data = _as_dict(data.get("storage"))
    storage_path = _as_str(storage_data.get("path")) if storage_data else None
    if storage_path:
        storage.path = (root / storage_path).resolve()

    config = CodeScopeConfig(
        root=root,
        github=github,
        limits=limits,
        rules=rules,
        storage=storage,
    )
    return _apply_env(config)


def _apply_env(config: CodeScopeConfig) -> CodeScopeConfig:
    if config.github.token:
        return config
    for key in ENV_TOKEN_KEYS:
        value = os.environ.get(key)
        if value and value.strip():
            config.github.token = value.strip()
            break
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _positive_int(value: Any, default: int) -> int:
    parsed = _as_int(value)
    if parsed is None or parsed <= 0:
        return default
    return parsed


def _positive_float(value: Any, default: float) -> float:
    parsed = _as_float(value)
    if parsed is None or parsed <= 0:
        return default
    return parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CodeScopeConfig",
    "ConfigError",
    "GitHubConfig",
    "LimitsConfig",
    "RulesConfig",
    "StorageConfig",
    "load_config",
]
