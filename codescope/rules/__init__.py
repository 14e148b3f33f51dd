"""Rule families and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from .base import RuleFamily
from .catalog import RuleSet, build_ruleset, default_ruleset
from .families import (
    LargeFileFamily,
    SecretFamily,
    SecurityFamily,
    maintainability_family,
    stability_family,
)

_ENTRY_POINT_GROUP = "codescope.rule_families"

FamilyFactory = Callable[[RuleSet, int], RuleFamily]

# Order matters: it is the discovery order findings are reported in.
_BUILTIN_FACTORIES: dict[str, FamilyFactory] = {
    "secrets": lambda rules, context: SecretFamily(
        rules.secrets, context_lines=context, ruleset=rules
    ),
    "security": lambda rules, context: SecurityFamily(rules.security, context_lines=context),
    "stability": lambda rules, _context: stability_family(rules.stability),
    "maintainability": lambda rules, _context: maintainability_family(rules.maintainability),
    "large_file": lambda _rules, _context: LargeFileFamily(),
}


def discover_families(
    ruleset: RuleSet,
    *,
    context_lines: int = 2,
    enabled: Sequence[str] | None = None,
) -> List[RuleFamily]:
    """Return instantiated rule families, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    families: List[RuleFamily] = []
    seen: Set[str] = set()

    def _add(name: str, factory: FamilyFactory) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory(ruleset, context_lines)
        if not isinstance(instance, RuleFamily):
            raise TypeError(f"Rule family factory for '{name}' did not return a RuleFamily instance")
        families.append(instance)
        seen.add(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load rule family entry point '{entry.name}': {exc}") from exc

        def _factory(rules: RuleSet, context: int, obj: object = loaded) -> RuleFamily:
            return _coerce_family(obj, rules, context)

        _add(entry.name, _factory)

    if enabled_set is not None:
        missing = enabled_set - seen
        if missing:
            raise ValueError(f"Unknown rule families requested: {', '.join(sorted(missing))}")

    return families


def _coerce_family(obj: object, ruleset: RuleSet, context_lines: int) -> RuleFamily:
    if isinstance(obj, RuleFamily):
        return obj
    if callable(obj):
        instance = obj(ruleset, context_lines)
        if isinstance(instance, RuleFamily):
            return instance
    raise TypeError("Rule family entry point must be a RuleFamily or a factory(ruleset, context_lines)")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "RuleFamily",
    "RuleSet",
    "build_ruleset",
    "default_ruleset",
    "discover_families",
]
