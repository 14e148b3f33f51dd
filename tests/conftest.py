from __future__ import annotations

import logging
from typing import Iterator

import pytest

from codescope.config import LimitsConfig
from codescope.engine import RuleEngine
from codescope.rules import RuleSet, default_ruleset
from codescope.stores import AuditStore
from codescope.structure import StructuralChecker


@pytest.fixture(autouse=True)
def _reset_codescope_logger() -> Iterator[None]:
    """Drop handlers installed by configure_logging so they do not outlive captured streams."""
    yield
    logger = logging.getLogger("codescope")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def ruleset() -> RuleSet:
    return default_ruleset()


@pytest.fixture
def engine(ruleset: RuleSet) -> RuleEngine:
    return RuleEngine(ruleset, LimitsConfig())


@pytest.fixture
def checker(ruleset: RuleSet) -> StructuralChecker:
    return StructuralChecker(ruleset)


@pytest.fixture
def store() -> Iterator[AuditStore]:
    """In-memory audit store."""
    yield AuditStore()
