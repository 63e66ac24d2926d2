"""Compliance test groups."""

from typing import Tuple

from .base import HandlerResult, RunManager, Test, TestGroup, TestResults, TestReturn
from .sasl import SASL_TESTS


def all_test_groups() -> Tuple[TestGroup, ...]:
    """Every test group, in the order they run."""
    return (
        SASL_TESTS,
    )


__all__ = [
    "HandlerResult",
    "RunManager",
    "Test",
    "TestGroup",
    "TestResults",
    "TestReturn",
    "SASL_TESTS",
    "all_test_groups",
]
