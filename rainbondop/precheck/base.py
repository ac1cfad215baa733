"""Common interface and helpers for installation prechecks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace

from rainbondop.cluster import RainbondClusterCondition
from rainbondop.meta import ConditionStatus


class PreChecker(ABC):
    """Checks an environment or parameter required to install a Rainbond cluster."""

    @abstractmethod
    def check(self) -> RainbondClusterCondition:
        """Run the check and return the resulting cluster condition."""


def fail_condition(
    condition: RainbondClusterCondition, reason: str, msg: str
) -> RainbondClusterCondition:
    """Return a copy of the condition marked False with the given reason and message."""
    return replace(condition, status=ConditionStatus.FALSE, reason=reason, message=msg)