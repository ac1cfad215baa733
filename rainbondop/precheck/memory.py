"""Precheck that the schedulable nodes have enough memory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from rainbondop.cluster import RainbondClusterCondition, RainbondClusterConditionType
from rainbondop.meta import ConditionStatus, now
from rainbondop.precheck.base import PreChecker, fail_condition

logger = logging.getLogger(__name__)

MEMORY_REQUEST = 2 * 1024 * 1024 * 1024

TAINT_EFFECT_NO_SCHEDULE = "NoSchedule"


@dataclass
class Taint:
    """A node taint."""

    key: str
    effect: str = ""
    value: str = ""


@dataclass
class Node:
    """The parts of a kubernetes node the prechecks look at."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    unschedulable: bool = False
    taints: list[Taint] = field(default_factory=list)
    allocatable_memory: int = 0
    kubelet_version: str = ""


class NodeLister(Protocol):
    """Lists the nodes of the cluster."""

    def list_nodes(self) -> Iterable[Node]: ...


def is_master_node(node: Node) -> bool:
    """Return True for a master node that refuses scheduling."""
    if not any("master" in key for key in node.labels):
        return False
    return any(
        "master" in taint.key and taint.effect == TAINT_EFFECT_NO_SCHEDULE
        for taint in node.taints
    )


def total_memory(nodes: Iterable[Node]) -> int:
    """Return the sum of allocatable memory, in bytes."""
    return sum(node.allocatable_memory for node in nodes)


class MemoryPrechecker(PreChecker):
    """Checks that the worker nodes together offer enough memory."""

    def __init__(self, client: NodeLister) -> None:
        self.client = client

    def check(self) -> RainbondClusterCondition:
        condition = RainbondClusterCondition(
            type=RainbondClusterConditionType.MEMORY,
            status=ConditionStatus.TRUE,
            last_heartbeat_time=now(),
        )
        try:
            nodes = list(self.client.list_nodes())
        except Exception as err:  # any client failure becomes a failed condition
            logger.error("list nodes: %s", err)
            return fail_condition(condition, "MemoryFailed", str(err))

        workers = [
            node for node in nodes if not node.unschedulable and not is_master_node(node)
        ]
        total = total_memory(workers)
        if total < MEMORY_REQUEST:
            return fail_condition(
                condition,
                "MemoryFailed",
                f"expected at least {MEMORY_REQUEST} memory, but got {total}",
            )
        return condition