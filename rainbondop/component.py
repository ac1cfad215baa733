"""RbdComponent resource: a single Rainbond component and its conditions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from rainbondop.meta import ConditionStatus, ObjectMeta, now


class PullPolicy(str, Enum):
    """Image pull policy of a container."""

    ALWAYS = "Always"
    NEVER = "Never"
    IF_NOT_PRESENT = "IfNotPresent"


class RbdComponentConditionType(str, Enum):
    """Kinds of RbdComponent condition."""

    CLUSTER_CONFIG_COMPLETED = "ClusterConfigCompeleted"
    RAINBOND_PACKAGE_READY = "RainbondPackageReady"
    READY = "Ready"


@dataclass
class RbdComponentSpec:
    """Desired state of an RbdComponent."""

    replicas: int | None = None
    image: str = ""
    image_pull_policy: PullPolicy | None = None
    args: list[str] = field(default_factory=list)
    priority_component: bool = False
    env: list[dict[str, Any]] = field(default_factory=list)
    resources: dict[str, Any] = field(default_factory=dict)
    volume_mounts: list[dict[str, Any]] = field(default_factory=list)
    volumes: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class RbdComponentCondition:
    """Details of the current condition of an RbdComponent."""

    type: RbdComponentConditionType
    status: ConditionStatus
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""


@dataclass
class RbdComponentStatus:
    """Observed state of an RbdComponent."""

    replicas: int = 0
    ready_replicas: int = 0
    conditions: list[RbdComponentCondition] = field(default_factory=list)
    pods: list[str] = field(default_factory=list)

    def get_condition(
        self, cond_type: RbdComponentConditionType
    ) -> tuple[int, RbdComponentCondition | None]:
        """Return the index and a copy of the condition of this type, or (-1, None)."""
        for index, condition in enumerate(self.conditions):
            if condition.type == cond_type:
                return index, replace(condition)
        return -1, None

    def set_condition(self, condition: RbdComponentCondition) -> None:
        """Store a condition unless an identical one is already present."""
        index, current = self.get_condition(condition.type)
        if current is not None and (
            current.status == condition.status
            and current.reason == condition.reason
            and current.message == condition.message
        ):
            return
        if current is not None:
            self.conditions[index] = condition
        else:
            self.conditions.append(condition)

    def update_condition(self, condition: RbdComponentCondition) -> bool:
        """Add or update a condition; return True if anything changed.

        The transition time is set to now unless the status is unchanged,
        in which case the previous transition time is kept.
        """
        condition.last_transition_time = now()
        index, old = self.get_condition(condition.type)
        if old is None:
            self.conditions.append(replace(condition))
            return True

        if condition.status == old.status:
            condition.last_transition_time = old.last_transition_time

        unchanged = (
            condition.status == old.status
            and condition.reason == old.reason
            and condition.message == old.message
            and condition.last_transition_time == old.last_transition_time
        )
        self.conditions[index] = replace(condition)
        return not unchanged


@dataclass
class RbdComponent:
    """An RbdComponent resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RbdComponentSpec = field(default_factory=RbdComponentSpec)
    status: RbdComponentStatus = field(default_factory=RbdComponentStatus)

    def image_pull_policy(self) -> PullPolicy:
        """Return the configured pull policy, IfNotPresent when unset."""
        if not self.spec.image_pull_policy:
            return PullPolicy.IF_NOT_PRESENT
        return PullPolicy(self.spec.image_pull_policy)


def new_component_condition(
    cond_type: RbdComponentConditionType,
    status: ConditionStatus,
    reason: str,
    message: str,
) -> RbdComponentCondition:
    """Create a component condition whose transition time is now."""
    return RbdComponentCondition(
        type=cond_type,
        status=status,
        last_transition_time=now(),
        reason=reason,
        message=message,
    )