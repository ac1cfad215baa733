"""Reconciliation helpers that manage the resources and status of one RbdComponent."""

from __future__ import annotations

import copy
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from rainbondop.cluster import InstallMode, RainbondCluster
from rainbondop.component import (
    RbdComponent,
    RbdComponentConditionType,
    new_component_condition,
)
from rainbondop.meta import ConditionStatus, ObjectMeta
from rainbondop.rbdpackage import (
    PackageConditionStatus,
    PackageConditionType,
    RainbondPackage,
)

logger = logging.getLogger(__name__)

EVENT_TYPE_WARNING = "Warning"

# Kinds that must never be updated once created.
_IMMUTABLE_KINDS = frozenset({"PersistentVolumeClaim", "PersistentVolume", "StorageClass", "Job"})
# Objects whose names mark them as never updated.
_IMMUTABLE_NAMES = frozenset({"rbd-db", "rbd-etcd"})

# Retry schedule used when a status update conflicts: five attempts, 10 ms apart.
_RETRY_STEPS = 5
_RETRY_DELAY = 0.01
_RETRY_JITTER = 0.1


class NotFoundError(LookupError):
    """The requested object does not exist in the cluster."""


class ConflictError(RuntimeError):
    """The object was modified concurrently; the write may be retried."""


class PackageNotCompletedError(RuntimeError):
    """The Rainbond package has not finished being prepared."""


@dataclass
class Resource:
    """A cluster object of a given kind, with its metadata and spec."""

    kind: str
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace


@dataclass
class Pod:
    """A pod and the statuses of its conditions, keyed by condition type."""

    name: str
    namespace: str = ""
    conditions: dict[str, ConditionStatus] = field(default_factory=dict)

    def is_ready(self) -> bool:
        """Return True if the pod's Ready condition is True."""
        return self.conditions.get("Ready") == ConditionStatus.TRUE


@dataclass
class ReconcileResult:
    """Outcome of a reconcile step."""

    requeue: bool = False
    requeue_after: float = 0.0


class Client(Protocol):
    """Access to cluster objects."""

    def get(self, kind: str, namespace: str, name: str) -> Resource: ...

    def create(self, obj: Resource) -> None: ...

    def update(self, obj: Resource) -> None: ...

    def delete(self, obj: Resource, grace_period_seconds: int) -> None: ...

    def update_status(self, component: RbdComponent) -> None: ...


class Recorder(Protocol):
    """Records events against objects."""

    def event(self, obj: Any, event_type: str, reason: str, message: str) -> None: ...


class Replicaser(Protocol):
    """Supplies the desired number of replicas, or None if unknown."""

    def replicas(self) -> int | None: ...


class ResourcesDeleter(Protocol):
    """Supplies the resources that must be removed."""

    def resources_need_delete(self) -> Iterable[Resource | None]: ...


def _retry_on_conflict(action) -> None:
    for attempt in range(_RETRY_STEPS):
        try:
            action()
            return
        except ConflictError:
            if attempt == _RETRY_STEPS - 1:
                raise
            time.sleep(_RETRY_DELAY * (1 + random.random() * _RETRY_JITTER))


def object_can_update(obj: Resource) -> bool:
    """Return False for objects that must not be updated after creation."""
    if obj.kind in _IMMUTABLE_KINDS:
        return False
    return obj.name not in _IMMUTABLE_NAMES


def check_package_status(pkg: RainbondPackage | None) -> None:
    """Raise PackageNotCompletedError unless the package's Ready stage is completed."""
    completed = pkg is not None and any(
        cond.type == PackageConditionType.READY
        and cond.status == PackageConditionStatus.COMPLETED
        for cond in pkg.status.conditions
    )
    if not completed:
        raise PackageNotCompletedError(
            "rainbond package is not completed in InstallationModeWithoutPackage mode"
        )


class ComponentManager:
    """Manages the resources and status of one RbdComponent."""

    def __init__(self, client: Client, recorder: Recorder, component: RbdComponent) -> None:
        self.client = client
        self.recorder = recorder
        self.component = component
        self.replicaser: Replicaser | None = None

    def set_replicaser(self, replicaser: Replicaser | None) -> None:
        """Use the given source for the desired replica count."""
        self.replicaser = replicaser

    def update_status(self) -> None:
        """Ensure a Ready condition exists and write the status, retrying on conflict."""
        status = copy.deepcopy(self.component.status)
        _, ready = status.get_condition(RbdComponentConditionType.READY)
        if ready is None:
            status.set_condition(
                new_component_condition(
                    RbdComponentConditionType.READY, ConditionStatus.FALSE, "", ""
                )
            )
        self.component.status = status
        _retry_on_conflict(lambda: self.client.update_status(self.component))

    def set_config_completed_condition(self) -> None:
        """Mark the cluster configuration as completed."""
        self.component.status.update_condition(
            new_component_condition(
                RbdComponentConditionType.CLUSTER_CONFIG_COMPLETED,
                ConditionStatus.TRUE,
                "ConfigCompleted",
                "",
            )
        )

    def set_package_ready_condition(self, pkg: RainbondPackage | None) -> None:
        """Reflect the readiness of the Rainbond package in the component's conditions."""
        status, reason, message = ConditionStatus.TRUE, "PackageReady", ""
        if pkg is not None:
            _, pkg_cond = pkg.status.get_condition(PackageConditionType.READY)
            if pkg_cond is None:
                status, reason = ConditionStatus.FALSE, "PackageNotReady"
            elif pkg_cond.status != PackageConditionStatus.COMPLETED:
                status, reason, message = (
                    ConditionStatus.FALSE,
                    "PackageNotReady",
                    pkg_cond.message,
                )
        self.component.status.update_condition(
            new_component_condition(
                RbdComponentConditionType.RAINBOND_PACKAGE_READY, status, reason, message
            )
        )

    def check_prerequisites(
        self, cluster: RainbondCluster, pkg: RainbondPackage | None
    ) -> bool:
        """Return True if the component's resources may be created now."""
        if self.component.spec.priority_component:
            return True
        if cluster.spec.install_mode != InstallMode.FULL_ONLINE:
            try:
                check_package_status(pkg)
            except PackageNotCompletedError as err:
                logger.debug("%s", err)
                return False
        return True

    def generate_status(self, pods: Iterable[Pod]) -> None:
        """Compute replica counts, pod list and readiness from the given pods."""
        pods = list(pods)
        status = copy.deepcopy(self.component.status)
        replicas = 1 if self.component.spec.replicas is None else self.component.spec.replicas
        if self.replicaser is not None:
            wanted = self.replicaser.replicas()
            if wanted is not None:
                logger.debug("replica from replicaser: %d", wanted)
                replicas = wanted
        status.replicas = replicas
        status.ready_replicas = sum(1 for pod in pods if pod.is_ready())
        logger.debug(
            "rainbond component: %s ready replicas count is %d",
            self.component.metadata.name,
            status.ready_replicas,
        )
        status.pods = [pod.name for pod in pods]
        if status.ready_replicas >= replicas:
            status.update_condition(
                new_component_condition(
                    RbdComponentConditionType.READY, ConditionStatus.TRUE, "Ready", ""
                )
            )
        self.component.status = status

    def is_component_ready(self) -> bool:
        """Return True if Ready is True and all replicas are ready."""
        status = self.component.status
        _, condition = status.get_condition(RbdComponentConditionType.READY)
        if condition is None:
            return False
        return (
            condition.status == ConditionStatus.TRUE
            and status.ready_replicas == status.replicas
        )

    def resource_create_if_not_exists(self, obj: Resource) -> None:
        """Create the object unless it already exists."""
        try:
            self.client.get(obj.kind, obj.namespace, obj.name)
        except NotFoundError:
            logger.info("Creating a new %s %s/%s", obj.kind, obj.namespace, obj.name)
            self.client.create(obj)

    def update_or_create_resource(self, obj: Resource) -> ReconcileResult:
        """Create the object if missing, otherwise update it where allowed."""
        try:
            old = self.client.get(obj.kind, obj.namespace, obj.name)
        except NotFoundError:
            logger.info("Creating a new %s %s/%s", obj.kind, obj.namespace, obj.name)
            self.client.create(obj)
            return ReconcileResult(requeue=True)

        if not object_can_update(obj):
            return ReconcileResult()

        obj = self._prepare_update(old, obj)
        logger.debug("Object exists: %s %s/%s", obj.kind, obj.namespace, obj.name)
        self.client.update(obj)
        return ReconcileResult()

    @staticmethod
    def _prepare_update(old: Resource, new: Resource) -> Resource:
        # A service's cluster IP is immutable, so carry it over with the version.
        if new.kind == "Service":
            new.metadata.resource_version = old.metadata.resource_version
            new.spec["clusterIP"] = old.spec.get("clusterIP", "")
        return new

    def delete_resources(self, deleter: ResourcesDeleter) -> ReconcileResult | None:
        """Delete the resources the deleter names.

        Returns a requeue result after recording a new failure; re-raises a
        failure that was already recorded; returns None when all went well.
        """
        for res in deleter.resources_need_delete():
            if res is None:
                continue
            try:
                self._delete_if_exists(res)
            except Exception as err:
                condition = new_component_condition(
                    RbdComponentConditionType.READY,
                    ConditionStatus.FALSE,
                    "ErrDeleteResource",
                    str(err),
                )
                if self.component.status.update_condition(condition):
                    self.recorder.event(
                        self.component,
                        EVENT_TYPE_WARNING,
                        condition.reason,
                        condition.message,
                    )
                    self.update_status()
                    return ReconcileResult(requeue=True)
                raise
        return None

    def _delete_if_exists(self, obj: Resource) -> None:
        try:
            self.client.delete(obj, grace_period_seconds=0)
        except NotFoundError:
            pass