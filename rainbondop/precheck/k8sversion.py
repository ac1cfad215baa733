"""Precheck that the kubernetes version is recent enough."""

from __future__ import annotations

import logging

from rainbondop.cluster import RainbondClusterCondition, RainbondClusterConditionType
from rainbondop.meta import ConditionStatus, now
from rainbondop.precheck.base import PreChecker, fail_condition
from rainbondop.precheck.memory import NodeLister

logger = logging.getLogger(__name__)

MIN_KUBERNETES_VERSION = "v1.13.0"


class _VersionUnavailableError(RuntimeError):
    pass


class K8sVersionPrechecker(PreChecker):
    """Checks the kubelet version reported by the cluster's nodes."""

    def __init__(self, client: NodeLister) -> None:
        self.client = client

    def check(self) -> RainbondClusterCondition:
        condition = RainbondClusterCondition(
            type=RainbondClusterConditionType.KUBERNETES_VERSION,
            status=ConditionStatus.TRUE,
            last_heartbeat_time=now(),
        )
        try:
            version = self._kubernetes_version()
        except _VersionUnavailableError as err:
            return fail_condition(condition, "KubernetesVersionFailed", str(err))

        # Plain string comparison, as the version is reported.
        if version < MIN_KUBERNETES_VERSION:
            return fail_condition(
                condition,
                "UnsupportedKubernetesVersion",
                "expect the version of k8s to be greater than or equal to 1.13.0, "
                "but got " + version,
            )
        return condition

    def _kubernetes_version(self) -> str:
        try:
            nodes = list(self.client.list_nodes())
        except Exception as err:  # any client failure becomes a failed condition
            logger.error("list nodes: %s", err)
            raise _VersionUnavailableError(f"list nodes: {err}") from err
        version = next((node.kubelet_version for node in nodes if node.kubelet_version), "")
        if not version:
            raise _VersionUnavailableError("failed to get kubernetes version")
        return version