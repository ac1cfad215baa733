"""RainbondCluster resource: cluster-wide installation settings and conditions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from rainbondop.meta import ConditionStatus, ObjectMeta, now
from rainbondop.volume import RainbondVolumeSpec

# Label prefix for node roles.
LABEL_NODE_ROLE_PREFIX = "node-role.kubernetes.io/"
# Label that specifies the role of a node.
NODE_LABEL_ROLE = "kubernetes.io/role"


class InstallMode(str, Enum):
    """How a Rainbond cluster is installed."""

    WITHOUT_PACKAGE = "Online"
    FULL_ONLINE = "FullOnline"
    OFFLINE = "Offline"


class RainbondClusterConditionType(str, Enum):
    """Kinds of RainbondCluster condition."""

    DATABASE_REGION = "DatabaseRegion"
    DATABASE_CONSOLE = "DatabaseConsole"
    IMAGE_REPOSITORY = "ImageRepository"
    KUBERNETES_VERSION = "KubernetesVersion"
    KUBERNETES_STATUS = "KubernetesStatus"
    STORAGE = "Storage"
    DNS = "DNS"
    CONTAINER_NETWORK = "ContainerNetwork"
    RUNNING = "Running"
    MEMORY = "Memory"


@dataclass
class RainbondClusterCondition:
    """Condition information for a RainbondCluster."""

    type: RainbondClusterConditionType
    status: ConditionStatus
    last_heartbeat_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""


@dataclass
class ImageHub:
    """A private image repository."""

    domain: str = ""
    namespace: str = ""
    username: str = ""
    password: str = ""


@dataclass
class Database:
    """Connection information of a database."""

    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    name: str = ""

    def region_data_source(self) -> str:
        """Return the command-line data source argument for the region database."""
        return (
            f"--mysql={self.username}:{self.password}"
            f"@tcp({self.host}:{self.port})/{self.name}"
        )


@dataclass
class EtcdConfig:
    """Configuration of an etcd client."""

    endpoints: list[str] = field(default_factory=list)
    secret_name: str = ""


@dataclass
class K8sNode:
    """Information about a kubernetes node."""

    name: str = ""
    internal_ip: str = ""
    external_ip: str = ""


@dataclass
class StorageClass:
    """A storage class existing in the cluster."""

    name: str
    provisioner: str
    access_mode: str = ""


@dataclass
class AvailableNodes:
    """Nodes available for special components such as the gateway."""

    specified_nodes: list[K8sNode] = field(default_factory=list)
    master_nodes: list[K8sNode] = field(default_factory=list)


@dataclass
class RainbondClusterSpec:
    """Desired state of a RainbondCluster."""

    suffix_http_host: str = ""
    enable_ha: bool = False
    rainbond_image_repository: str = ""
    gateway_ingress_ips: list[str] = field(default_factory=list)
    nodes_for_gateway: list[K8sNode] = field(default_factory=list)
    nodes_for_chaos: list[K8sNode] = field(default_factory=list)
    install_mode: InstallMode | None = None
    image_hub: ImageHub | None = None
    region_database: Database | None = None
    ui_database: Database | None = None
    etcd_config: EtcdConfig | None = None
    install_version: str = ""
    ci_version: str = ""
    config_completed: bool = False
    rainbond_volume_spec_rwx: RainbondVolumeSpec | None = None
    rainbond_volume_spec_rwo: RainbondVolumeSpec | None = None
    sentinel_image: str = ""
    cache_mode: str = ""


@dataclass
class RainbondClusterStatus:
    """Observed state of a RainbondCluster."""

    kubernetes_version: str = ""
    storage_classes: list[StorageClass] = field(default_factory=list)
    master_role_label: str = ""
    gateway_available_nodes: AvailableNodes | None = None
    chaos_available_nodes: AvailableNodes | None = None
    image_pull_username: str = ""
    image_pull_password: str = ""
    image_pull_secret: str | None = None
    conditions: list[RainbondClusterCondition] = field(default_factory=list)

    def get_condition(
        self, cond_type: RainbondClusterConditionType
    ) -> tuple[int, RainbondClusterCondition | None]:
        """Return the index and a copy of the condition of this type, or (-1, None)."""
        for index, condition in enumerate(self.conditions):
            if condition.type == cond_type:
                return index, replace(condition)
        return -1, None

    def set_condition(self, condition: RainbondClusterCondition) -> None:
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

    def update_condition(self, condition: RainbondClusterCondition) -> bool:
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

    def delete_condition(self, cond_type: RainbondClusterConditionType) -> None:
        """Remove the condition of the given type, if present."""
        index, _ = self.get_condition(cond_type)
        if index == -1:
            return
        del self.conditions[index]


@dataclass
class RainbondCluster:
    """A RainbondCluster resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RainbondClusterSpec = field(default_factory=RainbondClusterSpec)
    status: RainbondClusterStatus = field(default_factory=RainbondClusterStatus)

    def _custom_ips_given(self) -> bool:
        ips = self.spec.gateway_ingress_ips
        return bool(ips) and ips[0] != ""

    def inner_gateway_ingress_ip(self) -> str:
        """Prefer the first gateway node's internal IP, then the first custom IP."""
        if self.spec.nodes_for_gateway:
            return self.spec.nodes_for_gateway[0].internal_ip
        if self._custom_ips_given():
            return self.spec.gateway_ingress_ips[0]
        return ""

    def gateway_ingress_ip(self) -> str:
        """Prefer the first custom IP, then the first gateway node's internal IP."""
        if self._custom_ips_given():
            return self.spec.gateway_ingress_ips[0]
        if self.spec.nodes_for_gateway:
            return self.spec.nodes_for_gateway[0].internal_ip
        return ""

    def gateway_ingress_ips(self) -> list[str]:
        """Return all gateway IPs: the custom ones, else those of the gateway nodes."""
        if self._custom_ips_given():
            return list(self.spec.gateway_ingress_ips)
        return [node.internal_ip for node in self.spec.nodes_for_gateway]


def new_cluster_condition(
    cond_type: RainbondClusterConditionType,
    status: ConditionStatus,
    reason: str,
    message: str,
) -> RainbondClusterCondition:
    """Create a cluster condition whose transition time is now."""
    return RainbondClusterCondition(
        type=cond_type,
        status=status,
        last_transition_time=now(),
        reason=reason,
        message=message,
    )