"""RainbondVolume resource: storage specification and its conditions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from rainbondop.meta import ConditionStatus, ObjectMeta, now


@dataclass
class AliyunCloudDiskCSIPluginSource:
    """Aliyun cloud disk CSI plugin settings."""

    access_key_id: str = ""
    access_key_secret: str = ""
    max_volume_per_node: str = ""


@dataclass
class AliyunNasCSIPluginSource:
    """Aliyun NAS CSI plugin settings."""

    access_key_id: str = ""
    access_key_secret: str = ""


@dataclass
class NFSCSIPluginSource:
    """NFS CSI plugin; it carries no settings."""


@dataclass
class StorageClassParameters:
    """Parameters for a class of dynamically provisioned storage."""

    mount_options: list[str] = field(default_factory=list)
    provisioner: str = ""
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass
class CSIPluginSource:
    """Source of a CSI driver; only one member is meant to be set."""

    aliyun_cloud_disk: AliyunCloudDiskCSIPluginSource | None = None
    aliyun_nas: AliyunNasCSIPluginSource | None = None
    nfs: NFSCSIPluginSource | None = None


@dataclass
class RainbondVolumeSpec:
    """Desired state of a RainbondVolume."""

    storage_class_name: str = ""
    storage_class_parameters: StorageClassParameters | None = None
    csi_plugin: CSIPluginSource | None = None
    storage_request: int | None = None
    image_repository: str = ""


class RainbondVolumeConditionType(str, Enum):
    """Kinds of RainbondVolume condition."""

    READY = "Ready"
    PROGRESSING = "Progressing"


@dataclass
class RainbondVolumeCondition:
    """One current condition of a RainbondVolume."""

    type: RainbondVolumeConditionType
    status: ConditionStatus
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""


@dataclass
class RainbondVolumeStatus:
    """Observed state of a RainbondVolume."""

    conditions: list[RainbondVolumeCondition] = field(default_factory=list)

    def get_condition(
        self, cond_type: RainbondVolumeConditionType
    ) -> tuple[int, RainbondVolumeCondition | None]:
        """Return the index and a copy of the condition of this type, or (-1, None)."""
        for index, condition in enumerate(self.conditions):
            if condition.type == cond_type:
                return index, replace(condition)
        return -1, None

    def update_condition(self, condition: RainbondVolumeCondition) -> bool:
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

    def set_condition(self, condition: RainbondVolumeCondition) -> None:
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


@dataclass
class RainbondVolume:
    """A RainbondVolume resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RainbondVolumeSpec = field(default_factory=RainbondVolumeSpec)
    status: RainbondVolumeStatus = field(default_factory=RainbondVolumeStatus)