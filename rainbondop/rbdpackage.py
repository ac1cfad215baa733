"""RainbondPackage resource: installation package progress."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from rainbondop.meta import ObjectMeta


class PackageConditionType(str, Enum):
    """Stages of package handling."""

    INIT = "Init"
    DOWNLOAD_PACKAGE = "DownloadPackage"
    UNPACK_PACKAGE = "UnpackPackage"
    PUSH_IMAGE = "PushImage"
    READY = "Ready"


class PackageConditionStatus(str, Enum):
    """Status of a package stage."""

    WAITING = "Waiting"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class PackageCondition:
    """Condition information for a package stage."""

    type: PackageConditionType
    status: PackageConditionStatus
    last_heartbeat_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""
    progress: int = 0


@dataclass
class RainbondPackageImage:
    """An image contained in the package."""

    name: str = ""


@dataclass
class RainbondPackageSpec:
    """Desired state of a RainbondPackage."""

    pkg_path: str = ""
    image_hub_user: str = ""
    image_hub_pass: str = ""


@dataclass
class RainbondPackageStatus:
    """Observed state of a RainbondPackage."""

    conditions: list[PackageCondition] = field(default_factory=list)
    images_number: int = 0
    images_pushed: list[RainbondPackageImage] = field(default_factory=list)

    def get_condition(
        self, cond_type: PackageConditionType
    ) -> tuple[int, PackageCondition | None]:
        """Return the index and a copy of the condition of this type, or (-1, None)."""
        for index, condition in enumerate(self.conditions):
            if condition.type == cond_type:
                return index, replace(condition)
        return -1, None


@dataclass
class RainbondPackage:
    """A RainbondPackage resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RainbondPackageSpec = field(default_factory=RainbondPackageSpec)
    status: RainbondPackageStatus = field(default_factory=RainbondPackageStatus)