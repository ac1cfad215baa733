import pytest

from rainbondop.cluster import InstallMode, RainbondCluster, RainbondClusterSpec
from rainbondop.component import (
    RbdComponent,
    RbdComponentConditionType,
    RbdComponentSpec,
    new_component_condition,
)
from rainbondop.componentmgr import (
    ComponentManager,
    ConflictError,
    NotFoundError,
    PackageNotCompletedError,
    Pod,
    ReconcileResult,
    Resource,
    check_package_status,
    object_can_update,
)
from rainbondop.meta import ConditionStatus, ObjectMeta
from rainbondop.rbdpackage import (
    PackageCondition,
    PackageConditionStatus,
    PackageConditionType,
    RainbondPackage,
)


class FakeClient:
    def __init__(self, conflicts=0, delete_errors=None):
        self.objects = {}
        self.created = []
        self.updated = []
        self.deleted = []
        self.status_writes = 0
        self.conflicts = conflicts
        self.delete_errors = delete_errors or {}

    def add(self, obj):
        self.objects[(obj.kind, obj.namespace, obj.name)] = obj

    def get(self, kind, namespace, name):
        try:
            return self.objects[(kind, namespace, name)]
        except KeyError:
            raise NotFoundError(name) from None

    def create(self, obj):
        self.created.append(obj)
        self.add(obj)

    def update(self, obj):
        self.updated.append(obj)
        self.add(obj)

    def delete(self, obj, grace_period_seconds):
        assert grace_period_seconds == 0
        if obj.name in self.delete_errors:
            raise self.delete_errors[obj.name]
        self.deleted.append(obj.name)

    def update_status(self, component):
        self.status_writes += 1
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError("conflict")


class FakeRecorder:
    def __init__(self):
        self.events = []

    def event(self, obj, event_type, reason, message):
        self.events.append((event_type, reason, message))


class FixedReplicas:
    def __init__(self, value):
        self.value = value

    def replicas(self):
        return self.value


class Deleter:
    def __init__(self, resources):
        self.resources = resources

    def resources_need_delete(self):
        return self.resources


def make_mgr(client=None, spec=None):
    component = RbdComponent(
        metadata=ObjectMeta(name="rbd-api", namespace="rbd-system"),
        spec=spec or RbdComponentSpec(),
    )
    return ComponentManager(client or FakeClient(), FakeRecorder(), component)


def ready_pod(name):
    return Pod(name=name, conditions={"Ready": ConditionStatus.TRUE})


def package(status):
    pkg = RainbondPackage()
    pkg.status.conditions.append(
        PackageCondition(type=PackageConditionType.READY, status=status, message="working")
    )
    return pkg


def test_pod_is_ready():
    assert ready_pod("a").is_ready()
    assert not Pod(name="b", conditions={"Ready": ConditionStatus.FALSE}).is_ready()
    assert not Pod(name="c").is_ready()


def test_update_status_adds_ready_condition():
    client = FakeClient()
    mgr = make_mgr(client)
    mgr.update_status()
    _, cond = mgr.component.status.get_condition(RbdComponentConditionType.READY)
    assert cond.status == ConditionStatus.FALSE
    assert client.status_writes == 1


def test_update_status_retries_on_conflict():
    client = FakeClient(conflicts=2)
    make_mgr(client).update_status()
    assert client.status_writes == 3


def test_update_status_gives_up_after_repeated_conflicts():
    client = FakeClient(conflicts=10)
    with pytest.raises(ConflictError):
        make_mgr(client).update_status()
    assert client.status_writes == 5


def test_set_config_completed_condition():
    mgr = make_mgr()
    mgr.set_config_completed_condition()
    _, cond = mgr.component.status.get_condition(
        RbdComponentConditionType.CLUSTER_CONFIG_COMPLETED
    )
    assert cond.status == ConditionStatus.TRUE
    assert cond.reason == "ConfigCompleted"


@pytest.mark.parametrize(
    "pkg, status, reason, message",
    [
        (None, ConditionStatus.TRUE, "PackageReady", ""),
        (RainbondPackage(), ConditionStatus.FALSE, "PackageNotReady", ""),
        (package(PackageConditionStatus.RUNNING), ConditionStatus.FALSE, "PackageNotReady", "working"),
        (package(PackageConditionStatus.COMPLETED), ConditionStatus.TRUE, "PackageReady", ""),
    ],
)
def test_set_package_ready_condition(pkg, status, reason, message):
    mgr = make_mgr()
    mgr.set_package_ready_condition(pkg)
    _, cond = mgr.component.status.get_condition(
        RbdComponentConditionType.RAINBOND_PACKAGE_READY
    )
    assert (cond.status, cond.reason, cond.message) == (status, reason, message)


def test_check_prerequisites():
    offline = RainbondCluster(spec=RainbondClusterSpec(install_mode=InstallMode.OFFLINE))
    online = RainbondCluster(spec=RainbondClusterSpec(install_mode=InstallMode.FULL_ONLINE))
    pending = package(PackageConditionStatus.RUNNING)
    done = package(PackageConditionStatus.COMPLETED)

    assert make_mgr(spec=RbdComponentSpec(priority_component=True)).check_prerequisites(offline, pending)
    assert make_mgr().check_prerequisites(online, pending)
    assert not make_mgr().check_prerequisites(offline, pending)
    assert make_mgr().check_prerequisites(offline, done)


def test_check_package_status():
    check_package_status(package(PackageConditionStatus.COMPLETED))
    with pytest.raises(PackageNotCompletedError):
        check_package_status(package(PackageConditionStatus.FAILED))
    with pytest.raises(PackageNotCompletedError):
        check_package_status(None)


def test_generate_status_defaults_to_one_replica():
    mgr = make_mgr()
    mgr.generate_status([ready_pod("p1"), Pod(name="p2")])
    status = mgr.component.status
    assert status.replicas == 1
    assert status.ready_replicas == 1
    assert status.pods == ["p1", "p2"]
    _, cond = status.get_condition(RbdComponentConditionType.READY)
    assert cond.status == ConditionStatus.TRUE


def test_generate_status_uses_replicaser():
    mgr = make_mgr(spec=RbdComponentSpec(replicas=1))
    mgr.set_replicaser(FixedReplicas(3))
    mgr.generate_status([ready_pod("p1"), ready_pod("p2")])
    status = mgr.component.status
    assert status.replicas == 3
    assert status.ready_replicas == 2
    assert status.get_condition(RbdComponentConditionType.READY) == (-1, None)
    assert not mgr.is_component_ready()


def test_is_component_ready():
    mgr = make_mgr(spec=RbdComponentSpec(replicas=2))
    assert not mgr.is_component_ready()
    mgr.generate_status([ready_pod("p1"), ready_pod("p2")])
    assert mgr.is_component_ready()


def test_resource_create_if_not_exists():
    client = FakeClient()
    mgr = make_mgr(client)
    obj = Resource(kind="ConfigMap", metadata=ObjectMeta(name="cm", namespace="ns"))
    mgr.resource_create_if_not_exists(obj)
    mgr.resource_create_if_not_exists(obj)
    assert client.created == [obj]


def test_update_or_create_creates_and_requeues():
    client = FakeClient()
    obj = Resource(kind="Deployment", metadata=ObjectMeta(name="rbd-api", namespace="ns"))
    result = make_mgr(client).update_or_create_resource(obj)
    assert result == ReconcileResult(requeue=True)
    assert client.created == [obj]


def test_update_or_create_keeps_service_cluster_ip():
    client = FakeClient()
    client.add(
        Resource(
            kind="Service",
            metadata=ObjectMeta(name="svc", namespace="ns", resource_version="42"),
            spec={"clusterIP": "10.0.0.1"},
        )
    )
    new = Resource(kind="Service", metadata=ObjectMeta(name="svc", namespace="ns"), spec={"clusterIP": ""})
    result = make_mgr(client).update_or_create_resource(new)
    assert result == ReconcileResult()
    updated = client.updated[0]
    assert updated.spec["clusterIP"] == "10.0.0.1"
    assert updated.metadata.resource_version == "42"


@pytest.mark.parametrize(
    "kind, name",
    [("PersistentVolumeClaim", "data"), ("Job", "migrate"), ("StatefulSet", "rbd-db")],
)
def test_update_or_create_skips_immutable(kind, name):
    client = FakeClient()
    existing = Resource(kind=kind, metadata=ObjectMeta(name=name, namespace="ns"))
    client.add(existing)
    result = make_mgr(client).update_or_create_resource(
        Resource(kind=kind, metadata=ObjectMeta(name=name, namespace="ns"))
    )
    assert result == ReconcileResult()
    assert client.updated == []


def test_update_or_create_propagates_other_errors():
    class Broken(FakeClient):
        def get(self, kind, namespace, name):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        make_mgr(Broken()).update_or_create_resource(Resource(kind="Service"))


@pytest.mark.parametrize(
    "kind, name, expected",
    [
        ("PersistentVolumeClaim", "x", False),
        ("PersistentVolume", "x", False),
        ("StorageClass", "x", False),
        ("Job", "x", False),
        ("Deployment", "rbd-db", False),
        ("StatefulSet", "rbd-etcd", False),
        ("Deployment", "rbd-api", True),
    ],
)
def test_object_can_update(kind, name, expected):
    assert object_can_update(Resource(kind=kind, metadata=ObjectMeta(name=name))) is expected


def test_delete_resources_ignores_missing_and_none():
    client = FakeClient(delete_errors={"gone": NotFoundError("gone")})
    mgr = make_mgr(client)
    resources = [None, Resource(kind="Service", metadata=ObjectMeta(name="gone")),
                 Resource(kind="Service", metadata=ObjectMeta(name="old"))]
    assert mgr.delete_resources(Deleter(resources)) is None
    assert client.deleted == ["old"]


def test_delete_resources_records_new_failure_then_raises():
    client = FakeClient(delete_errors={"stuck": RuntimeError("denied")})
    mgr = make_mgr(client)
    deleter = Deleter([Resource(kind="Service", metadata=ObjectMeta(name="stuck"))])

    result = mgr.delete_resources(deleter)
    assert result == ReconcileResult(requeue=True)
    assert mgr.recorder.events == [("Warning", "ErrDeleteResource", "denied")]
    assert client.status_writes == 1
    _, cond = mgr.component.status.get_condition(RbdComponentConditionType.READY)
    assert (cond.status, cond.reason, cond.message) == (ConditionStatus.FALSE, "ErrDeleteResource", "denied")

    with pytest.raises(RuntimeError, match="denied"):
        mgr.delete_resources(deleter)
    assert len(mgr.recorder.events) == 1


def test_update_status_keeps_existing_ready_condition():
    mgr = make_mgr()
    mgr.component.status.update_condition(
        new_component_condition(RbdComponentConditionType.READY, ConditionStatus.TRUE, "Ready", "")
    )
    mgr.update_status()
    assert len(mgr.component.status.conditions) == 1
    assert mgr.component.status.conditions[0].status == ConditionStatus.TRUE