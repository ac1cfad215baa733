# rainbondop

Python models and helpers for managing a Rainbond installation on Kubernetes:

- the custom resources as dataclasses, each with its spec, status and
  conditions: `RainbondCluster` (in `rainbondop.cluster`), `RbdComponent`
  (in `rainbondop.component`), `RainbondPackage` (in `rainbondop.rbdpackage`)
  and `RainbondVolume` (in `rainbondop.volume`). Shared pieces such as
  `ConditionStatus`, `ObjectMeta` and `GroupVersion` are in `rainbondop.meta`;
- `ComponentManager` (in `rainbondop.componentmgr`), which keeps an
  `RbdComponent`'s status up to date and creates, updates and deletes the
  resources that belong to it through a client object you supply;
- prechecks in `rainbondop.precheck`, which report on the environment before
  installation. Each checker's `check()` returns a `RainbondClusterCondition`.

## Installation

```
pip install rainbondop
```

The database precheck uses `pymysql` to connect to MySQL.

## Conditions

Conditions are recorded on a status object. `update_condition` reports whether
anything changed, and keeps the previous transition time when the status is
unchanged:

```python
from rainbondop.cluster import (
    RainbondClusterConditionType,
    RainbondClusterStatus,
    new_cluster_condition,
)
from rainbondop.meta import ConditionStatus

status = RainbondClusterStatus()
cond = new_cluster_condition(
    RainbondClusterConditionType.STORAGE, ConditionStatus.FALSE, "InProgress", "")
changed = status.update_condition(cond)   # True: the condition was added
index, found = status.get_condition(RainbondClusterConditionType.STORAGE)
status.delete_condition(RainbondClusterConditionType.STORAGE)
```

`get_condition` returns `(-1, None)` when no condition of that type exists.
`RbdComponentStatus` and `RainbondVolumeStatus` offer the same
`get_condition`, `set_condition` and `update_condition` methods;
`RainbondPackageStatus` offers `get_condition`.

## Gateway addresses

```python
from rainbondop.cluster import RainbondCluster

cluster = RainbondCluster()
cluster.spec.gateway_ingress_ips = ["192.0.2.10"]
cluster.gateway_ingress_ip()        # "192.0.2.10"
cluster.gateway_ingress_ips()       # ["192.0.2.10"]
```

When no ingress IPs are set, the internal IP of the first gateway node is
used instead. `inner_gateway_ingress_ip()` prefers the gateway node's
internal IP over the ingress IPs.

## Component management

`ComponentManager(client, recorder, component)` works through two objects you
provide:

- a client with `get(kind, namespace, name)`, `create(obj)`, `update(obj)`,
  `delete(obj, grace_period_seconds)` and `update_status(component)`. `get`
  and `delete` raise `rainbondop.componentmgr.NotFoundError` for a missing
  object; `update_status` may raise `ConflictError`, which is retried a few
  times;
- a recorder with `event(obj, event_type, reason, message)`.

Resources are described by `Resource(kind, metadata, spec)` and pods by
`Pod(name, namespace, conditions)`. `generate_status(pods)` fills in replica
counts, the pod list and the Ready condition; `update_or_create_resource`
returns a `ReconcileResult`. Persistent volume claims, persistent volumes,
storage classes, jobs and the objects named `rbd-db` and `rbd-etcd` are never
updated once they exist (`object_can_update`).

## Prechecks

```python
from rainbondop.cluster import Database, RainbondClusterConditionType
from rainbondop.precheck.database import DatabasePrechecker
from rainbondop.precheck.dns import nslookup

password = "password"
db = Database(host="127.0.0.1", port=3306, username="user",
              password=password, name="region")
condition = DatabasePrechecker(RainbondClusterConditionType.DATABASE_REGION, db).check()
print(condition.status, condition.reason, condition.message)

nslookup("localhost")   # list of addresses; raises OSError if the name does not resolve
```

The other checkers are:

- `DNSPrechecker(cluster)` checks that the domain of
  `cluster.spec.rainbond_image_repository` resolves.
- `MemoryPrechecker(client)` checks that the schedulable nodes that are not
  tainted masters have at least 2 GiB of allocatable memory between them.
- `K8sVersionPrechecker(client)` checks the first kubelet version the nodes
  report against `v1.13.0`, comparing the two as plain strings.

These two take a client with a `list_nodes()` method that returns
`rainbondop.precheck.memory.Node` objects.

## What this package does not do

It does not connect to a Kubernetes API server, watch resources or run a
reconcile loop; all cluster access goes through the client objects you pass
in. It has no command-line program. Apart from the database, DNS, memory and
kubernetes-version checks, it has no prechecks (for example none for the
container network, image repository, storage or the health of kube-system).