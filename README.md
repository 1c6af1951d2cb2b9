# eifatrigger

Reconciliation logic for `EifaTrigger` resources (group `trigger.eifa.org`,
version `v1`): when a watched ConfigMap or Secret changes, every matching
Deployment or DaemonSet in the same namespace is restarted by stamping its
pod template with a `kubectl.kubernetes.io/restartedAt` annotation.

## Install

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `eifatrigger.api` – the resource types (`EifaTrigger`, `EifaTriggerSpec`,
  `EifaTriggerStatus`, `WatchSelector`, `UpdateSelector`, `Condition`,
  `ObjectMeta`, `KubeObject`, `GroupVersion`), `trigger_from_dict` /
  `EifaTrigger.to_dict` for the JSON shape, and `Client`, a thread-safe
  in-memory object store that behaves like an API server.
- `eifatrigger.store` – `Store`, the index from watched objects to the
  workloads and triggers that depend on them; `get_store()` returns the
  process-wide instance and `object_key()` builds its keys.
- `eifatrigger.utils` – `get_id()`, `update_status()` and `detect_kind()`.
- `eifatrigger.reconciler` – `EifaTriggerReconciler`, `WatchHandler`,
  `on_change()`, `watch_predicate()` and the `EventType` enum.

## The resource

An `EifaTrigger` names what to watch and what to restart, either as a single
selector or as a list:

```python
from eifatrigger.api import trigger_from_dict

et = trigger_from_dict({
    "apiVersion": "trigger.eifa.org/v1",
    "kind": "EifaTrigger",
    "metadata": {"name": "reload-web", "namespace": "default"},
    "spec": {
        "watch": {"kind": "ConfigMap", "labelSelector": {"app": "web"}},
        "updateList": [
            {"kind": "Deployment", "labelSelector": {"app": "web"}},
            {"kind": "DaemonSet", "labelSelector": {"app": "web-agent"}},
        ],
    },
})
```

Watch kinds are `ConfigMap` and `Secret`; update kinds are `Deployment` and
`DaemonSet`. Either `watch` or `watchList`, and either `update` or
`updateList`, must be given; otherwise, or for any other kind or an invalid
label in a selector, the reconciler raises `ValueError`.

## The client

`Client` keeps objects in memory, keyed by kind, namespace and name:

- `create` sets the generation to 1 and fills in a uid and creation time;
- `get` and `list` return copies (`list` filters by namespace and by labels,
  sorted by name); a missing object raises `NotFoundError`;
- `update` writes metadata and spec back, keeps the stored status and raises
  the generation only when the spec changed;
- `update_status` writes only the status;
- `delete` removes an object at once, or, while it carries finalizers, only
  sets its deletion timestamp; the object goes away when an `update` leaves
  it with no finalizers.

## Running the reconciler

```python
from eifatrigger.api import Client, KubeObject, ObjectMeta
from eifatrigger.reconciler import EifaTriggerReconciler, WatchHandler, watch_predicate

client = Client()
client.create(KubeObject(
    kind="ConfigMap",
    metadata=ObjectMeta(name="web-config", namespace="default", labels={"app": "web"}),
))
client.create(KubeObject(
    kind="Deployment",
    metadata=ObjectMeta(name="web", namespace="default", labels={"app": "web"}),
))
client.create(et)

reconciler = EifaTriggerReconciler(client)
reconciler.reconcile("default", "reload-web")

config_map = client.get("ConfigMap", "default", "web-config")
handler = WatchHandler(client)
if watch_predicate(config_map):
    handler.update(config_map, config_map)

deployment = client.get("Deployment", "default", "web")
print(deployment.spec["template"]["metadata"]["annotations"])
```

`reconcile` classifies what happened to the trigger (`EventType`): just
created, updated by someone else, updated by this controller, being deleted,
or already gone. On creation and on outside updates it registers the
trigger's watch → update links in the shared store and stamps the trigger
with the observed generation and this controller's id; on creation it also
adds the `eifa-trigger.eifa.org/finalizer` finalizer, and before deletion it
drops the links and removes the finalizer. Its own updates and already
deleted triggers are left alone. A failing handler is recorded as a `Failed`
condition with reason `ReconcileHandlerError` and the error is raised again.

`WatchHandler.update` calls `on_change` for the new object and returns
`True`; `create`, `delete` and `generic` do nothing and return `False`.
`on_change` restarts each dependent workload and records a `Success`
condition (`UpdateObjectRestart`) or a `Failed` one on every trigger that
links the two. A trigger's status keeps its last ten conditions, and
`lastMessage` holds the newest message.

The controller id comes from `eifatrigger.utils.get_id()`: the `POD_UID`
environment variable, else the host name.

## What the package does not do

It does not connect to a real cluster: the only client is the in-memory
`Client`. There is no command to start, no long-running manager that
watches for events by itself, no leader election and no health or metrics
endpoints. Callers feed events to `EifaTriggerReconciler.reconcile` and
`WatchHandler` themselves.