"""Resource types of the trigger.eifa.org/v1 API and an in-memory object client."""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

FAILED = "Failed"
SUCCESS = "Success"

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

WATCH_KINDS = ("ConfigMap", "Secret")
UPDATE_KINDS = ("Deployment", "DaemonSet")
TRIGGER_KIND = "EifaTrigger"

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with its version."""

    group: str
    version: str

    def __str__(self) -> str:
        return f"{self.group}/{self.version}"


GROUP_VERSION = GroupVersion(group="trigger.eifa.org", version="v1")


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(_TIME_FORMAT)


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class Condition:
    """One entry of a trigger's status history."""

    type: str
    status: str = CONDITION_TRUE
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Return the condition in its JSON shape."""
        return {
            "type": self.type,
            "status": self.status,
            "lastTransitionTime": _format_time(self.last_transition_time),
            "reason": self.reason,
            "message": self.message,
        }


def _condition_from_dict(data: Mapping[str, Any]) -> Condition:
    if "type" not in data:
        raise ValueError("condition requires a 'type'")
    raw_time = data.get("lastTransitionTime")
    return Condition(
        type=str(data["type"]),
        status=str(data.get("status", CONDITION_TRUE)),
        reason=str(data.get("reason", "")),
        message=str(data.get("message", "")),
        last_transition_time=_parse_time(raw_time) if raw_time else _now(),
    )


@dataclass
class WatchSelector:
    """Selects ConfigMaps or Secrets whose changes fire the trigger."""

    kind: str
    label_selector: dict[str, str] = field(default_factory=dict)


@dataclass
class UpdateSelector:
    """Selects Deployments or DaemonSets that are restarted by the trigger."""

    kind: str
    label_selector: dict[str, str] = field(default_factory=dict)


def _selector_to_dict(selector: WatchSelector | UpdateSelector) -> dict[str, Any]:
    return {"kind": selector.kind, "labelSelector": dict(selector.label_selector)}


def _selector_from_dict(cls: type, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError("selector must be a mapping")
    if "kind" not in data:
        raise ValueError("selector requires a 'kind'")
    labels = data.get("labelSelector") or {}
    if not isinstance(labels, Mapping):
        raise ValueError("labelSelector must be a mapping")
    return cls(kind=str(data["kind"]), label_selector={str(k): str(v) for k, v in labels.items()})


@dataclass
class EifaTriggerSpec:
    """Desired state: what to watch and what to restart."""

    watch: WatchSelector | None = None
    update: UpdateSelector | None = None
    watch_list: list[WatchSelector] = field(default_factory=list)
    update_list: list[UpdateSelector] = field(default_factory=list)


@dataclass
class EifaTriggerStatus:
    """Observed state: recent conditions and the latest message."""

    conditions: list[Condition] = field(default_factory=list)
    last_message: str = ""


@dataclass
class ObjectMeta:
    """Metadata shared by every stored object."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None


def _meta_to_dict(meta: ObjectMeta) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if meta.name:
        result["name"] = meta.name
    if meta.namespace:
        result["namespace"] = meta.namespace
    if meta.uid:
        result["uid"] = meta.uid
    if meta.generation:
        result["generation"] = meta.generation
    if meta.labels:
        result["labels"] = dict(meta.labels)
    if meta.annotations:
        result["annotations"] = dict(meta.annotations)
    if meta.finalizers:
        result["finalizers"] = list(meta.finalizers)
    if meta.creation_timestamp is not None:
        result["creationTimestamp"] = _format_time(meta.creation_timestamp)
    if meta.deletion_timestamp is not None:
        result["deletionTimestamp"] = _format_time(meta.deletion_timestamp)
    return result


def _meta_from_dict(data: Any) -> ObjectMeta:
    if not isinstance(data, Mapping):
        raise ValueError("metadata must be a mapping")
    created = data.get("creationTimestamp")
    deleted = data.get("deletionTimestamp")
    return ObjectMeta(
        name=str(data.get("name", "")),
        namespace=str(data.get("namespace", "")),
        uid=str(data.get("uid", "")),
        generation=int(data.get("generation", 0)),
        labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
        annotations={str(k): str(v) for k, v in (data.get("annotations") or {}).items()},
        finalizers=[str(f) for f in data.get("finalizers") or []],
        creation_timestamp=_parse_time(created) if created else None,
        deletion_timestamp=_parse_time(deleted) if deleted else None,
    )


@dataclass
class KubeObject:
    """A plain cluster object such as a ConfigMap, Secret, Deployment or DaemonSet."""

    kind: str
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)


@dataclass
class EifaTrigger:
    """The EifaTrigger custom resource."""

    kind: ClassVar[str] = TRIGGER_KIND
    api_version: ClassVar[str] = str(GROUP_VERSION)

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: EifaTriggerSpec = field(default_factory=EifaTriggerSpec)
    status: EifaTriggerStatus = field(default_factory=EifaTriggerStatus)

    def to_dict(self) -> dict[str, Any]:
        """Return the resource in its JSON shape."""
        spec: dict[str, Any] = {}
        if self.spec.watch is not None:
            spec["watch"] = _selector_to_dict(self.spec.watch)
        if self.spec.update is not None:
            spec["update"] = _selector_to_dict(self.spec.update)
        if self.spec.watch_list:
            spec["watchList"] = [_selector_to_dict(s) for s in self.spec.watch_list]
        if self.spec.update_list:
            spec["updateList"] = [_selector_to_dict(s) for s in self.spec.update_list]
        status: dict[str, Any] = {}
        if self.status.conditions:
            status["conditions"] = [c.to_dict() for c in self.status.conditions]
        if self.status.last_message:
            status["lastMessage"] = self.status.last_message
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": _meta_to_dict(self.metadata),
            "spec": spec,
            "status": status,
        }


def trigger_from_dict(data: Mapping[str, Any]) -> EifaTrigger:
    """Build an EifaTrigger from its JSON shape."""
    if not isinstance(data, Mapping):
        raise TypeError("trigger data must be a mapping")
    kind = data.get("kind", TRIGGER_KIND)
    if kind != TRIGGER_KIND:
        raise ValueError(f"expected kind {TRIGGER_KIND}, got {kind}")
    api_version = data.get("apiVersion", str(GROUP_VERSION))
    if api_version != str(GROUP_VERSION):
        raise ValueError(f"expected apiVersion {GROUP_VERSION}, got {api_version}")

    spec_data = data.get("spec") or {}
    if not isinstance(spec_data, Mapping):
        raise ValueError("spec must be a mapping")
    watch = spec_data.get("watch")
    update = spec_data.get("update")
    spec = EifaTriggerSpec(
        watch=_selector_from_dict(WatchSelector, watch) if watch is not None else None,
        update=_selector_from_dict(UpdateSelector, update) if update is not None else None,
        watch_list=[_selector_from_dict(WatchSelector, s) for s in spec_data.get("watchList") or []],
        update_list=[_selector_from_dict(UpdateSelector, s) for s in spec_data.get("updateList") or []],
    )

    status_data = data.get("status") or {}
    if not isinstance(status_data, Mapping):
        raise ValueError("status must be a mapping")
    status = EifaTriggerStatus(
        conditions=[_condition_from_dict(c) for c in status_data.get("conditions") or []],
        last_message=str(status_data.get("lastMessage", "")),
    )
    return EifaTrigger(
        metadata=_meta_from_dict(data.get("metadata") or {}),
        spec=spec,
        status=status,
    )


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(f"{kind} {namespace}/{name} not found")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class Client:
    """Thread-safe in-memory object store with API-server semantics.

    Generations start at 1 and grow when the spec changes, status is only
    written through ``update_status``, and deleting an object that carries
    finalizers only marks it until the last finalizer is removed.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str, str], Any] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(obj: Any) -> tuple[str, str, str]:
        return (obj.kind, obj.metadata.namespace, obj.metadata.name)

    def create(self, obj: Any) -> None:
        """Store a new object; raise ValueError if it already exists."""
        key = self._key(obj)
        with self._lock:
            if key in self._objects:
                raise ValueError(f"{key[0]} {key[1]}/{key[2]} already exists")
            meta = obj.metadata
            meta.generation = 1
            meta.uid = meta.uid or uuid.uuid4().hex
            meta.creation_timestamp = meta.creation_timestamp or _now()
            self._objects[key] = copy.deepcopy(obj)

    def get(self, kind: str, namespace: str, name: str) -> Any:
        """Return a copy of the stored object or raise NotFoundError."""
        with self._lock:
            try:
                return copy.deepcopy(self._objects[(kind, namespace, name)])
            except KeyError:
                raise NotFoundError(kind, namespace, name) from None

    def list(self, kind: str, namespace: str, labels: Mapping[str, str] | None = None) -> list[Any]:
        """Return copies of objects of a kind in a namespace matching all labels."""
        wanted = dict(labels or {})
        with self._lock:
            found = [
                copy.deepcopy(obj)
                for (obj_kind, obj_ns, _), obj in self._objects.items()
                if obj_kind == kind
                and obj_ns == namespace
                and all(obj.metadata.labels.get(k) == v for k, v in wanted.items())
            ]
        return sorted(found, key=lambda o: o.metadata.name)

    def update(self, obj: Any) -> None:
        """Write an object's metadata and spec back; status is kept as stored."""
        key = self._key(obj)
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(*key)
            new = copy.deepcopy(obj)
            if hasattr(stored, "status"):
                new.status = copy.deepcopy(stored.status)
            meta = new.metadata
            meta.uid = stored.metadata.uid
            meta.creation_timestamp = stored.metadata.creation_timestamp
            meta.deletion_timestamp = stored.metadata.deletion_timestamp
            meta.generation = stored.metadata.generation + (1 if new.spec != stored.spec else 0)
            obj.metadata.generation = meta.generation
            if meta.deletion_timestamp is not None and not meta.finalizers:
                del self._objects[key]
            else:
                self._objects[key] = new

    def update_status(self, obj: Any) -> None:
        """Write only the status of an object back."""
        key = self._key(obj)
        if not hasattr(obj, "status"):
            raise TypeError(f"{obj.kind} has no status")
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(*key)
            stored.status = copy.deepcopy(obj.status)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        """Delete an object, or mark it for deletion while finalizers remain."""
        key = (kind, namespace, name)
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(*key)
            if stored.metadata.finalizers:
                if stored.metadata.deletion_timestamp is None:
                    stored.metadata.deletion_timestamp = _now()
            else:
                del self._objects[key]