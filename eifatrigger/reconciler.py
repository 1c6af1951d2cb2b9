"""Reconciliation of EifaTrigger resources and restarts on watched changes."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from eifatrigger.api import (
    CONDITION_TRUE,
    FAILED,
    SUCCESS,
    TRIGGER_KIND,
    Client,
    Condition,
    EifaTrigger,
    NotFoundError,
    UpdateSelector,
    WatchSelector,
)
from eifatrigger.store import get_store
from eifatrigger.utils import detect_kind, get_id, update_status

logger = logging.getLogger(__name__)

ANNOTATION_OBSERVED_GENERATION = "eifa-trigger-operator-manager/observed-generation"
ANNOTATION_OBSERVER_UID = "eifa-trigger-operator-manager/observer-uid"
ET_FINALIZER = "eifa-trigger.eifa.org/finalizer"
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

_INTEGER = re.compile(r"[+-]?\d+")
_LABEL_NAME = re.compile(r"[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?")
_DNS_SUBDOMAIN = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*")


class EventType(str, enum.Enum):
    """What happened to a trigger, as seen by the reconciler."""

    AFTER_CREATE = "after-create"
    ON_UNOBSERVED_UPDATE = "on-unobserved-update"
    ON_OBSERVED_UPDATE = "on-observed-update"
    BEFORE_DELETE = "before-delete"
    AFTER_DELETE = "after-delete"
    UNKNOWN = "unknown"


def _label_error(key: str, value: str) -> str | None:
    prefix, sep, name = key.rpartition("/")
    if sep:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN.fullmatch(prefix):
            return f"invalid label key prefix {prefix!r}"
    if not name or len(name) > 63 or not _LABEL_NAME.fullmatch(name):
        return f"invalid label key {key!r}"
    if value and (len(value) > 63 or not _LABEL_NAME.fullmatch(value)):
        return f"invalid label value {value!r} for key {key!r}"
    return None


def _validate_labels(labels: Mapping[str, str], what: str) -> dict[str, str]:
    for key, value in labels.items():
        problem = _label_error(key, value)
        if problem is not None:
            raise ValueError(f"invalid {what} label selector: {problem}")
    return dict(labels)


def _now_rfc3339() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds").replace("+00:00", "Z")


def _failed(reason: str, message: str) -> Condition:
    return Condition(type=FAILED, status=CONDITION_TRUE, reason=reason, message=message)


def _update_et_status(client: Client, et_list: list[Any], cond: Condition) -> None:
    for et in et_list:
        if isinstance(et, EifaTrigger):
            try:
                update_status(client, et, cond)
            except Exception:
                logger.exception("failed to update trigger status")


def on_change(client: Client, watch_obj: Any) -> None:
    """Restart every workload that depends on a changed watch object."""
    store = get_store()
    for update_obj in store.get_update_list(watch_obj):
        et_list = store.get_et_list(watch_obj, update_obj)
        meta = update_obj.metadata
        try:
            current = client.get(update_obj.kind, meta.namespace, meta.name)
        except Exception as exc:
            logger.error("failed to get update object: %s", exc)
            _update_et_status(client, et_list, _failed("GetUpdateObjectError", str(exc)))
            continue

        if current.kind not in ("Deployment", "DaemonSet"):
            _update_et_status(
                client,
                et_list,
                _failed("InvalidUpdateObjectKind", "update object must be Deployment or DaemonSet"),
            )
            continue

        template = current.spec.setdefault("template", {})
        annotations = template.setdefault("metadata", {}).setdefault("annotations", {})
        annotations[RESTARTED_AT_ANNOTATION] = _now_rfc3339()

        try:
            client.update(current)
        except Exception as exc:
            logger.error("failed to restart update object: %s", exc)
            _update_et_status(client, et_list, _failed("UpdateObjectRestartError", str(exc)))
            continue

        message = (
            f"successfully update {detect_kind(current)}:{current.metadata.name} "
            f"because of changes at {detect_kind(watch_obj)}:{watch_obj.metadata.name}"
        )
        _update_et_status(
            client,
            et_list,
            Condition(type=SUCCESS, status=CONDITION_TRUE, reason="UpdateObjectRestart", message=message),
        )


def watch_predicate(watch_obj: Any) -> bool:
    """Whether changes to this object are of interest to any trigger."""
    return get_store().is_in_watch_list(watch_obj)


class EifaTriggerReconciler:
    """Brings the store and cluster state in line with EifaTrigger resources."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def reconcile(self, namespace: str, name: str) -> None:
        """Handle one trigger; errors are recorded on its status and re-raised."""
        try:
            et, event = self.fetch(namespace, name)
        except Exception:
            logger.exception("fetch failed")
            raise

        try:
            if event is EventType.AFTER_CREATE:
                self.after_create(et)
            elif event is EventType.ON_UNOBSERVED_UPDATE:
                self.on_update(et)
            elif event is EventType.BEFORE_DELETE:
                self.before_delete(et)
        except Exception as exc:
            logger.error("handler failed: %s", exc)
            try:
                self.update_status(et, _failed("ReconcileHandlerError", str(exc)))
            except Exception:
                logger.exception("failed to record handler error")
            raise

    def fetch(self, namespace: str, name: str) -> tuple[EifaTrigger | None, EventType]:
        """Load a trigger and classify what happened to it."""
        try:
            et = self.client.get(TRIGGER_KIND, namespace, name)
        except NotFoundError:
            return None, EventType.AFTER_DELETE

        if et.metadata.deletion_timestamp is not None:
            return et, EventType.BEFORE_DELETE

        annotations = et.metadata.annotations
        is_observer = annotations.get(ANNOTATION_OBSERVER_UID, "") == get_id()
        raw = annotations.get(ANNOTATION_OBSERVED_GENERATION, "")
        if raw == "":
            observed = 0
        elif _INTEGER.fullmatch(raw):
            observed = int(raw)
        else:
            raise ValueError(f"invalid observed generation {raw!r}")

        if observed == 0:
            return et, EventType.AFTER_CREATE
        if observed == et.metadata.generation and is_observer:
            return et, EventType.ON_OBSERVED_UPDATE
        return et, EventType.ON_UNOBSERVED_UPDATE

    def modify(self, et: EifaTrigger) -> None:
        """Stamp the observed generation and this controller's id, then save."""
        et.metadata.annotations[ANNOTATION_OBSERVED_GENERATION] = str(et.metadata.generation)
        et.metadata.annotations[ANNOTATION_OBSERVER_UID] = get_id()
        self.client.update(et)

    def fetch_watch_update_lists(self, et: EifaTrigger) -> tuple[list[Any], list[Any]]:
        """Watch objects and update objects selected by the trigger."""
        return self.fetch_watch_list(et), self.fetch_update_list(et)

    def fetch_update_list(self, et: EifaTrigger) -> list[Any]:
        """Deployments and DaemonSets selected by the trigger."""
        selectors: list[UpdateSelector] = (
            [et.spec.update] if et.spec.update is not None else list(et.spec.update_list)
        )
        if not selectors:
            raise ValueError("one of the .Spec.Update or .Spec.UpdateList should be filled")
        found: list[Any] = []
        for selector in selectors:
            labels = _validate_labels(selector.label_selector, "update")
            if selector.kind not in ("Deployment", "DaemonSet"):
                raise ValueError(
                    f"invalid .Spec.Update.Kind or .Spec.UpdateList.Kind, {selector.kind}"
                )
            found.extend(self.client.list(selector.kind, et.metadata.namespace, labels))
        return found

    def fetch_watch_list(self, et: EifaTrigger) -> list[Any]:
        """ConfigMaps and Secrets selected by the trigger."""
        selectors: list[WatchSelector] = (
            [et.spec.watch] if et.spec.watch is not None else list(et.spec.watch_list)
        )
        if not selectors:
            raise ValueError("one of the .Spec.Watch or .Spec.WatchList should be filled")
        found: list[Any] = []
        for selector in selectors:
            labels = _validate_labels(selector.label_selector, "watch")
            if selector.kind not in ("ConfigMap", "Secret"):
                raise ValueError(
                    f"invalid .Spec.Watch.Kind or .Spec.WatchList.Kind, {selector.kind}"
                )
            found.extend(self.client.list(selector.kind, et.metadata.namespace, labels))
        return found

    def update_status(self, et: EifaTrigger, cond: Condition | None) -> None:
        """Record a condition on the trigger."""
        update_status(self.client, et, cond)

    def after_create(self, et: EifaTrigger) -> None:
        """Add the finalizer and register the trigger's links."""
        if ET_FINALIZER not in et.metadata.finalizers:
            et.metadata.finalizers.append(ET_FINALIZER)
        watch_list, update_list = self.fetch_watch_update_lists(et)
        get_store().update(et, watch_list, update_list)
        self.modify(et)

    def before_delete(self, et: EifaTrigger) -> None:
        """Drop the trigger's links and release its finalizer."""
        if ET_FINALIZER not in et.metadata.finalizers:
            return
        watch_list = self.fetch_watch_list(et)
        get_store().delete(watch_list)
        et.metadata.finalizers = [f for f in et.metadata.finalizers if f != ET_FINALIZER]
        self.modify(et)

    def on_update(self, et: EifaTrigger) -> None:
        """Refresh the trigger's links after its spec changed."""
        watch_list, update_list = self.fetch_watch_update_lists(et)
        get_store().update(et, watch_list, update_list)
        self.modify(et)


class WatchHandler:
    """Reacts to events on watched ConfigMaps and Secrets."""

    # Only modifications of a watched object lead to restarts.
    _REACTS_TO = frozenset({"update"})

    def __init__(self, client: Client) -> None:
        self.client = client

    def _dispatch(self, event: str, obj: Any) -> bool:
        """Restart dependants of obj if this event kind calls for it."""
        if event not in self._REACTS_TO:
            return False
        on_change(self.client, obj)
        return True

    def create(self, obj: Any) -> bool:
        """Creation of a watched object causes no restart."""
        return self._dispatch("create", obj)

    def delete(self, obj: Any) -> bool:
        """Deletion of a watched object causes no restart."""
        return self._dispatch("delete", obj)

    def generic(self, obj: Any) -> bool:
        """Generic events cause no restart."""
        return self._dispatch("generic", obj)

    def update(self, old_obj: Any, new_obj: Any) -> bool:
        """Restart dependants of the changed object."""
        return self._dispatch("update", new_obj)