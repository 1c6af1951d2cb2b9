"""Index from watched objects to the workloads and triggers that depend on them."""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable
from typing import Any


def object_key(*objs: Any) -> str:
    """Key made from the namespace and name of each object."""
    return ":".join(f"{o.metadata.namespace}_{o.metadata.name}" for o in objs)


class Store:
    """Thread-safe mapping of watch objects to update objects and triggers."""

    def __init__(self) -> None:
        self._watch_to_update: dict[str, list[Any]] = {}
        self._pair_to_triggers: dict[str, list[Any]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _append(mapping: dict[str, list[Any]], key: str, obj: Any) -> None:
        entries = mapping.setdefault(key, [])
        new_key = object_key(obj)
        if all(object_key(existing) != new_key for existing in entries):
            entries.append(obj)

    def delete(self, watch_list: Iterable[Any]) -> None:
        """Forget every mapping that starts at the given watch objects."""
        with self._lock:
            for watch_obj in watch_list:
                watch_key = object_key(watch_obj)
                for update_obj in self._watch_to_update.get(watch_key, []):
                    self._pair_to_triggers.pop(object_key(watch_obj, update_obj), None)
                self._watch_to_update.pop(watch_key, None)

    def update(self, et: Any, watch_list: Iterable[Any], update_list: Iterable[Any]) -> None:
        """Replace the mappings of the watch objects with links to the trigger."""
        watch_list = list(watch_list)
        update_list = list(update_list)
        with self._lock:
            self.delete(watch_list)
            for watch_obj, update_obj in itertools.product(watch_list, update_list):
                self._append(self._watch_to_update, object_key(watch_obj), update_obj)
                self._append(self._pair_to_triggers, object_key(watch_obj, update_obj), et)

    def is_in_watch_list(self, watch_obj: Any) -> bool:
        """Whether any update object depends on this watch object."""
        with self._lock:
            return bool(self._watch_to_update.get(object_key(watch_obj)))

    def get_update_list(self, watch_obj: Any) -> list[Any]:
        """Update objects that depend on this watch object."""
        with self._lock:
            return list(self._watch_to_update.get(object_key(watch_obj), []))

    def get_et_list(self, watch_obj: Any, update_obj: Any) -> list[Any]:
        """Triggers that link this watch object to this update object."""
        with self._lock:
            return list(self._pair_to_triggers.get(object_key(watch_obj, update_obj), []))


_STORE = Store()


def get_store() -> Store:
    """The process-wide store."""
    return _STORE