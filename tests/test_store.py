import pytest

from eifatrigger.api import EifaTrigger, KubeObject, ObjectMeta
from eifatrigger.store import Store, get_store, object_key


def obj(kind, name, namespace="default"):
    return KubeObject(kind, ObjectMeta(name=name, namespace=namespace))


def trigger(name):
    return EifaTrigger(metadata=ObjectMeta(name=name, namespace="default"))


@pytest.fixture
def store():
    return Store()


def test_object_key_single():
    assert object_key(obj("ConfigMap", "cm")) == "default_cm"


def test_object_key_pair():
    assert object_key(obj("ConfigMap", "cm"), obj("Deployment", "dep")) == "default_cm:default_dep"


def test_update_links_watch_update_and_trigger(store):
    w = obj("ConfigMap", "cm")
    u1, u2 = obj("Deployment", "d1"), obj("DaemonSet", "d2")
    et = trigger("et")
    store.update(et, [w], [u1, u2])
    assert store.is_in_watch_list(w)
    assert store.get_update_list(w) == [u1, u2]
    assert store.get_et_list(w, u1) == [et]
    assert store.get_et_list(w, u2) == [et]


def test_unknown_objects(store):
    w = obj("ConfigMap", "cm")
    assert not store.is_in_watch_list(w)
    assert store.get_update_list(w) == []
    assert store.get_et_list(w, obj("Deployment", "d")) == []


def test_duplicates_are_not_appended(store):
    w = obj("ConfigMap", "cm")
    u = obj("Deployment", "d")
    same_name = obj("Deployment", "d")
    store.update(trigger("et"), [w], [u, same_name])
    assert store.get_update_list(w) == [u]
    assert len(store.get_et_list(w, u)) == 1


def test_update_replaces_previous_mappings(store):
    w = obj("ConfigMap", "cm")
    u = obj("Deployment", "d")
    first, second = trigger("first"), trigger("second")
    store.update(first, [w], [u])
    store.update(second, [w], [u])
    assert store.get_et_list(w, u) == [second]


def test_update_with_no_update_objects_clears_watch(store):
    w = obj("ConfigMap", "cm")
    store.update(trigger("et"), [w], [obj("Deployment", "d")])
    store.update(trigger("et"), [w], [])
    assert not store.is_in_watch_list(w)


def test_delete_removes_mappings(store):
    w1, w2 = obj("ConfigMap", "a"), obj("Secret", "b")
    u = obj("Deployment", "d")
    store.update(trigger("et"), [w1, w2], [u])
    store.delete([w1])
    assert not store.is_in_watch_list(w1)
    assert store.get_et_list(w1, u) == []
    assert store.is_in_watch_list(w2)


def test_namespaces_are_distinct(store):
    store.update(trigger("et"), [obj("ConfigMap", "cm", "ns1")], [obj("Deployment", "d", "ns1")])
    assert not store.is_in_watch_list(obj("ConfigMap", "cm", "ns2"))


def test_returned_lists_are_copies(store):
    w = obj("ConfigMap", "cm")
    store.update(trigger("et"), [w], [obj("Deployment", "d")])
    store.get_update_list(w).clear()
    assert len(store.get_update_list(w)) == 1


def test_get_store_shares_state_between_calls():
    w = obj("ConfigMap", "shared-cm", "singleton-ns")
    u = obj("Deployment", "shared-d", "singleton-ns")
    get_store().update(trigger("et"), [w], [u])
    try:
        assert get_store().is_in_watch_list(w)
        assert get_store().get_update_list(w) == [u]
    finally:
        get_store().delete([w])
    assert not get_store().is_in_watch_list(w)