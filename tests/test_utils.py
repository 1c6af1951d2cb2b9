import socket

import pytest

from eifatrigger.api import (
    FAILED,
    SUCCESS,
    Client,
    Condition,
    EifaTrigger,
    KubeObject,
    ObjectMeta,
)
from eifatrigger.utils import detect_kind, get_id, update_status


def test_get_id_prefers_pod_uid(monkeypatch):
    monkeypatch.setenv("POD_UID", "pod-uid-1")
    assert get_id() == "pod-uid-1"


def test_get_id_uses_hostname(monkeypatch):
    monkeypatch.delenv("POD_UID", raising=False)
    monkeypatch.setattr(socket, "gethostname", lambda: "node-a")
    assert get_id() == "node-a"


def test_get_id_fallback(monkeypatch):
    def broken():
        raise OSError("no host name")

    monkeypatch.delenv("POD_UID", raising=False)
    monkeypatch.setattr(socket, "gethostname", broken)
    assert get_id() == "eifa-trigger-controller-manager"


@pytest.fixture
def stored():
    client = Client()
    et = EifaTrigger(metadata=ObjectMeta(name="et", namespace="default"))
    client.create(et)
    return client, et


def test_update_status_records_condition(stored):
    client, et = stored
    update_status(client, et, Condition(type=SUCCESS, message="done"))
    saved = client.get("EifaTrigger", "default", "et")
    assert saved.status.last_message == "done"
    assert [c.type for c in saved.status.conditions] == [SUCCESS]


def test_update_status_keeps_last_ten(stored):
    client, et = stored
    for i in range(12):
        update_status(client, et, Condition(type=FAILED, message=f"m{i}"))
    assert len(et.status.conditions) == 10
    assert [c.message for c in et.status.conditions] == [f"m{i}" for i in range(2, 12)]
    assert et.status.last_message == "m11"
    assert client.get("EifaTrigger", "default", "et").status == et.status


def test_update_status_none_does_nothing(stored):
    client, et = stored
    update_status(client, et, None)
    assert et.status.conditions == []
    assert client.get("EifaTrigger", "default", "et").status.last_message == ""


@pytest.mark.parametrize("kind", ["ConfigMap", "Secret", "Deployment", "DaemonSet"])
def test_detect_known_kinds(kind):
    assert detect_kind(KubeObject(kind)) == kind


def test_detect_unknown_kinds():
    assert detect_kind(KubeObject("StatefulSet")) == "Unknown"
    assert detect_kind(EifaTrigger()) == "Unknown"