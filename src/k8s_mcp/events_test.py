import pytest

from k8s_mcp.backend.memory import InMemoryCluster
from k8s_mcp.client import Client
from k8s_mcp.events import EventRecord
from k8s_mcp.manifest import Manifest


@pytest.fixture
def cluster() -> InMemoryCluster:
    cluster = InMemoryCluster()
    cluster.add_object(
        "Event",
        {
            "metadata": {"name": "web.1", "namespace": "default", "labels": {"app": "web"}},
            "reason": "BackOff",
            "message": "Back-off restarting failed container",
            "source": {"component": "kubelet"},
            "type": "Warning",
            "count": 3,
            "firstTimestamp": "2024-01-01T00:00:00Z",
            "lastTimestamp": "2024-01-01T00:05:00Z",
        },
    )
    cluster.add_object(
        "Event",
        {
            "metadata": {"name": "db.1", "namespace": "storage"},
            "reason": "Scheduled",
            "message": "Successfully assigned storage/db to worker-1",
            "type": "Normal",
        },
    )
    return cluster


def test__Client__get_events__in_namespace(cluster: InMemoryCluster) -> None:
    events = Client(cluster.backend()).get_events("default")

    assert events == [
        EventRecord(
            name="web.1",
            namespace="default",
            reason="BackOff",
            message="Back-off restarting failed container",
            source="kubelet",
            type="Warning",
            count=3,
            firstTime="2024-01-01T00:00:00Z",
            lastTime="2024-01-01T00:05:00Z",
        )
    ]
    assert events[0].dump()["firstTime"] == "2024-01-01T00:00:00Z"


def test__Client__get_events__all_namespaces(cluster: InMemoryCluster) -> None:
    events = Client(cluster.backend()).get_events()
    assert [event.name for event in events] == ["web.1", "db.1"]
    assert events[1].source is None
    assert events[1].firstTime is None


def test__Client__get_events__label_selector(cluster: InMemoryCluster) -> None:
    events = Client(cluster.backend()).get_events("", "app=web")
    assert [event.name for event in events] == ["web.1"]


def test__EventRecord__from_manifest__falls_back_to_event_time() -> None:
    record = EventRecord.from_manifest(
        Manifest({"metadata": {"name": "x"}, "eventTime": "2024-02-01T10:00:00.000000Z", "reason": "Created"})
    )
    assert record.firstTime == "2024-02-01T10:00:00.000000Z"
    assert record.lastTime == "2024-02-01T10:00:00.000000Z"
    assert record.namespace is None
