import pytest

from k8s_mcp.backend.memory import InMemoryCluster
from k8s_mcp.client import Client
from k8s_mcp.errors import MetricsUnavailable, NotFound


@pytest.fixture
def cluster() -> InMemoryCluster:
    return InMemoryCluster()


def test__Client__get_pod_metrics(cluster: InMemoryCluster) -> None:
    cluster.set_pod_metrics("default", "web", {"app": ("12m", "34Mi"), "sidecar": ("1m", "8Mi")})

    metrics = Client(cluster.backend()).get_pod_metrics("default", "web")

    assert metrics.dump() == {
        "podName": "web",
        "namespace": "default",
        "timestamp": "2024-01-01T00:00:00Z",
        "window": "30s",
        "containers": [
            {"name": "app", "cpu": "12m", "memory": "34Mi"},
            {"name": "sidecar", "cpu": "1m", "memory": "8Mi"},
        ],
    }


def test__Client__get_node_metrics(cluster: InMemoryCluster) -> None:
    cluster.set_node_metrics("worker-1", "250m", "1024Mi")

    metrics = Client(cluster.backend()).get_node_metrics("worker-1")

    assert metrics.dump() == {
        "nodeName": "worker-1",
        "usage": {"cpu": "250m", "memory": "1024Mi"},
        "timestamp": "2024-01-01T00:00:00Z",
        "window": "20.5s",
    }


def test__Client__get_pod_metrics__missing_snapshot_raises_not_found(cluster: InMemoryCluster) -> None:
    with pytest.raises(NotFound) as excinfo:
        Client(cluster.backend()).get_pod_metrics("default", "web")
    assert excinfo.value.operation == "getPodMetrics"
    assert excinfo.value.name == "web"


def test__Client__metrics__unavailable_api(cluster: InMemoryCluster) -> None:
    cluster.metrics_available = False
    client = Client(cluster.backend())

    with pytest.raises(MetricsUnavailable):
        client.get_pod_metrics("default", "web")
    with pytest.raises(MetricsUnavailable) as excinfo:
        client.get_node_metrics("worker-1")
    assert excinfo.value.operation == "getNodeMetrics"
