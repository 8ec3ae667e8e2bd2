import pytest

from k8s_mcp.backend.memory import InMemoryCluster
from k8s_mcp.client import Client
from k8s_mcp.errors import BackendError, LogStreamError, NotFound
from k8s_mcp.logs import collect_pod_logs


@pytest.fixture
def cluster() -> InMemoryCluster:
    cluster = InMemoryCluster()
    cluster.add_pod("default", "single", {"app": "starting\nready\n"})
    cluster.add_pod("default", "multi", {"app": "app line\n", "sidecar": "sidecar line\n"})
    return cluster


def test__collect_pod_logs__single_container_is_returned_without_header(cluster: InMemoryCluster) -> None:
    assert collect_pod_logs(cluster, "default", "single") == "starting\nready\n"
    assert all(stream.closed for stream in cluster.streams)


def test__collect_pod_logs__multiple_containers_get_a_header_each(cluster: InMemoryCluster) -> None:
    logs = collect_pod_logs(cluster, "default", "multi")

    assert logs == (
        "\n--- Logs for container app ---\napp line\n" "\n--- Logs for container sidecar ---\nsidecar line\n"
    )
    assert len(cluster.streams) == 2
    assert all(stream.closed for stream in cluster.streams)


def test__collect_pod_logs__one_failing_container_does_not_fail_the_call(cluster: InMemoryCluster) -> None:
    cluster.fail_log("default", "multi", "sidecar", BackendError("container is waiting to start"))

    logs = collect_pod_logs(cluster, "default", "multi")

    assert "\n--- Logs for container app ---\napp line\n" in logs
    assert "\n--- Error getting logs for container sidecar: container is waiting to start ---\n" in logs
    assert "sidecar line" not in logs
    assert len(cluster.streams) == 1
    assert cluster.streams[0].closed


def test__collect_pod_logs__read_failure_is_embedded_and_stream_closed(cluster: InMemoryCluster) -> None:
    cluster.fail_log("default", "multi", "app", BackendError("connection reset"), on_read=True)

    logs = collect_pod_logs(cluster, "default", "multi")

    assert "\n--- Logs for container app ---\nError reading logs: connection reset\n" in logs
    assert "\n--- Logs for container sidecar ---\nsidecar line\n" in logs
    assert len(cluster.streams) == 2
    assert all(stream.closed for stream in cluster.streams)


def test__collect_pod_logs__named_container(cluster: InMemoryCluster) -> None:
    assert collect_pod_logs(cluster, "default", "multi", "sidecar") == "sidecar line\n"
    assert cluster.calls["pod_containers"] == 0


def test__collect_pod_logs__named_container_open_failure_raises(cluster: InMemoryCluster) -> None:
    cluster.fail_log("default", "multi", "app", BackendError("forbidden"))
    with pytest.raises(LogStreamError, match="forbidden"):
        collect_pod_logs(cluster, "default", "multi", "app")


def test__collect_pod_logs__named_container_read_failure_raises_and_closes(cluster: InMemoryCluster) -> None:
    cluster.fail_log("default", "multi", "app", BackendError("connection reset"), on_read=True)
    with pytest.raises(LogStreamError, match="connection reset"):
        collect_pod_logs(cluster, "default", "multi", "app")
    assert cluster.streams[0].closed


def test__collect_pod_logs__returns_trailing_lines_only(cluster: InMemoryCluster) -> None:
    assert collect_pod_logs(cluster, "default", "single", tail_lines=1) == "ready\n"
    assert collect_pod_logs(cluster, "default", "single", tail_lines=None) == "starting\nready\n"


def test__Client__get_logs__missing_pod_raises_not_found(cluster: InMemoryCluster) -> None:
    client = Client(cluster.backend())
    with pytest.raises(NotFound) as excinfo:
        client.get_logs("default", "does-not-exist")
    assert excinfo.value.operation == "getPodsLogs"
    assert excinfo.value.kind == "Pod"
    assert excinfo.value.name == "does-not-exist"


def test__Client__get_logs__uses_configured_tail_lines(cluster: InMemoryCluster) -> None:
    client = Client(cluster.backend(), log_tail_lines=1)
    assert client.get_logs("default", "single") == "ready\n"
