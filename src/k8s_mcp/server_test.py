import asyncio
import json
import threading
import time
from typing import Any
from unittest.mock import MagicMock

import pytest

from k8s_mcp.backend.memory import InMemoryCluster
from k8s_mcp.client import Client
from k8s_mcp.discovery import ResourceLocator
from k8s_mcp.errors import NotFound
from k8s_mcp.manifest import Manifest
from k8s_mcp.server import KubernetesTools, create_server
from k8s_mcp.tools.helm import Helm

TOOL_NAMES = {
    "getAPIResources",
    "listResources",
    "getResource",
    "describeResource",
    "createResource",
    "deleteResource",
    "getPodsLogs",
    "getPodMetrics",
    "getNodeMetrics",
    "getEvents",
    "helmInstall",
    "helmUpgrade",
    "helmUninstall",
    "helmList",
    "helmGet",
    "helmHistory",
    "helmRollback",
    "helmRepoAdd",
    "helmRepoList",
}


class BlockingCluster(InMemoryCluster):
    """
    Blocks every object read until #release is set.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.release = threading.Event()
        self.finished = threading.Event()

    def get_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> Manifest:
        try:
            self.release.wait(10)
            return super().get_object(locator, name, namespace)
        finally:
            self.finished.set()


@pytest.fixture
def cluster() -> InMemoryCluster:
    cluster = InMemoryCluster()
    cluster.add_pod("default", "web", {"app": "listening on :8080\n"})
    return cluster


@pytest.fixture
def helm() -> MagicMock:
    return MagicMock(spec=Helm)


@pytest.fixture
def tools(cluster: InMemoryCluster, helm: MagicMock) -> KubernetesTools:
    return KubernetesTools(Client(cluster.backend()), helm)


def test__create_server__registers_all_tools(cluster: InMemoryCluster, helm: MagicMock) -> None:
    server = create_server(Client(cluster.backend()), helm)
    tools = {tool.name: tool for tool in asyncio.run(server.list_tools())}

    assert set(tools) == TOOL_NAMES

    schema = tools["getResource"].inputSchema
    assert set(schema["properties"]) == {"kind", "name", "namespace"}
    assert set(schema["required"]) == {"kind", "name"}


def test__KubernetesTools__resource_lifecycle(tools: KubernetesTools) -> None:
    manifest = json.dumps({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "settings"}})

    created = json.loads(asyncio.run(tools.create_resource("ConfigMap", manifest, "default")))
    assert created["metadata"]["namespace"] == "default"

    listed = json.loads(asyncio.run(tools.list_resources("ConfigMap", "default")))
    assert [obj["metadata"]["name"] for obj in listed] == ["settings"]

    described = json.loads(asyncio.run(tools.describe_resource("ConfigMap", "settings", "default")))
    assert described["metadata"]["uid"] == created["metadata"]["uid"]

    asyncio.run(tools.delete_resource("ConfigMap", "settings", "default"))
    with pytest.raises(NotFound):
        asyncio.run(tools.get_resource("ConfigMap", "settings", "default"))


def test__KubernetesTools__get_pods_logs_returns_plain_text(tools: KubernetesTools) -> None:
    assert asyncio.run(tools.get_pods_logs("web")) == "listening on :8080\n"


def test__KubernetesTools__get_api_resources(tools: KubernetesTools) -> None:
    resources = json.loads(asyncio.run(tools.get_api_resources(includeNamespaceScoped=False)))
    assert {resource["kind"] for resource in resources} == {"Namespace", "Node", "ClusterRole"}


def test__KubernetesTools__get_node_metrics(cluster: InMemoryCluster, tools: KubernetesTools) -> None:
    cluster.set_node_metrics("worker-1", "100m", "512Mi")
    metrics = json.loads(asyncio.run(tools.get_node_metrics("worker-1")))
    assert metrics["usage"] == {"cpu": "100m", "memory": "512Mi"}


def test__KubernetesTools__concurrent_calls(cluster: InMemoryCluster, tools: KubernetesTools) -> None:
    async def main() -> list[str]:
        return await asyncio.gather(*(tools.list_resources(kind) for kind in ["Pod", "Service", "Deployment"] * 5))

    results = [json.loads(result) for result in asyncio.run(main())]
    assert [len(result) for result in results] == [1, 0, 0] * 5


def test__KubernetesTools__helm_forwarding(helm: MagicMock, tools: KubernetesTools) -> None:
    helm.list_releases.return_value = [{"name": "web", "namespace": "apps"}]
    assert json.loads(asyncio.run(tools.helm_list())) == [{"name": "web", "namespace": "apps"}]
    helm.list_releases.assert_called_once_with(None)

    helm.install.return_value = {"name": "web"}
    asyncio.run(tools.helm_install("web", "nginx", "", "https://charts.example.com", {"replicaCount": 2}))
    helm.install.assert_called_once_with("default", "web", "nginx", "https://charts.example.com", {"replicaCount": 2})

    result = json.loads(asyncio.run(tools.helm_uninstall("web", "apps")))
    assert result["status"] == "success"
    helm.uninstall.assert_called_once_with("apps", "web")

    asyncio.run(tools.helm_rollback("web", "apps"))
    helm.rollback.assert_called_once_with("apps", "web", 0)


def test__KubernetesTools__cancelled_call_returns_while_the_backend_is_blocked(helm: MagicMock) -> None:
    cluster = BlockingCluster()
    cluster.add_pod("default", "web", {"app": ""})
    tools = KubernetesTools(Client(cluster.backend()), helm)

    async def main() -> None:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(tools.get_resource("Pod", "web", "default"), 0.1)

    start = time.monotonic()
    asyncio.run(main())
    assert time.monotonic() - start < 2
    assert not cluster.finished.is_set()

    cluster.release.set()
    assert cluster.finished.wait(5)
