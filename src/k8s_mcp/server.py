"""
Exposes the #Client and #Helm operations as MCP tools. Every tool runs the blocking call in a worker thread, so
that concurrent tool calls do not wait on each other, and returns its result as JSON text.

A worker thread cannot be interrupted. When a tool call is cancelled it returns immediately, but the request the
thread is blocked on runs on until it completes or hits the cluster request timeout (`requestTimeout`). The worker
threads belong to a pool of their own, so an abandoned request does not delay the shutdown of the event loop.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
import json
from typing import Any, TypeVar

from loguru import logger
from mcp.server.fastmcp import FastMCP

from k8s_mcp.client import Client
from k8s_mcp.tools.helm import Helm

T = TypeVar("T")

SERVER_NAME = "k8s-mcp-server"

_executor = ThreadPoolExecutor(thread_name_prefix="k8s-mcp-tool")


def _json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


async def _call(func: Callable[..., T], *args: Any) -> T:
    return await asyncio.get_running_loop().run_in_executor(_executor, func, *args)


class KubernetesTools:
    """
    The tool handlers. Parameter names are part of the tool schema that MCP clients see.
    """

    def __init__(self, client: Client, helm: Helm) -> None:
        self.client = client
        self.helm = helm

    async def get_api_resources(self, includeNamespaceScoped: bool = True, includeClusterScoped: bool = True) -> str:
        return _json(await _call(self.client.get_api_resources, includeNamespaceScoped, includeClusterScoped))

    async def list_resources(
        self, kind: str, namespace: str = "", labelSelector: str = "", fieldSelector: str = ""
    ) -> str:
        return _json(await _call(self.client.list_resources, kind, namespace, labelSelector, fieldSelector))

    async def get_resource(self, kind: str, name: str, namespace: str = "") -> str:
        return _json(await _call(self.client.get_resource, kind, name, namespace))

    async def describe_resource(self, kind: str, name: str, namespace: str = "") -> str:
        return _json(await _call(self.client.describe_resource, kind, name, namespace))

    async def create_resource(self, kind: str, manifest: str, namespace: str = "") -> str:
        return _json(await _call(self.client.create_or_update_resource, kind, manifest, namespace))

    async def delete_resource(self, kind: str, name: str, namespace: str = "") -> str:
        await _call(self.client.delete_resource, kind, name, namespace)
        return _json({"message": f"Successfully deleted {kind} {name!r}"})

    async def get_pods_logs(self, name: str, namespace: str = "default", containerName: str = "") -> str:
        return await _call(self.client.get_logs, namespace or "default", name, containerName or None)

    async def get_pod_metrics(self, namespace: str, podName: str) -> str:
        metrics = await _call(self.client.get_pod_metrics, namespace, podName)
        return _json(metrics.dump())

    async def get_node_metrics(self, name: str) -> str:
        metrics = await _call(self.client.get_node_metrics, name)
        return _json(metrics.dump())

    async def get_events(self, namespace: str = "", labelSelector: str = "") -> str:
        events = await _call(self.client.get_events, namespace, labelSelector)
        return _json([event.dump() for event in events])

    async def helm_install(
        self,
        releaseName: str,
        chartName: str,
        namespace: str = "default",
        repoURL: str = "",
        values: dict[str, Any] | None = None,
    ) -> str:
        namespace = namespace or "default"
        return _json(await _call(self.helm.install, namespace, releaseName, chartName, repoURL or None, values))

    async def helm_upgrade(
        self, releaseName: str, chartName: str, namespace: str, values: dict[str, Any] | None = None
    ) -> str:
        return _json(await _call(self.helm.upgrade, namespace, releaseName, chartName, values))

    async def helm_uninstall(self, releaseName: str, namespace: str) -> str:
        await _call(self.helm.uninstall, namespace, releaseName)
        return _json(
            {
                "status": "success",
                "message": f"Successfully uninstalled release '{releaseName}' from namespace '{namespace}'",
            }
        )

    async def helm_list(self, namespace: str = "") -> str:
        return _json(await _call(self.helm.list_releases, namespace or None))

    async def helm_get(self, releaseName: str, namespace: str) -> str:
        return _json(await _call(self.helm.get_release, namespace, releaseName))

    async def helm_history(self, releaseName: str, namespace: str) -> str:
        return _json(await _call(self.helm.history, namespace, releaseName))

    async def helm_rollback(self, releaseName: str, namespace: str, revision: int = 0) -> str:
        await _call(self.helm.rollback, namespace, releaseName, revision)
        return _json(
            {
                "status": "success",
                "message": f"Successfully rolled back release '{releaseName}' to revision {revision or 'previous'}",
            }
        )

    async def helm_repo_add(self, name: str, url: str) -> str:
        await _call(self.helm.repo_add, name, url)
        return _json({"status": "success", "message": f"Successfully added repository '{name}'"})

    async def helm_repo_list(self) -> str:
        return _json(await _call(self.helm.repo_list))

    def register(self, server: FastMCP) -> None:
        tools: list[tuple[str, Callable[..., Any], str]] = [
            ("getAPIResources", self.get_api_resources, "Get all API resources in the Kubernetes cluster"),
            ("listResources", self.list_resources, "List all resources in the Kubernetes cluster of a specific type"),
            ("getResource", self.get_resource, "Get a specific resource in the Kubernetes cluster"),
            (
                "describeResource",
                self.describe_resource,
                "Describe a resource in the Kubernetes cluster based on given kind and name",
            ),
            ("createResource", self.create_resource, "Create or update a resource in the Kubernetes cluster"),
            ("deleteResource", self.delete_resource, "Delete a resource in the Kubernetes cluster"),
            ("getPodsLogs", self.get_pods_logs, "Get logs of a specific pod in the Kubernetes cluster"),
            ("getPodMetrics", self.get_pod_metrics, "Get CPU and Memory metrics for a specific pod"),
            (
                "getNodeMetrics",
                self.get_node_metrics,
                "Get resource usage of a specific node in the Kubernetes cluster",
            ),
            ("getEvents", self.get_events, "Get events in the Kubernetes cluster"),
            ("helmInstall", self.helm_install, "Install a Helm chart to the Kubernetes cluster"),
            ("helmUpgrade", self.helm_upgrade, "Upgrade an existing Helm release"),
            ("helmUninstall", self.helm_uninstall, "Uninstall a Helm release from the Kubernetes cluster"),
            ("helmList", self.helm_list, "List all Helm releases in the cluster or a specific namespace"),
            ("helmGet", self.helm_get, "Get details of a specific Helm release"),
            ("helmHistory", self.helm_history, "Get the history of a Helm release"),
            ("helmRollback", self.helm_rollback, "Rollback a Helm release to a previous revision (0 for previous)"),
            ("helmRepoAdd", self.helm_repo_add, "Add a Helm chart repository"),
            ("helmRepoList", self.helm_repo_list, "List the configured Helm chart repositories"),
        ]
        for name, func, description in tools:
            server.add_tool(func, name=name, description=description)
        logger.debug("Registered {} tools", len(tools))


def create_server(client: Client, helm: Helm, host: str = "0.0.0.0", port: int = 8080) -> FastMCP:
    """
    Create the MCP server with all tools registered. The *host* and *port* only apply to the SSE transport.
    """

    server = FastMCP(SERVER_NAME, host=host, port=port)
    KubernetesTools(client, helm).register(server)
    return server
