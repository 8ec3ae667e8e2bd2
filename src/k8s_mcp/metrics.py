"""
Typed access to resource usage snapshots from the `metrics.k8s.io` API. The API is served by an optional
aggregation backend (usually `metrics-server`), so callers should expect #MetricsUnavailable.
"""

from dataclasses import dataclass, field
from typing import Any, cast

from databind.json import dump as ser

from k8s_mcp.backend import MetricsSurface


@dataclass
class ContainerUsage:
    name: str
    cpu: str
    memory: str


@dataclass
class ResourceUsage:
    cpu: str
    memory: str


@dataclass
class PodMetrics:
    podName: str
    namespace: str
    timestamp: str | None = None
    window: str | None = None
    """ The duration over which the usage was measured, e.g. `30s`. """

    containers: list[ContainerUsage] = field(default_factory=list)

    def dump(self) -> dict[str, Any]:
        return cast(dict[str, Any], ser(self, PodMetrics))


@dataclass
class NodeMetrics:
    nodeName: str
    usage: ResourceUsage
    timestamp: str | None = None
    window: str | None = None

    def dump(self) -> dict[str, Any]:
        return cast(dict[str, Any], ser(self, NodeMetrics))


def _usage(obj: dict[str, Any]) -> tuple[str, str]:
    usage = obj.get("usage") or {}
    return str(usage.get("cpu", "0")), str(usage.get("memory", "0"))


def get_pod_metrics(metrics: MetricsSurface, namespace: str, pod: str) -> PodMetrics:
    """
    Retrieve the CPU and memory usage of every container of a pod.

    Raises:
        MetricsUnavailable: If the metrics API is not served by the cluster.
        NotFound: If there is no snapshot for the pod.
    """

    obj = metrics.pod_metrics(namespace, pod)
    containers = []
    for container in obj.get("containers") or []:
        cpu, memory = _usage(container)
        containers.append(ContainerUsage(name=container["name"], cpu=cpu, memory=memory))

    return PodMetrics(
        podName=pod,
        namespace=namespace,
        timestamp=obj.get("timestamp"),
        window=obj.get("window"),
        containers=containers,
    )


def get_node_metrics(metrics: MetricsSurface, node: str) -> NodeMetrics:
    """
    Retrieve the CPU and memory usage of a node.

    Raises:
        MetricsUnavailable: If the metrics API is not served by the cluster.
        NotFound: If there is no snapshot for the node.
    """

    obj = metrics.node_metrics(node)
    cpu, memory = _usage(obj)
    return NodeMetrics(
        nodeName=node,
        usage=ResourceUsage(cpu=cpu, memory=memory),
        timestamp=obj.get("timestamp"),
        window=obj.get("window"),
    )
