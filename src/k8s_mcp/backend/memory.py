"""
An in-memory cluster that implements all surfaces. It serves a fixed discovery payload, stores objects in a
dictionary and counts the calls made against it, which makes it suitable for tests and for running the server
without a cluster.
"""

from collections import Counter
import copy
from dataclasses import dataclass
import threading
from typing import Any
import uuid

from k8s_mcp.backend import (
    Backend,
    CoreSurface,
    DiscoverySurface,
    EventsSurface,
    LogStream,
    MetricsSurface,
    ObjectSurface,
)
from k8s_mcp.discovery import APIResourceDescriptor, DiscoveryResult, ResourceLocator
from k8s_mcp.errors import BackendError, DiscoveryUnavailable, K8sMcpError, MetricsUnavailable, NotFound
from k8s_mcp.manifest import Manifest, Manifests

_VERBS = ["create", "delete", "get", "list", "patch", "update", "watch"]

DEFAULT_DESCRIPTORS = [
    APIResourceDescriptor("configmaps", "ConfigMap", "", "v1", True, _VERBS, "configmap"),
    APIResourceDescriptor("events", "Event", "", "v1", True, _VERBS, "event"),
    APIResourceDescriptor("namespaces", "Namespace", "", "v1", False, _VERBS, "namespace"),
    APIResourceDescriptor("nodes", "Node", "", "v1", False, _VERBS, "node"),
    APIResourceDescriptor("pods", "Pod", "", "v1", True, _VERBS, "pod"),
    APIResourceDescriptor("pods/log", "Pod", "", "v1", True, ["get"]),
    APIResourceDescriptor("services", "Service", "", "v1", True, _VERBS, "service"),
    APIResourceDescriptor("deployments", "Deployment", "apps", "v1", True, _VERBS, "deployment"),
    APIResourceDescriptor("statefulsets", "StatefulSet", "apps", "v1", True, _VERBS, "statefulset"),
    APIResourceDescriptor("clusterroles", "ClusterRole", "rbac.authorization.k8s.io", "v1", False, _VERBS),
]


@dataclass
class _Log:
    text: str = ""
    open_error: K8sMcpError | None = None
    read_error: K8sMcpError | None = None


class MemoryLogStream(LogStream):
    def __init__(self, log: _Log) -> None:
        self._log = log
        self.closed = False

    def read(self) -> bytes:
        if self._log.read_error is not None:
            raise self._log.read_error
        return self._log.text.encode()

    def close(self) -> None:
        self.closed = True


class InMemoryCluster(DiscoverySurface, ObjectSurface, CoreSurface, MetricsSurface, EventsSurface):
    """
    Attributes:
        descriptors: The discovery payload.
        failed_groups: Group versions reported as failed by discovery (partial discovery).
        discovery_error: If set, discovery fails entirely with this error.
        calls: Number of calls per surface method.
        streams: Every log stream handed out, in order.
        update_errors: Errors to raise when updating the object with the given name.
        metrics_available: Whether the `metrics.k8s.io` API is served.
    """

    def __init__(
        self,
        descriptors: list[APIResourceDescriptor] | None = None,
        failed_groups: list[str] | None = None,
    ) -> None:
        self.descriptors = list(DEFAULT_DESCRIPTORS if descriptors is None else descriptors)
        self.failed_groups = list(failed_groups or [])
        self.discovery_error: K8sMcpError | None = None
        self.calls: Counter[str] = Counter()
        self.streams: list[MemoryLogStream] = []
        self.update_errors: dict[str, K8sMcpError] = {}
        self.metrics_available = True
        self._objects: dict[tuple[ResourceLocator, str, str], Manifest] = {}
        self._logs: dict[tuple[str, str, str], _Log] = {}
        self._pod_metrics: dict[tuple[str, str], dict[str, Any]] = {}
        self._node_metrics: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._version = 0

    def backend(self) -> Backend:
        return Backend(discovery=self, objects=self, core=self, metrics=self, events=self)

    def _count(self, method: str) -> None:
        with self._lock:
            self.calls[method] += 1

    def _locator(self, kind: str) -> ResourceLocator:
        for descriptor in self.descriptors:
            if descriptor.kind == kind and not descriptor.is_subresource:
                return ResourceLocator(descriptor.group, descriptor.version, descriptor.name)
        raise ValueError(f"kind {kind!r} is not part of the discovery payload")

    # Fixtures

    def add_object(self, kind: str, manifest: dict[str, Any]) -> Manifest:
        """
        Store an object directly, bypassing the call counters.
        """

        locator = self._locator(kind)
        manifest = copy.deepcopy(manifest)
        manifest.setdefault("apiVersion", locator.api_version)
        manifest.setdefault("kind", kind)
        metadata = manifest.setdefault("metadata", {})
        with self._lock:
            self._stamp(metadata)
            self._objects[(locator, metadata.get("namespace", ""), metadata["name"])] = Manifest(manifest)
        return Manifest(copy.deepcopy(manifest))

    def add_pod(self, namespace: str, name: str, logs: dict[str, str]) -> None:
        """
        Add a pod with one container per entry in *logs*, which maps container names to their log output.
        """

        self.add_object(
            "Pod",
            {
                "metadata": {"name": name, "namespace": namespace},
                "spec": {"containers": [{"name": container, "image": "busybox"} for container in logs]},
            },
        )
        for container, text in logs.items():
            self._logs[(namespace, name, container)] = _Log(text)

    def fail_log(self, namespace: str, pod: str, container: str, error: K8sMcpError, on_read: bool = False) -> None:
        log = self._logs.setdefault((namespace, pod, container), _Log())
        if on_read:
            log.read_error = error
        else:
            log.open_error = error

    def set_pod_metrics(self, namespace: str, pod: str, containers: dict[str, tuple[str, str]]) -> None:
        self._pod_metrics[(namespace, pod)] = {
            "apiVersion": "metrics.k8s.io/v1beta1",
            "kind": "PodMetrics",
            "metadata": {"name": pod, "namespace": namespace},
            "timestamp": "2024-01-01T00:00:00Z",
            "window": "30s",
            "containers": [
                {"name": name, "usage": {"cpu": cpu, "memory": memory}} for name, (cpu, memory) in containers.items()
            ],
        }

    def set_node_metrics(self, node: str, cpu: str, memory: str) -> None:
        self._node_metrics[node] = {
            "apiVersion": "metrics.k8s.io/v1beta1",
            "kind": "NodeMetrics",
            "metadata": {"name": node},
            "timestamp": "2024-01-01T00:00:00Z",
            "window": "20.5s",
            "usage": {"cpu": cpu, "memory": memory},
        }

    def _stamp(self, metadata: dict[str, Any]) -> None:
        self._version += 1
        metadata["resourceVersion"] = str(self._version)
        metadata.setdefault("uid", str(uuid.uuid4()))

    # DiscoverySurface

    def server_preferred_resources(self) -> DiscoveryResult:
        self._count("server_preferred_resources")
        if self.discovery_error is not None:
            raise self.discovery_error
        return DiscoveryResult(copy.deepcopy(self.descriptors), list(self.failed_groups))

    # ObjectSurface

    def get_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> Manifest:
        self._count("get_object")
        with self._lock:
            try:
                return Manifest(copy.deepcopy(self._objects[(locator, namespace or "", name)]))
            except KeyError:
                raise NotFound(f"{locator.plural} {name!r} not found")

    def list_objects(
        self,
        locator: ResourceLocator,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> Manifests:
        self._count("list_objects")
        labels = _parse_label_selector(label_selector)
        with self._lock:
            return Manifests(
                [
                    Manifest(copy.deepcopy(obj))
                    for (loc, ns, _), obj in sorted(self._objects.items(), key=lambda x: x[0][1:])
                    if loc == locator
                    and (not namespace or ns == namespace)
                    and all((obj["metadata"].get("labels") or {}).get(k) == v for k, v in labels.items())
                ]
            )

    def create_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest:
        self._count("create_object")
        key = (locator, namespace or "", body["metadata"]["name"])
        with self._lock:
            if key in self._objects:
                raise BackendError(f"{locator.plural} {key[2]!r} already exists")
            obj = copy.deepcopy(body)
            self._stamp(obj["metadata"])
            self._objects[key] = Manifest(obj)
            return Manifest(copy.deepcopy(obj))

    def update_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest:
        self._count("update_object")
        name = body["metadata"]["name"]
        if name in self.update_errors:
            raise self.update_errors[name]
        key = (locator, namespace or "", name)
        with self._lock:
            if key not in self._objects:
                raise NotFound(f"{locator.plural} {name!r} not found")
            obj = copy.deepcopy(body)
            obj["metadata"]["uid"] = self._objects[key]["metadata"].get("uid")
            self._stamp(obj["metadata"])
            self._objects[key] = Manifest(obj)
            return Manifest(copy.deepcopy(obj))

    def delete_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> None:
        self._count("delete_object")
        with self._lock:
            if self._objects.pop((locator, namespace or "", name), None) is None:
                raise NotFound(f"{locator.plural} {name!r} not found")

    # CoreSurface

    def pod_containers(self, namespace: str, pod: str) -> list[str]:
        self._count("pod_containers")
        obj = self.get_object(self._locator("Pod"), pod, namespace)
        return [container["name"] for container in obj["spec"]["containers"]]

    def open_pod_log(self, namespace: str, pod: str, container: str, tail_lines: int | None) -> LogStream:
        self._count("open_pod_log")
        log = self._logs.get((namespace, pod, container))
        if log is None:
            raise NotFound(f"container {container!r} of pod {pod!r} not found")
        if log.open_error is not None:
            raise log.open_error
        if tail_lines is not None:
            log = _Log("".join(log.text.splitlines(keepends=True)[-tail_lines:]), read_error=log.read_error)
        stream = MemoryLogStream(log)
        self.streams.append(stream)
        return stream

    # MetricsSurface

    def pod_metrics(self, namespace: str, pod: str) -> dict[str, Any]:
        self._count("pod_metrics")
        if not self.metrics_available:
            raise MetricsUnavailable("the metrics.k8s.io API is not available")
        try:
            return copy.deepcopy(self._pod_metrics[(namespace, pod)])
        except KeyError:
            raise NotFound(f"podmetrics {pod!r} not found")

    def node_metrics(self, node: str) -> dict[str, Any]:
        self._count("node_metrics")
        if not self.metrics_available:
            raise MetricsUnavailable("the metrics.k8s.io API is not available")
        try:
            return copy.deepcopy(self._node_metrics[node])
        except KeyError:
            raise NotFound(f"nodemetrics {node!r} not found")

    # EventsSurface

    def list_events(self, namespace: str | None = None, label_selector: str | None = None) -> Manifests:
        self._count("list_events")
        return self.list_objects(self._locator("Event"), namespace, label_selector)


def _parse_label_selector(selector: str | None) -> dict[str, str]:
    """
    Only equality-based selectors (`a=b,c==d`) are understood by the in-memory cluster.
    """

    result: dict[str, str] = {}
    for term in filter(None, (selector or "").split(",")):
        key, _, value = term.replace("==", "=").partition("=")
        result[key.strip()] = value.strip()
    return result
