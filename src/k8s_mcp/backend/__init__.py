"""
The surfaces of the cluster API that the resource access layer is built on. Each surface is an abstract interface
so that the layer can run against a real cluster (#k8s_mcp.backend.kube) or an in-memory one
(#k8s_mcp.backend.memory).

Implementations classify their failures using the exceptions from #k8s_mcp.errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from k8s_mcp.discovery import DiscoveryResult, ResourceLocator
from k8s_mcp.manifest import Manifest, Manifests

DEFAULT_REQUEST_TIMEOUT = 30.0
""" Timeout in seconds for a single request to the cluster API, unless configured otherwise. """


class DiscoverySurface(ABC):
    @abstractmethod
    def server_preferred_resources(self) -> DiscoveryResult:
        """
        List the resource descriptors of the preferred version of every API group.

        Raises:
            DiscoveryUnavailable: If the discovery call failed entirely. A failure to enumerate individual groups is
                reported through #DiscoveryResult.failed_groups instead.
        """


class ObjectSurface(ABC):
    """
    Generic access to objects of any resource type, addressed by a #ResourceLocator. An empty or `None` namespace
    addresses the cluster scope (or all namespaces, when listing).
    """

    @abstractmethod
    def get_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> Manifest: ...

    @abstractmethod
    def list_objects(
        self,
        locator: ResourceLocator,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> Manifests: ...

    @abstractmethod
    def create_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest: ...

    @abstractmethod
    def update_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest: ...

    @abstractmethod
    def delete_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> None: ...


class LogStream(ABC):
    """
    An open container log stream. Must be closed once it is no longer needed, regardless of whether reading from
    it succeeded.
    """

    @abstractmethod
    def read(self) -> bytes:
        """
        Read the stream to the end.

        Raises:
            BackendError: If reading from the stream fails.
        """

    @abstractmethod
    def close(self) -> None: ...


class CoreSurface(ABC):
    @abstractmethod
    def pod_containers(self, namespace: str, pod: str) -> list[str]:
        """
        Return the names of the (non-init) containers of a pod, in declaration order.
        """

    @abstractmethod
    def open_pod_log(self, namespace: str, pod: str, container: str, tail_lines: int | None) -> LogStream:
        """
        Open the log stream of a container, limited to the last *tail_lines* lines.
        """


class MetricsSurface(ABC):
    """
    Snapshots from the `metrics.k8s.io` API, returned in their native structured representation.
    """

    @abstractmethod
    def pod_metrics(self, namespace: str, pod: str) -> dict[str, Any]: ...

    @abstractmethod
    def node_metrics(self, node: str) -> dict[str, Any]: ...


class EventsSurface(ABC):
    @abstractmethod
    def list_events(self, namespace: str | None = None, label_selector: str | None = None) -> Manifests:
        """
        List `v1/Event` objects in a namespace, or in all namespaces if none is given, optionally filtered by a
        label selector.
        """


@dataclass
class Backend:
    """
    The set of surfaces a #k8s_mcp.client.Client operates on.
    """

    discovery: DiscoverySurface
    objects: ObjectSurface
    core: CoreSurface
    metrics: MetricsSurface
    events: EventsSurface
