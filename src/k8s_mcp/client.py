"""
The generic, discovery-driven resource client. Callers address resources by their kind as a plain string and
receive objects in their native structured representation, without this module knowing about any particular
resource type.
"""

from typing import TYPE_CHECKING, Any

from loguru import logger

from k8s_mcp.backend import Backend
from k8s_mcp.discovery import ResourceLocator
from k8s_mcp.discovery.cache import LocatorCache
from k8s_mcp.discovery.resolver import LocatorResolver
from k8s_mcp.errors import K8sMcpError, MissingName, NotFound, error_context
from k8s_mcp.events import EventRecord, get_events
from k8s_mcp.logs import DEFAULT_TAIL_LINES, collect_pod_logs
from k8s_mcp.manifest import Manifest, Manifests, parse_manifest
from k8s_mcp.metrics import NodeMetrics, PodMetrics, get_node_metrics, get_pod_metrics

if TYPE_CHECKING:
    from k8s_mcp.config import ServerConfig


class Client:
    """
    Operations on the resources of a single cluster. A client is meant to be created once and shared by all
    concurrent callers; the only state it mutates is its #LocatorCache.

    Note that #create_or_update_resource() is not atomic: between a failed update and the following create, other
    callers may observe the object as absent.

    All methods block. A request to the cluster cannot be interrupted once it was sent. It is bounded only by the
    request timeout of the backend (see #k8s_mcp.backend.kube.load_backend()).
    """

    def __init__(
        self,
        backend: Backend,
        *,
        strict_upsert: bool = False,
        log_tail_lines: int | None = DEFAULT_TAIL_LINES,
    ) -> None:
        """
        Args:
            backend: The cluster surfaces to operate on.
            strict_upsert: If enabled, #create_or_update_resource() only falls back to creating the object if the
                update failed because the object does not exist. By default any update failure falls back to a create.
            log_tail_lines: The number of trailing log lines to retrieve per container.
        """

        self.backend = backend
        self.cache = LocatorCache()
        self.resolver = LocatorResolver(backend.discovery)
        self.strict_upsert = strict_upsert
        self.log_tail_lines = log_tail_lines

    @staticmethod
    def from_config(config: "ServerConfig") -> "Client":
        """
        Create a client for the cluster described by the configuration.

        Raises:
            BackendError: If the Kubernetes configuration cannot be loaded or the cluster is not reachable.
        """

        from k8s_mcp.backend.kube import load_api_client, load_backend

        kubeconfig = str(config.kubeconfig) if config.kubeconfig else None
        api_client = load_api_client(kubeconfig, config.context, config.inCluster)
        return Client(
            load_backend(api_client, config.requestTimeout),
            strict_upsert=config.strictUpsert,
            log_tail_lines=config.logTailLines,
        )

    def locator(self, kind: str) -> ResourceLocator:
        """
        Return the locator for a kind, resolving it through discovery on a cache miss. Only successful
        resolutions are cached.
        """

        locator = self.cache.get(kind)
        if locator is not None:
            logger.trace("Locator cache hit for kind {}", kind)
            return locator

        locator = self.resolver.resolve(kind)
        self.cache.put(kind, locator)
        logger.debug("Resolved kind {} to {}", kind, locator)
        return locator

    def invalidate_locators(self, kind: str | None = None) -> None:
        """
        Forget cached locators, e.g. after custom resource definitions in the cluster have changed.
        """

        self.cache.invalidate(kind)

    def get_api_resources(self, namespaced: bool = True, cluster_scoped: bool = True) -> list[dict[str, Any]]:
        with error_context("getAPIResources"):
            return self.resolver.api_resources(namespaced, cluster_scoped)

    def get_resource(self, kind: str, name: str, namespace: str | None = None) -> Manifest:
        """
        Retrieve a single object. The object is looked up in the given namespace, or in the cluster scope if no
        namespace is given.
        """

        with error_context("getResource", kind, name):
            _require_name(name)
            return self.backend.objects.get_object(self.locator(kind), name, namespace or None)

    def describe_resource(self, kind: str, name: str, namespace: str | None = None) -> Manifest:
        """
        Same as #get_resource(), available under its own name for callers that ask for a description.
        """

        with error_context("describeResource", kind, name):
            _require_name(name)
            return self.backend.objects.get_object(self.locator(kind), name, namespace or None)

    def list_resources(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> Manifests:
        """
        List the objects of a kind in a namespace, or in all namespaces if none is given. Selectors are passed to
        the API server as they are.
        """

        with error_context("listResources", kind):
            return self.backend.objects.list_objects(
                self.locator(kind), namespace or None, label_selector or None, field_selector or None
            )

    def create_or_update_resource(self, kind: str, manifest: str, namespace: str | None = None) -> Manifest:
        """
        Update the object described by *manifest*, or create it if the update fails. If a *namespace* is given, it
        replaces the namespace in the manifest.

        Args:
            kind: The kind of the object.
            manifest: The object as JSON or YAML text.
            namespace: The namespace to place the object in.
        Raises:
            MissingName: If the manifest has no `metadata.name`. Nothing is sent to the cluster in that case.
        """

        with error_context("createOrUpdateResource", kind):
            obj = parse_manifest(manifest)
            metadata = obj.setdefault("metadata", {})
            if not isinstance(metadata, dict):
                raise MissingName("resource metadata must be a mapping")
            if namespace:
                metadata["namespace"] = namespace
            name = metadata.get("name")
            if not name:
                raise MissingName("resource name is required")

        with error_context("createOrUpdateResource", kind, name):
            locator = self.locator(kind)
            target_namespace = metadata.get("namespace") or None

            try:
                return self.backend.objects.update_object(locator, obj, target_namespace)
            except NotFound:
                logger.debug("{} {!r} does not exist, creating it", kind, name)
            except K8sMcpError as exc:
                if self.strict_upsert:
                    raise
                logger.debug("Update of {} {!r} failed ({}), attempting to create it", kind, name, exc)

            return self.backend.objects.create_object(locator, obj, target_namespace)

    def delete_resource(self, kind: str, name: str, namespace: str | None = None) -> None:
        with error_context("deleteResource", kind, name):
            _require_name(name)
            self.backend.objects.delete_object(self.locator(kind), name, namespace or None)

    def get_logs(self, namespace: str, pod: str, container: str | None = None) -> str:
        """
        Retrieve the trailing logs of a pod. See #k8s_mcp.logs.collect_pod_logs().
        """

        with error_context("getPodsLogs", "Pod", pod):
            return collect_pod_logs(self.backend.core, namespace, pod, container, self.log_tail_lines)

    def get_pod_metrics(self, namespace: str, pod: str) -> PodMetrics:
        with error_context("getPodMetrics", "PodMetrics", pod):
            return get_pod_metrics(self.backend.metrics, namespace, pod)

    def get_node_metrics(self, node: str) -> NodeMetrics:
        with error_context("getNodeMetrics", "NodeMetrics", node):
            return get_node_metrics(self.backend.metrics, node)

    def get_events(self, namespace: str | None = None, label_selector: str | None = None) -> list[EventRecord]:
        with error_context("getEvents", "Event"):
            return get_events(self.backend.events, namespace or None, label_selector or None)


def _require_name(name: str) -> None:
    if not name:
        raise MissingName("resource name is required")
