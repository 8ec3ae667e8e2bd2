"""
Surfaces backed by a real cluster through the official `kubernetes` client library.
"""

from collections.abc import Iterator
from contextlib import contextmanager
import json
from typing import Any, cast

from kubernetes.client import ApiClient, Configuration, CoreV1Api, CustomObjectsApi
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException, load_incluster_config, new_client_from_config
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.resource import Resource
from loguru import logger
from urllib3.exceptions import HTTPError

from k8s_mcp.backend import (
    DEFAULT_REQUEST_TIMEOUT,
    Backend,
    CoreSurface,
    DiscoverySurface,
    EventsSurface,
    LogStream,
    MetricsSurface,
    ObjectSurface,
)
from k8s_mcp.discovery import APIResourceDescriptor, DiscoveryResult, ResourceLocator
from k8s_mcp.errors import BackendError, DiscoveryUnavailable, MetricsUnavailable, NotFound
from k8s_mcp.manifest import Manifest, Manifests

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


def load_api_client(kubeconfig: str | None = None, context: str | None = None, in_cluster: bool = False) -> ApiClient:
    """
    Create an API client from a kubeconfig file (the default location per `KUBECONFIG` or `~/.kube/config` if
    *kubeconfig* is not set) or from the service account of the pod we run in.

    Raises:
        BackendError: If the configuration cannot be loaded.
    """

    try:
        if in_cluster:
            configuration = Configuration()
            load_incluster_config(client_configuration=configuration)
            return ApiClient(configuration)
        return new_client_from_config(config_file=kubeconfig, context=context)
    except (ConfigException, OSError) as exc:
        raise BackendError(f"failed to create Kubernetes configuration: {exc}") from exc


def load_backend(api_client: ApiClient, request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT) -> Backend:
    """
    Create the surfaces for the cluster that *api_client* is configured for.

    Every request a surface makes is bounded by *request_timeout* seconds. `None` waits indefinitely.
    """

    try:
        dynamic = DynamicClient(api_client)
    except (ApiException, HTTPError) as exc:
        raise BackendError(f"failed to create dynamic client: {_message(exc)}") from exc

    core = KubernetesCore(api_client, request_timeout)
    return Backend(
        discovery=KubernetesDiscovery(dynamic, request_timeout),
        objects=KubernetesObjects(dynamic, request_timeout),
        core=core,
        metrics=KubernetesMetrics(api_client, request_timeout),
        events=core,
    )


def _status(exc: ApiException) -> dict[str, Any]:
    """
    Parse the `Status` object from the body of an API error, if there is one.
    """

    if not exc.body:
        return {}
    try:
        status = json.loads(exc.body)
    except (TypeError, ValueError):
        return {}
    return status if isinstance(status, dict) else {}


def _message(exc: Exception) -> str:
    if isinstance(exc, ApiException):
        message = _status(exc).get("message")
        if message:
            return str(message)
        return f"{exc.status} {exc.reason}"
    return str(exc)


@contextmanager
def _api_errors(what: str) -> Iterator[None]:
    try:
        yield
    except ApiException as exc:
        # NOTE: This also covers the DynamicApiError subclasses raised by the dynamic client.
        if exc.status == 404:
            raise NotFound(f"{what}: {_message(exc)}") from exc
        raise BackendError(f"{what}: {_message(exc)}") from exc
    except (HTTPError, ValueError) as exc:
        raise BackendError(f"{what}: {exc}") from exc


class KubernetesDiscovery(DiscoverySurface):
    """
    Reads the discovery endpoints directly instead of going through the discoverer of #DynamicClient. That discoverer
    caches to a file and loads groups lazily, which hides the failure of an individual group, so it could not be
    reported through #DiscoveryResult.failed_groups.
    """

    def __init__(self, dynamic: DynamicClient, request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._dynamic = dynamic
        self._request_timeout = request_timeout

    def _get(self, path: str) -> dict[str, Any]:
        result = self._dynamic.request("get", path, _request_timeout=self._request_timeout)
        return cast(dict[str, Any], result.to_dict())

    def server_preferred_resources(self) -> DiscoveryResult:
        try:
            core = self._get("/api/v1")
            groups = self._get("/apis")
        except (ApiException, HTTPError) as exc:
            raise DiscoveryUnavailable(f"failed to retrieve API resources: {_message(exc)}") from exc

        descriptors = _parse_resource_list(core, group="", version="v1")
        failed_groups: list[str] = []

        for group in groups.get("groups") or []:
            preferred = group.get("preferredVersion") or next(iter(group.get("versions") or []), None)
            if preferred is None:
                continue
            try:
                resource_list = self._get(f"/apis/{preferred['groupVersion']}")
            except (ApiException, HTTPError) as exc:
                logger.debug("Unable to enumerate API group {}: {}", preferred["groupVersion"], _message(exc))
                failed_groups.append(preferred["groupVersion"])
                continue
            descriptors.extend(_parse_resource_list(resource_list, group=group["name"], version=preferred["version"]))

        return DiscoveryResult(descriptors, failed_groups)


def _parse_resource_list(resource_list: dict[str, Any], group: str, version: str) -> list[APIResourceDescriptor]:
    """
    Convert an `APIResourceList` into descriptors. The group and version are taken from the list, not the
    individual resources, to match how the resources are addressed.
    """

    return [
        APIResourceDescriptor(
            name=resource["name"],
            kind=resource["kind"],
            group=group,
            version=version,
            namespaced=bool(resource.get("namespaced")),
            verbs=list(resource.get("verbs") or []),
            singularName=resource.get("singularName") or "",
        )
        for resource in resource_list.get("resources") or []
    ]


class KubernetesObjects(ObjectSurface):
    def __init__(self, dynamic: DynamicClient, request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._dynamic = dynamic
        self._request_timeout = request_timeout

    def _resource(self, locator: ResourceLocator, namespace: str | None) -> Resource:
        """
        Build the dynamic client's resource description from a locator without going through its own discovery.
        Whether the namespaced URL is used depends only on whether a namespace is given.
        """

        return Resource(
            prefix="apis" if locator.group else "api",
            group=locator.group,
            api_version=locator.version,
            kind=locator.plural,
            namespaced=bool(namespace),
            name=locator.plural,
            client=self._dynamic,
        )

    def get_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> Manifest:
        with _api_errors("failed to retrieve resource"):
            result = self._dynamic.get(
                self._resource(locator, namespace),
                name=name,
                namespace=namespace or None,
                _request_timeout=self._request_timeout,
            )
        return Manifest(result.to_dict())

    def list_objects(
        self,
        locator: ResourceLocator,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> Manifests:
        with _api_errors("failed to list resources"):
            result = self._dynamic.get(
                self._resource(locator, namespace),
                namespace=namespace or None,
                label_selector=label_selector or None,
                field_selector=field_selector or None,
                _request_timeout=self._request_timeout,
            )

        data = result.to_dict()
        item_kind = str(data.get("kind") or "").removesuffix("List")

        # The API server omits apiVersion and kind on the items of a list.
        items = Manifests([])
        for item in data.get("items") or []:
            item.setdefault("apiVersion", data.get("apiVersion") or locator.api_version)
            if item_kind:
                item.setdefault("kind", item_kind)
            items.append(Manifest(item))
        return items

    def create_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest:
        with _api_errors("failed to create resource"):
            result = self._dynamic.create(
                self._resource(locator, namespace),
                body=body,
                namespace=namespace or None,
                _request_timeout=self._request_timeout,
            )
        return Manifest(result.to_dict())

    def update_object(self, locator: ResourceLocator, body: Manifest, namespace: str | None = None) -> Manifest:
        with _api_errors("failed to update resource"):
            result = self._dynamic.replace(
                self._resource(locator, namespace),
                body=body,
                namespace=namespace or None,
                _request_timeout=self._request_timeout,
            )
        return Manifest(result.to_dict())

    def delete_object(self, locator: ResourceLocator, name: str, namespace: str | None = None) -> None:
        with _api_errors("failed to delete resource"):
            self._dynamic.delete(
                self._resource(locator, namespace),
                name=name,
                namespace=namespace or None,
                _request_timeout=self._request_timeout,
            )


class _HTTPLogStream(LogStream):
    def __init__(self, response: Any) -> None:
        self._response = response

    def read(self) -> bytes:
        try:
            return cast(bytes, self._response.read())
        except HTTPError as exc:
            raise BackendError(f"failed to read log stream: {exc}") from exc

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()


class KubernetesCore(CoreSurface, EventsSurface):
    def __init__(self, api_client: ApiClient, request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._api_client = api_client
        self._core = CoreV1Api(api_client)
        self._request_timeout = request_timeout

    def pod_containers(self, namespace: str, pod: str) -> list[str]:
        with _api_errors("failed to get pod details"):
            result = self._core.read_namespaced_pod(pod, namespace, _request_timeout=self._request_timeout)
        return [container.name for container in result.spec.containers]

    def open_pod_log(self, namespace: str, pod: str, container: str, tail_lines: int | None) -> LogStream:
        with _api_errors(f"failed to get logs for container {container!r}"):
            response = self._core.read_namespaced_pod_log(
                pod,
                namespace,
                container=container,
                tail_lines=tail_lines,
                _preload_content=False,
                _request_timeout=self._request_timeout,
            )
        return _HTTPLogStream(response)

    def list_events(self, namespace: str | None = None, label_selector: str | None = None) -> Manifests:
        with _api_errors("failed to retrieve events"):
            if namespace:
                result = self._core.list_namespaced_event(
                    namespace, label_selector=label_selector, _request_timeout=self._request_timeout
                )
            else:
                result = self._core.list_event_for_all_namespaces(
                    label_selector=label_selector, _request_timeout=self._request_timeout
                )
        return Manifests([Manifest(self._api_client.sanitize_for_serialization(event)) for event in result.items])


@contextmanager
def _metrics_errors(what: str, name: str) -> Iterator[None]:
    try:
        yield
    except ApiException as exc:
        # A 404 that names the object means the metrics API is served but has no snapshot for it. Any other 404
        # (or a 503 from the aggregation layer) means the metrics API itself is missing.
        details = _status(exc).get("details") or {}
        if exc.status == 404 and details.get("name") == name:
            raise NotFound(f"{what}: {_message(exc)}") from exc
        if exc.status in (404, 503):
            raise MetricsUnavailable(f"{what}: the {METRICS_GROUP} API is not available ({_message(exc)})") from exc
        raise BackendError(f"{what}: {_message(exc)}") from exc
    except HTTPError as exc:
        raise BackendError(f"{what}: {exc}") from exc


class KubernetesMetrics(MetricsSurface):
    def __init__(self, api_client: ApiClient, request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._api = CustomObjectsApi(api_client)
        self._request_timeout = request_timeout

    def pod_metrics(self, namespace: str, pod: str) -> dict[str, Any]:
        with _metrics_errors(f"failed to get metrics for pod {pod!r} in namespace {namespace!r}", pod):
            result = self._api.get_namespaced_custom_object(
                METRICS_GROUP, METRICS_VERSION, namespace, "pods", pod, _request_timeout=self._request_timeout
            )
        return cast(dict[str, Any], result)

    def node_metrics(self, node: str) -> dict[str, Any]:
        with _metrics_errors(f"failed to get metrics for node {node!r}", node):
            result = self._api.get_cluster_custom_object(
                METRICS_GROUP, METRICS_VERSION, "nodes", node, _request_timeout=self._request_timeout
            )
        return cast(dict[str, Any], result)
