import pytest

from k8s_mcp.backend.memory import InMemoryCluster
from k8s_mcp.discovery import APIResourceDescriptor, ResourceLocator
from k8s_mcp.discovery.resolver import LocatorResolver
from k8s_mcp.errors import DiscoveryUnavailable, ResourceTypeNotFound


def test__LocatorResolver__resolve__returns_group_version_and_plural() -> None:
    resolver = LocatorResolver(InMemoryCluster())
    assert resolver.resolve("Pod") == ResourceLocator("", "v1", "pods")
    assert resolver.resolve("Deployment") == ResourceLocator("apps", "v1", "deployments")
    assert resolver.resolve("Deployment").api_version == "apps/v1"


def test__LocatorResolver__resolve__matches_kind_case_sensitively() -> None:
    resolver = LocatorResolver(InMemoryCluster())
    with pytest.raises(ResourceTypeNotFound) as excinfo:
        resolver.resolve("pod")
    assert excinfo.value.kind == "pod"


def test__LocatorResolver__resolve__skips_subresources() -> None:
    cluster = InMemoryCluster(
        [
            APIResourceDescriptor("pods/log", "Pod", "", "v1", True, ["get"]),
            APIResourceDescriptor("pods", "Pod", "", "v1", True, ["get", "list"], "pod"),
        ]
    )
    assert LocatorResolver(cluster).resolve("Pod").plural == "pods"


def test__LocatorResolver__resolve__first_match_wins() -> None:
    cluster = InMemoryCluster(
        [
            APIResourceDescriptor("events", "Event", "", "v1", True),
            APIResourceDescriptor("events", "Event", "events.k8s.io", "v1", True),
        ]
    )
    assert LocatorResolver(cluster).resolve("Event") == ResourceLocator("", "v1", "events")


def test__LocatorResolver__resolve__tolerates_partial_discovery() -> None:
    cluster = InMemoryCluster(failed_groups=["metrics.k8s.io/v1beta1"])
    assert LocatorResolver(cluster).resolve("StatefulSet") == ResourceLocator("apps", "v1", "statefulsets")


def test__LocatorResolver__resolve__propagates_discovery_failure() -> None:
    cluster = InMemoryCluster()
    cluster.discovery_error = DiscoveryUnavailable("connection refused")
    with pytest.raises(DiscoveryUnavailable):
        LocatorResolver(cluster).resolve("Pod")


def test__LocatorResolver__api_resources__filters_by_scope() -> None:
    resolver = LocatorResolver(InMemoryCluster())

    cluster_scoped = {resource["name"] for resource in resolver.api_resources(namespaced=False)}
    assert cluster_scoped == {"namespaces", "nodes", "clusterroles"}

    namespaced = {resource["name"] for resource in resolver.api_resources(cluster_scoped=False)}
    assert "pods" in namespaced
    assert "pods/log" not in namespaced
    assert "nodes" not in namespaced

    assert resolver.api_resources(namespaced=False, cluster_scoped=False) == []


def test__LocatorResolver__api_resources__renders_descriptor_fields() -> None:
    resolver = LocatorResolver(InMemoryCluster())
    deployment = next(resource for resource in resolver.api_resources() if resource["kind"] == "Deployment")
    assert deployment["name"] == "deployments"
    assert deployment["singularName"] == "deployment"
    assert deployment["group"] == "apps"
    assert deployment["version"] == "v1"
    assert deployment["namespaced"] is True
    assert "list" in deployment["verbs"]
