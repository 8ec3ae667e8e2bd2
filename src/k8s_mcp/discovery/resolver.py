from collections.abc import Iterator
from typing import Any

from loguru import logger

from k8s_mcp.backend import DiscoverySurface
from k8s_mcp.discovery import APIResourceDescriptor, ResourceLocator
from k8s_mcp.errors import ResourceTypeNotFound


class LocatorResolver:
    """
    Resolves resource kinds to #ResourceLocator objects using the cluster's discovery information. Every call
    results in a discovery round trip; caching is up to the caller (see #k8s_mcp.discovery.cache.LocatorCache).
    """

    def __init__(self, discovery: DiscoverySurface) -> None:
        self._discovery = discovery

    def _descriptors(self) -> Iterator[APIResourceDescriptor]:
        result = self._discovery.server_preferred_resources()
        if result.failed_groups:
            logger.warning(
                "Discovery failed for {} API group(s), continuing with the remaining ones: {}",
                len(result.failed_groups),
                ", ".join(result.failed_groups),
            )
        for descriptor in result.descriptors:
            if not descriptor.is_subresource:
                yield descriptor

    def resolve(self, kind: str) -> ResourceLocator:
        """
        Find the locator for the given kind. The kind is matched case-sensitively against the kinds declared by
        the cluster (`Pod`, not `pod`), and the first matching resource wins.

        Raises:
            ResourceTypeNotFound: If no resource of the given kind is served by the cluster.
            DiscoveryUnavailable: If the discovery call failed.
        """

        for descriptor in self._descriptors():
            if descriptor.kind == kind:
                return ResourceLocator(group=descriptor.group, version=descriptor.version, plural=descriptor.name)

        raise ResourceTypeNotFound(f"resource type {kind!r} not found", kind=kind)

    def api_resources(self, namespaced: bool = True, cluster_scoped: bool = True) -> list[dict[str, Any]]:
        """
        List all resource types served by the cluster.

        Args:
            namespaced: Include namespaced resource types.
            cluster_scoped: Include cluster-scoped resource types.
        """

        return [
            descriptor.dump()
            for descriptor in self._descriptors()
            if (namespaced if descriptor.namespaced else cluster_scoped)
        ]
