"""
This package resolves human-readable resource kinds (e.g. `Pod`, `Deployment` or the kind of a custom resource) to
the group, version and plural name that address the kind's collection on the API server.
"""

from dataclasses import dataclass, field
from typing import Any, cast

from databind.json import dump as ser


@dataclass(frozen=True)
class ResourceLocator:
    """
    Identifies an addressable resource type on one cluster API surface. Locators are never mutated; a change of the
    cluster's schema requires resolving the kind again.
    """

    group: str
    """ The API group. Empty for the core group (`v1`). """

    version: str

    plural: str
    """ The wire-level collection name, e.g. `deployments`. """

    @property
    def api_version(self) -> str:
        """
        The `apiVersion` value for objects of this type, e.g. `v1` or `apps/v1`.
        """

        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass
class APIResourceDescriptor:
    """
    A single entry of a server-preferred discovery resource list.
    """

    name: str
    """ The plural name of the resource. Subresources contain a slash, e.g. `pods/log`. """

    kind: str
    group: str
    version: str
    namespaced: bool
    verbs: list[str] = field(default_factory=list)
    singularName: str = ""

    @property
    def is_subresource(self) -> bool:
        return "/" in self.name

    def dump(self) -> dict[str, Any]:
        return cast(dict[str, Any], ser(self, APIResourceDescriptor))


@dataclass
class DiscoveryResult:
    """
    The result of a discovery call. If some API groups could not be enumerated, their group versions are listed in
    *failed_groups* and *descriptors* only contains the resources of the groups that did succeed.
    """

    descriptors: list[APIResourceDescriptor]
    failed_groups: list[str] = field(default_factory=list)
