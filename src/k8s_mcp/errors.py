"""
Error taxonomy of the resource access layer. Every failure that leaves the core is classified as one of the
subclasses of #K8sMcpError and carries the operation, resource kind and resource name it happened for, as far as
they are known.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(eq=False)
class K8sMcpError(Exception):
    message: str
    operation: str | None = None
    kind: str | None = None
    name: str | None = None

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.kind:
            context.append(f"kind={self.kind}")
        if self.name:
            context.append(f"name={self.name}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class ResourceTypeNotFound(K8sMcpError):
    """The requested kind has no matching descriptor in the cluster's discovery information."""


class DiscoveryUnavailable(K8sMcpError):
    """The discovery call failed entirely (as opposed to some API groups failing to enumerate)."""


class NotFound(K8sMcpError):
    """A specific named object does not exist."""


class MissingName(K8sMcpError):
    """A create/update manifest does not carry a `metadata.name`."""


class BackendError(K8sMcpError):
    """Any other transport, serialization or permission failure reported by the cluster API."""


class LogStreamError(K8sMcpError):
    """Opening or reading a container log stream failed."""


class MetricsUnavailable(K8sMcpError):
    """The `metrics.k8s.io` API is not installed or not reachable."""


@contextmanager
def error_context(operation: str, kind: str | None = None, name: str | None = None) -> Iterator[None]:
    """
    Fill in the operation, kind and name on any #K8sMcpError raised in the block, unless the error already carries
    them. The error is re-raised unchanged otherwise.
    """

    try:
        yield
    except K8sMcpError as exc:
        exc.operation = exc.operation or operation
        exc.kind = exc.kind or kind
        exc.name = exc.name or name
        raise
