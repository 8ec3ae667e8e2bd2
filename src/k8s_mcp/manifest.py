from typing import Any, NewType

import yaml

from k8s_mcp.errors import BackendError

Manifest = NewType("Manifest", dict[str, Any])
""" A Kubernetes object in its native structured representation, as returned by or sent to the API server. """

Manifests = NewType("Manifests", list[Manifest])


def parse_manifest(text: str) -> Manifest:
    """
    Parse a manifest from JSON or YAML text. The document must be a mapping.

    Raises:
        BackendError: If the text cannot be parsed or is not a mapping.
    """

    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise BackendError(f"failed to parse resource manifest: {exc}") from exc
    if not isinstance(obj, dict):
        raise BackendError(f"resource manifest must be a mapping, got {type(obj).__name__}")
    return Manifest(obj)
