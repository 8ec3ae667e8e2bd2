from contextlib import closing

from loguru import logger

from k8s_mcp.backend import CoreSurface
from k8s_mcp.errors import K8sMcpError, LogStreamError

DEFAULT_TAIL_LINES = 100
""" The number of trailing log lines retrieved per container. """


def collect_pod_logs(
    core: CoreSurface,
    namespace: str,
    pod: str,
    container: str | None = None,
    tail_lines: int | None = DEFAULT_TAIL_LINES,
) -> str:
    """
    Retrieve the trailing logs of a pod.

    If a *container* is given, or the pod has only a single container, the logs of that container are returned
    as they are. Otherwise the logs of all containers are fetched one after another and concatenated, each under a
    `--- Logs for container <name> ---` header. A container whose logs cannot be retrieved does not fail the whole
    call; an error marker is put in place of its logs instead.

    Raises:
        LogStreamError: If the logs of a single container cannot be retrieved.
        NotFound: If the pod does not exist (when no container is given).
    """

    if container:
        return _read_container_logs(core, namespace, pod, container, tail_lines)

    containers = core.pod_containers(namespace, pod)
    if len(containers) == 1:
        return _read_container_logs(core, namespace, pod, containers[0], tail_lines)

    parts: list[str] = []
    for name in containers:
        try:
            stream = core.open_pod_log(namespace, pod, name, tail_lines)
        except K8sMcpError as exc:
            logger.warning("Unable to get logs for container {} of pod {}/{}: {}", name, namespace, pod, exc)
            parts.append(f"\n--- Error getting logs for container {name}: {exc} ---\n")
            continue

        parts.append(f"\n--- Logs for container {name} ---\n")
        with closing(stream):
            try:
                parts.append(stream.read().decode(errors="replace"))
            except K8sMcpError as exc:
                logger.warning("Unable to read logs for container {} of pod {}/{}: {}", name, namespace, pod, exc)
                parts.append(f"Error reading logs: {exc}\n")

    return "".join(parts)


def _read_container_logs(core: CoreSurface, namespace: str, pod: str, container: str, tail_lines: int | None) -> str:
    try:
        stream = core.open_pod_log(namespace, pod, container, tail_lines)
    except K8sMcpError as exc:
        raise LogStreamError(f"failed to get logs for container {container!r}: {exc}") from exc

    with closing(stream):
        try:
            return stream.read().decode(errors="replace")
        except K8sMcpError as exc:
            raise LogStreamError(f"failed to read logs for container {container!r}: {exc}") from exc
