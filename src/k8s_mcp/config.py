from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Literal, overload

from loguru import logger

from k8s_mcp.backend import DEFAULT_REQUEST_TIMEOUT

ServerMode = Literal["stdio", "sse"]


@dataclass
class ServerConfig:
    """
    Configuration for the MCP server, stored in a `k8s-mcp.yaml` file. The `SERVER_MODE` and `SERVER_PORT`
    environment variables take precedence over the file.
    """

    FILENAME = "k8s-mcp.yaml"

    mode: ServerMode = "sse"
    """
    The transport the server talks over. `stdio` for being spawned by an MCP client, `sse` for serving over HTTP.
    """

    host: str = "0.0.0.0"
    port: int = 8080

    kubeconfig: Path | None = None
    """
    Path to the kubeconfig file. If not set, the default kubeconfig (`$KUBECONFIG` or `~/.kube/config`) is used.
    """

    context: str | None = None
    inCluster: bool = False
    """ Use the service account of the pod the server runs in instead of a kubeconfig. """

    requestTimeout: float | None = DEFAULT_REQUEST_TIMEOUT
    """
    Timeout in seconds for every request made to the cluster API. A tool call that is cancelled does not interrupt
    the request it is waiting on, so this also bounds how long the request outlives the call. `null` disables it.
    """

    logTailLines: int = 100
    strictUpsert: bool = False
    helmBinary: str = "helm"

    @staticmethod
    def load(file: Path | None = None, /, *, environ: Mapping[str, str] | None = None) -> "ServerConfig":
        """
        Load the server configuration from the given or the default configuration file. If no configuration file
        exists, the defaults are used. Environment overrides are applied in either case.
        """

        from databind.json import load as deser
        from yaml import safe_load

        if file is None:
            file = find_config_file(ServerConfig.FILENAME, required=False)

        if file is None:
            config = ServerConfig()
        else:
            logger.debug("Loading server configuration from '{}'", file)
            config = deser(safe_load(file.read_text()) or {}, ServerConfig, filename=str(file))

        config.apply_environment(os.environ if environ is None else environ)
        return config

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        if mode := environ.get("SERVER_MODE"):
            if mode not in ("stdio", "sse"):
                raise ValueError(f"SERVER_MODE must be 'stdio' or 'sse', got {mode!r}")
            self.mode = mode  # type: ignore[assignment]
        if port := environ.get("SERVER_PORT"):
            try:
                self.port = int(port)
            except ValueError:
                raise ValueError(f"SERVER_PORT must be an integer, got {port!r}") from None


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[False] = False) -> Path | None: ...


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[True] = True) -> Path: ...


def find_config_file(filename: str, cwd: Path | None = None, required: bool = True) -> Path | None:
    """
    Look for *filename* in *cwd* (defaults to the working directory), then in each of its parents.
    """

    start = Path.cwd() if cwd is None else cwd
    for directory in (start, *start.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate

    if required:
        raise FileNotFoundError(f"'{filename}' not found in '{start}' or any of its parents")
    return None
