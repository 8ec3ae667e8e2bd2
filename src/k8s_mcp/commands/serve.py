from pathlib import Path
from typing import Optional

from loguru import logger
from typer import Exit, Option

from k8s_mcp.client import Client
from k8s_mcp.config import ServerConfig
from k8s_mcp.errors import BackendError
from k8s_mcp.server import create_server
from k8s_mcp.tools.helm import Helm

from . import app


@app.command()
def serve(
    config_file: Optional[Path] = Option(
        None,
        "--config",
        "-c",
        help=f"The configuration file to use. Defaults to the nearest `{ServerConfig.FILENAME}`.",
    ),
    mode: Optional[str] = Option(None, help="The transport to serve over (`stdio` or `sse`). Overrides SERVER_MODE."),
    port: Optional[int] = Option(None, help="The port to listen on with the `sse` transport. Overrides SERVER_PORT."),
    kubeconfig: Optional[Path] = Option(None, help="The kubeconfig file to use."),
    context: Optional[str] = Option(None, help="The kubeconfig context to use."),
    in_cluster: bool = Option(
        False, help="Use the service account of the pod the server runs in instead of a kubeconfig."
    ),
) -> None:
    """
    Run the MCP server.
    """

    config = ServerConfig.load(config_file)
    if mode is not None:
        if mode not in ("stdio", "sse"):
            logger.error("Invalid mode '{}', must be 'stdio' or 'sse'", mode)
            raise Exit(1)
        config.mode = mode  # type: ignore[assignment]
    if port is not None:
        config.port = port
    if kubeconfig is not None:
        config.kubeconfig = kubeconfig
    if context is not None:
        config.context = context
    if in_cluster:
        config.inCluster = True

    try:
        client = Client.from_config(config)
    except BackendError as exc:
        logger.error("Unable to connect to the Kubernetes cluster: {}", exc)
        raise Exit(1)

    helm = Helm(config.helmBinary, config.kubeconfig, config.context)
    server = create_server(client, helm, config.host, config.port)

    if config.mode == "sse":
        logger.info("Starting MCP server with SSE transport on {}:{}", config.host, config.port)
    else:
        logger.info("Starting MCP server with stdio transport")
    server.run(transport=config.mode)
