from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.table import Table
from typer import Exit, Option
import yaml

from k8s_mcp.client import Client
from k8s_mcp.config import ServerConfig
from k8s_mcp.errors import K8sMcpError

from . import app


@app.command("api-resources")
def api_resources(
    config_file: Optional[Path] = Option(None, "--config", "-c", help="The configuration file to use."),
    namespaced: bool = Option(True, help="Include namespace scoped resources."),
    cluster_scoped: bool = Option(True, help="Include cluster scoped resources."),
    as_yaml: bool = Option(False, "--yaml", help="Print the resources as YAML, as an MCP client would see them."),
) -> None:
    """
    Print the resource types served by the cluster.
    """

    config = ServerConfig.load(config_file)
    try:
        resources = Client.from_config(config).get_api_resources(namespaced, cluster_scoped)
    except K8sMcpError as exc:
        logger.error("{}", exc)
        raise Exit(1)

    if as_yaml:
        print(yaml.safe_dump(resources, sort_keys=False))
        return

    table = Table()
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("API Version")
    table.add_column("Namespaced")
    table.add_column("Verbs")

    for resource in sorted(resources, key=lambda r: (r["group"], r["kind"])):
        api_version = f"{resource['group']}/{resource['version']}" if resource["group"] else resource["version"]
        table.add_row(
            resource["kind"],
            resource["name"],
            api_version,
            "true" if resource["namespaced"] else "false",
            ",".join(resource["verbs"]),
        )

    Console().print(table)
