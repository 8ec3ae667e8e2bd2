"""
An MCP server that lets AI assistants inspect and manage the resources of a Kubernetes cluster, read pod logs,
metrics and events, and manage Helm releases.
"""

from enum import Enum
import sys

from loguru import logger
from typer import Option, Typer

app = Typer(no_args_is_help=True, pretty_exceptions_enable=False, help=__doc__)


from . import resources  # noqa: F401,E402
from . import serve  # noqa: F401,E402


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@app.callback()
def _callback(
    log_level: LogLevel = Option(LogLevel.INFO, "--log-level", "-l", help="The log level to use."),
) -> None:
    # Never log to stdout, it carries the protocol when serving over stdio.
    logger.remove()
    logger.add(sys.stderr, level=log_level.name)


def main() -> None:
    app()
