from dataclasses import dataclass
import json
import os
from pathlib import Path
import shlex
import subprocess
from tempfile import TemporaryDirectory
from typing import Any

from loguru import logger
import yaml


@dataclass
class HelmError(Exception):
    statuscode: int
    stderr: str | None = None

    def __str__(self) -> str:
        message = f"Helm command failed with status code {self.statuscode}"
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


class Helm:
    """
    Wrapper for interfacing with the `helm` CLI. Every method runs a single `helm` command against the cluster
    selected by the *kubeconfig* and *context*, and returns its parsed JSON output.
    """

    def __init__(self, binary: str = "helm", kubeconfig: str | Path | None = None, context: str | None = None) -> None:
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.context = context

    def _run(self, *args: str, json_output: bool = False) -> str:
        command = [self.binary, *args]
        if self.kubeconfig:
            command.extend(["--kubeconfig", str(self.kubeconfig)])
        if self.context:
            command.extend(["--kube-context", self.context])
        if json_output:
            command.extend(["-o", "json"])

        logger.debug("Running Helm command: $ {command}", command=" ".join(map(shlex.quote, command)))
        status = subprocess.run(command, capture_output=True, text=True, env=os.environ.copy())
        if status.returncode:
            raise HelmError(status.returncode, status.stderr)
        return status.stdout

    def _run_json(self, *args: str) -> Any:
        stdout = self._run(*args, json_output=True)
        return json.loads(stdout) if stdout.strip() else None

    def _run_with_values(self, args: list[str], values: dict[str, Any] | None) -> Any:
        with TemporaryDirectory() as tmp:
            if values:
                values_file = Path(tmp) / "values.yaml"
                values_file.write_text(yaml.safe_dump(values))
                args = [*args, "--values", str(values_file)]
            return self._run_json(*args)

    def install(
        self,
        namespace: str,
        release: str,
        chart: str,
        repo_url: str | None = None,
        values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Install a chart as a new release. The namespace is created if it does not exist.
        """

        args = ["install", release, chart, "--namespace", namespace, "--create-namespace"]
        if repo_url:
            args.extend(["--repo", repo_url])
        return self._run_with_values(args, values)

    def upgrade(self, namespace: str, release: str, chart: str, values: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._run_with_values(["upgrade", release, chart, "--namespace", namespace], values)

    def uninstall(self, namespace: str, release: str) -> None:
        self._run("uninstall", release, "--namespace", namespace)

    def list_releases(self, namespace: str | None = None) -> list[dict[str, Any]]:
        """
        List the releases in a namespace, or in all namespaces if none is given.
        """

        if namespace:
            return self._run_json("list", "--namespace", namespace) or []
        return self._run_json("list", "--all-namespaces") or []

    def get_release(self, namespace: str, release: str) -> dict[str, Any]:
        return self._run_json("status", release, "--namespace", namespace)

    def history(self, namespace: str, release: str) -> list[dict[str, Any]]:
        return self._run_json("history", release, "--namespace", namespace) or []

    def rollback(self, namespace: str, release: str, revision: int = 0) -> None:
        """
        Roll a release back to the given revision, or to the previous revision if *revision* is 0.
        """

        args = ["rollback", release]
        if revision:
            args.append(str(revision))
        self._run(*args, "--namespace", namespace)

    def repo_add(self, name: str, url: str) -> None:
        """
        Add a chart repository. Nothing happens if a repository with the same name is already configured.
        """

        if any(repo.get("name") == name for repo in self.repo_list()):
            logger.debug("Helm repository {} is already configured", name)
            return
        self._run("repo", "add", name, url)

    def repo_list(self) -> list[dict[str, Any]]:
        try:
            return self._run_json("repo", "list") or []
        except HelmError as exc:
            # Helm exits with an error instead of printing an empty list.
            if exc.stderr and "no repositories" in exc.stderr:
                return []
            raise
