# /*
# Copyright 2026 The Mesh Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */


"""Package installer contract and its Helm implementation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import yaml

from mesh_manager import console
from mesh_manager.credentials import ClientContext
from mesh_manager.errors import CommandError, InstallError, OperationTimeout
from mesh_manager.utils import CommandRunner, excerpt, run_cli

# Extra seconds granted to the helm process beyond helm's own --timeout.
HELM_PROCESS_GRACE_SECONDS = 30
HELM_TIMEOUT_MARKERS = ("context deadline exceeded", "timed out waiting for the condition")


@dataclass(frozen=True)
class ChartRef:
    """Location of a versioned chart in a Helm repository."""

    name: str
    repository: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


class PackageInstaller(Protocol):
    """Installs or upgrades a named release of a chart into a cluster."""

    def install_or_upgrade(
        self,
        context: ClientContext,
        release: str,
        chart: ChartRef,
        namespace: str,
        values: Mapping[str, Any],
        timeout: float,
    ) -> None: ...


class HelmInstaller:
    """PackageInstaller backed by ``helm upgrade --install``.

    Values are streamed to helm as YAML on stdin, so nested structures such as
    port lists and resource blocks survive without ``--set`` escaping.
    """

    def __init__(self, runner: CommandRunner = run_cli) -> None:
        self._run = runner

    def install_or_upgrade(
        self,
        context: ClientContext,
        release: str,
        chart: ChartRef,
        namespace: str,
        values: Mapping[str, Any],
        timeout: float,
    ) -> None:
        """Install *release* or upgrade it in place, waiting for its resources.

        Raises:
            InstallError: If helm rejects the release.
            OperationTimeout: If the release is not ready within *timeout*.
        """
        console.print(f"[yellow]\u2139\ufe0f  Installing {release} ({chart}) into {context.name}/{namespace}...[/yellow]")
        try:
            self._run(
                "helm", "upgrade", "--install", release, chart.name,
                "--repo", chart.repository,
                "--version", chart.version,
                "--namespace", namespace,
                "--values", "-",
                "--wait",
                "--timeout", f"{int(timeout)}s",
                *context.helm_args(),
                stdin=yaml.safe_dump(dict(values), default_flow_style=False),
                timeout=timeout + HELM_PROCESS_GRACE_SECONDS,
            )
        except CommandError as err:
            if any(marker in err.stderr for marker in HELM_TIMEOUT_MARKERS):
                raise OperationTimeout(f"helm release '{release}' in {context.name}", timeout) from err
            raise InstallError(release, namespace, excerpt(err.stderr or err.stdout)) from err
        console.print(f"[green]\u2705 {release} installed[/green]")
