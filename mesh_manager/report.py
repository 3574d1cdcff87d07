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


"""Rendering of run results for operators."""

from __future__ import annotations

import json

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mesh_manager import console
from mesh_manager.models import RunResult, RunStatus

_STATUS_STYLE = {
    RunStatus.SUCCEEDED: "green",
    RunStatus.FAILED: "red",
    RunStatus.CANCELLED: "yellow",
}


def result_json(result: RunResult) -> str:
    return json.dumps(result.to_dict(), indent=2, sort_keys=True)


def render_run_result(result: RunResult) -> None:
    """Print per-target status, errors, warnings and suggested commands."""
    table = Table(title=f"Mesh '{result.mesh.mesh_id}' bootstrap")
    for column in ("Target", "Cloud", "Network", "Status", "Endpoint", "Mesh"):
        table.add_column(column)
    for name, branch in result.branches.items():
        style = _STATUS_STYLE[branch.status]
        table.add_row(
            name,
            branch.cloud,
            result.mesh.networks.get(name, "-"),
            f"[{style}]{branch.status.value}[/{style}]",
            branch.endpoint or "-",
            "installed" if branch.mesh_installed else "-",
        )
    console.print(table)

    for name, branch in result.branches.items():
        if branch.error is not None:
            console.print(f"[red]\u274c {name}: {type(branch.error).__name__}: {escape(str(branch.error))}[/red]")
        for warning in branch.warnings:
            console.print(f"[yellow]\u26a0\ufe0f  {escape(warning)}[/yellow]")

    for name, branch in result.branches.items():
        if not branch.commands:
            continue
        lines = "\n".join(f"[cyan]{key}[/cyan]: {escape(command)}" for key, command in branch.commands.items())
        console.print(Panel(lines, title=f"{name} commands", expand=False))

    style = _STATUS_STYLE[result.status]
    suffix = " (partial)" if result.is_partial else ""
    console.print(f"[{style}]Overall status: {result.status.value}{suffix}[/{style}]")
