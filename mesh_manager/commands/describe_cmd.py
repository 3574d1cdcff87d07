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


"""Describe subcommands (cluster)."""

from __future__ import annotations

import typer
from rich.table import Table

from mesh_manager import console
from mesh_manager.backends import get_backend
from mesh_manager.config import RunConfig
from mesh_manager.constants import CLOUD_AZURE

app = typer.Typer(help="Inspect existing resources.")


@app.command()
def cluster(
    name: str = typer.Argument(..., help="Cluster name"),
    cloud: str = typer.Option(..., "--cloud", help="Cloud backend (aws, azure, k3d)"),
    region: str = typer.Option(..., "--region", help="Region or location of the cluster"),
    resource_group: str | None = typer.Option(
        None, "--resource-group", help="Resource group (azure only)"),
) -> None:
    """Look up a cluster on its backend without changing anything."""
    run_cfg = RunConfig()
    kwargs: dict = {"describe_timeout": run_cfg.describe_timeout}
    if resource_group is not None:
        if cloud != CLOUD_AZURE:
            raise typer.BadParameter(f"only supported for {CLOUD_AZURE}, not {cloud}", param_hint="--resource-group")
        kwargs["resource_group"] = resource_group
    backend = get_backend(cloud)(region, **kwargs)

    handle = backend.describe_cluster(name)
    if handle is None:
        console.print(f"[yellow]\u26a0\ufe0f  Cluster '{name}' not found on {cloud} in {region}[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"{cloud} cluster '{name}'", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("endpoint", handle.endpoint)
    table.add_row("kubernetes_version", handle.kubernetes_version or "-")
    table.add_row("node_count", "-" if handle.node_count is None else str(handle.node_count))
    table.add_row("machine_size", handle.machine_size or "-")
    table.add_row("auth", type(handle.auth).__name__)
    console.print(table)
