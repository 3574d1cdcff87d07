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


"""Config subcommands (show)."""

from __future__ import annotations

from pathlib import Path

import typer

from mesh_manager.config import ChartConfig, RunConfig, display_config, load_targets

app = typer.Typer(help="Inspect the resolved configuration.")


@app.command()
def show(
    targets_file: Path | None = typer.Option(
        None, "--targets-file", help="YAML file listing the cloud targets"),
) -> None:
    """Print run settings (after MESH_* env overrides) and the cloud targets."""
    display_config(RunConfig(), ChartConfig(), load_targets(targets_file))
