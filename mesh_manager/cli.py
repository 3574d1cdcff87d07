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


"""
cli.py - Unified CLI for multi-cloud mesh bootstrap.

Subcommands:
    setup      Composite workflows (multicloud)
    describe   Inspect existing resources (cluster)
    config     Inspect the resolved configuration (show)

Environment Variables:
    Run settings can be overridden via MESH_* environment variables:
    - MESH_MESH_ID (default: mesh1)
    - MESH_VERIFICATION_TIMEOUT (default: 300)
    - MESH_BEST_EFFORT_PROXY_CHECK (default: true)
    - MESH_PARALLELISM (default: 4)
    - MESH_ISTIO_VERSION (default: from dependencies.yaml)
    - And more (see config classes for full list)

Examples:
    # Bootstrap the default EKS + AKS pair
    mesh-manager setup multicloud

    # Bootstrap targets from a file and print the result as JSON
    mesh-manager setup multicloud --targets-file targets.yaml --json

    # Look up an existing cluster
    mesh-manager describe cluster multicloud-aws --cloud aws --region eu-north-1
"""

from __future__ import annotations

import logging
import sys

import typer

from mesh_manager import console
from mesh_manager.commands import config_cmd, describe_cmd, setup_cmd

app = typer.Typer(
    help="Unified CLI for multi-cloud mesh bootstrap.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(setup_cmd.app, name="setup")
app.add_typer(describe_cmd.app, name="describe")
app.add_typer(config_cmd.app, name="config")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
