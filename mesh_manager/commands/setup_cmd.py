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


"""Setup subcommands (multicloud)."""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import typer

from mesh_manager import console
from mesh_manager.config import ChartConfig, RunConfig, display_config, load_targets
from mesh_manager.orchestrator import bootstrap, check_prerequisites
from mesh_manager.report import render_run_result, result_json

app = typer.Typer(help="Composite setup workflows.")


@app.command()
def multicloud(
    targets_file: Path | None = typer.Option(
        None, "--targets-file", help="YAML file listing the cloud targets (default: EKS + AKS pair)"),
    mesh_id: str | None = typer.Option(
        None, "--mesh-id", help="Mesh ID shared by all clusters (overrides MESH_MESH_ID)"),
    trust_domain: str | None = typer.Option(
        None, "--trust-domain", help="Trust domain shared by all clusters"),
    verification_timeout: float | None = typer.Option(
        None, "--verification-timeout", help="Seconds to wait for each readiness check"),
    strict_proxy_check: bool = typer.Option(
        False, "--strict-proxy-check", help="Fail a target when its gateway pods are not ready"),
    parallelism: int | None = typer.Option(
        None, "--parallelism", help="Maximum number of steps running at once"),
    istio_version: str | None = typer.Option(
        None, "--istio-version", help="Istio chart version (overrides MESH_ISTIO_VERSION)"),
    skip_prereq_check: bool = typer.Option(
        False, "--skip-prereq-check", help="Do not check for required CLIs on PATH"),
    json_output: bool = typer.Option(
        False, "--json", help="Print the run result as JSON"),
) -> None:
    """Provision every target cluster and join them into one multi-primary mesh.

    Re-running is safe: existing clusters and releases are reused. The first
    Ctrl-C lets running steps finish and skips the rest.
    """
    run_cfg = RunConfig()
    overrides: dict = {}
    if mesh_id is not None:
        overrides["mesh_id"] = mesh_id
    if trust_domain is not None:
        overrides["trust_domain"] = trust_domain
    if verification_timeout is not None:
        overrides["verification_timeout"] = verification_timeout
    if strict_proxy_check:
        overrides["best_effort_proxy_check"] = False
    if parallelism is not None:
        overrides["parallelism"] = parallelism
    if overrides:
        run_cfg = run_cfg.model_copy(update=overrides)

    chart_cfg = ChartConfig()
    if istio_version is not None:
        chart_cfg = chart_cfg.model_copy(update={"istio_version": istio_version})

    specs = load_targets(targets_file)
    if not json_output:
        display_config(run_cfg, chart_cfg, specs)
    if not skip_prereq_check:
        check_prerequisites(specs)

    cancel_event = threading.Event()

    def _cancel(signum, frame) -> None:
        console.print("[yellow]\u26a0\ufe0f  Cancellation requested, waiting for running steps to finish...[/yellow]")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _cancel)
    try:
        result = bootstrap(specs, run_cfg, charts=chart_cfg, cancel_event=cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous)

    if json_output:
        typer.echo(result_json(result))
    else:
        render_run_result(result)
    raise typer.Exit(code=result.exit_code)
