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


"""Execution driver: builds one resource graph per cloud target and runs them together."""

from __future__ import annotations

import shlex
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from rich.panel import Panel

from mesh_manager import console, logger
from mesh_manager.backends import BackendAdapter, create_backend, detect_drift, get_backend
from mesh_manager.config import ChartConfig, RunConfig
from mesh_manager.constants import (
    SELECTOR_CONTROL_PLANE,
    SELECTOR_GATEWAY,
    STEP_CLUSTER,
    STEP_CREDENTIALS,
    STEP_GATEWAY,
    STEP_VERIFY_CONTROL_PLANE,
    STEP_VERIFY_GATEWAY,
)
from mesh_manager.credentials import ClientContext, CredentialBroker
from mesh_manager.errors import MeshBootstrapError, ValidationError
from mesh_manager.graph import GraphOutcome, ResourceGraph
from mesh_manager.installer import HelmInstaller, PackageInstaller
from mesh_manager.kube import ClusterClient, KubectlClient
from mesh_manager.mesh import MeshBootstrapper
from mesh_manager.models import (
    BranchResult,
    ClusterHandle,
    ClusterSpec,
    MeshIdentity,
    NodeState,
    RunResult,
    RunStatus,
    default_network_id,
)
from mesh_manager.readiness import ReadinessVerifier
from mesh_manager.utils import require_command

BackendFactory = Callable[..., BackendAdapter]
NetworkIdFn = Callable[[ClusterSpec], str]


# ============================================================================
# Branch state
# ============================================================================

@dataclass
class _Branch:
    """Mutable state owned by one target's nodes. Nodes of a branch run one at a time."""

    spec: ClusterSpec
    backend: BackendAdapter
    handle: ClusterHandle | None = None
    context: ClientContext | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.spec.name

    def require_context(self) -> ClientContext:
        if self.context is None:
            raise MeshBootstrapError(f"No client context resolved for '{self.name}'")
        return self.context


# ============================================================================
# Internal helpers
# ============================================================================

def _validate_specs(specs: Sequence[ClusterSpec]) -> None:
    if not specs:
        raise ValidationError("At least one cloud target is required")
    seen: set[str] = set()
    for spec in specs:
        if spec.name in seen:
            raise ValidationError(f"Duplicate cloud target name '{spec.name}'")
        seen.add(spec.name)


def build_mesh_identity(
    specs: Sequence[ClusterSpec],
    mesh_id: str,
    trust_domain: str,
    network_id_for: NetworkIdFn | None = None,
) -> MeshIdentity:
    """Assign every target its network ID under one shared mesh ID.

    Raises:
        ValidationError: If two targets end up with the same network ID.
    """
    network_id_for = network_id_for or default_network_id
    return MeshIdentity(
        mesh_id=mesh_id,
        trust_domain=trust_domain,
        networks={spec.name: network_id_for(spec) for spec in specs},
    )


def suggested_commands(branch: _Branch, namespace: str) -> dict[str, str]:
    """Operator commands for a provisioned target. Returned as data, never executed."""
    ctx = branch.name
    return {
        "configure": branch.backend.kubeconfig_command(branch.spec, ctx),
        "switch_context": shlex.join(["kubectl", "config", "use-context", ctx]),
        "get_nodes": shlex.join(["kubectl", f"--context={ctx}", "get", "nodes"]),
        "get_mesh_pods": shlex.join(["kubectl", f"--context={ctx}", "get", "pods", "-n", namespace]),
    }


def _build_branch_graph(
    branch: _Branch,
    broker: CredentialBroker,
    bootstrapper: MeshBootstrapper,
    verifier: ReadinessVerifier,
    config: RunConfig,
) -> ResourceGraph:
    """Chain cluster -> credentials -> namespace -> control plane -> gateway -> checks."""
    graph = ResourceGraph()
    target = branch.name

    def ensure_cluster() -> ClusterHandle:
        handle = branch.backend.ensure_cluster(branch.spec)
        branch.handle = handle
        branch.warnings.extend(detect_drift(branch.spec, handle))
        return handle

    def resolve_credentials() -> ClientContext:
        if branch.handle is None:
            raise MeshBootstrapError(f"No cluster handle for '{target}'")
        branch.context = broker.resolve(branch.handle, context=target)
        return branch.context

    def verify(selector: str) -> Callable[[], None]:
        return lambda: verifier.require_ready(
            branch.require_context(), config.mesh_namespace, selector, config.verification_timeout,
        )

    cluster_id = f"{target}/{STEP_CLUSTER}"
    creds_id = f"{target}/{STEP_CREDENTIALS}"
    verify_cp_id = f"{target}/{STEP_VERIFY_CONTROL_PLANE}"
    verify_gw_id = f"{target}/{STEP_VERIFY_GATEWAY}"

    graph.add_node(cluster_id, ensure_cluster, branch=target)
    graph.add_node(creds_id, resolve_credentials, [cluster_id], branch=target)
    gateway_id = bootstrapper.add_steps(graph, target, branch.require_context, after=creds_id)
    graph.add_node(verify_cp_id, verify(SELECTOR_CONTROL_PLANE), [gateway_id], branch=target)
    graph.add_node(
        verify_gw_id, verify(SELECTOR_GATEWAY), [verify_cp_id],
        best_effort=config.best_effort_proxy_check, branch=target,
    )
    return graph


def _summarize_branch(branch: _Branch, outcome: GraphOutcome, namespace: str) -> BranchResult:
    nodes = outcome.branch_nodes(branch.name)
    states = {node.id.split("/", 1)[1]: node.state for node in nodes}
    failure = outcome.first_failure(branch.name)

    warnings = list(branch.warnings)
    for node in nodes:
        if node.best_effort and node.state is NodeState.FAILED:
            warnings.append(f"{node.id} (best-effort) failed: {node.error}")

    if failure is not None:
        status = RunStatus.FAILED
    elif any(node.state is not NodeState.SUCCEEDED for node in nodes if not node.best_effort):
        status = RunStatus.CANCELLED
    else:
        status = RunStatus.SUCCEEDED

    return BranchResult(
        target=branch.name,
        cloud=branch.spec.cloud,
        status=status,
        handle=branch.handle,
        error=failure.error if failure is not None else None,
        mesh_installed=states.get(STEP_GATEWAY) is NodeState.SUCCEEDED,
        nodes=states,
        warnings=tuple(warnings),
        commands=suggested_commands(branch, namespace) if branch.handle is not None else {},
    )


def _overall_status(branches: dict[str, BranchResult]) -> RunStatus:
    statuses = {branch.status for branch in branches.values()}
    if RunStatus.FAILED in statuses:
        return RunStatus.FAILED
    if RunStatus.CANCELLED in statuses:
        return RunStatus.CANCELLED
    return RunStatus.SUCCEEDED


# ============================================================================
# Public API
# ============================================================================

def check_prerequisites(specs: Sequence[ClusterSpec]) -> None:
    """Check that kubectl, helm and every targeted backend's CLIs are on PATH.

    Raises:
        RuntimeError: If a required command is missing.
        ValidationError: If a target names an unsupported cloud.
    """
    prereqs = ["kubectl", "helm"]
    for spec in specs:
        for cmd in get_backend(spec.cloud).required_commands:
            if cmd not in prereqs:
                prereqs.append(cmd)
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    for cmd in prereqs:
        require_command(cmd)
    console.print("[green]\u2705 All required tools are available[/green]")


def bootstrap(
    specs: Sequence[ClusterSpec],
    config: RunConfig | None = None,
    *,
    charts: ChartConfig | None = None,
    network_id_for: NetworkIdFn | None = None,
    cancel_event: threading.Event | None = None,
    backend_factory: BackendFactory = create_backend,
    client: ClusterClient | None = None,
    installer: PackageInstaller | None = None,
    broker: CredentialBroker | None = None,
) -> RunResult:
    """Provision every target, install the mesh on each, and report the outcome.

    Args:
        specs: One cluster spec per cloud target.
        config: Run options, or None to load them from MESH_* env vars.
        charts: Mesh chart coordinates, or None for the pinned defaults.
        network_id_for: Maps a target to its network ID, or None for
            ``<cloud>-network`` (overridden by a spec's own ``network_id``).
        cancel_event: Run-scoped cancellation signal.
        backend_factory: Builds the adapter for a spec.
        client: Cluster API client, or None for kubectl.
        installer: Package installer, or None for helm.
        broker: Credential broker, or None for a run-scoped one that is
            scrubbed before returning.

    Returns:
        The consolidated run result. Branch failures are reported in it,
        never raised.

    Raises:
        ValidationError: If the specs, mesh identity or graph are invalid.
            Nothing has executed in that case.
    """
    config = config or RunConfig()
    _validate_specs(specs)
    identity = build_mesh_identity(specs, config.mesh_id, config.trust_domain, network_id_for)

    client = client or KubectlClient()
    installer = installer or HelmInstaller()
    verifier = ReadinessVerifier(client, poll_interval=config.poll_interval)
    bootstrapper = MeshBootstrapper(
        identity, client, installer, charts,
        namespace=config.mesh_namespace, install_timeout=config.install_timeout,
    )

    branches = [
        _Branch(
            spec=spec,
            backend=backend_factory(
                spec,
                create_timeout=config.cluster_create_timeout,
                describe_timeout=config.describe_timeout,
            ),
        )
        for spec in specs
    ]

    own_broker = broker is None
    broker = broker or CredentialBroker()
    try:
        graph = ResourceGraph.combine(*(
            _build_branch_graph(branch, broker, bootstrapper, verifier, config) for branch in branches
        ))
        graph.validate()
        console.print(Panel.fit(
            f"Bootstrapping {len(branches)} cluster(s) into mesh '{identity.mesh_id}'", style="bold blue",
        ))
        outcome = graph.run(parallelism=config.parallelism, cancel_event=cancel_event)
    finally:
        if own_broker:
            broker.close()

    results = {
        branch.name: _summarize_branch(branch, outcome, config.mesh_namespace) for branch in branches
    }
    result = RunResult(status=_overall_status(results), mesh=identity, branches=results)
    logger.info("Bootstrap finished with status %s", result.status.value)
    return result
