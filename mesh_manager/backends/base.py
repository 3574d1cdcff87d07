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


"""Backend adapter contract, drift detection, and CLI error classification."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

import yaml
from rich.panel import Panel

from mesh_manager import console, logger
from mesh_manager.constants import (
    DEFAULT_CLUSTER_CREATE_TIMEOUT,
    DEFAULT_DESCRIBE_TIMEOUT,
    NOT_FOUND_MARKERS,
    PERMISSION_MARKERS,
    QUOTA_MARKERS,
    REGION_MARKERS,
)
from mesh_manager.errors import (
    BackendError,
    CommandError,
    InvalidRegion,
    PermissionDenied,
    QuotaExceeded,
    ValidationError,
)
from mesh_manager.models import ClusterHandle, ClusterSpec, StaticCredentials
from mesh_manager.utils import CommandRunner, excerpt, run_cli


# ============================================================================
# Helpers
# ============================================================================

def is_not_found(err: CommandError) -> bool:
    return any(marker in err.stderr for marker in NOT_FOUND_MARKERS)


def classify_command_error(err: CommandError, cloud: str, cluster: str) -> BackendError:
    """Map a failed cloud CLI call onto the backend error taxonomy.

    Args:
        err: The failed command.
        cloud: Backend identifier, for the error message.
        cluster: Cluster name, for the error message.

    Returns:
        The most specific BackendError subclass matching the CLI's stderr.
    """
    text = err.stderr or err.stdout
    message = f"{cloud} rejected operation on cluster '{cluster}': {excerpt(text)}"
    lowered = text.lower()
    for markers, error_cls in (
        (PERMISSION_MARKERS, PermissionDenied),
        (QUOTA_MARKERS, QuotaExceeded),
        (REGION_MARKERS, InvalidRegion),
    ):
        if any(marker.lower() in lowered for marker in markers):
            return error_cls(message, cloud=cloud, cluster=cluster)
    return BackendError(message, cloud=cloud, cluster=cluster)


def _version_matches(desired: str, observed: str) -> bool:
    def parts(version: str) -> list[str]:
        return version.lstrip("v").split("+")[0].split("-")[0].split(".")

    wanted = parts(desired)
    return parts(observed)[:len(wanted)] == wanted


def detect_drift(spec: ClusterSpec, handle: ClusterHandle) -> list[str]:
    """Compare an existing cluster against its spec.

    Only attributes the backend reported are compared. Drift is reported,
    never corrected.

    Returns:
        Human-readable drift descriptions, empty when the cluster matches.
    """
    drift: list[str] = []
    if handle.kubernetes_version and not _version_matches(spec.kubernetes_version, handle.kubernetes_version):
        drift.append(
            f"{spec.name}: Kubernetes version is {handle.kubernetes_version}, spec wants {spec.kubernetes_version}"
        )
    if handle.node_count is not None and handle.node_count != spec.node_count:
        drift.append(f"{spec.name}: node count is {handle.node_count}, spec wants {spec.node_count}")
    if handle.machine_size and handle.machine_size != spec.machine_size:
        drift.append(f"{spec.name}: machine size is {handle.machine_size}, spec wants {spec.machine_size}")
    return drift


def parse_kubeconfig(text: str, cluster_name: str) -> tuple[str, str, StaticCredentials]:
    """Extract endpoint, CA and static credentials from a single-cluster kubeconfig.

    Args:
        text: Kubeconfig YAML as printed by the backend CLI.
        cluster_name: Cluster name, for error messages.

    Returns:
        Tuple of (endpoint, base64 CA bundle, static credentials).

    Raises:
        BackendError: If the kubeconfig lacks a cluster or user entry.
    """
    try:
        doc = yaml.safe_load(text) or {}
        cluster = doc["clusters"][0]["cluster"]
        user = doc["users"][0]["user"]
    except (yaml.YAMLError, KeyError, IndexError, TypeError) as err:
        raise BackendError(f"Unusable kubeconfig returned for cluster '{cluster_name}'",
                           cluster=cluster_name) from err
    credentials = StaticCredentials(
        client_certificate_data=user.get("client-certificate-data"),
        client_key_data=user.get("client-key-data"),
        token=user.get("token"),
    )
    return cluster["server"], cluster.get("certificate-authority-data", ""), credentials


# ============================================================================
# Adapter contract
# ============================================================================

class BackendAdapter(ABC):
    """Creates and describes managed clusters on one cloud backend.

    Subclasses implement ``_describe`` and ``_create`` with the backend's
    CLI; this class supplies idempotent ``ensure_cluster`` semantics and
    maps CLI failures onto the backend error taxonomy.
    """

    cloud: ClassVar[str]
    required_commands: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        region: str,
        *,
        runner: CommandRunner = run_cli,
        create_timeout: float = DEFAULT_CLUSTER_CREATE_TIMEOUT,
        describe_timeout: float = DEFAULT_DESCRIBE_TIMEOUT,
    ) -> None:
        self.region = region
        self._run = runner
        self.create_timeout = create_timeout
        self.describe_timeout = describe_timeout

    @classmethod
    def from_spec(cls, spec: ClusterSpec, **kwargs) -> BackendAdapter:
        return cls(spec.region, **kwargs)

    def ensure_cluster(self, spec: ClusterSpec) -> ClusterHandle:
        """Return the cluster matching *spec*, creating it only if absent.

        Raises:
            ValidationError: If the spec targets another backend or region.
            BackendError: If the backend rejects the lookup or creation.
            OperationTimeout: If creation exceeds ``create_timeout``.
        """
        self._check_spec(spec)
        existing = self.describe_cluster(spec.name)
        if existing is not None:
            console.print(f"[yellow]\u2139\ufe0f  Cluster '{spec.name}' already exists on {self.cloud}, reusing it[/yellow]")
            for message in detect_drift(spec, existing):
                logger.warning("Drift detected (not corrected): %s", message)
            return existing

        console.print(Panel.fit(f"Creating {self.cloud} cluster '{spec.name}' in {spec.region}", style="bold blue"))
        try:
            self._create(spec)
        except CommandError as err:
            raise classify_command_error(err, self.cloud, spec.name) from err
        handle = self.describe_cluster(spec.name)
        if handle is None:
            raise BackendError(f"Cluster '{spec.name}' not found after creation", cloud=self.cloud, cluster=spec.name)
        console.print(f"[green]\u2705 Cluster '{spec.name}' created[/green]")
        return handle

    def describe_cluster(self, name: str) -> ClusterHandle | None:
        """Look up a cluster by name.

        Returns:
            The cluster handle, or None if no such cluster exists.

        Raises:
            BackendError: If the backend rejects the lookup.
        """
        try:
            return self._describe(name)
        except CommandError as err:
            if is_not_found(err):
                return None
            raise classify_command_error(err, self.cloud, name) from err

    def _check_spec(self, spec: ClusterSpec) -> None:
        if spec.cloud != self.cloud:
            raise ValidationError(f"Spec '{spec.name}' targets {spec.cloud}, not {self.cloud}")
        if spec.region != self.region:
            raise ValidationError(f"Spec '{spec.name}' targets region {spec.region}, adapter is bound to {self.region}")

    @abstractmethod
    def _describe(self, name: str) -> ClusterHandle | None:
        """Return the handle of *name*, None, or raise CommandError."""

    @abstractmethod
    def _create(self, spec: ClusterSpec) -> None:
        """Issue the creation request and wait for the cluster to become usable."""

    @abstractmethod
    def kubeconfig_command(self, spec: ClusterSpec, context: str) -> str:
        """Operator command that merges this cluster into ~/.kube/config under *context*."""
