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


"""Data model: cluster specs, handles, mesh identity, and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from mesh_manager.constants import NETWORK_ID_SUFFIX
from mesh_manager.errors import ValidationError


# ============================================================================
# Inputs
# ============================================================================

class ClusterSpec(BaseModel):
    """Desired shape of one managed cluster. Immutable for the whole run.

    Attributes:
        name: Cluster name, also used as the branch name of the run.
        cloud: Backend identifier (``aws``, ``azure``, ``k3d``).
        region: Region or location the cluster lives in.
        node_count: Desired number of worker nodes.
        machine_size: Instance type or VM size of the worker nodes.
        kubernetes_version: Kubernetes minor version (e.g. ``1.31``).
        resource_group: Resource group for backends that need one.
        network_id: Explicit mesh network ID, or None to derive one.
        tags: Tags applied to the cloud resources.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, max_length=63, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    cloud: str = Field(min_length=1)
    region: str = Field(min_length=1)
    node_count: int = Field(ge=1, le=1000)
    machine_size: str = Field(min_length=1)
    kubernetes_version: str = Field(pattern=r"^v?\d+\.\d+(\.\d+)?([-+][\w.]+)?$")
    resource_group: str | None = None
    network_id: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="wrap")
    @classmethod
    def _raise_package_error(cls, data: Any, handler: Any) -> ClusterSpec:
        try:
            return handler(data)
        except pydantic.ValidationError as err:
            name = data.get("name", "?") if isinstance(data, dict) else "?"
            raise ValidationError(f"Invalid cluster spec '{name}': {err}") from err


def default_network_id(spec: ClusterSpec) -> str:
    """Derive a mesh network ID for a target (``<cloud>-network``)."""
    if spec.network_id:
        return spec.network_id
    return f"{spec.cloud}{NETWORK_ID_SUFFIX}"


# ============================================================================
# Cluster handles and auth
# ============================================================================

@dataclass(frozen=True)
class StaticCredentials:
    """Embedded key material (client certificate or bearer token)."""

    client_certificate_data: str | None = field(default=None, repr=False)
    client_key_data: str | None = field(default=None, repr=False)
    token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        has_cert = bool(self.client_certificate_data and self.client_key_data)
        if not has_cert and not self.token:
            raise ValidationError("Static credentials need a client certificate/key pair or a token")


@dataclass(frozen=True)
class ExecCredential:
    """Command invoked by the client to mint a short-lived token per request."""

    command: str
    args: tuple[str, ...] = ()
    env: tuple[tuple[str, str], ...] = ()
    api_version: str = "client.authentication.k8s.io/v1beta1"


AuthDescriptor = Union[StaticCredentials, ExecCredential]


@dataclass(frozen=True)
class ClusterHandle:
    """Connection details of a provisioned cluster.

    Attributes:
        name: Cluster name as known to the backend.
        endpoint: API server URL.
        ca_data: Base64-encoded CA bundle.
        auth: How clients authenticate against the API server.
        kubernetes_version: Version observed on the backend, if reported.
        node_count: Node count observed on the backend, if reported.
        machine_size: Machine size observed on the backend, if reported.
    """

    name: str
    endpoint: str
    ca_data: str = field(repr=False)
    auth: AuthDescriptor
    kubernetes_version: str | None = None
    node_count: int | None = None
    machine_size: str | None = None


# ============================================================================
# Mesh identity
# ============================================================================

@dataclass(frozen=True)
class MeshIdentity:
    """Trust settings shared by every cluster of one run.

    All clusters share ``mesh_id`` and ``trust_domain``; each cluster gets
    its own network ID. Duplicate network IDs are rejected on construction.
    """

    mesh_id: str
    networks: Mapping[str, str]
    trust_domain: str = "cluster.local"

    def __post_init__(self) -> None:
        if not self.mesh_id:
            raise ValidationError("mesh ID must not be empty")
        if not self.trust_domain:
            raise ValidationError("trust domain must not be empty")
        seen: dict[str, str] = {}
        for target, network in self.networks.items():
            if not network:
                raise ValidationError(f"Target '{target}' has an empty network ID")
            if network in seen:
                raise ValidationError(
                    f"Network ID '{network}' is used by both '{seen[network]}' and '{target}'"
                )
            seen[network] = target
        object.__setattr__(self, "networks", MappingProxyType(dict(self.networks)))

    def network_for(self, target: str) -> str:
        """Return the network ID assigned to *target*."""
        try:
            return self.networks[target]
        except KeyError:
            raise ValidationError(f"No network ID assigned to target '{target}'") from None


# ============================================================================
# Run state and results
# ============================================================================

class NodeState(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"

    @property
    def terminal(self) -> bool:
        return self in (NodeState.SUCCEEDED, NodeState.FAILED, NodeState.SKIPPED)


class RunStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class BranchResult:
    """Outcome of one cloud target's branch.

    Attributes:
        target: Branch name (the cluster spec name).
        cloud: Backend identifier of the target.
        status: Succeeded only if every required node of the branch succeeded.
        handle: Cluster handle, or None if the cluster step did not succeed.
        error: First fatal error of the branch, if any.
        mesh_installed: Whether namespace, control plane and gateway were installed.
        nodes: Final state of every node in the branch, keyed by step name.
        warnings: Drift reports and best-effort failures.
        commands: Suggested operator commands, as data.
    """

    target: str
    cloud: str
    status: RunStatus
    handle: ClusterHandle | None = None
    error: BaseException | None = None
    mesh_installed: bool = False
    nodes: Mapping[str, NodeState] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    commands: Mapping[str, str] = field(default_factory=dict)

    @property
    def endpoint(self) -> str | None:
        return self.handle.endpoint if self.handle else None

    @property
    def cluster_name(self) -> str:
        return self.handle.name if self.handle else self.target

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "cloud": self.cloud,
            "status": self.status.value,
            "cluster_name": self.cluster_name,
            "endpoint": self.endpoint,
            "mesh_installed": self.mesh_installed,
            "error": None if self.error is None else {
                "type": type(self.error).__name__,
                "message": str(self.error),
            },
            "nodes": {step: state.value for step, state in self.nodes.items()},
            "warnings": list(self.warnings),
            "commands": dict(self.commands),
        }


@dataclass(frozen=True)
class RunResult:
    """Consolidated outcome of a bootstrap run."""

    status: RunStatus
    mesh: MeshIdentity
    branches: Mapping[str, BranchResult]

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    @property
    def is_partial(self) -> bool:
        """True when at least one branch succeeded and at least one did not."""
        statuses = {branch.status for branch in self.branches.values()}
        return RunStatus.SUCCEEDED in statuses and len(statuses) > 1

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "partial": self.is_partial,
            "mesh_id": self.mesh.mesh_id,
            "trust_domain": self.mesh.trust_domain,
            "networks": dict(self.mesh.networks),
            "branches": {name: branch.to_dict() for name, branch in self.branches.items()},
        }
