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


"""Configuration classes, targets file loading, and config display."""

from __future__ import annotations

from pathlib import Path

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.table import Table

from mesh_manager import console
from mesh_manager.constants import (
    CLOUD_AWS,
    CLOUD_AZURE,
    DEFAULT_AWS_CLUSTER_NAME,
    DEFAULT_AWS_INSTANCE_TYPE,
    DEFAULT_AWS_REGION,
    DEFAULT_AZURE_CLUSTER_NAME,
    DEFAULT_AZURE_LOCATION,
    DEFAULT_AZURE_RESOURCE_GROUP,
    DEFAULT_AZURE_VM_SIZE,
    DEFAULT_CLUSTER_CREATE_TIMEOUT,
    DEFAULT_DESCRIBE_TIMEOUT,
    DEFAULT_ENVIRONMENT,
    DEFAULT_INSTALL_TIMEOUT,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_MESH_ID,
    DEFAULT_NODE_COUNT,
    DEFAULT_PARALLELISM,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TRUST_DOMAIN,
    DEFAULT_VERIFICATION_TIMEOUT,
    NS_MESH_SYSTEM,
    dep_value,
)
from mesh_manager.errors import ValidationError
from mesh_manager.models import ClusterSpec


# ============================================================================
# Configuration classes
# ============================================================================

class RunConfig(BaseSettings):
    """Run-wide options, auto-loaded from MESH_* env vars.

    Attributes:
        mesh_id: Mesh ID shared by every cluster of the run.
        trust_domain: Workload identity trust domain shared by every cluster.
        mesh_namespace: Namespace the mesh control plane and gateway live in.
        verification_timeout: Seconds to wait for each readiness check.
        poll_interval: Seconds between readiness polls.
        best_effort_proxy_check: Whether the gateway readiness check may fail
            without failing the branch.
        parallelism: Maximum number of graph nodes executing at once.
        install_timeout: Seconds allowed for each package install.
        cluster_create_timeout: Seconds allowed for a cluster creation.
        describe_timeout: Seconds allowed for a cluster lookup.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    mesh_id: str = Field(default=DEFAULT_MESH_ID, min_length=1)
    trust_domain: str = Field(default=DEFAULT_TRUST_DOMAIN, min_length=1)
    mesh_namespace: str = NS_MESH_SYSTEM
    verification_timeout: float = Field(default=DEFAULT_VERIFICATION_TIMEOUT, gt=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    best_effort_proxy_check: bool = True
    parallelism: int = Field(default=DEFAULT_PARALLELISM, ge=1, le=64)
    install_timeout: float = Field(default=DEFAULT_INSTALL_TIMEOUT, gt=0)
    cluster_create_timeout: float = Field(default=DEFAULT_CLUSTER_CREATE_TIMEOUT, gt=0)
    describe_timeout: float = Field(default=DEFAULT_DESCRIBE_TIMEOUT, gt=0)


class ChartConfig(BaseSettings):
    """Mesh chart coordinates, auto-loaded from MESH_* env vars.

    Attributes:
        istio_version: Istio Helm chart version.
        istio_repository: Helm repository URL hosting the Istio charts.
        base_chart: Chart name of the cluster-wide CRDs and base resources.
        control_plane_chart: Chart name of the control plane.
        gateway_chart: Chart name of the gateway.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    istio_version: str = Field(default=dep_value("istio", "version", default="1.26.2"),
                               pattern=r"^\d+\.\d+\.\d+(-[\w.]+)?$")
    istio_repository: str = dep_value("istio", "repository",
                                      default="https://istio-release.storage.googleapis.com/charts")
    base_chart: str = dep_value("istio", "charts", "base", default="base")
    control_plane_chart: str = dep_value("istio", "charts", "control_plane", default="istiod")
    gateway_chart: str = dep_value("istio", "charts", "gateway", default="gateway")


# ============================================================================
# Targets file
# ============================================================================

class _TargetEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    cloud: str
    region: str
    node_count: int | None = None
    machine_size: str
    kubernetes_version: str | None = None
    resource_group: str | None = None
    network_id: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class TargetsFile(BaseModel):
    """On-disk description of the clusters to bootstrap.

    Top-level ``kubernetes_version`` and ``node_count`` are defaults for
    targets that do not set their own; ``environment`` is added to every
    target's tags.
    """

    model_config = ConfigDict(extra="forbid")

    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION
    node_count: int = DEFAULT_NODE_COUNT
    environment: str = DEFAULT_ENVIRONMENT
    targets: list[_TargetEntry] = Field(min_length=1)

    def cluster_specs(self) -> list[ClusterSpec]:
        specs = []
        for entry in self.targets:
            data = entry.model_dump()
            if entry.kubernetes_version is None:
                data["kubernetes_version"] = self.kubernetes_version
            if entry.node_count is None:
                data["node_count"] = self.node_count
            data["tags"] = {"Environment": self.environment, **entry.tags}
            specs.append(ClusterSpec(**data))
        return specs


def default_targets() -> list[ClusterSpec]:
    """Return the default EKS + AKS pair."""
    tags = {"Environment": DEFAULT_ENVIRONMENT}
    return [
        ClusterSpec(
            name=DEFAULT_AWS_CLUSTER_NAME,
            cloud=CLOUD_AWS,
            region=DEFAULT_AWS_REGION,
            node_count=DEFAULT_NODE_COUNT,
            machine_size=DEFAULT_AWS_INSTANCE_TYPE,
            kubernetes_version=DEFAULT_KUBERNETES_VERSION,
            tags=tags,
        ),
        ClusterSpec(
            name=DEFAULT_AZURE_CLUSTER_NAME,
            cloud=CLOUD_AZURE,
            region=DEFAULT_AZURE_LOCATION,
            node_count=DEFAULT_NODE_COUNT,
            machine_size=DEFAULT_AZURE_VM_SIZE,
            kubernetes_version=DEFAULT_KUBERNETES_VERSION,
            resource_group=DEFAULT_AZURE_RESOURCE_GROUP,
            tags=tags,
        ),
    ]


def load_targets(path: Path | None) -> list[ClusterSpec]:
    """Load cluster specs from a YAML targets file, or the defaults.

    Args:
        path: Path to the targets file, or None for the default targets.

    Returns:
        Validated cluster specs in file order.

    Raises:
        ValidationError: If the file is missing, unparsable, or malformed.
    """
    if path is None:
        return default_targets()
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as err:
        raise ValidationError(f"Cannot read targets file {path}: {err}") from err
    except yaml.YAMLError as err:
        raise ValidationError(f"Targets file {path} is not valid YAML: {err}") from err
    try:
        return TargetsFile.model_validate(raw or {}).cluster_specs()
    except pydantic.ValidationError as err:
        raise ValidationError(f"Targets file {path} is invalid:\n{err}") from err


# ============================================================================
# Display
# ============================================================================

def display_config(run_cfg: RunConfig, chart_cfg: ChartConfig, specs: list[ClusterSpec]) -> None:
    """Print the resolved configuration as rich tables."""
    settings = Table(title="Run configuration", show_header=False)
    settings.add_column("Setting", style="cyan")
    settings.add_column("Value")
    for key, value in run_cfg.model_dump().items():
        settings.add_row(key, str(value))
    settings.add_row("istio_version", chart_cfg.istio_version)
    console.print(settings)

    targets = Table(title="Cloud targets")
    for column in ("Name", "Cloud", "Region", "Nodes", "Size", "Version", "Network"):
        targets.add_column(column)
    for spec in specs:
        targets.add_row(
            spec.name, spec.cloud, spec.region, str(spec.node_count),
            spec.machine_size, spec.kubernetes_version, spec.network_id or "-",
        )
    console.print(targets)
