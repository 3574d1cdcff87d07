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


"""Mesh bootstrapper: namespace, control plane and east-west gateway per cluster."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from rich.panel import Panel

from mesh_manager import console
from mesh_manager.config import ChartConfig
from mesh_manager.constants import (
    DEFAULT_INSTALL_TIMEOUT,
    GATEWAY_REPLICAS,
    GATEWAY_RESOURCES,
    GATEWAY_STATUS_PORT,
    GATEWAY_STATUS_PORT_NAME,
    GATEWAY_TLS_PORT,
    GATEWAY_TLS_PORT_NAME,
    HELM_RELEASE_BASE,
    HELM_RELEASE_GATEWAY,
    HELM_RELEASE_ISTIOD,
    LABEL_NETWORK,
    NS_MESH_SYSTEM,
    STEP_CONTROL_PLANE,
    STEP_GATEWAY,
    STEP_NAMESPACE,
)
from mesh_manager.credentials import ClientContext
from mesh_manager.graph import ResourceGraph
from mesh_manager.installer import ChartRef, PackageInstaller
from mesh_manager.kube import ClusterClient
from mesh_manager.models import MeshIdentity


# ============================================================================
# Chart values
# ============================================================================

def base_values(identity: MeshIdentity, network: str) -> dict[str, Any]:
    return {"global": {"meshID": identity.mesh_id, "network": network}}


def control_plane_values(identity: MeshIdentity, network: str, cluster_name: str) -> dict[str, Any]:
    """Values for a multi-primary control plane: each cluster runs its own istiod."""
    return {
        "global": {
            "meshID": identity.mesh_id,
            "network": network,
            "multiCluster": {"clusterName": cluster_name},
        },
        "meshConfig": {"trustDomain": identity.trust_domain},
        "pilot": {"env": {"EXTERNAL_ISTIOD": "false"}},
    }


def gateway_values(network: str) -> dict[str, Any]:
    """Values for the east-west gateway carrying mTLS traffic between clusters.

    One replica with a zero-unavailable rolling update, sized for small nodes.
    """
    return {
        "labels": {
            "app": HELM_RELEASE_GATEWAY,
            "istio": "eastwestgateway",
            LABEL_NETWORK: network,
        },
        "networkGateway": network,
        "replicaCount": GATEWAY_REPLICAS,
        "autoscaling": {"enabled": False},
        "resources": GATEWAY_RESOURCES,
        "strategy": {
            "type": "RollingUpdate",
            "rollingUpdate": {"maxUnavailable": 0, "maxSurge": 1},
        },
        "env": {"ISTIO_META_REQUESTED_NETWORK_VIEW": network},
        "service": {
            "type": "LoadBalancer",
            "ports": [
                {"name": GATEWAY_STATUS_PORT_NAME, "port": GATEWAY_STATUS_PORT, "targetPort": GATEWAY_STATUS_PORT},
                {"name": GATEWAY_TLS_PORT_NAME, "port": GATEWAY_TLS_PORT, "targetPort": GATEWAY_TLS_PORT},
            ],
        },
    }


# ============================================================================
# Bootstrapper
# ============================================================================

class MeshBootstrapper:
    """Installs the mesh on one cluster at a time, one step per graph node.

    Every step is idempotent: the namespace is created if absent and
    relabelled, and charts are installed with ``upgrade --install``.
    """

    def __init__(
        self,
        identity: MeshIdentity,
        client: ClusterClient,
        installer: PackageInstaller,
        charts: ChartConfig | None = None,
        namespace: str = NS_MESH_SYSTEM,
        install_timeout: float = DEFAULT_INSTALL_TIMEOUT,
    ) -> None:
        self.identity = identity
        self._client = client
        self._installer = installer
        self.charts = charts or ChartConfig()
        self.namespace = namespace
        self.install_timeout = install_timeout

    def _chart(self, name: str) -> ChartRef:
        return ChartRef(name=name, repository=self.charts.istio_repository, version=self.charts.istio_version)

    def create_namespace(self, context: ClientContext, target: str) -> None:
        network = self.identity.network_for(target)
        console.print(Panel.fit(f"Creating namespace {self.namespace} on {context.name}", style="bold blue"))
        self._client.create_namespace(context, self.namespace, {LABEL_NETWORK: network})
        console.print(f"[green]\u2705 Namespace {self.namespace} labelled {LABEL_NETWORK}={network}[/green]")

    def install_control_plane(self, context: ClientContext, target: str) -> None:
        network = self.identity.network_for(target)
        console.print(Panel.fit(f"Installing mesh control plane on {context.name}", style="bold blue"))
        self._installer.install_or_upgrade(
            context, HELM_RELEASE_BASE, self._chart(self.charts.base_chart), self.namespace,
            base_values(self.identity, network), self.install_timeout,
        )
        self._installer.install_or_upgrade(
            context, HELM_RELEASE_ISTIOD, self._chart(self.charts.control_plane_chart), self.namespace,
            control_plane_values(self.identity, network, context.cluster_name), self.install_timeout,
        )

    def install_gateway(self, context: ClientContext, target: str) -> None:
        network = self.identity.network_for(target)
        console.print(Panel.fit(f"Installing east-west gateway on {context.name}", style="bold blue"))
        self._installer.install_or_upgrade(
            context, HELM_RELEASE_GATEWAY, self._chart(self.charts.gateway_chart), self.namespace,
            gateway_values(network), self.install_timeout,
        )

    def add_steps(
        self,
        graph: ResourceGraph,
        target: str,
        context: Callable[[], ClientContext],
        after: str,
    ) -> str:
        """Add namespace -> control plane -> gateway nodes for *target*.

        Args:
            graph: Graph to add the nodes to.
            target: Branch name; node ids are ``<target>/<step>``.
            context: Returns the branch's client context once it is resolved.
            after: Id of the node the namespace step depends on.

        Returns:
            Id of the gateway node.
        """
        ns_id = f"{target}/{STEP_NAMESPACE}"
        cp_id = f"{target}/{STEP_CONTROL_PLANE}"
        gw_id = f"{target}/{STEP_GATEWAY}"
        graph.add_node(ns_id, lambda: self.create_namespace(context(), target), [after], branch=target)
        graph.add_node(cp_id, lambda: self.install_control_plane(context(), target), [ns_id], branch=target)
        graph.add_node(gw_id, lambda: self.install_gateway(context(), target), [cp_id], branch=target)
        return gw_id
