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


from __future__ import annotations

import pytest
from fakes import FakeClusterClient, FakeInstaller

from mesh_manager.config import ChartConfig
from mesh_manager.errors import InstallError, ValidationError
from mesh_manager.graph import ResourceGraph
from mesh_manager.mesh import MeshBootstrapper, control_plane_values, gateway_values
from mesh_manager.models import MeshIdentity, NodeState

IDENTITY = MeshIdentity(mesh_id="mesh1", networks={"cluster-a": "A-network", "cluster-b": "B-network"})


class TestValues:
    def test_control_plane_values(self):
        values = control_plane_values(IDENTITY, "A-network", "cluster-a")
        assert values["global"] == {
            "meshID": "mesh1",
            "network": "A-network",
            "multiCluster": {"clusterName": "cluster-a"},
        }
        assert values["meshConfig"]["trustDomain"] == "cluster.local"
        assert values["pilot"]["env"]["EXTERNAL_ISTIOD"] == "false"

    def test_gateway_values(self):
        values = gateway_values("B-network")
        assert values["labels"]["topology.istio.io/network"] == "B-network"
        assert values["networkGateway"] == "B-network"
        assert values["replicaCount"] == 1
        assert values["strategy"]["rollingUpdate"] == {"maxUnavailable": 0, "maxSurge": 1}
        assert values["service"]["type"] == "LoadBalancer"
        ports = {port["name"]: port["port"] for port in values["service"]["ports"]}
        assert ports == {"status-port": 15021, "tls": 15443}
        assert set(values["resources"]) == {"requests", "limits"}


class TestMeshBootstrapper:
    def _bootstrapper(self, installer, client=None):
        return MeshBootstrapper(
            IDENTITY, client or FakeClusterClient(), installer,
            ChartConfig(istio_version="1.26.2"), install_timeout=30,
        )

    def test_steps_run_in_order(self, context):
        installer = FakeInstaller()
        client = FakeClusterClient()
        graph = ResourceGraph()
        graph.add_node("cluster-a/credentials", lambda: context, branch="cluster-a")

        gateway_id = self._bootstrapper(installer, client).add_steps(
            graph, "cluster-a", lambda: context, after="cluster-a/credentials",
        )
        outcome = graph.run()

        assert gateway_id == "cluster-a/gateway"
        assert outcome.succeeded
        assert outcome.start_order == [
            "cluster-a/credentials", "cluster-a/namespace", "cluster-a/control-plane", "cluster-a/gateway",
        ]
        assert client.namespaces[("cluster-a", "istio-system")] == {"topology.istio.io/network": "A-network"}
        assert installer.releases("cluster-a") == ["istio-base", "istiod", "istio-eastwestgateway"]
        charts = {call["release"]: call["chart"] for call in installer.installs}
        assert charts["istiod"].name == "istiod"
        assert charts["istiod"].version == "1.26.2"
        assert charts["istio-eastwestgateway"].name == "gateway"

    def test_install_failure_stops_the_branch(self, context):
        installer = FakeInstaller({("cluster-a", "istiod"): InstallError("istiod", "istio-system", "bad values")})
        graph = ResourceGraph()
        graph.add_node("cluster-a/credentials", lambda: context, branch="cluster-a")
        self._bootstrapper(installer).add_steps(graph, "cluster-a", lambda: context, after="cluster-a/credentials")

        outcome = graph.run()

        assert outcome.nodes["cluster-a/control-plane"].state is NodeState.FAILED
        assert isinstance(outcome.nodes["cluster-a/control-plane"].error, InstallError)
        assert outcome.nodes["cluster-a/gateway"].state is NodeState.SKIPPED
        assert installer.releases("cluster-a") == ["istio-base"]

    def test_unknown_target_has_no_network(self, context):
        with pytest.raises(ValidationError, match="No network ID"):
            self._bootstrapper(FakeInstaller()).create_namespace(context, "cluster-z")
