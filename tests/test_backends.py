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

import json

import pytest
import yaml
from fakes import FakeBackend, FakeRunner, make_handle, make_spec

from mesh_manager.backends import (
    AksBackend,
    EksBackend,
    K3dBackend,
    classify_command_error,
    create_backend,
    detect_drift,
    get_backend,
)
from mesh_manager.backends.base import parse_kubeconfig
from mesh_manager.errors import (
    BackendError,
    CommandError,
    InvalidRegion,
    OperationTimeout,
    PermissionDenied,
    QuotaExceeded,
    ValidationError,
)
from mesh_manager.models import ExecCredential, StaticCredentials

KUBECONFIG = yaml.safe_dump({
    "apiVersion": "v1",
    "kind": "Config",
    "clusters": [{"name": "c", "cluster": {"server": "https://10.0.0.1:6443", "certificate-authority-data": "Q0E="}}],
    "users": [{"name": "u", "user": {"client-certificate-data": "Q0VSVA==", "client-key-data": "S0VZ"}}],
    "contexts": [{"name": "c", "context": {"cluster": "c", "user": "u"}}],
})


def _cli_error(stderr: str, command: str = "cli") -> CommandError:
    return CommandError(command, 1, "", stderr)


class TestEnsureCluster:
    def test_existing_cluster_is_reused_without_create(self):
        spec = make_spec()
        backend = FakeBackend(clusters={spec.name: make_handle(spec)})

        handle = backend.ensure_cluster(spec)

        assert handle.name == spec.name
        assert backend.create_calls == []

    def test_second_call_does_not_create_again(self):
        spec = make_spec()
        backend = FakeBackend()

        first = backend.ensure_cluster(spec)
        second = backend.ensure_cluster(spec)

        assert first == second
        assert backend.create_calls == [spec.name]

    def test_drift_is_reported_not_corrected(self):
        spec = make_spec(node_count=2)
        backend = FakeBackend(clusters={spec.name: make_handle(spec, node_count=5, kubernetes_version="1.30.4")})

        handle = backend.ensure_cluster(spec)

        assert handle.node_count == 5
        assert backend.create_calls == []
        drift = detect_drift(spec, handle)
        assert len(drift) == 2
        assert any("node count is 5" in line for line in drift)

    def test_patch_version_is_not_drift(self):
        spec = make_spec(kubernetes_version="1.31")
        assert detect_drift(spec, make_handle(spec, kubernetes_version="v1.31.5-eks-1234")) == []

    @pytest.mark.parametrize("stderr, expected", [
        ("An error occurred (ResourceLimitExceeded): too many clusters", QuotaExceeded),
        ("(QuotaExceeded) Operation could not be completed as it results in exceeding approved quota", QuotaExceeded),
        ("(AuthorizationFailed) The client does not have authorization", PermissionDenied),
        ("AccessDeniedException: User is not authorized to perform eks:CreateCluster", PermissionDenied),
        ("(LocationNotAvailableForResourceType) The provided location 'mars' is not available", InvalidRegion),
        ("something unexpected happened", BackendError),
    ])
    def test_create_failures_are_classified(self, stderr, expected):
        spec = make_spec()
        backend = FakeBackend(create_error=_cli_error(stderr))

        with pytest.raises(BackendError) as excinfo:
            backend.ensure_cluster(spec)

        assert type(excinfo.value) is expected
        assert excinfo.value.cluster == spec.name
        assert isinstance(excinfo.value.__cause__, CommandError)

    def test_create_timeout_is_not_a_backend_rejection(self):
        backend = FakeBackend(create_error=OperationTimeout("eksctl create cluster", 10))
        with pytest.raises(OperationTimeout):
            backend.ensure_cluster(make_spec())

    def test_spec_for_another_cloud_is_rejected(self):
        backend = FakeBackend(cloud="fake")
        with pytest.raises(ValidationError):
            backend.ensure_cluster(make_spec(cloud="other"))

    def test_spec_for_another_region_is_rejected(self):
        backend = FakeBackend("region-2")
        with pytest.raises(ValidationError):
            backend.ensure_cluster(make_spec())

    def test_classify_uses_stdout_when_stderr_is_empty(self):
        err = CommandError("az aks create", 1, "QuotaExceeded", "")
        assert isinstance(classify_command_error(err, "azure", "c"), QuotaExceeded)


class TestEksBackend:
    CLUSTER = json.dumps({"cluster": {
        "name": "multicloud-aws",
        "endpoint": "https://ABC.gr7.eu-north-1.eks.amazonaws.com",
        "certificateAuthority": {"data": "Q0E="},
        "version": "1.31",
        "status": "ACTIVE",
    }})
    NODEGROUP = json.dumps({"nodegroup": {"scalingConfig": {"desiredSize": 2}, "instanceTypes": ["t3.medium"]}})
    NOT_FOUND = _cli_error(
        "An error occurred (ResourceNotFoundException) when calling the DescribeCluster operation: "
        "No cluster found for name: multicloud-aws."
    )

    def _spec(self):
        return make_spec("multicloud-aws", "aws", region="eu-north-1", machine_size="t3.medium",
                         tags={"Environment": "multicloud"})

    def test_existing_cluster_uses_exec_auth(self):
        runner = FakeRunner([
            (("aws", "eks", "describe-cluster"), self.CLUSTER),
            (("aws", "eks", "describe-nodegroup"), self.NODEGROUP),
        ])
        backend = EksBackend("eu-north-1", runner=runner)

        handle = backend.ensure_cluster(self._spec())

        assert handle.endpoint.startswith("https://ABC")
        assert isinstance(handle.auth, ExecCredential)
        assert handle.auth.command == "aws"
        assert "get-token" in handle.auth.args
        assert handle.node_count == 2
        assert handle.machine_size == "t3.medium"
        assert runner.called("eksctl") == []

    def test_missing_cluster_is_created_with_eksctl(self):
        runner = FakeRunner([
            (("aws", "eks", "describe-cluster"), [self.NOT_FOUND, self.CLUSTER]),
            (("aws", "eks", "describe-nodegroup"), self.NODEGROUP),
            (("eksctl", "create", "cluster"), ""),
        ])
        backend = EksBackend("eu-north-1", runner=runner)

        handle = backend.ensure_cluster(self._spec())

        assert handle.name == "multicloud-aws"
        (create,) = runner.called("eksctl")
        assert create[create.index("--nodes") + 1] == "2"
        assert create[create.index("--node-type") + 1] == "t3.medium"
        assert create[create.index("--version") + 1] == "1.31"
        assert create[create.index("--tags") + 1] == "Environment=multicloud"

    def test_creating_cluster_is_waited_on(self):
        creating = json.dumps({"cluster": {"name": "multicloud-aws", "status": "CREATING"}})
        runner = FakeRunner([
            (("aws", "eks", "describe-cluster"), [creating, self.CLUSTER]),
            (("aws", "eks", "wait", "cluster-active"), ""),
            (("aws", "eks", "describe-nodegroup"), self.NODEGROUP),
        ])
        backend = EksBackend("eu-north-1", runner=runner)

        assert backend.describe_cluster("multicloud-aws") is not None
        assert len(runner.called("aws", "eks", "wait")) == 1

    def test_failed_cluster_is_a_backend_error(self):
        failed = json.dumps({"cluster": {"name": "multicloud-aws", "status": "FAILED"}})
        backend = EksBackend("eu-north-1", runner=FakeRunner([(("aws", "eks", "describe-cluster"), failed)]))
        with pytest.raises(BackendError, match="FAILED"):
            backend.describe_cluster("multicloud-aws")

    def test_quota_on_create(self):
        runner = FakeRunner([
            (("aws", "eks", "describe-cluster"), self.NOT_FOUND),
            (("eksctl", "create", "cluster"), _cli_error("ResourceLimitExceeded: cluster limit reached")),
        ])
        backend = EksBackend("eu-north-1", runner=runner)
        with pytest.raises(QuotaExceeded):
            backend.ensure_cluster(self._spec())

    def test_kubeconfig_command(self):
        command = EksBackend("eu-north-1").kubeconfig_command(self._spec(), "multicloud-aws")
        assert command == (
            "aws eks update-kubeconfig --region eu-north-1 --name multicloud-aws --alias multicloud-aws"
        )


class TestAksBackend:
    CLUSTER = json.dumps({
        "name": "multicloud-azure",
        "provisioningState": "Succeeded",
        "currentKubernetesVersion": "1.31.2",
        "agentPoolProfiles": [{"name": "default", "count": 2, "vmSize": "Standard_B2s"}],
    })
    NOT_FOUND = _cli_error(
        "(ResourceNotFound) The Resource 'Microsoft.ContainerService/managedClusters/multicloud-azure' "
        "under resource group 'multicloud-rg' was not found."
    )

    def _spec(self, **overrides):
        return make_spec("multicloud-azure", "azure", region="North Europe", machine_size="Standard_B2s",
                         resource_group="multicloud-rg", **overrides)

    def test_existing_cluster_uses_client_certificate(self):
        runner = FakeRunner([
            (("az", "aks", "show"), self.CLUSTER),
            (("az", "aks", "get-credentials"), KUBECONFIG),
        ])
        backend = AksBackend.from_spec(self._spec(), runner=runner)

        handle = backend.ensure_cluster(self._spec())

        assert handle.endpoint == "https://10.0.0.1:6443"
        assert isinstance(handle.auth, StaticCredentials)
        assert handle.auth.client_key_data == "S0VZ"
        assert detect_drift(self._spec(), handle) == []
        assert runner.called("az", "aks", "create") == []

    def test_missing_cluster_creates_resource_group_then_cluster(self):
        runner = FakeRunner([
            (("az", "aks", "show"), [self.NOT_FOUND, self.CLUSTER]),
            (("az", "group", "create"), ""),
            (("az", "aks", "create"), ""),
            (("az", "aks", "get-credentials"), KUBECONFIG),
        ])
        backend = AksBackend.from_spec(self._spec(), runner=runner)

        backend.ensure_cluster(self._spec())

        commands = [argv[:3] for argv in runner.calls]
        assert commands.index(("az", "group", "create")) < commands.index(("az", "aks", "create"))
        (create,) = runner.called("az", "aks", "create")
        assert create[create.index("--resource-group") + 1] == "multicloud-rg"
        assert create[create.index("--node-vm-size") + 1] == "Standard_B2s"

    def test_unavailable_location(self):
        runner = FakeRunner([
            (("az", "aks", "show"), self.NOT_FOUND),
            (("az", "group", "create"), _cli_error("(LocationNotAvailableForResourceGroup) 'mars' is not available")),
        ])
        backend = AksBackend.from_spec(self._spec(), runner=runner)
        with pytest.raises(InvalidRegion):
            backend.ensure_cluster(self._spec())

    def test_default_resource_group(self):
        spec = make_spec("multicloud-azure", "azure", region="North Europe")
        assert AksBackend.from_spec(spec).resource_group == "multicloud-rg"


class TestK3dBackend:
    CLUSTERS = json.dumps([{
        "name": "dev",
        "nodes": [
            {"role": "server", "image": "rancher/k3s:v1.31.5-k3s1"},
            {"role": "agent", "image": "rancher/k3s:v1.31.5-k3s1"},
            {"role": "agent", "image": "rancher/k3s:v1.31.5-k3s1"},
            {"role": "loadbalancer", "image": "ghcr.io/k3d-io/k3d-proxy:5.8.3"},
        ],
    }])

    def _spec(self):
        return make_spec("dev", "k3d", region="local", machine_size="1g")

    def test_existing_cluster(self):
        runner = FakeRunner([
            (("k3d", "cluster", "list"), self.CLUSTERS),
            (("k3d", "kubeconfig", "get", "dev"), KUBECONFIG),
        ])
        handle = K3dBackend(runner=runner).ensure_cluster(self._spec())

        assert handle.node_count == 2
        assert handle.kubernetes_version == "1.31.5"
        assert handle.machine_size is None
        assert detect_drift(self._spec(), handle) == []

    def test_missing_cluster_is_created(self):
        runner = FakeRunner([
            (("k3d", "cluster", "list"), ["[]", self.CLUSTERS]),
            (("k3d", "cluster", "create", "dev"), ""),
            (("k3d", "kubeconfig", "get", "dev"), KUBECONFIG),
        ])
        K3dBackend(runner=runner).ensure_cluster(self._spec())

        (create,) = runner.called("k3d", "cluster", "create")
        assert create[create.index("--agents") + 1] == "2"
        assert "--kubeconfig-update-default=false" in create


class TestRegistry:
    def test_known_clouds(self):
        assert get_backend("aws") is EksBackend
        assert get_backend("azure") is AksBackend
        assert get_backend("k3d") is K3dBackend

    def test_unknown_cloud(self):
        with pytest.raises(ValidationError, match="gcp"):
            get_backend("gcp")

    def test_create_backend_binds_region_and_timeouts(self):
        spec = make_spec("multicloud-azure", "azure", region="North Europe", resource_group="rg-2")
        backend = create_backend(spec, create_timeout=42)
        assert backend.region == "North Europe"
        assert backend.resource_group == "rg-2"
        assert backend.create_timeout == 42


class TestParseKubeconfig:
    def test_extracts_endpoint_and_credentials(self):
        endpoint, ca_data, creds = parse_kubeconfig(KUBECONFIG, "c")
        assert endpoint == "https://10.0.0.1:6443"
        assert ca_data == "Q0E="
        assert creds.client_certificate_data == "Q0VSVA=="

    def test_rejects_unusable_document(self):
        with pytest.raises(BackendError):
            parse_kubeconfig("apiVersion: v1\nclusters: []\n", "c")
