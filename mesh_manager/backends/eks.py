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


"""AWS EKS backend driven by the aws and eksctl CLIs."""

from __future__ import annotations

import shlex

from mesh_manager import console
from mesh_manager.backends.base import BackendAdapter, is_not_found
from mesh_manager.constants import CLOUD_AWS, EXEC_API_VERSION
from mesh_manager.errors import BackendError, CommandError
from mesh_manager.models import ClusterHandle, ClusterSpec, ExecCredential
from mesh_manager.utils import run_json

NODEGROUP_NAME = "default"
NODEGROUP_MIN_SIZE = 1
NODEGROUP_MAX_SIZE = 3

_PENDING_STATUSES = ("CREATING", "UPDATING", "PENDING")
_FAILED_STATUSES = ("FAILED", "DELETING")


class EksBackend(BackendAdapter):
    """Managed clusters on AWS EKS.

    Clusters are created with ``eksctl`` (which also provisions the VPC and
    the managed node group) and described with ``aws eks``. Clients
    authenticate with short-lived tokens from ``aws eks get-token``.
    """

    cloud = CLOUD_AWS
    required_commands = ("aws", "eksctl")

    def _describe(self, name: str) -> ClusterHandle | None:
        doc = run_json(
            self._run, "aws", "eks", "describe-cluster",
            "--name", name, "--region", self.region, "--output", "json",
            timeout=self.describe_timeout,
        )
        cluster = (doc or {}).get("cluster")
        if not cluster:
            return None

        status = cluster.get("status", "")
        if status in _FAILED_STATUSES:
            raise BackendError(f"EKS cluster '{name}' is in state {status}", cloud=self.cloud, cluster=name)
        if status in _PENDING_STATUSES:
            console.print(f"[yellow]\u2139\ufe0f  EKS cluster '{name}' is {status}, waiting for it to become active...[/yellow]")
            self._run(
                "aws", "eks", "wait", "cluster-active", "--name", name, "--region", self.region,
                timeout=self.create_timeout,
            )
            return self._describe(name)

        node_count, machine_size = self._describe_nodegroup(name)
        return ClusterHandle(
            name=cluster["name"],
            endpoint=cluster["endpoint"],
            ca_data=cluster.get("certificateAuthority", {}).get("data", ""),
            auth=ExecCredential(
                command="aws",
                args=("eks", "get-token", "--cluster-name", name, "--region", self.region),
                api_version=EXEC_API_VERSION,
            ),
            kubernetes_version=cluster.get("version"),
            node_count=node_count,
            machine_size=machine_size,
        )

    def _describe_nodegroup(self, name: str) -> tuple[int | None, str | None]:
        try:
            doc = run_json(
                self._run, "aws", "eks", "describe-nodegroup",
                "--cluster-name", name, "--nodegroup-name", NODEGROUP_NAME,
                "--region", self.region, "--output", "json",
                timeout=self.describe_timeout,
            )
        except CommandError as err:
            if is_not_found(err):
                return None, None
            raise
        nodegroup = (doc or {}).get("nodegroup", {})
        instance_types = nodegroup.get("instanceTypes") or [None]
        return nodegroup.get("scalingConfig", {}).get("desiredSize"), instance_types[0]

    def _create(self, spec: ClusterSpec) -> None:
        args = [
            "create", "cluster",
            "--name", spec.name,
            "--region", spec.region,
            "--version", spec.kubernetes_version,
            "--nodegroup-name", NODEGROUP_NAME,
            "--node-type", spec.machine_size,
            "--nodes", str(spec.node_count),
            "--nodes-min", str(min(NODEGROUP_MIN_SIZE, spec.node_count)),
            "--nodes-max", str(max(NODEGROUP_MAX_SIZE, spec.node_count)),
            "--managed",
            "--timeout", f"{int(self.create_timeout)}s",
        ]
        if spec.tags:
            args += ["--tags", ",".join(f"{key}={value}" for key, value in sorted(spec.tags.items()))]
        self._run("eksctl", *args, timeout=self.create_timeout)

    def kubeconfig_command(self, spec: ClusterSpec, context: str) -> str:
        return shlex.join([
            "aws", "eks", "update-kubeconfig",
            "--region", spec.region, "--name", spec.name, "--alias", context,
        ])
