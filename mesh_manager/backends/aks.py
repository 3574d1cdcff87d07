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


"""Azure AKS backend driven by the az CLI."""

from __future__ import annotations

import shlex

from mesh_manager import console
from mesh_manager.backends.base import BackendAdapter, parse_kubeconfig
from mesh_manager.constants import CLOUD_AZURE, DEFAULT_AZURE_RESOURCE_GROUP
from mesh_manager.errors import BackendError
from mesh_manager.models import ClusterHandle, ClusterSpec
from mesh_manager.utils import run_json

NODEPOOL_NAME = "default"

_PENDING_STATES = ("Creating", "Updating", "Upgrading", "Scaling")
_FAILED_STATES = ("Failed", "Deleting", "Canceled")


class AksBackend(BackendAdapter):
    """Managed clusters on Azure AKS.

    The resource group is created if absent. Clients authenticate with the
    static client certificate that ``az aks get-credentials`` embeds in the
    kubeconfig it prints.
    """

    cloud = CLOUD_AZURE
    required_commands = ("az",)

    def __init__(self, region: str, *, resource_group: str = DEFAULT_AZURE_RESOURCE_GROUP, **kwargs) -> None:
        super().__init__(region, **kwargs)
        self.resource_group = resource_group

    @classmethod
    def from_spec(cls, spec: ClusterSpec, **kwargs) -> AksBackend:
        return cls(spec.region, resource_group=spec.resource_group or DEFAULT_AZURE_RESOURCE_GROUP, **kwargs)

    def _describe(self, name: str) -> ClusterHandle | None:
        cluster = run_json(
            self._run, "az", "aks", "show",
            "--resource-group", self.resource_group, "--name", name, "--output", "json",
            timeout=self.describe_timeout,
        )
        if not cluster:
            return None

        state = cluster.get("provisioningState", "")
        if state in _FAILED_STATES:
            raise BackendError(f"AKS cluster '{name}' is in state {state}", cloud=self.cloud, cluster=name)
        if state in _PENDING_STATES:
            console.print(f"[yellow]\u2139\ufe0f  AKS cluster '{name}' is {state}, waiting for it to finish...[/yellow]")
            self._run(
                "az", "aks", "wait", "--resource-group", self.resource_group, "--name", name,
                "--created" if state == "Creating" else "--updated", "--timeout", str(int(self.create_timeout)),
                timeout=self.create_timeout,
            )
            return self._describe(name)

        kubeconfig = self._run(
            "az", "aks", "get-credentials",
            "--resource-group", self.resource_group, "--name", name, "--file", "-",
            timeout=self.describe_timeout,
        )
        endpoint, ca_data, credentials = parse_kubeconfig(kubeconfig, name)
        pools = cluster.get("agentPoolProfiles") or [{}]
        return ClusterHandle(
            name=cluster.get("name", name),
            endpoint=endpoint,
            ca_data=ca_data,
            auth=credentials,
            kubernetes_version=cluster.get("currentKubernetesVersion") or cluster.get("kubernetesVersion"),
            node_count=pools[0].get("count"),
            machine_size=pools[0].get("vmSize"),
        )

    def _tag_args(self, spec: ClusterSpec) -> list[str]:
        if not spec.tags:
            return []
        return ["--tags", *(f"{key}={value}" for key, value in sorted(spec.tags.items()))]

    def _create(self, spec: ClusterSpec) -> None:
        self._run(
            "az", "group", "create",
            "--name", self.resource_group, "--location", spec.region, "--output", "none",
            *self._tag_args(spec),
            timeout=self.describe_timeout,
        )
        self._run(
            "az", "aks", "create",
            "--resource-group", self.resource_group,
            "--name", spec.name,
            "--location", spec.region,
            "--kubernetes-version", spec.kubernetes_version,
            "--nodepool-name", NODEPOOL_NAME,
            "--node-count", str(spec.node_count),
            "--node-vm-size", spec.machine_size,
            "--generate-ssh-keys",
            "--output", "none",
            *self._tag_args(spec),
            timeout=self.create_timeout,
        )

    def kubeconfig_command(self, spec: ClusterSpec, context: str) -> str:
        return shlex.join([
            "az", "aks", "get-credentials",
            "--resource-group", self.resource_group, "--name", spec.name,
            "--context", context, "--overwrite-existing",
        ])
