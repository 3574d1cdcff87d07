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


"""Local k3d backend for development runs."""

from __future__ import annotations

import re
import shlex

from mesh_manager.backends.base import BackendAdapter, parse_kubeconfig
from mesh_manager.constants import CLOUD_K3D, DEFAULT_K3D_IMAGE
from mesh_manager.models import ClusterHandle, ClusterSpec
from mesh_manager.utils import run_json

K3D_REGION = "local"
ROLE_AGENT = "agent"


def _image_version(image: str) -> str | None:
    """Extract the Kubernetes version from a k3s image tag (``rancher/k3s:v1.31.5-k3s1``)."""
    m = re.search(r":v?(\d+\.\d+(?:\.\d+)?)", image)
    return m.group(1) if m else None


class K3dBackend(BackendAdapter):
    """k3d clusters on the local Docker daemon.

    The region is always ``local``. ``machine_size`` is the memory limit of
    each agent node (e.g. ``1g``); k3d does not report it back, so it is
    never part of drift reports.
    """

    cloud = CLOUD_K3D
    required_commands = ("k3d", "docker")

    def __init__(self, region: str = K3D_REGION, *, image: str = DEFAULT_K3D_IMAGE, **kwargs) -> None:
        super().__init__(region, **kwargs)
        self.image = image

    def _describe(self, name: str) -> ClusterHandle | None:
        clusters = run_json(self._run, "k3d", "cluster", "list", "--output", "json", timeout=self.describe_timeout)
        cluster = next((c for c in clusters or [] if c.get("name") == name), None)
        if cluster is None:
            return None

        kubeconfig = self._run("k3d", "kubeconfig", "get", name, timeout=self.describe_timeout)
        endpoint, ca_data, credentials = parse_kubeconfig(kubeconfig, name)
        nodes = cluster.get("nodes") or []
        agents = [node for node in nodes if node.get("role") == ROLE_AGENT]
        images = [node.get("image", "") for node in nodes if node.get("image", "").startswith("rancher/k3s")]
        return ClusterHandle(
            name=name,
            endpoint=endpoint,
            ca_data=ca_data,
            auth=credentials,
            kubernetes_version=_image_version(images[0]) if images else None,
            node_count=len(agents),
        )

    def _create(self, spec: ClusterSpec) -> None:
        self._run(
            "k3d", "cluster", "create", spec.name,
            "--servers", "1",
            "--agents", str(spec.node_count),
            "--image", self.image,
            "--agents-memory", spec.machine_size,
            "--kubeconfig-update-default=false",
            "--timeout", f"{int(self.create_timeout)}s",
            "--wait",
            timeout=self.create_timeout,
        )

    def kubeconfig_command(self, spec: ClusterSpec, context: str) -> str:
        return shlex.join(["k3d", "kubeconfig", "merge", spec.name, "--kubeconfig-merge-default"])
