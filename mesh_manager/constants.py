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


"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load chart versions and tool images from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Clouds --
CLOUD_AWS = "aws"
CLOUD_AZURE = "azure"
CLOUD_K3D = "k3d"

# -- Mesh --
NS_MESH_SYSTEM = "istio-system"
LABEL_NETWORK = "topology.istio.io/network"
DEFAULT_MESH_ID = "mesh1"
DEFAULT_TRUST_DOMAIN = "cluster.local"
NETWORK_ID_SUFFIX = "-network"

# -- Helm releases --
HELM_RELEASE_BASE = "istio-base"
HELM_RELEASE_ISTIOD = "istiod"
HELM_RELEASE_GATEWAY = "istio-eastwestgateway"

# -- Readiness selectors --
SELECTOR_CONTROL_PLANE = "app=istiod"
SELECTOR_GATEWAY = f"app={HELM_RELEASE_GATEWAY}"

# -- Gateway ports --
GATEWAY_STATUS_PORT = 15021
GATEWAY_STATUS_PORT_NAME = "status-port"
GATEWAY_TLS_PORT = 15443
GATEWAY_TLS_PORT_NAME = "tls"

# -- Gateway sizing (small worker nodes) --
GATEWAY_RESOURCES = {
    "requests": {"cpu": "100m", "memory": "128Mi"},
    "limits": {"cpu": "500m", "memory": "512Mi"},
}
GATEWAY_REPLICAS = 1

# -- Node ids within a branch --
STEP_CLUSTER = "cluster"
STEP_CREDENTIALS = "credentials"
STEP_NAMESPACE = "namespace"
STEP_CONTROL_PLANE = "control-plane"
STEP_GATEWAY = "gateway"
STEP_VERIFY_CONTROL_PLANE = "verify-control-plane"
STEP_VERIFY_GATEWAY = "verify-gateway"

# -- Kubeconfig exec plugin --
EXEC_API_VERSION = "client.authentication.k8s.io/v1beta1"

# -- Stderr markers from cloud CLIs --
QUOTA_MARKERS = ("QuotaExceeded", "LimitExceeded", "quota", "InsufficientCapacity")
REGION_MARKERS = ("InvalidRegion", "LocationNotAvailable", "NoRegionInfo", "Could not connect to the endpoint URL",
                  "is not available in", "NoRegisteredProviderFound")
PERMISSION_MARKERS = ("AccessDenied", "AuthorizationFailed", "UnauthorizedOperation", "Forbidden",
                      "ExpiredToken", "not authorized")
NOT_FOUND_MARKERS = ("ResourceNotFoundException", "ResourceNotFound", "ResourceGroupNotFound",
                     "could not be found", "No nodes found")
ALREADY_EXISTS_MARKER = "AlreadyExists"
NOT_READY_MARKERS = ("no matching resources found", "timed out waiting for the condition")

# -- Cloud defaults (EKS + AKS pair) --
DEFAULT_KUBERNETES_VERSION = dep_value("kubernetes", "default_version", default="1.31")
DEFAULT_NODE_COUNT = 2
DEFAULT_AWS_REGION = "eu-north-1"
DEFAULT_AWS_INSTANCE_TYPE = "t3.medium"
DEFAULT_AWS_CLUSTER_NAME = "multicloud-aws"
DEFAULT_AZURE_LOCATION = "North Europe"
DEFAULT_AZURE_VM_SIZE = "Standard_B2s"
DEFAULT_AZURE_CLUSTER_NAME = "multicloud-azure"
DEFAULT_AZURE_RESOURCE_GROUP = "multicloud-rg"
DEFAULT_ENVIRONMENT = "multicloud"
DEFAULT_K3D_IMAGE = dep_value("k3d", "image", default="rancher/k3s:v1.31.5-k3s1")

# -- Timeouts & polling (seconds) --
DEFAULT_VERIFICATION_TIMEOUT = 300
DEFAULT_POLL_INTERVAL = 5
DEFAULT_INSTALL_TIMEOUT = 600
DEFAULT_CLUSTER_CREATE_TIMEOUT = 1800
DEFAULT_DESCRIBE_TIMEOUT = 60
DEFAULT_NAMESPACE_TIMEOUT = 60

# -- Parallelism & limits --
DEFAULT_PARALLELISM = 4
STDERR_EXCERPT = 300
