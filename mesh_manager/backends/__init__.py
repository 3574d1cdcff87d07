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


"""Backend adapters, one per cloud, and the cloud-to-adapter registry."""

from __future__ import annotations

from mesh_manager.backends.aks import AksBackend
from mesh_manager.backends.base import BackendAdapter, classify_command_error, detect_drift
from mesh_manager.backends.eks import EksBackend
from mesh_manager.backends.k3d import K3dBackend
from mesh_manager.errors import ValidationError
from mesh_manager.models import ClusterSpec

BACKENDS: dict[str, type[BackendAdapter]] = {
    EksBackend.cloud: EksBackend,
    AksBackend.cloud: AksBackend,
    K3dBackend.cloud: K3dBackend,
}


def get_backend(cloud: str) -> type[BackendAdapter]:
    """Return the adapter class registered for *cloud*.

    Raises:
        ValidationError: If no adapter handles *cloud*.
    """
    try:
        return BACKENDS[cloud]
    except KeyError:
        raise ValidationError(
            f"Unsupported cloud '{cloud}' (supported: {', '.join(sorted(BACKENDS))})"
        ) from None


def create_backend(spec: ClusterSpec, **kwargs) -> BackendAdapter:
    """Instantiate the adapter for *spec*'s cloud, bound to its region."""
    return get_backend(spec.cloud).from_spec(spec, **kwargs)


__all__ = [
    "AksBackend",
    "BACKENDS",
    "BackendAdapter",
    "EksBackend",
    "K3dBackend",
    "classify_command_error",
    "create_backend",
    "detect_drift",
    "get_backend",
]
