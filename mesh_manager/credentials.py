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


"""Credential broker: turns cluster handles into client contexts."""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

import yaml

from mesh_manager import logger
from mesh_manager.errors import ValidationError
from mesh_manager.models import ClusterHandle, ExecCredential, StaticCredentials


@dataclass(frozen=True)
class ClientContext:
    """A kubeconfig file plus the context inside it, usable by kubectl and helm.

    Attributes:
        name: Context name (also the cluster and user entry names).
        kubeconfig_path: Path of the run-scoped kubeconfig file.
        cluster_name: Name of the cluster the context points at.
    """

    name: str
    kubeconfig_path: Path
    cluster_name: str

    def kubectl_args(self) -> list[str]:
        return ["--kubeconfig", str(self.kubeconfig_path), "--context", self.name]

    def helm_args(self) -> list[str]:
        return ["--kubeconfig", str(self.kubeconfig_path), "--kube-context", self.name]


def _user_entry(auth: StaticCredentials | ExecCredential) -> dict:
    if isinstance(auth, ExecCredential):
        exec_cfg: dict = {
            "apiVersion": auth.api_version,
            "command": auth.command,
            "args": list(auth.args),
            "interactiveMode": "Never",
        }
        if auth.env:
            exec_cfg["env"] = [{"name": key, "value": value} for key, value in auth.env]
        return {"exec": exec_cfg}
    user: dict = {}
    if auth.client_certificate_data and auth.client_key_data:
        user["client-certificate-data"] = auth.client_certificate_data
        user["client-key-data"] = auth.client_key_data
    if auth.token:
        user["token"] = auth.token
    return user


def build_kubeconfig(handle: ClusterHandle, context: str) -> dict:
    """Build a single-context kubeconfig document for *handle*.

    Args:
        handle: Cluster connection details.
        context: Name used for the context, cluster and user entries.

    Returns:
        Kubeconfig as a dictionary ready for YAML serialization.
    """
    cluster: dict = {"server": handle.endpoint}
    if handle.ca_data:
        cluster["certificate-authority-data"] = handle.ca_data
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": context, "cluster": cluster}],
        "users": [{"name": context, "user": _user_entry(handle.auth)}],
        "contexts": [{"name": context, "context": {"cluster": context, "user": context}}],
        "current-context": context,
    }


class CredentialBroker:
    """Resolves cluster handles into client contexts for the lifetime of a run.

    Each resolved context is written to its own 0600 kubeconfig file in a
    private temporary directory. ``close()`` deletes the files and forgets
    every handle, so no decoded key material outlives the run.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self._dir = Path(tempfile.mkdtemp(prefix="mesh-manager-", dir=base_dir))
        self._dir.chmod(0o700)
        self._contexts: dict[str, ClientContext] = {}
        self._handles: dict[str, ClusterHandle] = {}
        self._lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> CredentialBroker:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def directory(self) -> Path:
        return self._dir

    def resolve(self, handle: ClusterHandle, context: str | None = None) -> ClientContext:
        """Write a kubeconfig for *handle* and return the matching client context.

        Args:
            handle: Cluster connection details.
            context: Context name, defaults to the cluster name.

        Raises:
            ValidationError: If the broker was already closed.
        """
        name = context or handle.name
        document = yaml.safe_dump(build_kubeconfig(handle, name), default_flow_style=False)
        with self._lock:
            if self._closed:
                raise ValidationError("Credential broker is closed")
            path = self._dir / f"{name}.kubeconfig"
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(document)
            ctx = ClientContext(name=name, kubeconfig_path=path, cluster_name=handle.name)
            self._contexts[name] = ctx
            self._handles[name] = handle
        logger.debug("Resolved client context %s -> %s", name, handle.endpoint)
        return ctx

    def handle(self, context: str) -> ClusterHandle | None:
        with self._lock:
            return self._handles.get(context)

    def contexts(self) -> list[ClientContext]:
        with self._lock:
            return list(self._contexts.values())

    def close(self) -> None:
        """Delete every kubeconfig written by this broker and drop cached handles."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._contexts.clear()
            self._handles.clear()
        shutil.rmtree(self._dir, ignore_errors=True)
        logger.debug("Scrubbed client credentials in %s", self._dir)
