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


"""Cluster API client contract and its kubectl implementation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from mesh_manager import logger
from mesh_manager.constants import ALREADY_EXISTS_MARKER, DEFAULT_NAMESPACE_TIMEOUT, NOT_READY_MARKERS
from mesh_manager.credentials import ClientContext
from mesh_manager.errors import CommandError, MeshBootstrapError, OperationTimeout
from mesh_manager.utils import CommandRunner, excerpt, run_cli


class ClusterClient(Protocol):
    """The subset of the Kubernetes API the bootstrap needs."""

    def create_namespace(self, context: ClientContext, name: str, labels: Mapping[str, str]) -> None: ...

    def wait_for_label_selector(
        self, context: ClientContext, namespace: str, selector: str, timeout: float,
    ) -> bool: ...


class KubectlClient:
    """ClusterClient backed by kubectl."""

    def __init__(self, runner: CommandRunner = run_cli, request_timeout: float = DEFAULT_NAMESPACE_TIMEOUT) -> None:
        self._run = runner
        self.request_timeout = request_timeout

    def create_namespace(self, context: ClientContext, name: str, labels: Mapping[str, str]) -> None:
        """Create *name* if absent and make sure it carries *labels*.

        Raises:
            MeshBootstrapError: If the namespace cannot be created or labelled.
        """
        try:
            self._run("kubectl", *context.kubectl_args(), "create", "namespace", name,
                      timeout=self.request_timeout)
        except CommandError as err:
            if ALREADY_EXISTS_MARKER not in err.stderr:
                raise MeshBootstrapError(f"Failed to create namespace {name}: {excerpt(err.stderr)}") from err
            logger.debug("Namespace %s already exists in %s", name, context.name)
        if not labels:
            return
        try:
            self._run(
                "kubectl", *context.kubectl_args(), "label", "namespace", name,
                *(f"{key}={value}" for key, value in sorted(labels.items())),
                "--overwrite",
                timeout=self.request_timeout,
            )
        except CommandError as err:
            raise MeshBootstrapError(f"Failed to label namespace {name}: {excerpt(err.stderr)}") from err

    def wait_for_label_selector(
        self, context: ClientContext, namespace: str, selector: str, timeout: float,
    ) -> bool:
        """Block up to *timeout* seconds for every pod matching *selector* to be Ready.

        Returns:
            True if the pods are ready; False if they are not, or none match yet.

        Raises:
            MeshBootstrapError: If kubectl fails for any other reason
                (unreachable API server, rejected credentials).
        """
        try:
            self._run(
                "kubectl", *context.kubectl_args(),
                "wait", "--for=condition=Ready", "pods",
                "-l", selector, "-n", namespace,
                f"--timeout={max(int(timeout), 1)}s",
                timeout=timeout + self.request_timeout,
            )
        except OperationTimeout as err:
            logger.debug("Pods %s in %s/%s not ready yet: %s", selector, context.name, namespace, err)
            return False
        except CommandError as err:
            if not any(marker in err.stderr for marker in NOT_READY_MARKERS):
                raise MeshBootstrapError(
                    f"Readiness check of '{selector}' on {context.name} failed: {excerpt(err.stderr)}"
                ) from err
            logger.debug("Pods %s in %s/%s not ready yet: %s", selector, context.name, namespace, err)
            return False
        return True
