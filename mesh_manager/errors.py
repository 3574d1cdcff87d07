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


"""Error taxonomy for the bootstrap run."""

from __future__ import annotations


class MeshBootstrapError(Exception):
    """Base class for all bootstrap errors."""


class ValidationError(MeshBootstrapError):
    """Malformed input detected before any work starts."""


class CycleDetected(ValidationError):
    """Raised when the dependency set of a resource graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")


class CommandError(MeshBootstrapError):
    """An external CLI exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stdout: str, stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"'{command}' exited with {exit_code}: {stderr.strip()[:300]}")


class BackendError(MeshBootstrapError):
    """The cloud backend rejected an operation."""

    def __init__(self, message: str, cloud: str = "", cluster: str = ""):
        self.cloud = cloud
        self.cluster = cluster
        super().__init__(message)


class QuotaExceeded(BackendError):
    """The account has no capacity left for the requested cluster."""


class InvalidRegion(BackendError):
    """The requested region or location is unknown to the backend."""


class PermissionDenied(BackendError):
    """The caller's credentials may not perform the operation."""


class OperationTimeout(MeshBootstrapError, TimeoutError):
    """A bounded wait on a network-bound operation was exceeded."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} did not complete within {timeout:g}s")


class VerificationTimeout(OperationTimeout):
    """A readiness condition was not reached before its timeout."""

    def __init__(self, selector: str, namespace: str, timeout: float):
        self.selector = selector
        self.namespace = namespace
        super().__init__(f"readiness of '{selector}' in namespace '{namespace}'", timeout)


class InstallError(MeshBootstrapError):
    """A package release could not be installed or upgraded."""

    def __init__(self, release: str, namespace: str, reason: str):
        self.release = release
        self.namespace = namespace
        super().__init__(f"Failed to install release '{release}' into '{namespace}': {reason}")
