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


"""Readiness verifier: polls a cluster until a workload set is Ready."""

from __future__ import annotations

import time
from enum import Enum

from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from mesh_manager import console
from mesh_manager.constants import DEFAULT_POLL_INTERVAL
from mesh_manager.credentials import ClientContext
from mesh_manager.errors import VerificationTimeout
from mesh_manager.kube import ClusterClient


class Readiness(str, Enum):
    READY = "Ready"
    TIMED_OUT = "TimedOut"


class ReadinessVerifier:
    """Polls label-selected pods at a fixed interval until Ready or timeout.

    Holds no state between calls: waiting again after a timeout simply
    restarts polling.
    """

    def __init__(self, client: ClusterClient, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._client = client
        self.poll_interval = poll_interval

    def wait_for_condition(
        self, context: ClientContext, namespace: str, selector: str, timeout: float,
    ) -> Readiness:
        """Wait for every pod matching *selector* in *namespace* to be Ready.

        Args:
            context: Client context of the target cluster.
            namespace: Namespace of the pods.
            selector: Kubernetes label selector (e.g. ``app=istiod``).
            timeout: Maximum seconds to keep polling.

        Returns:
            ``Readiness.READY`` or ``Readiness.TIMED_OUT``.

        Raises:
            MeshBootstrapError: If the client fails for a reason other than
                the pods not being ready yet.
        """
        deadline = time.monotonic() + timeout

        @retry(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(lambda ready: not ready),
        )
        def _poll() -> bool:
            window = min(self.poll_interval, max(deadline - time.monotonic(), 0.0))
            return self._client.wait_for_label_selector(context, namespace, selector, window)

        console.print(f"[yellow]\u2139\ufe0f  Waiting for pods '{selector}' in {context.name}/{namespace}...[/yellow]")
        try:
            _poll()
        except RetryError:
            console.print(f"[yellow]\u26a0\ufe0f  Pods '{selector}' in {context.name} not ready after {timeout:g}s[/yellow]")
            return Readiness.TIMED_OUT
        console.print(f"[green]\u2705 Pods '{selector}' in {context.name} are ready[/green]")
        return Readiness.READY

    def require_ready(self, context: ClientContext, namespace: str, selector: str, timeout: float) -> None:
        """Like :meth:`wait_for_condition`, but raise on timeout.

        Raises:
            VerificationTimeout: If the pods are not Ready within *timeout*.
        """
        if self.wait_for_condition(context, namespace, selector, timeout) is not Readiness.READY:
            raise VerificationTimeout(selector, namespace, timeout)
