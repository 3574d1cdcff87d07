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

import time

import pytest
from fakes import FakeClusterClient

from mesh_manager.errors import MeshBootstrapError, OperationTimeout, VerificationTimeout
from mesh_manager.readiness import Readiness, ReadinessVerifier


class TestReadinessVerifier:
    def test_ready_on_first_poll(self, context):
        client = FakeClusterClient()
        verifier = ReadinessVerifier(client, poll_interval=0.01)

        assert verifier.wait_for_condition(context, "istio-system", "app=istiod", timeout=1) is Readiness.READY
        assert len(client.polls) == 1

    def test_ready_after_a_few_polls(self, context):
        client = FakeClusterClient()
        answers = iter([False, False, True])
        client.wait_for_label_selector = lambda *args: next(answers)
        verifier = ReadinessVerifier(client, poll_interval=0.01)

        assert verifier.wait_for_condition(context, "istio-system", "app=istiod", timeout=2) is Readiness.READY

    def test_times_out(self, context):
        client = FakeClusterClient(not_ready={("cluster-a", "app=istiod")})
        verifier = ReadinessVerifier(client, poll_interval=0.02)

        start = time.monotonic()
        result = verifier.wait_for_condition(context, "istio-system", "app=istiod", timeout=0.1)

        assert result is Readiness.TIMED_OUT
        assert time.monotonic() - start < 2
        assert len(client.polls) >= 2

    def test_waiting_again_restarts_polling(self, context):
        client = FakeClusterClient(not_ready={("cluster-a", "app=istiod")})
        verifier = ReadinessVerifier(client, poll_interval=0.02)

        assert verifier.wait_for_condition(context, "istio-system", "app=istiod", 0.05) is Readiness.TIMED_OUT
        client.not_ready.clear()
        assert verifier.wait_for_condition(context, "istio-system", "app=istiod", 0.05) is Readiness.READY

    def test_require_ready_raises_verification_timeout(self, context):
        client = FakeClusterClient(not_ready={("cluster-a", "app=istio-eastwestgateway")})
        verifier = ReadinessVerifier(client, poll_interval=0.02)

        with pytest.raises(VerificationTimeout) as excinfo:
            verifier.require_ready(context, "istio-system", "app=istio-eastwestgateway", 0.05)

        assert isinstance(excinfo.value, OperationTimeout)
        assert isinstance(excinfo.value, TimeoutError)
        assert excinfo.value.selector == "app=istio-eastwestgateway"

    def test_client_failure_is_raised_without_waiting(self, context):
        client = FakeClusterClient()

        def rejected(*args):
            raise MeshBootstrapError("Unauthorized")

        client.wait_for_label_selector = rejected
        verifier = ReadinessVerifier(client, poll_interval=0.02)

        start = time.monotonic()
        with pytest.raises(MeshBootstrapError) as excinfo:
            verifier.require_ready(context, "istio-system", "app=istiod", 5)

        assert not isinstance(excinfo.value, VerificationTimeout)
        assert time.monotonic() - start < 1
