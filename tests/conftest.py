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

import pytest
from fakes import make_handle, make_spec

from mesh_manager.config import RunConfig
from mesh_manager.credentials import ClientContext, CredentialBroker


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(verification_timeout=0.3, poll_interval=0.05, parallelism=4)


@pytest.fixture
def broker(tmp_path):
    with CredentialBroker(base_dir=tmp_path) as b:
        yield b


@pytest.fixture
def context(broker) -> ClientContext:
    return broker.resolve(make_handle(make_spec()), context="cluster-a")
