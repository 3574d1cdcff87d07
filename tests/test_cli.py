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

import json

from fakes import FakeBackend, make_handle, make_spec
from typer.testing import CliRunner

from mesh_manager.cli import app
from mesh_manager.commands import describe_cmd, setup_cmd
from mesh_manager.models import BranchResult, MeshIdentity, RunResult, RunStatus
from mesh_manager.report import render_run_result

runner = CliRunner()


def _result(status_b: RunStatus = RunStatus.SUCCEEDED) -> RunResult:
    spec = make_spec("cluster-a", "aws")
    return RunResult(
        status=RunStatus.SUCCEEDED if status_b is RunStatus.SUCCEEDED else RunStatus.FAILED,
        mesh=MeshIdentity(mesh_id="mesh1", networks={"cluster-a": "A-network", "cluster-b": "B-network"}),
        branches={
            "cluster-a": BranchResult(
                target="cluster-a", cloud="aws", status=RunStatus.SUCCEEDED, handle=make_handle(spec),
                mesh_installed=True, commands={"switch_context": "kubectl config use-context cluster-a"},
            ),
            "cluster-b": BranchResult(
                target="cluster-b", cloud="azure", status=status_b,
                error=None if status_b is RunStatus.SUCCEEDED else RuntimeError("[quota] exceeded"),
            ),
        },
    )


class TestSetupCommand:
    def _patch(self, monkeypatch, result):
        calls = {}

        def fake_bootstrap(specs, config, **kwargs):
            calls["specs"] = specs
            calls["config"] = config
            calls["charts"] = kwargs["charts"]
            return result

        monkeypatch.setattr(setup_cmd, "bootstrap", fake_bootstrap)
        monkeypatch.setattr(setup_cmd, "check_prerequisites", lambda specs: None)
        return calls

    def test_json_output_and_overrides(self, monkeypatch):
        calls = self._patch(monkeypatch, _result())

        result = runner.invoke(app, [
            "setup", "multicloud", "--json", "--mesh-id", "mesh7", "--strict-proxy-check",
            "--parallelism", "2", "--istio-version", "1.26.3",
        ])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["status"] == "Succeeded"
        assert calls["config"].mesh_id == "mesh7"
        assert calls["config"].best_effort_proxy_check is False
        assert calls["config"].parallelism == 2
        assert calls["charts"].istio_version == "1.26.3"
        assert [spec.name for spec in calls["specs"]] == ["multicloud-aws", "multicloud-azure"]

    def test_failed_run_exits_non_zero(self, monkeypatch):
        self._patch(monkeypatch, _result(RunStatus.FAILED))

        result = runner.invoke(app, ["setup", "multicloud", "--skip-prereq-check"])

        assert result.exit_code == 1


class TestDescribeCommand:
    def test_missing_cluster(self, monkeypatch):
        monkeypatch.setattr(describe_cmd, "get_backend", lambda cloud: FakeBackend)

        result = runner.invoke(app, ["describe", "cluster", "cluster-a", "--cloud", "fake", "--region", "region-1"])

        assert result.exit_code == 1

    def test_existing_cluster(self, monkeypatch):
        spec = make_spec()
        handle = make_handle(spec)

        def backend(region, **kwargs):
            return FakeBackend(region, clusters={spec.name: handle}, **kwargs)

        monkeypatch.setattr(describe_cmd, "get_backend", lambda cloud: backend)

        result = runner.invoke(app, ["describe", "cluster", "cluster-a", "--cloud", "fake", "--region", "region-1"])

        assert result.exit_code == 0, result.output

    def test_resource_group_is_rejected_outside_azure(self, monkeypatch):
        monkeypatch.setattr(describe_cmd, "get_backend", lambda cloud: FakeBackend)

        result = runner.invoke(app, [
            "describe", "cluster", "cluster-a", "--cloud", "aws", "--region", "eu-north-1",
            "--resource-group", "rg-1",
        ])

        assert result.exit_code == 2
        assert not isinstance(result.exception, TypeError)

    def test_resource_group_is_passed_to_azure(self, monkeypatch):
        seen = {}

        def backend(region, **kwargs):
            seen.update(kwargs)
            return FakeBackend(region, describe_timeout=kwargs["describe_timeout"])

        monkeypatch.setattr(describe_cmd, "get_backend", lambda cloud: backend)

        runner.invoke(app, [
            "describe", "cluster", "cluster-a", "--cloud", "azure", "--region", "North Europe",
            "--resource-group", "rg-1",
        ])

        assert seen["resource_group"] == "rg-1"


class TestConfigCommand:
    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0, result.output


def test_render_run_result_handles_markup_in_errors():
    render_run_result(_result(RunStatus.FAILED))
