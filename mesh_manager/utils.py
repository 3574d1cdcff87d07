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


"""Utility functions for running cloud, kubectl and helm CLIs."""

from __future__ import annotations

import json
import os
import shlex
from collections.abc import Mapping
from typing import Any, Protocol

import sh

from mesh_manager import logger
from mesh_manager.constants import STDERR_EXCERPT
from mesh_manager.errors import CommandError, OperationTimeout


class CommandRunner(Protocol):
    """Callable that runs ``command *args`` and returns its stdout."""

    def __call__(
        self,
        command: str,
        *args: str,
        timeout: float | None = None,
        stdin: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str: ...


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def excerpt(text: str, limit: int = STDERR_EXCERPT) -> str:
    """Trim CLI output for error messages."""
    text = text.strip()
    return text if len(text) <= limit else text[:limit] + "..."


def run_cli(
    command: str,
    *args: str,
    timeout: float | None = None,
    stdin: str | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run an external CLI via sh and return its stdout.

    Args:
        command: Program name resolved on PATH (e.g. ``kubectl``).
        *args: Arguments passed to the program.
        timeout: Maximum seconds to wait, or None for no bound.
        stdin: Text fed to the program's standard input.
        env: Extra environment variables layered on top of the process env.

    Returns:
        Captured stdout.

    Raises:
        CommandError: If the program is missing or exits non-zero.
        OperationTimeout: If the program runs longer than *timeout*.
    """
    display = shlex.join([command, *args])
    logger.debug("Running %s", display)
    kwargs: dict[str, Any] = {"_tty_out": False}
    if timeout is not None:
        kwargs["_timeout"] = timeout
    if stdin is not None:
        kwargs["_in"] = stdin
    if env is not None:
        kwargs["_env"] = {**os.environ, **env}
    try:
        program = sh.Command(command)
    except sh.CommandNotFound as err:
        raise CommandError(display, 127, "", f"Required command '{command}' not found") from err
    try:
        return str(program(*args, **kwargs))
    except sh.TimeoutException as err:
        raise OperationTimeout(display, timeout or 0) from err
    except sh.ErrorReturnCode as err:
        raise CommandError(display, err.exit_code, _decode(err.stdout), _decode(err.stderr)) from err


def run_json(runner: CommandRunner, command: str, *args: str, timeout: float | None = None) -> Any:
    """Run a CLI that prints JSON and parse its output."""
    output = runner(command, *args, timeout=timeout)
    try:
        return json.loads(output) if output.strip() else None
    except json.JSONDecodeError as err:
        raise CommandError(shlex.join([command, *args]), 0, output, f"Invalid JSON output: {err}") from err


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    message = f"Required command '{cmd}' not found. Please install it first."
    try:
        found = sh.which(cmd)
    except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
        raise RuntimeError(message) from err
    if not found:
        raise RuntimeError(message)
