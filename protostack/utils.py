# /*
# Copyright 2026 The protostack Authors.
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

"""Utility functions for kubectl, helm overrides, and command checks."""

from __future__ import annotations

import platform
import subprocess
from collections.abc import Mapping
from typing import Any, NamedTuple

import sh

from protostack import logger
from protostack.constants import ARCH_ALIASES
from protostack.errors import ProvisionError, ToolInstallError


def command_exists(cmd: str) -> bool:
    """Return True if a command is found on the system PATH.

    Args:
        cmd: Name of the CLI command to probe.
    """
    try:
        sh.which(cmd)
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return False
    return True


def require_command(cmd: str) -> None:
    """Fail fast when a command the current operation cannot install is missing.

    Raises:
        ToolInstallError: If *cmd* is not on PATH.
    """
    if not command_exists(cmd):
        raise ToolInstallError(f"'{cmd}' is not installed; run the full provisioning first")


def error_output(err: sh.ErrorReturnCode) -> str:
    """Decode the combined stdout/stderr of a failed command."""
    parts = []
    for stream in (err.stderr, err.stdout):
        if isinstance(stream, bytes):
            stream = stream.decode("utf-8", "replace")
        if stream:
            parts.append(stream.strip())
    return "\n".join(parts)


def helm_set_args(values: Mapping[str, Any]) -> list[str]:
    """Flatten a dotted-key overlay into ``--set key=value`` arguments.

    Booleans are rendered the way helm expects (``true``/``false``).

    Args:
        values: Mapping of dotted chart keys to values.

    Returns:
        Flat list of helm CLI arguments.
    """
    args: list[str] = []
    for key, value in values.items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        args += ["--set", f"{key}={value}"]
    return args


def detect_arch() -> str:
    """Map the machine architecture onto release artifact naming.

    Raises:
        ProvisionError: If the architecture has no published artifacts.
    """
    machine = platform.machine().lower()
    try:
        return ARCH_ALIASES[machine]
    except KeyError:
        raise ProvisionError(f"Unsupported architecture '{machine}'") from None


class KubectlResult(NamedTuple):
    ok: bool
    stdout: str
    stderr: str


def run_kubectl(args: list[str], timeout: int = 30) -> KubectlResult:
    """Run kubectl for a probe or a wait where failure is an answer, not an error.

    Args:
        args: kubectl arguments (e.g. ``["get", "namespace", "ops"]``).
        timeout: Seconds before the process is killed.

    Returns:
        ``(ok, stdout, stderr)``; a missing binary or a kill on timeout is
        reported as not ok with the reason in ``stderr``.
    """
    logger.debug("kubectl %s", " ".join(args))
    try:
        proc = subprocess.run(["kubectl", *args], capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return KubectlResult(False, "", f"kubectl timed out after {timeout}s")
    except OSError as exc:
        return KubectlResult(False, "", str(exc))
    return KubectlResult(proc.returncode == 0, proc.stdout, proc.stderr)
