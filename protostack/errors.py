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

"""Exception types raised by provisioning steps."""

from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for every provisioning failure."""


class ToolInstallError(ProvisionError):
    """A required tool is missing, or still missing after its install procedure ran."""


class DownloadError(ProvisionError):
    """A release artifact could not be fetched."""


class ClusterNotRunning(ProvisionError):
    """The local cluster is not running when a step needs it."""


class NamespaceError(ProvisionError):
    """A namespace did not become visible after creation."""


class InstallFailed(ProvisionError):
    """A chart upsert failed for a reason other than a readiness timeout."""

    def __init__(self, release: str, detail: str, exit_code: int | None = None) -> None:
        super().__init__(f"Failed to install release '{release}': {detail}")
        self.release = release
        self.exit_code = exit_code


class ReadinessTimeout(ProvisionError):
    """A workload was applied but did not become ready in time."""

    def __init__(self, name: str, timeout: str, exit_code: int | None = None, kind: str = "Release") -> None:
        super().__init__(f"{kind} '{name}' not ready within {timeout}")
        self.name = name
        self.timeout = timeout
        self.exit_code = exit_code


class PlanError(ProvisionError):
    """The step graph is malformed (duplicate, unknown or cyclic requirements)."""


class StepFailed(ProvisionError):
    """A fatal step failed; no later step was run."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"Step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause

    @property
    def exit_code(self) -> int:
        """Exit code of the failing external call, or 1 when unknown."""
        code = getattr(self.cause, "exit_code", None)
        return code if isinstance(code, int) and code > 0 else 1
