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

"""Helm chart repository registration and release upserts."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import sh
from rich.panel import Panel

from protostack import console, logger
from protostack.constants import (
    DEFAULT_CHART_TIMEOUT,
    HELM_ALREADY_EXISTS_MARKER,
    HELM_TIMEOUT_MARKERS,
)
from protostack.errors import InstallFailed, ReadinessTimeout
from protostack.utils import error_output, helm_set_args


# ============================================================================
# Chart repositories
# ============================================================================

class RepoOutcome(enum.Enum):
    ADDED = "added"
    ALREADY_EXISTS = "already-exists"
    FAILED = "failed"


def register_repo(name: str, url: str) -> RepoOutcome:
    """Register a chart repository, classifying the result.

    Helm either exits 0 with a "skipping" notice or fails with "already
    exists" when the name is taken; both count as ALREADY_EXISTS.
    """
    try:
        output = str(sh.helm("repo", "add", name, url))
    except sh.ErrorReturnCode as e:
        text = error_output(e)
        if HELM_ALREADY_EXISTS_MARKER in text:
            return RepoOutcome.ALREADY_EXISTS
        logger.warning("helm repo add %s failed: %s", name, text)
        return RepoOutcome.FAILED
    if HELM_ALREADY_EXISTS_MARKER in output:
        return RepoOutcome.ALREADY_EXISTS
    return RepoOutcome.ADDED


def register_repos(repos: Mapping[str, str]) -> dict[str, RepoOutcome]:
    """Register every repository; never raises on a registration failure.

    Args:
        repos: Mapping of repository name to URL.

    Returns:
        Outcome per repository name.
    """
    console.print(Panel.fit("Adding Helm repositories", style="bold blue"))
    outcomes: dict[str, RepoOutcome] = {}
    for name, url in repos.items():
        outcome = register_repo(name, url)
        outcomes[name] = outcome
        if outcome is RepoOutcome.FAILED:
            console.print(f"[yellow]⚠️  Could not register {name} ({url}), continuing[/yellow]")
        else:
            console.print(f"[green]✓ {name} ({outcome.value})[/green]")
    return outcomes


def refresh_repos() -> None:
    """Refresh all registered repositories; a failure stops the run."""
    console.print("[yellow]ℹ️  Updating Helm repositories...[/yellow]")
    sh.helm("repo", "update")
    console.print("[green]✅ Helm repositories updated[/green]")


# ============================================================================
# Releases
# ============================================================================

@dataclass(frozen=True)
class ChartRelease:
    """A chart-based workload unit.

    Attributes:
        release: Helm release name, the identity for install-or-upgrade.
        chart: Chart reference (``repo/chart``).
        namespace: Target namespace.
        values: Dotted-key overlay rendered as ``--set`` arguments.
        version: Chart version, or empty for the latest.
        wait: Whether to block until the release is ready.
        timeout: Upper bound for the readiness wait.
        create_namespace: Whether helm may create the namespace.
    """

    release: str
    chart: str
    namespace: str
    values: Mapping[str, Any] = field(default_factory=dict)
    version: str = ""
    wait: bool = True
    timeout: str = DEFAULT_CHART_TIMEOUT
    create_namespace: bool = False

    def helm_args(self) -> list[str]:
        args = ["upgrade", "--install", self.release, self.chart, "--namespace", self.namespace]
        if self.create_namespace:
            args.append("--create-namespace")
        if self.version:
            args += ["--version", self.version]
        args += helm_set_args(self.values)
        if self.wait:
            args += ["--wait", "--timeout", self.timeout]
        return args


def upsert_chart(release: ChartRelease) -> None:
    """Install the release if absent, upgrade it if present.

    Raises:
        ReadinessTimeout: If helm gave up waiting for the release to be ready.
        InstallFailed: On any other helm failure.
    """
    console.print(f"[yellow]ℹ️  Installing {release.release} ({release.chart}) into '{release.namespace}'...[/yellow]")
    try:
        sh.helm(*release.helm_args())
    except sh.ErrorReturnCode as e:
        text = error_output(e)
        if any(marker in text for marker in HELM_TIMEOUT_MARKERS):
            raise ReadinessTimeout(release.release, release.timeout, e.exit_code) from e
        raise InstallFailed(release.release, text or str(e), e.exit_code) from e
    console.print(f"[green]✅ {release.release} installed[/green]")
