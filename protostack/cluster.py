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

"""minikube cluster lifecycle and addons."""

from __future__ import annotations

import enum
import ipaddress
import json
from collections.abc import Iterable
from dataclasses import dataclass

import sh
from rich.panel import Panel
from tenacity import retry, retry_if_result, stop_after_attempt, wait_fixed

from protostack import console, logger
from protostack.config import ClusterConfig
from protostack.constants import (
    ADDONS,
    CLUSTER_IP_MAX_RETRIES,
    CLUSTER_IP_POLL_INTERVAL_SECONDS,
    KUBERNETES_VERSION,
)
from protostack.errors import ClusterNotRunning


class ClusterState(enum.Enum):
    ABSENT = "absent"
    STARTING = "starting"
    RUNNING = "running"


@dataclass
class ClusterHandle:
    """The local cluster identified by its minikube profile.

    Attributes:
        profile: minikube profile name.
        state: Last observed lifecycle state.
        ip: External address, only set once the cluster is running.
    """

    profile: str
    state: ClusterState = ClusterState.ABSENT
    ip: str | None = None


# ============================================================================
# Cluster operations
# ============================================================================

def cluster_status(profile: str) -> ClusterState:
    """Report whether the cluster for *profile* is running.

    A stopped or paused cluster is reported as ABSENT: starting it again is
    the only transition this tool offers.
    """
    try:
        output = str(sh.minikube("status", "-p", profile, "-o", "json"))
    except sh.ErrorReturnCode as e:
        logger.debug("minikube status for %s exited with %s", profile, e.exit_code)
        return ClusterState.ABSENT
    try:
        status = json.loads(output)
    except ValueError:
        return ClusterState.ABSENT
    if isinstance(status, list):
        status = status[0] if status else {}
    return ClusterState.RUNNING if status.get("APIServer") == "Running" else ClusterState.ABSENT


def start_cluster(cfg: ClusterConfig) -> ClusterHandle:
    """Issue the start request; minikube owns the transition to running.

    Args:
        cfg: Cluster capacity and driver configuration.
    """
    handle = ClusterHandle(profile=cfg.profile, state=ClusterState.STARTING)
    console.print(
        f"[yellow]ℹ️  Starting minikube (driver={cfg.driver}, cpus={cfg.cpus}, "
        f"mem={cfg.memory_mb}MB, disk={cfg.disk_mb}MB)...[/yellow]"
    )
    sh.minikube(
        "start",
        "-p", cfg.profile,
        f"--driver={cfg.driver}",
        f"--cpus={cfg.cpus}",
        f"--memory={cfg.memory_mb}",
        f"--disk-size={cfg.disk_mb}mb",
        f"--kubernetes-version={KUBERNETES_VERSION}",
    )
    handle.state = ClusterState.RUNNING
    return handle


@retry(
    retry=retry_if_result(lambda ip: ip is None),
    stop=stop_after_attempt(CLUSTER_IP_MAX_RETRIES),
    wait=wait_fixed(CLUSTER_IP_POLL_INTERVAL_SECONDS),
    retry_error_callback=lambda state: None,
)
def _poll_ip(profile: str) -> str | None:
    raw = str(sh.minikube("ip", "-p", profile)).strip()
    try:
        return str(ipaddress.ip_address(raw))
    except ValueError:
        return None


def cluster_ip(profile: str) -> str:
    """Read the external address of a running cluster.

    Raises:
        ClusterNotRunning: If no valid address is reported.
    """
    ip = _poll_ip(profile)
    if ip is None:
        raise ClusterNotRunning(f"minikube profile '{profile}' reports no IP address")
    return ip


def read_handle(profile: str) -> ClusterHandle:
    """Build a handle for an already running cluster.

    Raises:
        ClusterNotRunning: If the cluster is not running.
    """
    if cluster_status(profile) is not ClusterState.RUNNING:
        raise ClusterNotRunning(f"minikube profile '{profile}' is not running")
    return ClusterHandle(profile=profile, state=ClusterState.RUNNING, ip=cluster_ip(profile))


def ensure_cluster(cfg: ClusterConfig) -> ClusterHandle:
    """Start the cluster unless it is already running.

    Args:
        cfg: Cluster capacity and driver configuration.

    Returns:
        A RUNNING handle with its IP address.
    """
    console.print(Panel.fit("Starting local cluster", style="bold blue"))
    if cluster_status(cfg.profile) is ClusterState.RUNNING:
        console.print(f"[green]✓ minikube profile '{cfg.profile}' already running[/green]")
        handle = ClusterHandle(profile=cfg.profile, state=ClusterState.RUNNING)
    else:
        handle = start_cluster(cfg)
    handle.ip = cluster_ip(cfg.profile)
    console.print(f"[green]✅ Cluster running at {handle.ip}[/green]")
    return handle


def enable_addons(profile: str, addons: Iterable[str] = ADDONS) -> None:
    """Enable minikube addons; re-enabling an enabled addon is a no-op."""
    addons = list(addons)
    console.print(f"[yellow]ℹ️  Enabling minikube addons: {', '.join(addons)}[/yellow]")
    for addon in addons:
        sh.minikube("addons", "enable", addon, "-p", profile)
    console.print("[green]✅ Addons enabled[/green]")


def delete_cluster(profile: str) -> None:
    """Delete the cluster and with it every resource the run created."""
    console.print(f"[yellow]ℹ️  Deleting minikube profile '{profile}'...[/yellow]")
    try:
        sh.minikube("delete", "-p", profile)
        console.print(f"[green]✅ Cluster '{profile}' deleted[/green]")
    except sh.ErrorReturnCode_1:
        console.print(f"[yellow]⚠️  Cluster '{profile}' not found or already deleted[/yellow]")
