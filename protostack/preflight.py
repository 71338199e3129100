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

"""Prerequisite tool probing and installation."""

from __future__ import annotations

import getpass
import os
import tarfile
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import docker
import requests
import sh
from rich.markup import escape
from rich.panel import Panel

from protostack import console, logger
from protostack.config import ToolVersions
from protostack.constants import DOWNLOAD_TIMEOUT_SECONDS, INSTALL_BIN_DIR, dep_value
from protostack.errors import DownloadError, ToolInstallError
from protostack.utils import command_exists, detect_arch


@dataclass(frozen=True)
class ToolRequirement:
    """A CLI tool the run depends on.

    Attributes:
        name: Human readable tool name.
        probe: Executable looked up on PATH to decide presence.
        install: Procedure that installs the tool when the probe fails.
        version: Version that would be installed, for display only.
        version_args: Arguments printing the installed version, best-effort.
    """

    name: str
    probe: str
    install: Callable[[ToolVersions], None]
    version: str = "latest"
    version_args: tuple[str, ...] = ()


# ============================================================================
# Downloads
# ============================================================================

def _download(url: str, dest: Path) -> Path:
    """Stream a release artifact to *dest*.

    Raises:
        DownloadError: On any HTTP or connection failure.
    """
    logger.debug("Downloading %s", url)
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=1 << 16):
                    f.write(chunk)
    except requests.RequestException as e:
        raise DownloadError(f"Failed to download {url}: {e}") from e
    return dest


def resolve_kubectl_version() -> str:
    """Resolve the "latest stable" kubectl release tag.

    Raises:
        DownloadError: If the stable marker cannot be fetched.
    """
    url = dep_value("tools", "kubectl", "stable_url")
    try:
        resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"Failed to resolve stable kubectl version: {e}") from e
    return resp.text.strip()


def _install_binary(src: Path, name: str) -> None:
    src.chmod(0o755)
    sh.sudo("install", "-m", "0755", str(src), f"{INSTALL_BIN_DIR}/{name}")


# ============================================================================
# Install procedures
# ============================================================================

def install_base_packages() -> None:
    """Elevate privileges and install the base OS packages."""
    packages = dep_value("base_packages", default=[])
    console.print(Panel.fit("Preflight checks", style="bold blue"))
    sh.sudo("-v")
    console.print(f"[yellow]ℹ️  Installing base packages ({', '.join(packages)})...[/yellow]")
    sh.sudo("apt-get", "update", "-y")
    sh.sudo("apt-get", "install", "-y", *packages)
    console.print("[green]✅ Base packages installed[/green]")


def install_docker(_: ToolVersions) -> None:
    """Install Docker Engine and grant the invoking user access to it."""
    sh.sudo("apt-get", "install", "-y", "docker.io")
    user = os.environ.get("USER") or getpass.getuser()
    try:
        sh.sudo("usermod", "-aG", "docker", user)
    except sh.ErrorReturnCode as e:
        logger.warning("Could not add %s to the docker group: %s", user, e)
    console.print("[yellow]⚠️  If this is your first Docker install, "
                  "log out and back in for group changes to apply.[/yellow]")


def install_kubectl(versions: ToolVersions) -> None:
    """Download kubectl (pinned or latest stable) into the install dir."""
    version = versions.kubectl_version or resolve_kubectl_version()
    url = dep_value("tools", "kubectl", "url").format(version=version, arch=detect_arch())
    with tempfile.TemporaryDirectory() as tmp:
        binary = _download(url, Path(tmp) / "kubectl")
        _install_binary(binary, "kubectl")


def install_helm(versions: ToolVersions) -> None:
    """Download the helm release tarball and install the binary."""
    arch = detect_arch()
    url = dep_value("tools", "helm", "url").format(version=versions.helm_version, arch=arch)
    with tempfile.TemporaryDirectory() as tmp:
        archive = _download(url, Path(tmp) / "helm.tgz")
        binary = Path(tmp) / "helm"
        with tarfile.open(archive, "r:gz") as tar:
            member = tar.extractfile(f"linux-{arch}/helm")
            if member is None:
                raise ToolInstallError(f"helm binary missing from {url}")
            binary.write_bytes(member.read())
        _install_binary(binary, "helm")


def install_minikube(_: ToolVersions) -> None:
    """Download and install the latest minikube package."""
    url = dep_value("tools", "minikube", "url").format(arch=detect_arch())
    with tempfile.TemporaryDirectory() as tmp:
        package = _download(url, Path(tmp) / "minikube.deb")
        sh.sudo("dpkg", "-i", str(package))


# ============================================================================
# Probing
# ============================================================================

def default_requirements(versions: ToolVersions) -> list[ToolRequirement]:
    """Return the tools the run needs, in install order."""
    return [
        ToolRequirement("Docker", "docker", install_docker, "distro", ("--version",)),
        ToolRequirement("kubectl", "kubectl", install_kubectl,
                        versions.kubectl_version or "latest stable", ("version", "--client")),
        ToolRequirement("Helm", "helm", install_helm, versions.helm_version, ("version", "--short")),
        ToolRequirement("Minikube", "minikube", install_minikube, "latest", ("version", "--short")),
    ]


def _installed_version(req: ToolRequirement) -> str:
    if not req.version_args:
        return ""
    try:
        return str(sh.Command(req.probe)(*req.version_args)).strip().splitlines()[0]
    except (sh.ErrorReturnCode, sh.CommandNotFound, IndexError):
        return ""


def ensure_tool(req: ToolRequirement, versions: ToolVersions) -> bool:
    """Install *req* if its probe fails, then confirm it is present.

    Args:
        req: Tool requirement to satisfy.
        versions: Version pins handed to the install procedure.

    Returns:
        True if the tool was installed by this call, False if already present.

    Raises:
        ToolInstallError: If the tool is still missing after installation.
    """
    if command_exists(req.probe):
        found = _installed_version(req)
        console.print(f"[green]✓ {req.name} already installed[/green]" + (f" ({found})" if found else ""))
        return False

    console.print(f"[yellow]ℹ️  Installing {req.name} ({req.version})...[/yellow]")
    req.install(versions)
    if not command_exists(req.probe):
        raise ToolInstallError(f"{req.name} still not found on PATH after installation")
    console.print(f"[green]✅ {req.name} installed[/green]")
    return True


def check_docker_access() -> bool:
    """Ping the Docker engine as the current user, warning on failure.

    Group membership changes only apply to new login sessions, so a fresh
    install commonly fails here until the user logs in again.
    """
    try:
        client = docker.from_env()
    except docker.errors.DockerException as e:
        console.print(f"[yellow]⚠️  Cannot reach Docker engine: {escape(str(e))}[/yellow]")
        console.print("[yellow]   A new login session may be required for docker group access[/yellow]")
        return False
    try:
        client.ping()
    except docker.errors.DockerException as e:
        console.print(f"[yellow]⚠️  Docker engine did not answer: {escape(str(e))}[/yellow]")
        return False
    finally:
        client.close()
    return True
