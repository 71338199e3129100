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

"""Configuration classes, config resolution and display."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.markup import escape
from rich.panel import Panel

from protostack import console
from protostack.constants import (
    DEFAULT_API_IMAGE,
    DEFAULT_API_TAG,
    DEFAULT_APP_NAME,
    DEFAULT_CHART_TIMEOUT,
    DEFAULT_CPUS,
    DEFAULT_DISK_MB,
    DEFAULT_DRIVER,
    DEFAULT_GRAFANA_ADMIN_PASSWORD,
    DEFAULT_GRAFANA_ADMIN_USER,
    DEFAULT_INGRESS_WAIT_SECONDS,
    DEFAULT_KC_ADMIN_PASSWORD,
    DEFAULT_KC_ADMIN_USER,
    DEFAULT_MEMORY_MB,
    DEFAULT_PROFILE,
    DEFAULT_UI_IMAGE,
    DEFAULT_UI_TAG,
    DEFAULT_WORKER_IMAGE,
    DEFAULT_WORKER_TAG,
    REDACTED,
    dep_value,
)


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """minikube cluster configuration, auto-loaded from MINIKUBE_* env vars.

    Attributes:
        profile: minikube profile name identifying the cluster.
        cpus: CPU count given to the cluster VM/container.
        memory_mb: Memory in MiB given to the cluster.
        disk_mb: Disk size in MB given to the cluster.
        driver: minikube execution driver.
    """

    model_config = SettingsConfigDict(env_prefix="MINIKUBE_", extra="ignore", frozen=True)

    profile: str = DEFAULT_PROFILE
    cpus: int = Field(default=DEFAULT_CPUS, ge=1, le=256)
    memory_mb: int = Field(default=DEFAULT_MEMORY_MB, ge=1024)
    disk_mb: int = Field(default=DEFAULT_DISK_MB, ge=2000)
    driver: str = DEFAULT_DRIVER


class ToolVersions(BaseSettings):
    """Version pins for installed tools.

    Attributes:
        helm_version: Helm release tag to install when helm is missing.
        kubectl_version: kubectl release tag, or None for latest stable.
    """

    model_config = SettingsConfigDict(extra="ignore", frozen=True, env_ignore_empty=True)

    helm_version: str = Field(default=dep_value("tools", "helm", "version", default="v3.14.4"),
                              pattern=r"^v\d+\.\d+\.\d+(-[\w.]+)?$")
    kubectl_version: str | None = Field(default=None, pattern=r"^v\d+\.\d+\.\d+(-[\w.]+)?$")


class CredentialConfig(BaseSettings):
    """Admin credentials for the identity broker and the dashboard."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    kc_admin_user: str = DEFAULT_KC_ADMIN_USER
    kc_admin_password: SecretStr = SecretStr(DEFAULT_KC_ADMIN_PASSWORD)
    grafana_admin_user: str = DEFAULT_GRAFANA_ADMIN_USER
    grafana_admin_password: SecretStr = SecretStr(DEFAULT_GRAFANA_ADMIN_PASSWORD)


class WorkloadImages(BaseSettings):
    """Placeholder workload images (repository + tag)."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    api_image: str = DEFAULT_API_IMAGE
    api_tag: str = DEFAULT_API_TAG
    worker_image: str = DEFAULT_WORKER_IMAGE
    worker_tag: str = DEFAULT_WORKER_TAG
    ui_image: str = DEFAULT_UI_IMAGE
    ui_tag: str = DEFAULT_UI_TAG

    @property
    def api_ref(self) -> str:
        return f"{self.api_image}:{self.api_tag}"

    @property
    def worker_ref(self) -> str:
        return f"{self.worker_image}:{self.worker_tag}"

    @property
    def ui_ref(self) -> str:
        return f"{self.ui_image}:{self.ui_tag}"


class InstallerOptions(BaseSettings):
    """Run-wide installer behaviour.

    Attributes:
        app_name: Leading label of the derived ingress hostname.
        chart_timeout: Helm ``--timeout`` for every chart upsert.
        ingress_wait_timeout: Seconds to wait for the ingress controller rollout.
        insecure_show_credentials: Echo credentials in plain text in the summary.
    """

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    app_name: str = Field(default=DEFAULT_APP_NAME, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    chart_timeout: str = Field(default=DEFAULT_CHART_TIMEOUT, pattern=r"^(\d+[hms])+$")
    ingress_wait_timeout: int = Field(default=DEFAULT_INGRESS_WAIT_SECONDS, ge=1)
    insecure_show_credentials: bool = False


# ============================================================================
# Resolved settings
# ============================================================================

@dataclass(frozen=True)
class ProvisionSettings:
    """Immutable bundle of every configuration group for one run."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    tools: ToolVersions = field(default_factory=ToolVersions)
    credentials: CredentialConfig = field(default_factory=CredentialConfig)
    images: WorkloadImages = field(default_factory=WorkloadImages)
    options: InstallerOptions = field(default_factory=InstallerOptions)


def resolve_config(
    *,
    cpus: int | None = None,
    memory_mb: int | None = None,
    disk_mb: int | None = None,
    driver: str | None = None,
    profile: str | None = None,
    chart_timeout: str | None = None,
    insecure_show_credentials: bool | None = None,
) -> ProvisionSettings:
    """Load settings from the environment and apply CLI overrides.

    CLI values take precedence over environment variables; ``None`` means the
    option was not given.

    Returns:
        Frozen settings for the run.
    """
    cluster_overrides = {
        key: value
        for key, value in {
            "cpus": cpus,
            "memory_mb": memory_mb,
            "disk_mb": disk_mb,
            "driver": driver,
            "profile": profile,
        }.items()
        if value is not None
    }
    option_overrides: dict = {}
    if chart_timeout is not None:
        option_overrides["chart_timeout"] = chart_timeout
    if insecure_show_credentials:
        option_overrides["insecure_show_credentials"] = True

    # Overrides go through the constructor so field validation still applies.
    cluster = ClusterConfig(**cluster_overrides)
    options = InstallerOptions(**option_overrides)
    return ProvisionSettings(cluster=cluster, options=options)


def display_config(settings: ProvisionSettings) -> None:
    """Print the configuration in effect, with credentials redacted.

    Args:
        settings: Resolved settings for the run.
    """
    cluster = settings.cluster
    creds = settings.credentials
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]minikube:[/yellow]")
    console.print(f"  profile         : {escape(cluster.profile)}")
    console.print(f"  driver          : {escape(cluster.driver)}")
    console.print(f"  cpus            : {cluster.cpus}")
    console.print(f"  memory_mb       : {cluster.memory_mb}")
    console.print(f"  disk_mb         : {cluster.disk_mb}")
    console.print("[yellow]tools:[/yellow]")
    console.print(f"  helm_version    : {settings.tools.helm_version}")
    console.print(f"  kubectl_version : {settings.tools.kubectl_version or 'latest stable'}")
    console.print("[yellow]workloads:[/yellow]")
    console.print(f"  api             : {escape(settings.images.api_ref)}")
    console.print(f"  worker          : {escape(settings.images.worker_ref)}")
    console.print(f"  ui              : {escape(settings.images.ui_ref)}")
    console.print(f"  chart_timeout   : {settings.options.chart_timeout}")
    console.print("[yellow]credentials:[/yellow]")
    console.print(f"  keycloak admin  : {escape(creds.kc_admin_user)} / {REDACTED}")
    console.print(f"  grafana admin   : {escape(creds.grafana_admin_user)} / {REDACTED}")
