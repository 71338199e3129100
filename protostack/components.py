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

"""Identity broker, placeholder services, observability, and network policies."""

from __future__ import annotations

from rich.panel import Panel

from protostack import console
from protostack.config import CredentialConfig, InstallerOptions, WorkloadImages
from protostack.constants import (
    HELM_RELEASE_KEYCLOAK,
    HELM_RELEASE_LOKI,
    HELM_RELEASE_PROMETHEUS,
    KEYCLOAK_ADMIN_SECRET,
    NS_DISCOVERY,
    NS_OPS,
    NS_PLATFORM,
    dep_value,
)
from protostack.helm import ChartRelease, upsert_chart
from protostack.kube import apply_manifests
from protostack.manifests import (
    admin_secret,
    allow_dns_policy,
    api_worker_manifests,
    default_deny_policy,
    otel_collector_manifests,
    ui_manifests,
)


def _chart(key: str) -> tuple[str, str]:
    return dep_value("charts", key, "chart"), dep_value("charts", key, "version", default="")


# ============================================================================
# Identity broker
# ============================================================================

def provision_admin_secret(creds: CredentialConfig) -> None:
    """Upsert the Keycloak admin credential secret in the platform namespace."""
    console.print(Panel.fit("Deploying Keycloak (embedded PostgreSQL)", style="bold blue"))
    apply_manifests(
        [admin_secret(KEYCLOAK_ADMIN_SECRET, creds.kc_admin_user, creds.kc_admin_password.get_secret_value())],
        NS_PLATFORM,
    )
    console.print(f"[green]✅ secret/{KEYCLOAK_ADMIN_SECRET} applied[/green]")


def keycloak_release(options: InstallerOptions) -> ChartRelease:
    chart, version = _chart("keycloak")
    return ChartRelease(
        release=HELM_RELEASE_KEYCLOAK,
        chart=chart,
        version=version,
        namespace=NS_PLATFORM,
        values={
            "auth.existingSecret": KEYCLOAK_ADMIN_SECRET,
            "production": True,
            "proxy": "edge",
            "replicaCount": 1,
            "postgresql.enabled": True,
            "postgresql.primary.persistence.enabled": False,
        },
        timeout=options.chart_timeout,
    )


def install_identity_broker(options: InstallerOptions) -> None:
    """Install or upgrade Keycloak referencing the admin secret."""
    upsert_chart(keycloak_release(options))


# ============================================================================
# Placeholder services
# ============================================================================

def deploy_api_worker(images: WorkloadImages) -> None:
    console.print(Panel.fit(f"Deploying API & worker placeholders ({NS_DISCOVERY})", style="bold blue"))
    apply_manifests(api_worker_manifests(images.api_ref, images.worker_ref), NS_DISCOVERY)
    console.print("[green]✅ API & worker applied[/green]")


def deploy_ui(images: WorkloadImages, options: InstallerOptions) -> None:
    console.print(Panel.fit(f"Deploying admin UI placeholder ({NS_PLATFORM})", style="bold blue"))
    title = f"{options.app_name.capitalize()} Prototype"
    apply_manifests(ui_manifests(images.ui_ref, title), NS_PLATFORM)
    console.print("[green]✅ UI applied[/green]")


# ============================================================================
# Observability
# ============================================================================

def metrics_stack_release(creds: CredentialConfig, options: InstallerOptions) -> ChartRelease:
    chart, version = _chart("kube_prometheus_stack")
    return ChartRelease(
        release=HELM_RELEASE_PROMETHEUS,
        chart=chart,
        version=version,
        namespace=NS_OPS,
        create_namespace=True,
        values={
            "grafana.adminUser": creds.grafana_admin_user,
            "grafana.adminPassword": creds.grafana_admin_password.get_secret_value(),
            "grafana.service.type": "ClusterIP",
        },
        timeout=options.chart_timeout,
    )


def install_metrics_stack(creds: CredentialConfig, options: InstallerOptions) -> None:
    """Install or upgrade Prometheus and Grafana."""
    console.print(Panel.fit(f"Installing kube-prometheus-stack ({NS_OPS})", style="bold blue"))
    upsert_chart(metrics_stack_release(creds, options))


def log_pipeline_release(options: InstallerOptions) -> ChartRelease:
    chart, version = _chart("loki_stack")
    return ChartRelease(
        release=HELM_RELEASE_LOKI,
        chart=chart,
        version=version,
        namespace=NS_OPS,
        values={"grafana.enabled": False, "promtail.enabled": True},
        timeout=options.chart_timeout,
    )


def install_log_pipeline(options: InstallerOptions) -> None:
    """Install or upgrade Loki with promtail shipping pod logs."""
    console.print(Panel.fit("Installing Loki stack", style="bold blue"))
    upsert_chart(log_pipeline_release(options))


def deploy_trace_collector() -> None:
    """Apply the OpenTelemetry Collector config, deployment and service."""
    console.print(Panel.fit("Installing OpenTelemetry Collector", style="bold blue"))
    apply_manifests(otel_collector_manifests(dep_value("images", "otel_collector")), NS_OPS)
    console.print("[green]✅ OpenTelemetry Collector applied[/green]")


# ============================================================================
# Network policies
# ============================================================================

def apply_network_policies(namespace: str = NS_DISCOVERY) -> None:
    """Apply default-deny, then the DNS egress allowance, to *namespace*.

    Policies are additive, so the end state does not depend on the order;
    deny-then-allow is kept for readability of the applied documents.
    """
    console.print(Panel.fit(f"Applying baseline NetworkPolicies ({namespace})", style="bold blue"))
    apply_manifests([default_deny_policy(namespace), allow_dns_policy(namespace)])
    console.print("[green]✅ NetworkPolicies applied[/green]")
