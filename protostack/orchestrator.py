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

"""Orchestration that composes domain modules into the provisioning plan."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rich.panel import Panel

from protostack import console
from protostack.cluster import ClusterHandle, delete_cluster, enable_addons, ensure_cluster, read_handle
from protostack.components import (
    apply_network_policies,
    deploy_api_worker,
    deploy_trace_collector,
    deploy_ui,
    install_identity_broker,
    install_log_pipeline,
    install_metrics_stack,
    provision_admin_secret,
)
from protostack.config import ProvisionSettings
from protostack.constants import ADDONS, INGRESS_CONTROLLER_DEPLOYMENT, NAMESPACES, dep_value
from protostack.errors import ReadinessTimeout
from protostack.helm import refresh_repos, register_repos
from protostack.ingress import apply_ingress, derive_host
from protostack.kube import ensure_namespaces
from protostack.preflight import (
    ToolRequirement,
    check_docker_access,
    default_requirements,
    ensure_tool,
    install_base_packages,
)
from protostack.report import print_summary, wait_for_ingress_controller
from protostack.sequencer import Plan, RunReport, Step, run_plan


@dataclass
class ProvisionContext:
    """State handed between steps of one run.

    Attributes:
        settings: Frozen configuration for the run.
        cluster: Running cluster handle once the cluster step completed.
        host: Ingress hostname once the ingress step completed.
    """

    settings: ProvisionSettings
    cluster: ClusterHandle | None = None
    host: str | None = None

    def cluster_handle(self) -> ClusterHandle:
        """Return the running cluster, reading it from minikube if this run did not start it."""
        if self.cluster is None:
            self.cluster = read_handle(self.settings.cluster.profile)
        return self.cluster


# ============================================================================
# Step actions
# ============================================================================

def _ensure_docker(req: ToolRequirement, ctx: ProvisionContext) -> None:
    ensure_tool(req, ctx.settings.tools)
    check_docker_access()


def _start_cluster(ctx: ProvisionContext) -> None:
    ctx.cluster = ensure_cluster(ctx.settings.cluster)


def _register_helm_repos() -> None:
    register_repos(dep_value("helm_repos", default={}))
    refresh_repos()


def _apply_ingress(ctx: ProvisionContext) -> None:
    ctx.host = apply_ingress(ctx.cluster_handle(), ctx.settings.options.app_name)


def _wait_ingress_ready(ctx: ProvisionContext) -> None:
    timeout = ctx.settings.options.ingress_wait_timeout
    if not wait_for_ingress_controller(timeout):
        raise ReadinessTimeout(INGRESS_CONTROLLER_DEPLOYMENT, f"{timeout}s", kind="Deployment")


def _report(ctx: ProvisionContext) -> None:
    host = ctx.host or derive_host(ctx.cluster_handle().ip, ctx.settings.options.app_name)
    print_summary(host, ctx.settings)


# ============================================================================
# Plan
# ============================================================================

def build_plan(ctx: ProvisionContext) -> Plan:
    """Declare every step in run order with its requirements.

    Args:
        ctx: Run context shared by the step actions.
    """
    settings = ctx.settings
    tools = {req.probe: req for req in default_requirements(settings.tools)}

    def tool_step(probe: str, action=None) -> Step:
        req = tools[probe]
        return Step(
            probe,
            action or (lambda: ensure_tool(req, settings.tools)),
            requires=("base-packages",),
            description=f"Install {req.name} if missing",
        )

    return Plan([
        Step("base-packages", install_base_packages, description="Elevate and install base OS packages"),
        tool_step("docker", lambda: _ensure_docker(tools["docker"], ctx)),
        tool_step("kubectl"),
        tool_step("helm"),
        tool_step("minikube"),
        Step("cluster", lambda: _start_cluster(ctx), requires=("docker", "kubectl", "minikube"),
             description="Start minikube unless running"),
        Step("addons", lambda: enable_addons(settings.cluster.profile, ADDONS), requires=("cluster",),
             description="Enable ingress, metrics-server and registry addons"),
        Step("namespaces", lambda: ensure_namespaces(NAMESPACES), requires=("cluster",),
             description="Create missing namespaces"),
        Step("helm-repos", _register_helm_repos, requires=("helm",),
             description="Register and refresh chart repositories"),
        Step("admin-secret", lambda: provision_admin_secret(settings.credentials), requires=("namespaces",),
             description="Apply the Keycloak admin secret"),
        Step("identity-broker", lambda: install_identity_broker(settings.options),
             requires=("admin-secret", "helm-repos"), description="Upsert Keycloak"),
        Step("api-worker", lambda: deploy_api_worker(settings.images), requires=("namespaces",),
             description="Apply API and worker placeholders"),
        Step("ui", lambda: deploy_ui(settings.images, settings.options), requires=("namespaces",),
             description="Apply the UI placeholder"),
        Step("metrics-stack", lambda: install_metrics_stack(settings.credentials, settings.options),
             requires=("namespaces", "helm-repos"), description="Upsert kube-prometheus-stack"),
        Step("log-pipeline", lambda: install_log_pipeline(settings.options),
             requires=("namespaces", "helm-repos"), description="Upsert loki-stack"),
        Step("trace-collector", deploy_trace_collector, requires=("namespaces",),
             description="Apply the OpenTelemetry Collector"),
        Step("network-policies", apply_network_policies, requires=("namespaces",),
             description="Apply default-deny and DNS egress policies"),
        Step("ingress", lambda: _apply_ingress(ctx), requires=("cluster", "addons", "api-worker", "ui"),
             description="Apply ingress rules on the derived host"),
        Step("ingress-ready", lambda: _wait_ingress_ready(ctx),
             requires=("addons",), fatal=False, description="Wait for the ingress controller (best-effort)"),
        Step("report", lambda: _report(ctx), requires=("ingress",),
             description="Print endpoints and credentials"),
    ])


def run(
    settings: ProvisionSettings,
    targets: Iterable[str] | None = None,
    skip: Iterable[str] = (),
) -> RunReport:
    """Provision the cluster and workloads.

    Args:
        settings: Frozen configuration for the run.
        targets: Steps to run with their requirements, or None for all.
        skip: Steps to leave out.

    Raises:
        StepFailed: If a fatal step fails.
    """
    ctx = ProvisionContext(settings)
    return run_plan(build_plan(ctx), targets, skip)


def teardown(settings: ProvisionSettings) -> None:
    """Delete the whole local cluster; there is no selective teardown."""
    console.print(Panel.fit("Tearing down local cluster", style="bold blue"))
    delete_cluster(settings.cluster.profile)
