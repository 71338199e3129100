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

"""Ingress readiness wait and final endpoint summary."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from protostack import console, logger
from protostack.config import ProvisionSettings
from protostack.constants import (
    GRAFANA_SERVICE,
    HELM_RELEASE_KEYCLOAK,
    INGRESS_CONTROLLER_DEPLOYMENT,
    NS_DISCOVERY,
    NS_INGRESS_NGINX,
    NS_OPS,
    NS_PLATFORM,
    REDACTED,
)
from protostack.utils import run_kubectl

# The summary goes to stdout; progress output stays on stderr.
# Commands and credentials in it are printed verbatim, one per line.
out = Console(soft_wrap=True, emoji=False)


def wait_for_ingress_controller(timeout: int) -> bool:
    """Wait for the ingress controller rollout without raising on timeout.

    Args:
        timeout: Seconds to wait for the rollout.

    Returns:
        True if the controller reported ready, False if the wait ran out.
        Reporting a False result is left to the caller.
    """
    console.print("[yellow]ℹ️  Waiting for ingress controller to be ready...[/yellow]")
    ok, _, stderr = run_kubectl([
        "-n", NS_INGRESS_NGINX,
        "rollout", "status", f"deploy/{INGRESS_CONTROLLER_DEPLOYMENT}",
        f"--timeout={timeout}s",
    ], timeout=timeout + 10)
    if not ok:
        logger.debug("rollout status for %s: %s", INGRESS_CONTROLLER_DEPLOYMENT, stderr.strip()[:200])
        return False
    console.print("[green]✅ Ingress controller is ready[/green]")
    return True


@dataclass(frozen=True)
class Endpoint:
    label: str
    target: str
    note: str = ""


def build_endpoints(host: str, settings: ProvisionSettings) -> list[Endpoint]:
    """Compute the access endpoints, redacting passwords unless insecure mode is on."""
    creds = settings.credentials
    show = settings.options.insecure_show_credentials
    kc_password = creds.kc_admin_password.get_secret_value() if show else REDACTED
    grafana_password = creds.grafana_admin_password.get_secret_value() if show else REDACTED
    return [
        Endpoint("UI", f"http://{host}/"),
        Endpoint("API", f"http://{host}/api", "httpbin placeholder"),
        Endpoint(
            "Grafana",
            f"kubectl -n {NS_OPS} port-forward svc/{GRAFANA_SERVICE} 3000:80",
            f"user: {creds.grafana_admin_user} | pass: {grafana_password}",
        ),
        Endpoint(
            "Keycloak",
            f"kubectl -n {NS_PLATFORM} port-forward svc/{HELM_RELEASE_KEYCLOAK} 8080:80",
            f"user: {creds.kc_admin_user} | pass: {kc_password}",
        ),
    ]


def print_summary(host: str, settings: ProvisionSettings) -> None:
    """Print endpoints, credentials and follow-up hints to standard output."""
    out.print(Panel.fit("Deployment Complete", style="bold green"))
    for endpoint in build_endpoints(host, settings):
        note = f"  ({endpoint.note})" if endpoint.note else ""
        out.print(f"{endpoint.label + ':':<10} [green]{escape(endpoint.target)}[/green]{escape(note)}")
    if not settings.options.insecure_show_credentials:
        out.print("\nCredentials are redacted; set INSECURE_SHOW_CREDENTIALS=true to print them.")
    profile = settings.cluster.profile
    out.print("\nTo build/push your own images inside the cluster's Docker:")
    out.print(f"  [yellow]eval $(minikube -p {escape(profile)} docker-env)[/yellow]")
    out.print(f"  [yellow]docker build -t myapi:dev ./api && "
              f"kubectl -n {NS_DISCOVERY} set image deploy/api api=myapi:dev[/yellow]")
    out.print("\nTo delete everything:")
    out.print(f"  [yellow]minikube delete -p {escape(profile)}[/yellow]")
