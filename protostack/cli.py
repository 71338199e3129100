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

"""
cli.py - Local prototype cluster installer.

Running with no arguments provisions everything: prerequisite tools, a
minikube cluster with addons, namespaces, Keycloak, placeholder services,
the observability stack, network policies and the ingress.

Environment Variables:
    All configuration can be overridden via environment variables:
    - MINIKUBE_CPUS (default: 6), MINIKUBE_MEMORY_MB (12288), MINIKUBE_DISK_MB (40000)
    - MINIKUBE_DRIVER (docker), MINIKUBE_PROFILE (minikube)
    - HELM_VERSION, KUBECTL_VERSION
    - KC_ADMIN_USER, KC_ADMIN_PASSWORD, GRAFANA_ADMIN_USER, GRAFANA_ADMIN_PASSWORD
    - API_IMAGE/API_TAG, WORKER_IMAGE/WORKER_TAG, UI_IMAGE/UI_TAG
    - CHART_TIMEOUT (10m), INGRESS_WAIT_TIMEOUT (180), INSECURE_SHOW_CREDENTIALS (false)

Examples:
    # Full provisioning
    protostack

    # Re-run only the ingress and its requirements
    protostack --only ingress --skip base-packages

    # List steps in run order
    protostack plan

    # Delete the cluster and everything in it
    protostack down
"""

from __future__ import annotations

import logging
import sys

import typer
from pydantic import ValidationError
from rich.markup import escape

from protostack import console
from protostack.config import display_config, resolve_config
from protostack.errors import ProvisionError, StepFailed
from protostack.orchestrator import ProvisionContext, build_plan, run, teardown
from protostack.utils import require_command

app = typer.Typer(help="Provision a local prototype cluster with its platform workloads.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    cpus: int | None = typer.Option(None, "--cpus", help="Cluster CPUs (overrides MINIKUBE_CPUS)"),
    memory_mb: int | None = typer.Option(
        None, "--memory-mb", help="Cluster memory in MiB (overrides MINIKUBE_MEMORY_MB)"),
    disk_mb: int | None = typer.Option(None, "--disk-mb", help="Cluster disk in MB (overrides MINIKUBE_DISK_MB)"),
    driver: str | None = typer.Option(None, "--driver", help="minikube driver (overrides MINIKUBE_DRIVER)"),
    profile: str | None = typer.Option(None, "--profile", help="minikube profile (overrides MINIKUBE_PROFILE)"),
    chart_timeout: str | None = typer.Option(
        None, "--chart-timeout", help="Helm readiness timeout, e.g. 10m (overrides CHART_TIMEOUT)"),
    only: list[str] = typer.Option([], "--only", help="Run only this step and its requirements"),
    skip: list[str] = typer.Option([], "--skip", help="Skip this step"),
    insecure_show_credentials: bool = typer.Option(
        False, "--insecure-show-credentials", help="Print credentials in plain text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Provision everything when no subcommand is given."""
    _configure_logging(verbose)
    try:
        settings = resolve_config(
            cpus=cpus,
            memory_mb=memory_mb,
            disk_mb=disk_mb,
            driver=driver,
            profile=profile,
            chart_timeout=chart_timeout,
            insecure_show_credentials=insecure_show_credentials,
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=2)
    ctx.obj = settings
    if ctx.invoked_subcommand is not None:
        return

    display_config(settings)
    try:
        run(settings, targets=only or None, skip=skip)
    except StepFailed as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(code=e.exit_code)
    except ProvisionError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.command()
def plan(ctx: typer.Context) -> None:
    """List the provisioning steps in run order."""
    steps = build_plan(ProvisionContext(ctx.obj))
    for index, step in enumerate(steps, start=1):
        requires = f"  (requires: {', '.join(step.requires)})" if step.requires else ""
        marker = "" if step.fatal else " [best-effort]"
        typer.echo(f"{index:2d}. {step.name:<17} {step.description}{marker}{requires}")


@app.command()
def down(ctx: typer.Context) -> None:
    """Delete the local cluster and every resource created in it."""
    try:
        require_command("minikube")
    except ProvisionError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    teardown(ctx.obj)


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
