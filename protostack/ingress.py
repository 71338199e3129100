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

"""Ingress host derivation and routing rule composition."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from dataclasses import dataclass

from rich.panel import Panel

from protostack import console
from protostack.cluster import ClusterHandle, ClusterState
from protostack.constants import (
    API_NAME,
    HTTP_PORT,
    INGRESS_CLASS,
    INGRESS_NAME,
    NS_DISCOVERY,
    NS_PLATFORM,
    UI_NAME,
    WILDCARD_DNS_DOMAIN,
)
from protostack.errors import ClusterNotRunning, ProvisionError
from protostack.kube import apply_manifests


@dataclass(frozen=True)
class IngressRule:
    """Route requests under *path* to a backend service.

    Attributes:
        path: Path prefix (``/`` is the catch-all).
        service: Backend service name.
        port: Backend service port.
        namespace: Namespace of the backend service, None for the ingress namespace.
    """

    path: str
    service: str
    port: int = HTTP_PORT
    namespace: str | None = None


DEFAULT_RULES = (
    IngressRule("/", UI_NAME, HTTP_PORT, NS_PLATFORM),
    IngressRule("/api", API_NAME, HTTP_PORT, NS_DISCOVERY),
)


def derive_host(ip: str, app_name: str, domain: str = WILDCARD_DNS_DOMAIN) -> str:
    """Encode the cluster IP into a wildcard-DNS hostname.

    Args:
        ip: IPv4 address of the cluster.
        app_name: Leading hostname label.
        domain: Wildcard DNS domain resolving ``<anything>.<ip>.<domain>`` to ``<ip>``.

    Raises:
        ProvisionError: If *ip* is not an IPv4 address.
    """
    try:
        address = ipaddress.IPv4Address(ip)
    except ValueError:
        raise ProvisionError(f"Cannot derive a hostname from '{ip}'") from None
    return f"{app_name}.{address}.{domain}"


def _specificity(rule: IngressRule) -> tuple[bool, int]:
    path = rule.path.rstrip("/")
    return (path == "", -len([seg for seg in path.split("/") if seg]))


def order_rules(rules: Iterable[IngressRule]) -> list[IngressRule]:
    """Order rules from most to least specific, catch-all ``/`` last.

    Rules of equal specificity keep their input order.
    """
    return sorted(rules, key=_specificity)


def compose_ingress(host: str, rules: Iterable[IngressRule], namespace: str = NS_PLATFORM) -> list[dict]:
    """Build the Ingress document and any cross-namespace bridge services.

    An Ingress can only reference services in its own namespace; backends
    living elsewhere get an ExternalName service of the same name.

    Args:
        host: Hostname the rules apply to.
        rules: Routing rules in any order.
        namespace: Namespace of the Ingress.

    Returns:
        Resource documents, bridge services first.
    """
    ordered = order_rules(rules)
    docs: list[dict] = []
    for rule in ordered:
        if rule.namespace and rule.namespace != namespace:
            docs.append({
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": {"name": rule.service, "namespace": namespace},
                "spec": {
                    "type": "ExternalName",
                    "externalName": f"{rule.service}.{rule.namespace}.svc.cluster.local",
                    "ports": [{"port": rule.port}],
                },
            })
    paths = [
        {
            "path": rule.path,
            "pathType": "Prefix",
            "backend": {"service": {"name": rule.service, "port": {"number": rule.port}}},
        }
        for rule in ordered
    ]
    docs.append({
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": INGRESS_NAME,
            "namespace": namespace,
            "annotations": {"nginx.ingress.kubernetes.io/rewrite-target": "/"},
        },
        "spec": {
            "ingressClassName": INGRESS_CLASS,
            "rules": [{"host": host, "http": {"paths": paths}}],
        },
    })
    return docs


def apply_ingress(
    handle: ClusterHandle,
    app_name: str,
    rules: Iterable[IngressRule] = DEFAULT_RULES,
    namespace: str = NS_PLATFORM,
) -> str:
    """Derive the host from a running cluster and apply the routing rules.

    Returns:
        The derived hostname.

    Raises:
        ClusterNotRunning: If the handle is not running or has no IP yet.
    """
    if handle.state is not ClusterState.RUNNING or not handle.ip:
        raise ClusterNotRunning("Ingress needs a running cluster with a known IP")
    host = derive_host(handle.ip, app_name)
    console.print(Panel.fit(f"Creating Ingress at host: {host}", style="bold blue"))
    apply_manifests(compose_ingress(host, rules, namespace), namespace)
    console.print("[green]✅ Ingress applied[/green]")
    return host
