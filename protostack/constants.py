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

"""Constants, pinned dependency manifest, and dep_value lookups."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies(name: str = "dependencies.yaml") -> dict:
    """Read the pinned tool, chart and image manifest shipped with the package.

    Args:
        name: Resource file inside the ``protostack`` package.

    Raises:
        ValueError: If the file does not hold a top-level mapping.
    """
    data = yaml.safe_load((Path(__file__).resolve().parent / name).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{name} must contain a mapping, got {type(data).__name__}")
    return data


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Look up a nested manifest entry, e.g. ``dep_value("charts", "keycloak", "chart")``.

    Missing keys, non-mapping intermediate nodes and explicit nulls all
    yield *default*.
    """
    node: Any = DEPENDENCIES
    for key in keys:
        try:
            node = node[key]
        except (KeyError, TypeError):
            return default
    return default if node is None else node


# -- Waits and polling --
DEFAULT_CHART_TIMEOUT = "10m"
DEFAULT_INGRESS_WAIT_SECONDS = 180
DOWNLOAD_TIMEOUT_SECONDS = 120
NAMESPACE_VISIBLE_MAX_RETRIES = 10
NAMESPACE_VISIBLE_POLL_INTERVAL_SECONDS = 2
CLUSTER_IP_MAX_RETRIES = 10
CLUSTER_IP_POLL_INTERVAL_SECONDS = 3
HELM_TIMEOUT_MARKERS = ("timed out waiting for the condition", "context deadline exceeded")
HELM_ALREADY_EXISTS_MARKER = "already exists"

# -- Install locations --
INSTALL_BIN_DIR = "/usr/local/bin"
ARCH_ALIASES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}

# -- Cluster defaults --
DEFAULT_PROFILE = "minikube"
DEFAULT_CPUS = 6
DEFAULT_MEMORY_MB = 12288
DEFAULT_DISK_MB = 40000
DEFAULT_DRIVER = "docker"
KUBERNETES_VERSION = "stable"
ADDONS = ("ingress", "metrics-server", "registry")

# -- Namespaces --
NS_PLATFORM = "platform"
NS_DISCOVERY = "discovery"
NS_DATA = "data"
NS_OPS = "ops"
NAMESPACES = (NS_PLATFORM, NS_DISCOVERY, NS_DATA, NS_OPS)
NS_INGRESS_NGINX = "ingress-nginx"

# -- Ingress --
INGRESS_CONTROLLER_DEPLOYMENT = "ingress-nginx-controller"
INGRESS_CLASS = "nginx"
INGRESS_NAME = "ui-ingress"
WILDCARD_DNS_DOMAIN = "nip.io"
DEFAULT_APP_NAME = "orbitalys"

# -- Identity broker --
HELM_RELEASE_KEYCLOAK = "keycloak"
KEYCLOAK_ADMIN_SECRET = "keycloak-admin-cred"
DEFAULT_KC_ADMIN_USER = "admin"
DEFAULT_KC_ADMIN_PASSWORD = "ChangeMe_Orbitalys1!"

# -- Observability --
HELM_RELEASE_PROMETHEUS = "kube-prometheus-stack"
HELM_RELEASE_LOKI = "loki"
GRAFANA_SERVICE = "kube-prometheus-stack-grafana"
DEFAULT_GRAFANA_ADMIN_USER = "admin"
DEFAULT_GRAFANA_ADMIN_PASSWORD = "Grafana_Orbitalys1!"
OTEL_COLLECTOR_NAME = "otelcol"
OTEL_CONFIG_NAME = "otc-config"
OTEL_GRPC_PORT = 4317
OTEL_HTTP_PORT = 4318

# -- Placeholder workloads --
API_NAME = "api"
WORKER_NAME = "worker"
UI_NAME = "ui"
UI_CONFIG_NAME = "ui-index"
HTTP_PORT = 80
DEFAULT_API_IMAGE = "kennethreitz/httpbin"
DEFAULT_API_TAG = "latest"
DEFAULT_WORKER_IMAGE = "busybox"
DEFAULT_WORKER_TAG = "stable"
DEFAULT_UI_IMAGE = "nginx"
DEFAULT_UI_TAG = "stable"
WORKER_COMMAND = ["sh", "-c", "while true; do echo 'worker tick'; sleep 30; done"]

# -- Network policies --
POLICY_DEFAULT_DENY = "default-deny-all"
POLICY_ALLOW_DNS = "allow-namespace-dns"
DNS_PORT = 53

# -- Redaction --
REDACTED = "********"
