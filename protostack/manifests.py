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

"""Kubernetes resource documents for the manifest-based workloads."""

from __future__ import annotations

import yaml

from protostack.constants import (
    API_NAME,
    DNS_PORT,
    HTTP_PORT,
    OTEL_COLLECTOR_NAME,
    OTEL_CONFIG_NAME,
    OTEL_GRPC_PORT,
    OTEL_HTTP_PORT,
    POLICY_ALLOW_DNS,
    POLICY_DEFAULT_DENY,
    UI_CONFIG_NAME,
    UI_NAME,
    WORKER_COMMAND,
    WORKER_NAME,
)

UI_INDEX_HTML = """\
<!doctype html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family: sans-serif; background: #0b1220; color: #e3e7ef;">
  <h1>{title}</h1>
  <p>UI placeholder is running. Replace with your own build.</p>
  <ul>
    <li><a href="/api">/api</a> (proxied to API placeholder)</li>
    <li><a href="/auth">/auth</a> (Keycloak admin via port-forward)</li>
  </ul>
</body></html>
"""

OTEL_PIPELINE = {"receivers": ["otlp"], "processors": ["batch"], "exporters": ["logging"]}
OTEL_CONFIG = {
    "receivers": {"otlp": {"protocols": {"http": None, "grpc": None}}},
    "processors": {"batch": {}},
    "exporters": {"logging": {"loglevel": "info"}},
    "service": {
        "pipelines": {signal: dict(OTEL_PIPELINE) for signal in ("traces", "metrics", "logs")},
    },
}


# ============================================================================
# Generic builders
# ============================================================================

def deployment(
    name: str,
    image: str,
    *,
    container_name: str | None = None,
    port: int | None = None,
    command: list[str] | None = None,
    args: list[str] | None = None,
    config_volume: tuple[str, str, str | None] | None = None,
) -> dict:
    """Single-replica Deployment selecting on ``app: <name>``.

    Args:
        name: Deployment name and ``app`` label.
        image: Container image reference.
        container_name: Container name, defaults to *name*.
        port: Container port to expose, if any.
        command: Container command override.
        args: Container arguments.
        config_volume: ``(configmap, mount_path, sub_path)`` to mount.
    """
    container: dict = {"name": container_name or name, "image": image}
    if port is not None:
        container["ports"] = [{"containerPort": port}]
    if command:
        container["command"] = list(command)
    if args:
        container["args"] = list(args)
    pod_spec: dict = {"containers": [container]}
    if config_volume:
        configmap, mount_path, sub_path = config_volume
        mount = {"name": "config", "mountPath": mount_path}
        if sub_path:
            mount["subPath"] = sub_path
        container["volumeMounts"] = [mount]
        pod_spec["volumes"] = [{"name": "config", "configMap": {"name": configmap}}]
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": name}},
            "template": {"metadata": {"labels": {"app": name}}, "spec": pod_spec},
        },
    }


def service(name: str, ports: list[tuple[str | None, int]]) -> dict:
    """ClusterIP Service for the pods labelled ``app: <name>``."""
    rendered = []
    for port_name, port in ports:
        entry: dict = {"port": port, "targetPort": port}
        if port_name:
            entry = {"name": port_name, **entry}
        rendered.append(entry)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name},
        "spec": {"selector": {"app": name}, "ports": rendered},
    }


def config_map(name: str, data: dict[str, str]) -> dict:
    return {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": name}, "data": dict(data)}


# ============================================================================
# Workload documents
# ============================================================================

def admin_secret(name: str, username: str, password: str) -> dict:
    """Opaque Secret holding admin credentials.

    The document depends only on its inputs, so re-applying it with the same
    configuration leaves the secret unchanged.
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {"name": name},
        "stringData": {"username": username, "password": password},
    }


def api_worker_manifests(api_image: str, worker_image: str) -> list[dict]:
    return [
        deployment(API_NAME, api_image, port=HTTP_PORT),
        service(API_NAME, [(None, HTTP_PORT)]),
        deployment(WORKER_NAME, worker_image, command=WORKER_COMMAND),
    ]


def ui_manifests(ui_image: str, title: str) -> list[dict]:
    return [
        config_map(UI_CONFIG_NAME, {"index.html": UI_INDEX_HTML.format(title=title)}),
        deployment(
            UI_NAME, ui_image,
            container_name="nginx",
            port=HTTP_PORT,
            config_volume=(UI_CONFIG_NAME, "/usr/share/nginx/html/index.html", "index.html"),
        ),
        service(UI_NAME, [(None, HTTP_PORT)]),
    ]


def otel_collector_manifests(image: str) -> list[dict]:
    return [
        config_map(OTEL_CONFIG_NAME, {"config.yaml": yaml.safe_dump(OTEL_CONFIG, sort_keys=False)}),
        deployment(
            OTEL_COLLECTOR_NAME, image,
            args=["--config=/conf/config.yaml"],
            config_volume=(OTEL_CONFIG_NAME, "/conf", None),
        ),
        service(OTEL_COLLECTOR_NAME, [("grpc", OTEL_GRPC_PORT), ("http", OTEL_HTTP_PORT)]),
    ]


# ============================================================================
# Network policies
# ============================================================================

def default_deny_policy(namespace: str) -> dict:
    """Deny all ingress and egress for every pod in *namespace*."""
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {"name": POLICY_DEFAULT_DENY, "namespace": namespace},
        "spec": {"podSelector": {}, "policyTypes": ["Ingress", "Egress"]},
    }


def allow_dns_policy(namespace: str) -> dict:
    """Allow UDP/53 egress to pods in any namespace."""
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {"name": POLICY_ALLOW_DNS, "namespace": namespace},
        "spec": {
            "podSelector": {},
            "policyTypes": ["Egress"],
            "egress": [{
                "to": [{"namespaceSelector": {}}],
                "ports": [{"protocol": "UDP", "port": DNS_PORT}],
            }],
        },
    }
