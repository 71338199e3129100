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

"""Namespace provisioning and declarative manifest apply."""

from __future__ import annotations

from collections.abc import Iterable

import sh
import yaml
from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_attempt, wait_fixed

from protostack import console, logger
from protostack.constants import (
    NAMESPACE_VISIBLE_MAX_RETRIES,
    NAMESPACE_VISIBLE_POLL_INTERVAL_SECONDS,
)
from protostack.errors import NamespaceError
from protostack.utils import run_kubectl


# ============================================================================
# Namespaces
# ============================================================================

def namespace_exists(name: str) -> bool:
    ok, _, _ = run_kubectl(["get", "namespace", name])
    return ok


def create_namespace(name: str) -> None:
    sh.kubectl("create", "namespace", name)


@retry(
    retry=retry_if_result(lambda visible: not visible),
    stop=stop_after_attempt(NAMESPACE_VISIBLE_MAX_RETRIES),
    wait=wait_fixed(NAMESPACE_VISIBLE_POLL_INTERVAL_SECONDS),
)
def _wait_namespace_visible(name: str) -> bool:
    return namespace_exists(name)


def ensure_namespaces(names: Iterable[str]) -> list[str]:
    """Create every namespace in *names* that does not exist yet.

    A freshly created namespace may not be visible immediately; creation is
    followed by a bounded wait until it is.

    Args:
        names: Namespace names; order does not matter.

    Returns:
        Names of the namespaces created by this call.

    Raises:
        NamespaceError: If a created namespace never becomes visible.
    """
    names = list(names)
    console.print(Panel.fit(f"Creating namespaces ({', '.join(names)})", style="bold blue"))
    created: list[str] = []
    for name in names:
        if namespace_exists(name):
            console.print(f"[green]✓ namespace/{name} already exists[/green]")
            continue
        create_namespace(name)
        try:
            _wait_namespace_visible(name)
        except RetryError as err:
            raise NamespaceError(f"Namespace '{name}' not visible after creation") from err
        created.append(name)
        console.print(f"[green]✅ namespace/{name} created[/green]")
    return created


# ============================================================================
# Manifest apply
# ============================================================================

def render_manifests(docs: Iterable[dict]) -> str:
    return yaml.safe_dump_all(list(docs), sort_keys=False)


def apply_manifests(docs: Iterable[dict], namespace: str | None = None) -> None:
    """Submit resource documents with ``kubectl apply``.

    kubectl reconciles create-or-update by namespace, kind and name, so
    applying the same documents twice leaves the cluster unchanged.

    Args:
        docs: Kubernetes resource documents.
        namespace: Default namespace for documents that do not set one.
    """
    docs = list(docs)
    body = render_manifests(docs)
    args = ["apply"]
    if namespace:
        args += ["-n", namespace]
    args += ["-f", "-"]
    logger.debug("kubectl %s (%d documents)", " ".join(args), len(docs))
    sh.kubectl(*args, _in=body)
