# tests/test_kube.py
import pytest
import yaml
from tenacity import RetryError

from protostack.errors import NamespaceError
from protostack.kube import apply_manifests, ensure_namespaces, render_manifests


@pytest.fixture
def running(fake_cluster):
    fake_cluster.running = True
    return fake_cluster


def test_only_missing_namespaces_are_created(running):
    running.namespaces.add("ops")

    created = ensure_namespaces(["platform", "discovery", "data", "ops"])

    assert created == ["platform", "discovery", "data"]
    assert running.namespaces >= {"platform", "discovery", "data", "ops"}


def test_second_run_creates_nothing(running):
    ensure_namespaces(["platform", "ops"])
    creates_before = [c for c in running.commands() if "create namespace" in c]

    assert ensure_namespaces(["ops", "platform"]) == []
    assert [c for c in running.commands() if "create namespace" in c] == creates_before


def test_namespace_never_visible(running, mocker):
    mocker.patch("protostack.kube._wait_namespace_visible", side_effect=RetryError(mocker.Mock()))

    with pytest.raises(NamespaceError, match="platform"):
        ensure_namespaces(["platform"])


def test_apply_sends_all_documents(running):
    running.namespaces.add("ops")
    docs = [
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "a"}},
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "b"}},
    ]

    apply_manifests(docs, "ops")

    assert "kubectl apply -n ops -f -" in running.commands()
    assert set(running.resources) == {("ops", "ConfigMap", "a"), ("ops", "ConfigMap", "b")}


def test_apply_into_missing_namespace_fails(running):
    with pytest.raises(running.sh.ErrorReturnCode):
        apply_manifests([{"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "a"}}], "ops")


def test_render_keeps_document_order():
    body = render_manifests([{"kind": "Secret"}, {"kind": "Deployment"}])

    assert [d["kind"] for d in yaml.safe_load_all(body)] == ["Secret", "Deployment"]
