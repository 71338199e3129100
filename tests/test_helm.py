# tests/test_helm.py
import pytest

from protostack.errors import InstallFailed, ReadinessTimeout
from protostack.helm import ChartRelease, RepoOutcome, refresh_repos, register_repo, register_repos, upsert_chart
from protostack.utils import helm_set_args


@pytest.fixture
def running(fake_cluster):
    fake_cluster.running = True
    fake_cluster.namespaces.add("platform")
    fake_cluster.repos["bitnami"] = "https://charts.bitnami.com/bitnami"
    return fake_cluster


def test_register_repo_outcomes(fake_cluster):
    assert register_repo("grafana", "https://grafana.github.io/helm-charts") is RepoOutcome.ADDED
    assert register_repo("grafana", "https://grafana.github.io/helm-charts") is RepoOutcome.ALREADY_EXISTS

    fake_cluster.fail("helm", "repo", "add", "broken",
                      stderr='Error: looks like "https://x.invalid" is not a valid chart repository')
    assert register_repo("broken", "https://x.invalid") is RepoOutcome.FAILED


def test_register_repos_never_raises(fake_cluster):
    fake_cluster.fail("helm", "repo", "add", "bitnami", stderr="Error: connection refused")

    outcomes = register_repos({
        "bitnami": "https://charts.bitnami.com/bitnami",
        "grafana": "https://grafana.github.io/helm-charts",
    })

    assert outcomes == {"bitnami": RepoOutcome.FAILED, "grafana": RepoOutcome.ADDED}


def test_refresh_failure_propagates(fake_cluster):
    fake_cluster.fail("helm", "repo", "update", exit_code=2)

    with pytest.raises(fake_cluster.sh.ErrorReturnCode):
        refresh_repos()


def test_helm_args_are_complete():
    release = ChartRelease(
        "kube-prometheus-stack", "prometheus-community/kube-prometheus-stack", "ops",
        values={"grafana.service.type": "ClusterIP"}, version="58.1.0", timeout="15m", create_namespace=True,
    )

    assert release.helm_args() == [
        "upgrade", "--install", "kube-prometheus-stack", "prometheus-community/kube-prometheus-stack",
        "--namespace", "ops", "--create-namespace", "--version", "58.1.0",
        "--set", "grafana.service.type=ClusterIP", "--wait", "--timeout", "15m",
    ]


def test_helm_set_args_render_booleans():
    assert helm_set_args({"production": True, "postgresql.enabled": False, "replicaCount": 1}) == [
        "--set", "production=true", "--set", "postgresql.enabled=false", "--set", "replicaCount=1",
    ]


def test_upsert_twice_keeps_one_release(running):
    release = ChartRelease("keycloak", "bitnami/keycloak", "platform", values={"proxy": "edge"})

    upsert_chart(release)
    upsert_chart(release)

    assert running.releases == {
        "keycloak": {"chart": "bitnami/keycloak", "namespace": "platform", "values": {"proxy": "edge"}},
    }


def test_upsert_readiness_timeout_is_distinct(running):
    running.fail("helm", "upgrade", "--install", "keycloak",
                 stderr="Error: UPGRADE FAILED: timed out waiting for the condition")

    with pytest.raises(ReadinessTimeout) as excinfo:
        upsert_chart(ChartRelease("keycloak", "bitnami/keycloak", "platform", timeout="5m"))
    assert excinfo.value.timeout == "5m"
    assert excinfo.value.exit_code == 1


def test_upsert_missing_repo_is_install_failure(running):
    with pytest.raises(InstallFailed, match="repo grafana not found"):
        upsert_chart(ChartRelease("loki", "grafana/loki-stack", "platform"))
