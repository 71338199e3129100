# tests/test_utils.py
import subprocess

import pytest

from protostack.constants import dep_value
from protostack.errors import ToolInstallError
from protostack.utils import require_command, run_kubectl


def test_require_command_raises_tool_error(fake_cluster):
    fake_cluster.installed.discard("minikube")

    with pytest.raises(ToolInstallError, match="minikube"):
        require_command("minikube")


def test_require_command_present(fake_cluster):
    require_command("helm")


def test_run_kubectl_reports_timeout(mocker):
    mocker.patch("protostack.utils.subprocess.run", side_effect=subprocess.TimeoutExpired(["kubectl"], 5))

    ok, stdout, stderr = run_kubectl(["-n", "ingress-nginx", "rollout", "status"], timeout=5)

    assert not ok
    assert stdout == ""
    assert stderr == "kubectl timed out after 5s"


def test_run_kubectl_missing_binary(mocker):
    mocker.patch("protostack.utils.subprocess.run", side_effect=FileNotFoundError("kubectl"))

    result = run_kubectl(["get", "namespace", "ops"])

    assert result.ok is False
    assert "kubectl" in result.stderr


def test_run_kubectl_success(mocker):
    run = mocker.patch("protostack.utils.subprocess.run")
    run.return_value = subprocess.CompletedProcess(["kubectl"], 0, "namespace/ops\n", "")

    result = run_kubectl(["get", "namespace", "ops"])

    assert result == (True, "namespace/ops\n", "")
    assert run.call_args[0][0] == ["kubectl", "get", "namespace", "ops"]


def test_dep_value_lookups():
    assert dep_value("charts", "keycloak", "chart") == "bitnami/keycloak"
    assert dep_value("charts", "keycloak", "version") == ""
    assert dep_value("charts", "missing", "chart", default="x") == "x"
    assert dep_value("base_packages", "curl", default=[]) == []
