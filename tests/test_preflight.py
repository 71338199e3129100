# tests/test_preflight.py
import io
import tarfile

import pytest
import requests

from protostack import preflight
from protostack.config import ToolVersions
from protostack.errors import DownloadError, ToolInstallError
from protostack.preflight import ToolRequirement, default_requirements, ensure_tool


def test_present_tool_is_not_installed(fake_cluster, mocker):
    install = mocker.Mock()
    req = ToolRequirement("Helm", "helm", install)

    assert ensure_tool(req, ToolVersions()) is False
    install.assert_not_called()


def test_absent_tool_installed_once_and_reprobed(fake_cluster):
    fake_cluster.installed.discard("helm")
    calls = []

    def install(versions):
        calls.append(versions.helm_version)
        fake_cluster.installed.add("helm")

    assert ensure_tool(ToolRequirement("Helm", "helm", install), ToolVersions()) is True
    assert calls == ["v3.14.4"]
    assert fake_cluster.commands("which").count("which helm") == 2


def test_tool_still_missing_after_install_is_fatal(fake_cluster):
    fake_cluster.installed.discard("minikube")

    with pytest.raises(ToolInstallError, match="Minikube"):
        ensure_tool(ToolRequirement("Minikube", "minikube", lambda _: None), ToolVersions())


def test_default_requirements_cover_all_tools():
    reqs = default_requirements(ToolVersions(kubectl_version="v1.30.2"))

    assert [r.probe for r in reqs] == ["docker", "kubectl", "helm", "minikube"]
    assert reqs[1].version == "v1.30.2"
    assert reqs[2].version == "v3.14.4"


def test_base_packages_elevate_first(fake_cluster):
    preflight.install_base_packages()

    sudo = fake_cluster.commands("sudo")
    assert sudo[0] == "sudo -v"
    assert sudo[1] == "sudo apt-get update -y"
    assert sudo[2].startswith("sudo apt-get install -y curl jq conntrack")


def test_install_docker_tolerates_group_failure(fake_cluster, monkeypatch):
    monkeypatch.setenv("USER", "dev")
    fake_cluster.fail("sudo", "usermod")

    preflight.install_docker(ToolVersions())

    assert "docker" in fake_cluster.installed
    assert "sudo usermod -aG docker dev" in fake_cluster.commands("sudo")


def test_install_kubectl_resolves_latest_stable(fake_cluster, mocker):
    mocker.patch("protostack.preflight.detect_arch", return_value="amd64")
    get = mocker.patch("protostack.preflight.requests.get")
    get.return_value.text = "v1.31.0\n"
    download = mocker.patch("protostack.preflight._download", side_effect=lambda url, dest: dest.write_bytes(b"") or dest)

    preflight.install_kubectl(ToolVersions())

    url = download.call_args[0][0]
    assert url == "https://dl.k8s.io/release/v1.31.0/bin/linux/amd64/kubectl"
    assert "kubectl" in fake_cluster.installed


def test_install_kubectl_uses_pin_without_lookup(fake_cluster, mocker):
    mocker.patch("protostack.preflight.detect_arch", return_value="arm64")
    get = mocker.patch("protostack.preflight.requests.get")
    download = mocker.patch("protostack.preflight._download", side_effect=lambda url, dest: dest.write_bytes(b"") or dest)

    preflight.install_kubectl(ToolVersions(kubectl_version="v1.29.4"))

    get.assert_not_called()
    assert download.call_args[0][0].endswith("/v1.29.4/bin/linux/arm64/kubectl")


def test_stable_version_lookup_failure(mocker):
    mocker.patch("protostack.preflight.requests.get", side_effect=requests.ConnectionError("offline"))

    with pytest.raises(DownloadError, match="stable kubectl"):
        preflight.resolve_kubectl_version()


def test_download_http_error(mocker, tmp_path):
    response = mocker.MagicMock()
    response.__enter__.return_value.raise_for_status.side_effect = requests.HTTPError("404")
    mocker.patch("protostack.preflight.requests.get", return_value=response)

    with pytest.raises(DownloadError, match="404"):
        preflight._download("https://example.invalid/helm.tgz", tmp_path / "helm.tgz")


def _helm_tarball(dest, arch):
    payload = b"#!/bin/sh\necho helm\n"
    with tarfile.open(dest, "w:gz") as tar:
        info = tarfile.TarInfo(f"linux-{arch}/helm")
        info.size = len(payload)
        tar.addfile(info, io.BytesIO(payload))
    return dest


def test_install_helm_extracts_binary(fake_cluster, mocker):
    mocker.patch("protostack.preflight.detect_arch", return_value="amd64")
    download = mocker.patch("protostack.preflight._download", side_effect=lambda url, dest: _helm_tarball(dest, "amd64"))
    fake_cluster.installed.discard("helm")

    preflight.install_helm(ToolVersions())

    assert download.call_args[0][0] == "https://get.helm.sh/helm-v3.14.4-linux-amd64.tar.gz"
    assert any(c.startswith("sudo install -m 0755") and c.endswith("/usr/local/bin/helm")
               for c in fake_cluster.commands("sudo"))
    assert "helm" in fake_cluster.installed


def test_install_minikube_uses_package(fake_cluster, mocker):
    mocker.patch("protostack.preflight.detect_arch", return_value="amd64")
    download = mocker.patch("protostack.preflight._download", side_effect=lambda url, dest: dest)
    fake_cluster.installed.discard("minikube")

    preflight.install_minikube(ToolVersions())

    assert download.call_args[0][0].endswith("minikube_latest_amd64.deb")
    assert "minikube" in fake_cluster.installed


def test_docker_access_failure_only_warns(mocker):
    import docker

    mocker.patch("protostack.preflight.docker.from_env", side_effect=docker.errors.DockerException("denied"))

    assert preflight.check_docker_access() is False
