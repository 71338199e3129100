# tests/conftest.py
"""In-memory stand-in for minikube, kubectl, helm and sudo."""

import json
import shlex

import pytest
import sh
import yaml

SH_MODULES = (
    "protostack.utils",
    "protostack.preflight",
    "protostack.cluster",
    "protostack.kube",
    "protostack.helm",
)
RUN_KUBECTL_MODULES = ("protostack.kube", "protostack.report")


def command_error(cmd, stderr="", stdout="", exit_code=1):
    """Build the exception sh raises for a non-zero exit."""
    exc_cls = getattr(sh, f"ErrorReturnCode_{exit_code}")
    return exc_cls(cmd, stdout.encode(), stderr.encode())


class FakeSh:
    """Replaces the ``sh`` module: any attribute is a recorded command."""

    ErrorReturnCode = sh.ErrorReturnCode
    ErrorReturnCode_1 = sh.ErrorReturnCode_1
    CommandNotFound = sh.CommandNotFound

    def __init__(self, cluster):
        self._cluster = cluster

    def Command(self, name):
        return lambda *args, **kwargs: self._cluster.invoke(name, args, kwargs)

    def __getattr__(self, name):
        return self.Command(name)


class FakeCluster:
    """Simulated external state driven by the recorded command calls."""

    def __init__(self):
        self.installed = {"docker", "kubectl", "helm", "minikube", "sudo"}
        self.running = False
        self.ip = "192.168.49.2"
        self.addons = set()
        self.namespaces = {"default", "kube-system"}
        self.repos = {}
        self.releases = {}
        self.resources = {}
        self.ingress_ready = True
        self.calls = []
        self.failures = []
        self.sh = FakeSh(self)

    # -- test helpers --

    def fail(self, tool, *prefix, stderr="Error: boom", exit_code=1):
        """Make calls of *tool* whose args start with *prefix* fail."""
        self.failures.append((tool, prefix, stderr, exit_code))

    def commands(self, tool=None):
        return [" ".join((t,) + a) for t, a in self.calls if tool is None or t == tool]

    def index_of(self, fragment):
        for i, command in enumerate(self.commands()):
            if fragment in command:
                return i
        raise AssertionError(f"no command containing {fragment!r}")

    def snapshot(self):
        return (
            frozenset(self.namespaces),
            frozenset(self.addons),
            json.dumps(self.repos, sort_keys=True),
            json.dumps(self.releases, sort_keys=True),
            json.dumps({"|".join(k): v for k, v in self.resources.items()}, sort_keys=True),
        )

    # -- dispatch --

    def invoke(self, tool, args, kwargs):
        args = tuple(str(a) for a in args)
        self.calls.append((tool, args))
        cmd = shlex.join((tool,) + args)
        for f_tool, prefix, stderr, exit_code in self.failures:
            if f_tool == tool and args[:len(prefix)] == prefix:
                raise command_error(cmd, stderr, exit_code=exit_code)
        handler = getattr(self, f"_{tool}", None)
        if handler is None:
            if tool not in self.installed:
                raise sh.CommandNotFound(tool)
            return ""
        return handler(cmd, args, kwargs)

    def _which(self, cmd, args, kwargs):
        if args[0] in self.installed:
            return f"/usr/local/bin/{args[0]}\n"
        raise command_error(cmd)

    def _sudo(self, cmd, args, kwargs):
        if args[:1] == ("install",):
            self.installed.add(args[-1].rsplit("/", 1)[-1])
        elif args[:2] == ("dpkg", "-i"):
            self.installed.add("minikube")
        elif args[:3] == ("apt-get", "install", "-y") and "docker.io" in args:
            self.installed.add("docker")
        return ""

    def _minikube(self, cmd, args, kwargs):
        verb = args[0]
        if verb == "status":
            if not self.running:
                raise command_error(cmd, stdout='{"Host": "Stopped"}', exit_code=7)
            return json.dumps({"Host": "Running", "Kubelet": "Running", "APIServer": "Running"})
        if verb == "start":
            self.running = True
            return ""
        if verb == "ip":
            return self.ip + "\n"
        if verb == "addons":
            self.addons.add(args[2])
            return ""
        if verb == "delete":
            self.running = False
            self.addons.clear()
            self.namespaces = {"default", "kube-system"}
            self.releases.clear()
            self.resources.clear()
            return ""
        return ""

    def _kubectl(self, cmd, args, kwargs):
        self._require_running(cmd)
        if args[:2] == ("create", "namespace"):
            if args[2] in self.namespaces:
                raise command_error(cmd, f'namespaces "{args[2]}" already exists')
            self.namespaces.add(args[2])
            return ""
        if args[0] == "apply":
            default_ns = args[args.index("-n") + 1] if "-n" in args else "default"
            for doc in yaml.safe_load_all(kwargs["_in"]):
                ns = doc["metadata"].get("namespace", default_ns)
                if ns not in self.namespaces:
                    raise command_error(cmd, f'namespaces "{ns}" not found')
                self.resources[(ns, doc["kind"], doc["metadata"]["name"])] = doc
            return ""
        return ""

    def _helm(self, cmd, args, kwargs):
        if args[:2] == ("repo", "add"):
            if args[2] in self.repos:
                raise command_error(
                    cmd, f"Error: repository name ({args[2]}) already exists, please specify a different name")
            self.repos[args[2]] = args[3]
            return f'"{args[2]}" has been added to your repositories\n'
        if args[:2] == ("repo", "update"):
            return "Update Complete.\n"
        if args[:2] == ("upgrade", "--install"):
            self._require_running(cmd)
            release, chart = args[2], args[3]
            ns = args[args.index("--namespace") + 1]
            if "--create-namespace" in args:
                self.namespaces.add(ns)
            if ns not in self.namespaces:
                raise command_error(cmd, f'Error: create: failed to create: namespaces "{ns}" not found')
            if chart.split("/")[0] not in self.repos:
                raise command_error(cmd, f'Error: repo {chart.split("/")[0]} not found')
            values = {}
            for i, arg in enumerate(args):
                if arg == "--set":
                    key, _, value = args[i + 1].partition("=")
                    values[key] = value
            self.releases[release] = {"chart": chart, "namespace": ns, "values": values}
            return ""
        return ""

    def _require_running(self, cmd):
        if not self.running:
            raise command_error(cmd, "The connection to the server localhost:8080 was refused")

    def run_kubectl(self, args, timeout=30):
        args = tuple(str(a) for a in args)
        self.calls.append(("kubectl", args))
        if not self.running:
            return False, "", "connection refused"
        if args[:2] == ("get", "namespace"):
            found = args[2] in self.namespaces
            return found, "", "" if found else f'namespaces "{args[2]}" not found'
        if "rollout" in args:
            return (True, "successfully rolled out", "") if self.ingress_ready else (False, "", "timed out")
        return True, "", ""


@pytest.fixture
def fake_cluster(mocker):
    cluster = FakeCluster()
    for module in SH_MODULES:
        mocker.patch(f"{module}.sh", cluster.sh)
    for module in RUN_KUBECTL_MODULES:
        mocker.patch(f"{module}.run_kubectl", side_effect=cluster.run_kubectl)
    mocker.patch("protostack.orchestrator.check_docker_access", return_value=True)
    return cluster


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment variables out of the settings under test."""
    for name in (
        "MINIKUBE_CPUS", "MINIKUBE_MEMORY_MB", "MINIKUBE_DISK_MB", "MINIKUBE_DRIVER", "MINIKUBE_PROFILE",
        "HELM_VERSION", "KUBECTL_VERSION", "KC_ADMIN_USER", "KC_ADMIN_PASSWORD",
        "GRAFANA_ADMIN_USER", "GRAFANA_ADMIN_PASSWORD", "API_IMAGE", "API_TAG", "WORKER_IMAGE",
        "WORKER_TAG", "UI_IMAGE", "UI_TAG", "CHART_TIMEOUT", "INGRESS_WAIT_TIMEOUT",
        "INSECURE_SHOW_CREDENTIALS", "APP_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
