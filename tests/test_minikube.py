"""Tests for minikube lifecycle helpers."""

from unittest.mock import patch

import pytest

from conftest import FakeShell
from minienv.config import MinikubeConfig
from minienv.kubectl import Kubectl
from minienv.minikube import ADDONS, Minikube

CLUSTER_CONFIG = MinikubeConfig(
    cpus="10",
    memory="20480",
    disk_size="100g",
    driver="vfkit",
    runtime="containerd",
    kubernetes_version="v1.28.0",
    profile="minikube",
)


class TestEnsureRunning:
    """Tests for starting minikube on demand before a deploy."""

    def test_already_running(self, shell, minikube_config, capsys):
        shell.on_output("--format={{.Host}}", "Running")
        Minikube(shell).ensure_running(minikube_config)

        assert not shell.ran("minikube start")
        assert "Minikube is already running" in capsys.readouterr().out

    def test_starts_with_configured_resources(self, shell, minikube_config):
        Minikube(shell).ensure_running(minikube_config)
        assert shell.ran("minikube start --cpus=4 --memory=8192 --disk-size=40g")

    def test_driver_and_profile(self, shell):
        config = MinikubeConfig(cpus="2", memory="4096", disk_size="20g", driver="docker")
        Minikube(shell, profile="dev").ensure_running(config)
        assert shell.ran("minikube start -p dev --cpus=2 --memory=4096 --disk-size=20g --driver=docker")

    def test_start_failure(self, shell, minikube_config):
        shell.fail("minikube start")
        with pytest.raises(RuntimeError, match="Failed to start minikube"):
            Minikube(shell).ensure_running(minikube_config)


class TestUrls:
    """Tests for service URL helpers."""

    def test_external_url(self, shell):
        shell.on_output("minikube ip", "192.168.49.2")
        shell.on_output("@.name=='http'", "30080")
        url = Minikube(shell).external_url(Kubectl(shell, "test"), "dex")
        assert url == "http://192.168.49.2:30080"

    def test_external_url_without_nodeport(self, shell):
        shell.on_output("minikube ip", "192.168.49.2")
        assert Minikube(shell).external_url(Kubectl(shell, "test"), "dex") == ""

    def test_service_url_takes_first_line(self, shell):
        shell.on_output("--url", "http://192.168.49.2:30000\nhttp://192.168.49.2:30001")
        assert Minikube(shell).service_url("minio", "test") == "http://192.168.49.2:30000"

    def test_service_url_empty(self, shell):
        assert Minikube(shell).service_url("minio", "test") == ""


class TestMount:
    """Tests for host directory mounts."""

    def test_mount_runs_in_background(self, shell):
        Minikube(shell).mount("/work/project")
        call = shell.find("minikube mount")
        assert call[0] == "spawn"
        assert call[1][2] == "/work/project:/work/project"
        assert "--9p-version=9p2000.L" in call[1]

    def test_mount_processes_filters_by_path(self, shell):
        shell.on_output("ps aux", "\n".join([
            "dev 100 minikube mount /work/a:/work/a",
            "dev 101 minikube mount /work/b:/work/b",
            "dev 102 vim notes.txt",
        ]))
        minikube = Minikube(shell)
        assert len(minikube.mount_processes()) == 2
        assert minikube.mount_processes("/work/b") == ["dev 101 minikube mount /work/b:/work/b"]


class TestStartCluster:
    """Tests for the full cluster startup workflow."""

    def test_fresh_cluster(self, shell):
        shell.succeed("kubectl get nodes")
        Minikube(shell, profile="minikube").start_cluster(CLUSTER_CONFIG)

        assert shell.ran(
            "minikube start -p minikube --cpus=10 --memory=20480 --disk-size=100g "
            "--driver=vfkit --container-runtime=containerd --kubernetes-version=v1.28.0"
        )
        for addon in ADDONS:
            assert shell.ran(f"minikube addons enable {addon}")
        assert shell.ran("kubectl wait --for=condition=Ready pods --all -n kube-system --timeout=120s")

    def test_enabled_addons_are_skipped(self, shell):
        shell.succeed("kubectl get nodes")
        shell.on_output("addons list", "| metrics-server | minikube | enabled ✅ |")
        Minikube(shell).start_cluster(CLUSTER_CONFIG)

        assert not shell.ran("addons enable metrics-server")
        assert shell.ran("addons enable storage-provisioner")

    def test_reuses_running_cluster(self, shell):
        shell.on_output("--format={{.Host}}", "Running")
        Minikube(shell).start_cluster(CLUSTER_CONFIG, assume_yes=True)

        assert not shell.ran("minikube start")
        assert not shell.ran("minikube delete")

    def test_recreate_on_confirmation(self, shell):
        shell.on_output("--format={{.Host}}", "Running")
        shell.succeed("kubectl get nodes")
        with patch("minienv.minikube.typer.confirm", return_value=True) as confirm:
            Minikube(shell).start_cluster(CLUSTER_CONFIG)

        confirm.assert_called_once()
        assert shell.ran("minikube delete")
        assert shell.ran("minikube start")

    def test_declining_keeps_cluster(self, shell):
        shell.on_output("--format={{.Host}}", "Running")
        with patch("minienv.minikube.typer.confirm", return_value=False):
            Minikube(shell).start_cluster(CLUSTER_CONFIG)

        assert not shell.ran("minikube delete")
        assert not shell.ran("minikube start")

    def test_missing_minikube(self):
        shell = FakeShell(tools=("kubectl",))
        with pytest.raises(RuntimeError, match="minikube is not installed"):
            Minikube(shell).start_cluster(CLUSTER_CONFIG)

    def test_api_server_timeout(self, shell):
        with pytest.raises(RuntimeError, match="Timeout waiting for API server"):
            Minikube(shell).start_cluster(CLUSTER_CONFIG)


class TestStopAndStatus:
    """Tests for cluster stop and status reports."""

    def test_stop_when_not_running(self, shell, capsys):
        assert Minikube(shell).stop_cluster() is True
        assert not shell.ran("minikube stop")
        assert "is not running" in capsys.readouterr().out

    def test_stop_running_cluster(self, shell):
        shell.succeed("minikube status")
        assert Minikube(shell, profile="dev").stop_cluster() is True
        assert shell.ran("minikube stop -p dev")

    def test_stop_failure(self, shell):
        shell.succeed("minikube status")
        shell.fail("minikube stop")
        assert Minikube(shell).stop_cluster() is False

    def test_status_missing_cluster(self, shell, capsys):
        assert Minikube(shell).cluster_status() is False
        assert "Cluster 'minikube' not found" in capsys.readouterr().err

    def test_status_unreachable_api(self, shell):
        shell.succeed("minikube status")
        assert Minikube(shell).cluster_status() is False

    def test_status_counts_pods_by_namespace(self, shell, capsys):
        shell.succeed("minikube status", "kubectl get nodes")
        shell.on_output("--no-headers", "\n".join([
            "kube-system coredns-1 1/1 Running 0 1h",
            "kube-system etcd-1 1/1 Running 0 1h",
            "demo minio-1 1/1 Running 0 1h",
        ]))
        assert Minikube(shell).cluster_status() is True

        out = capsys.readouterr().out
        assert "      2 kube-system" in out
        assert "      1 demo" in out

    def test_delete_and_dashboard(self, shell):
        minikube = Minikube(shell, profile="dev")
        minikube.delete_cluster()
        assert minikube.dashboard() == 0
        assert shell.commands == ["minikube delete -p dev", "minikube dashboard -p dev"]
