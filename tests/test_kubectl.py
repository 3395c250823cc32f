"""Tests for the kubectl wrapper."""

import pytest
import yaml

from conftest import FakeShell
from minienv.kubectl import Kubectl


@pytest.fixture
def kube(shell):
    return Kubectl(shell, "test")


class TestNamespaces:
    """Tests for namespace and resource helpers."""

    def test_create_namespace_when_missing(self, kube, shell):
        kube.create_namespace()
        assert shell.ran("kubectl create namespace test")

    def test_existing_namespace_is_not_recreated(self, kube, shell, capsys):
        shell.succeed("kubectl get namespace test")
        kube.create_namespace()

        assert not shell.ran("kubectl create namespace")
        assert "Namespace 'test' already exists" in capsys.readouterr().out

    def test_create_namespace_failure(self, kube, shell):
        shell.fail("kubectl create namespace")
        with pytest.raises(RuntimeError, match="Failed to create namespace 'test'"):
            kube.create_namespace()

    def test_resource_exists_uses_namespace(self, kube, shell):
        shell.succeed("kubectl get statefulset postgres -n test")
        assert kube.resource_exists("statefulset", "postgres") is True
        assert kube.resource_exists("statefulset", "mongodb") is False

    def test_cluster_scoped_resource_has_no_namespace(self, kube, shell):
        kube.resource_exists("pv", "spark-project-pv", "")
        assert shell.commands[-1] == "kubectl get pv spark-project-pv"

    def test_get_with_label(self, kube, shell):
        assert kube.get("service", label="app=redpanda") is True
        assert shell.commands[-1] == "kubectl get service -l app=redpanda -n test"


class TestReadiness:
    """Tests for readiness polling."""

    def test_wait_for_deployment(self, kube, shell):
        assert kube.wait_for_deployment("minio", 120) is True
        assert shell.ran("kubectl wait --for=condition=available --timeout=120s deployment/minio -n test")

    def test_wait_for_deployment_timeout(self, kube, shell, capsys):
        shell.fail("deployment/minio")
        assert kube.wait_for_deployment("minio", 120) is False
        assert "failed to become ready within 120s" in capsys.readouterr().err

    def test_wait_for_statefulset_ready(self, kube, shell):
        shell.on_output("readyReplicas", "1")
        assert kube.wait_for_statefulset("postgres", 1, 120) is True

    def test_wait_for_statefulset_gives_up(self, kube, shell):
        assert kube.wait_for_statefulset("postgres", 1, timeout=20, interval=5) is False
        polls = [c for c in shell.commands if "readyReplicas" in c]
        assert len(polls) == 4

    def test_wait_for_statefulset_dry_run(self):
        shell = FakeShell(dry_run=True)
        assert Kubectl(shell, "test").wait_for_statefulset("postgres") is True
        assert shell.calls == []

    def test_wait_for_pvc_bound(self, kube, shell):
        shell.on_output("{.status.phase}", "Bound")
        assert kube.wait_for_pvc_bound("spark-project-pvc", attempts=3) is True

    def test_wait_for_pvc_pending(self, kube, shell):
        shell.on_output("{.status.phase}", "Pending")
        assert kube.wait_for_pvc_bound("spark-project-pvc", attempts=3) is False
        assert len([c for c in shell.commands if "status.phase" in c]) == 3

    def test_wait_for_pods_by_label(self, kube, shell):
        assert kube.wait_for_pods("app=dex", timeout=60) is True
        assert shell.commands[-1] == "kubectl wait --for=condition=Ready pods -l app=dex -n test --timeout=60s"

    def test_wait_for_all_pods(self, shell):
        shell.fail("kubectl wait")
        assert Kubectl(shell, "kube-system").wait_for_pods() is False
        assert shell.commands[-1] == "kubectl wait --for=condition=Ready pods --all -n kube-system --timeout=120s"


class TestPods:
    """Tests for pod helpers."""

    def test_first_pod(self, kube, shell):
        shell.on_output("jsonpath={.items[0].metadata.name}", "postgres-0")
        assert kube.first_pod("app=postgres") == "postgres-0"

    def test_latest_pod_sorts_by_creation(self, kube, shell):
        shell.on_output("--sort-by=.metadata.creationTimestamp", "spark-pi-driver")
        assert kube.latest_pod("spark-role=driver") == "spark-pi-driver"

    def test_show_logs(self, kube, shell):
        shell.on_output("{.items[0].metadata.name}", "minio-abc")
        assert kube.show_logs("app=minio", 20, follow=True) == 0
        assert shell.commands[-1] == "kubectl logs -f minio-abc -n test --tail=20"

    def test_show_logs_without_pods(self, kube):
        with pytest.raises(RuntimeError, match="No pods found with label: app=minio"):
            kube.show_logs("app=minio")

    def test_exec_with_tty(self, kube, shell):
        kube.exec("postgres-0", ["psql", "-U", "postgres"], tty=True)
        call = shell.calls[-1]
        assert call[0] == "interactive"
        assert call[1] == ["kubectl", "exec", "-it", "postgres-0", "-n", "test", "--", "psql", "-U", "postgres"]

    def test_exec_with_stdin(self, kube, shell):
        stdin = object()
        kube.exec("postgres-0", ["psql"], stdin=stdin)
        assert shell.calls[-1][1][:3] == ["kubectl", "exec", "-i"]
        assert shell.calls[-1][2]["stdin"] is stdin

    def test_exec_capture(self, kube, shell):
        shell.on_output("mongod --version", "db version v8.0.0")
        assert kube.exec("mongodb-0", ["mongod", "--version"], capture=True) == "db version v8.0.0"

    def test_copy_to_pod(self, kube, shell):
        kube.copy_to_pod("data.json", "mongodb-0", "/tmp/import.json")
        assert shell.commands[-1] == "kubectl cp data.json test/mongodb-0:/tmp/import.json"

    def test_run_probe(self, kube, shell):
        shell.succeed("kubectl run pg-check")
        assert kube.run_probe("pg-check", "postgres:15", ["pg_isready"], env={"PGPASSWORD": "pw"}) is True
        assert shell.commands[-1] == (
            "kubectl run pg-check --rm -i --restart=Never --quiet --image=postgres:15 -n test "
            "--env=PGPASSWORD=pw --command -- timeout 5 pg_isready"
        )

    def test_rollout_restart(self, kube, shell):
        assert kube.rollout_restart("deployment", "dex") is True
        shell.fail("rollout restart")
        assert kube.rollout_restart("deployment", "dex") is False

    def test_cleanup_failed_pods(self, kube, shell):
        shell.fail("field-selector")
        kube.cleanup_failed_pods()
        assert shell.ran("--field-selector=status.phase=Failed")
        assert shell.ran("--field-selector=status.phase=Unknown")

    def test_nodeport(self, kube, shell):
        shell.on_output("@.name=='console'", "30901")
        assert kube.get_service_nodeport("minio", "console") == "30901"


class TestManifests:
    """Tests for manifest application and resolution."""

    def test_apply_manifest(self, kube, shell, tmp_path):
        manifest = tmp_path / "dex.yaml"
        manifest.write_text("kind: ConfigMap\n")
        kube.apply_manifest(manifest)
        assert shell.commands[-1] == f"kubectl apply -f {manifest} -n test"

    def test_apply_missing_manifest(self, kube, tmp_path):
        with pytest.raises(FileNotFoundError, match="Manifest file not found"):
            kube.apply_manifest(tmp_path / "missing.yaml")

    def test_apply_failure(self, kube, shell, tmp_path):
        manifest = tmp_path / "dex.yaml"
        manifest.write_text("kind: ConfigMap\n")
        shell.fail("kubectl apply")
        with pytest.raises(RuntimeError, match="Failed to apply manifest"):
            kube.apply_manifest(manifest)

    def test_apply_manifest_text_uses_stdin(self, kube, shell):
        kube.apply_manifest_text("kind: ServiceAccount\n")
        call = shell.calls[-1]
        assert call[1] == ["kubectl", "apply", "-f", "-", "-n", "test"]
        assert call[2]["input"] == "kind: ServiceAccount\n"

    def test_delete_missing_manifest_is_a_warning(self, kube, shell, tmp_path, capsys):
        kube.delete_manifest(tmp_path / "missing.yaml")
        assert shell.calls == []
        assert "Manifest file not found" in capsys.readouterr().out

    def test_delete_manifest_ignores_not_found(self, kube, shell, tmp_path):
        manifest = tmp_path / "dex.yaml"
        manifest.write_text("kind: ConfigMap\n")
        kube.delete_manifest(manifest)
        assert shell.commands[-1].endswith("-n test --ignore-not-found=true")

    def test_resolve_prefers_project_override(self, kube, tmp_path):
        project_root = tmp_path / "project"
        overrides = project_root / "k8s" / "manifests"
        overrides.mkdir(parents=True)
        (project_root / "scripts").mkdir()
        (overrides / "minio.yaml").write_text("kind: Deployment\n")

        resolved = kube.resolve_manifest_path(
            tmp_path / "default" / "minio.yaml", "minio", "../k8s/manifests", str(project_root)
        )
        assert resolved == (overrides / "minio.yaml").resolve()

    def test_resolve_absolute_override(self, kube, tmp_path):
        (tmp_path / "minio.yaml").write_text("kind: Deployment\n")
        resolved = kube.resolve_manifest_path(tmp_path / "default.yaml", "minio", str(tmp_path), "/unused")
        assert resolved == tmp_path / "minio.yaml"

    def test_resolve_falls_back_to_default(self, kube, tmp_path):
        default = tmp_path / "default" / "minio.yaml"
        assert kube.resolve_manifest_path(default, "minio", str(tmp_path / "none"), str(tmp_path)) == default
        assert kube.resolve_manifest_path(default, "minio") == default

    def test_create_pv(self, kube, shell):
        kube.create_pv("minio-data", "5Gi")
        call = shell.calls[-1]
        pv = yaml.safe_load(call[2]["input"])
        assert pv["kind"] == "PersistentVolume"
        assert pv["spec"]["hostPath"]["path"] == "/data/minio-data"
        assert pv["spec"]["capacity"]["storage"] == "5Gi"

    def test_create_pv_skips_existing(self, kube, shell):
        shell.succeed("kubectl get pv minio-data")
        kube.create_pv("minio-data")
        assert not shell.ran("kubectl apply")
