"""Spark on Kubernetes: RBAC plus a host-mounted project volume.

There is no long-running Spark cluster. ``spark-submit`` creates driver and
executor pods on demand using the ``spark`` ServiceAccount, and the project
directory reaches them through a hostPath PersistentVolume backed by a
``minikube mount``.
"""

import time
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from minienv.logging import echo, print_header, print_info, print_success, print_warning
from minienv.services.base import NO_WORKLOAD, Service

PATH_PLACEHOLDER = "/path/to/your/project"
PVC_NAME = "spark-project-pvc"
PV_NAME = "spark-project-pv"
DRIVER_LABEL = "spark-role=driver"
SPARK_IMAGE = "apache/spark:3.5.3"
EXAMPLE_JAR = "local:///opt/spark/examples/jars/spark-examples_2.12-3.5.3.jar"

COMPONENTS = (
    ("ServiceAccount", "spark"),
    ("Role", "spark-role"),
    ("RoleBinding", "spark-role-binding"),
    ("PersistentVolume", PV_NAME),
    ("PersistentVolumeClaim", PVC_NAME),
)


def substitute_project_path(manifest: str, project_path: str) -> str:
    """Point every hostPath placeholder in a multi-document manifest at the project."""
    documents = [doc for doc in yaml.safe_load_all(manifest) if doc]
    for doc in documents:
        host_path = (doc.get("spec") or {}).get("hostPath") or {}
        if host_path.get("path") == PATH_PLACEHOLDER:
            host_path["path"] = project_path
    return yaml.safe_dump_all(documents, sort_keys=False)


class Spark(Service):
    name = "spark"
    title = "Spark on Kubernetes"
    kind = NO_WORKLOAD
    workload = "spark"
    label = DRIVER_LABEL
    restartable = False

    @property
    def project_path(self) -> str:
        return self.config.spark_project_path or str(Path.cwd())

    def mount_command(self, path: Optional[str] = None) -> str:
        path = path or self.project_path
        return f"minikube mount {path}:{path} --9p-version=9p2000.L --uid=1000 --gid=1000 &"

    def submit_args(self, name: str, main_class: Optional[str], app: str, app_args: List[str],
                    extra_conf: Optional[List[str]] = None) -> List[str]:
        args = [
            "kubectl", "run", name, "--rm", "-i", "--tty", "--restart=Never",
            f"--namespace={self.namespace}",
            "--serviceaccount=spark",
            f"--image={SPARK_IMAGE}",
            "--", "/opt/spark/bin/spark-submit",
            "--master", "k8s://https://kubernetes.default.svc",
            "--deploy-mode", "cluster",
        ]
        if main_class:
            args += ["--name", "SparkPiExample", "--class", main_class]
        args += [
            "--conf", f"spark.kubernetes.namespace={self.namespace}",
            "--conf", "spark.kubernetes.authenticate.driver.serviceAccountName=spark",
        ]
        for conf in extra_conf or []:
            args += ["--conf", conf]
        return args + [app, *app_args]

    def example_args(self) -> List[str]:
        return self.submit_args(
            "spark-example",
            "org.apache.spark.examples.SparkPi",
            EXAMPLE_JAR,
            ["1000"],
            [f"spark.kubernetes.container.image={SPARK_IMAGE}", "spark.executor.instances=2"],
        )

    def deploy(self) -> None:
        """Apply RBAC and storage with the project path substituted in.

        Raises:
            FileNotFoundError: If the manifest is missing
            RuntimeError: If the ServiceAccount was not created
        """
        print_header(f"Deploying {self.title}")
        self.prepare()

        print_info(f"Using project path: {self.project_path}")
        manifest = self.manifest_path()
        if not manifest.is_file():
            raise FileNotFoundError(f"Manifest file not found: {manifest}")

        print_info(f"Applying manifest: {manifest}")
        self.kube.apply_manifest_text(substitute_project_path(manifest.read_text(), self.project_path))
        print_success("Manifest applied successfully")

        print_info("Waiting for Spark ServiceAccount...")
        if not self.shell.dry_run and not self.kube.resource_exists("serviceaccount", "spark"):
            raise RuntimeError("Spark ServiceAccount creation failed")

        print_info("Waiting for PVC to be bound...")
        if self.kube.wait_for_pvc_bound(PVC_NAME, attempts=60, interval=2):
            print_success("PVC is bound")
        else:
            print_warning("PVC not bound yet. You may need to start minikube mount:")
            echo()
            echo(f"  {self.mount_command()}")
            echo()

        print_success(f"{self.title} deployed successfully")
        echo()
        print_info("Components deployed:")
        for kind, name in COMPONENTS:
            echo(f"  ✓ {kind}: {name}")
        echo()
        self.status()

    def remove(self) -> None:
        print_header(f"Removing {self.title}")
        self.kube.delete_manifest(self.manifest_path())
        print_success("Spark resources removed")

    def restart(self) -> None:
        raise ValueError("Spark has no long-running workload to restart")

    def is_deployed(self) -> bool:
        return self.kube.resource_exists("serviceaccount", "spark")

    def status(self) -> bool:
        print_header(f"{self.title} Status")

        if not self.is_deployed():
            print_warning(f"{self.title} is not deployed")
            return False

        echo()
        print_info("RBAC Resources:")
        for kind, name in COMPONENTS[:3]:
            if self.kube.get(kind.lower(), name):
                echo(f"  ✓ {kind}: {name}")

        echo()
        print_info("Storage Resources:")
        self.kube.get("pv", PV_NAME, cluster_scoped=True)
        echo()
        self.kube.get("pvc", PVC_NAME)

        echo()
        print_info("Dynamic Spark Pods (currently running):")
        if self.kube.first_pod(DRIVER_LABEL):
            self.kube.get("pods", label=DRIVER_LABEL)
        else:
            echo("  (none - pods are created on-demand when jobs run)")

        echo()
        print_info("Usage:")
        echo("  Quick start:")
        echo("    # 1. Ensure minikube mount is active")
        echo(f"    {self.mount_command()}")
        echo()
        echo("    # 2. Submit a Spark job")
        submit = self.submit_args("spark-job", None, "local:///project/target/your-app.jar", [])
        echo("    " + " \\\n      ".join(_group_flags(submit)))
        echo()
        return True

    def mount(self, path: Optional[str] = None) -> bool:
        """Start a background minikube mount and wait for the PVC to bind."""
        path = path or self.project_path
        print_header("Setting up Minikube Mount")

        if self.minikube.mount_processes(f"minikube mount {path}"):
            print_success(f"Minikube mount already active for: {path}")
            return True

        print_info(f"Starting minikube mount for: {path}")
        process = self.minikube.mount(path)
        if process is not None:
            print_success(f"Minikube mount started (PID: {process.pid})")
        print_info("Mount will remain active in background")

        if not self.shell.dry_run:
            time.sleep(3)

        print_info("Verifying PVC binding...")
        if self.kube.wait_for_pvc_bound(PVC_NAME, attempts=30, interval=2):
            print_success("PVC is now bound")
            return True

        print_warning("PVC not bound yet, but mount is running")
        return False

    def check_mount(self) -> bool:
        print_header("Minikube Mount Status")
        processes = self.minikube.mount_processes()
        if not processes:
            print_warning("No minikube mount process found")
            echo()
            echo("Start mount with:")
            echo("  minienv spark mount [path]")
            return False

        for line in processes:
            echo(line)
        echo()
        print_success("Minikube mount is active")
        return True

    def logs(self, lines: int = 50, follow: bool = False, pod: Optional[str] = None) -> int:
        """Show logs of a Spark pod, by default the most recent driver.

        Raises:
            RuntimeError: If no driver pod exists
        """
        print_header("Spark Pod Logs")
        if not pod:
            pod = self.kube.latest_pod(DRIVER_LABEL)
            if not pod:
                echo()
                echo("List all pods with:")
                echo(f"  kubectl get pods -n {self.namespace} | grep spark")
                raise RuntimeError("No Spark driver pods found")
            print_info(f"Showing logs for most recent driver: {pod}")
        return self.kube.pod_logs(pod, lines, follow)

    def example(self, assume_yes: bool = False) -> int:
        """Print the SparkPi submit command and run it on confirmation."""
        print_header("Submitting Example Spark Job")
        args = self.example_args()
        echo(" \\\n  ".join(_group_flags(args)))
        echo()

        if not assume_yes and not typer.confirm("Run this example?", default=False):
            return 0
        return self.shell.interactive(args)


def _group_flags(args: List[str]) -> List[str]:
    """Pair "--flag value" arguments so a command prints one option per line."""
    groups: List[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--master", "--deploy-mode", "--name", "--class", "--conf") and i + 1 < len(args):
            groups.append(f"{arg} {args[i + 1]}")
            i += 2
            continue
        if arg == "--" and i + 1 < len(args):
            groups.append(f"-- {args[i + 1]}")
            i += 2
            continue
        if groups and not arg.startswith("-") and not groups[-1].startswith("-"):
            groups[-1] = f"{groups[-1]} {arg}"
        else:
            groups.append(arg)
        i += 1
    return groups
