"""Minikube lifecycle helpers and the cluster start/stop/status workflows."""

import os
import time
from collections import Counter
from typing import List, Optional

import typer

from minienv.config import MinikubeConfig
from minienv.kubectl import Kubectl
from minienv.logging import (
    echo,
    logger,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
)
from minienv.shell import Shell

ADDONS = ("metrics-server", "storage-provisioner", "default-storageclass")

MOUNT_OPTIONS = ("--9p-version=9p2000.L", "--uid=1000", "--gid=1000")

log = logger.with_component("minikube")


class Minikube:
    """Wraps the minikube CLI for one profile."""

    def __init__(self, shell: Shell, profile: Optional[str] = None):
        self.shell = shell
        self.profile = profile

    def _p(self) -> List[str]:
        return ["-p", self.profile] if self.profile else []

    def is_running(self) -> bool:
        host = self.shell.output(["minikube", "status", *self._p(), "--format={{.Host}}"])
        return "Running" in host

    def ensure_running(self, config: MinikubeConfig) -> None:
        """Start minikube with the given resources unless it is already up.

        Raises:
            RuntimeError: If minikube fails to start
        """
        if self.is_running():
            print_info("Minikube is already running")
            return

        print_warning("Minikube is not running. Starting minikube...")
        print_info("Minikube configuration:")
        echo(f"  CPUs: {config.cpus}")
        echo(f"  Memory: {config.memory}MB")
        echo(f"  Disk: {config.disk_size}")

        args = [
            "minikube", "start", *self._p(),
            f"--cpus={config.cpus}",
            f"--memory={config.memory}",
            f"--disk-size={config.disk_size}",
        ]
        if config.driver:
            args.append(f"--driver={config.driver}")

        print_info(f"Starting: {' '.join(args)}")
        result = self.shell.run(args, check=False)
        if result.returncode != 0:
            raise RuntimeError("Failed to start minikube")
        print_success("Minikube started successfully")

    def ip(self) -> str:
        return self.shell.output(["minikube", "ip", *self._p()])

    def service_url(self, service: str, namespace: str) -> str:
        """Return the first URL minikube reports for a service, or ""."""
        urls = self.shell.output(["minikube", "service", service, "-n", namespace, "--url", *self._p()])
        return urls.splitlines()[0] if urls else ""

    def open_service(self, service: str, namespace: str) -> int:
        """Open a service in the browser through minikube."""
        return self.shell.interactive(["minikube", "service", service, "-n", namespace, "--url=false", *self._p()])

    def external_url(self, kube: Kubectl, service: str, port_name: str = "http") -> str:
        """Build http://<minikube ip>:<nodeport> for a named service port, or ""."""
        nodeport = kube.get_service_nodeport(service, port_name)
        ip = self.ip()
        if nodeport and ip:
            return f"http://{ip}:{nodeport}"
        return ""

    def mount(self, path: str):
        """Mount a host directory into the node at the same path, in the background."""
        return self.shell.spawn(["minikube", "mount", f"{path}:{path}", *MOUNT_OPTIONS, *self._p()])

    def mount_processes(self, path: Optional[str] = None) -> List[str]:
        """Return `ps` lines of running minikube mount processes."""
        listing = self.shell.output(["ps", "aux"])
        lines = []
        for line in listing.splitlines():
            if "minikube mount" not in line:
                continue
            if path and path not in line:
                continue
            lines.append(line)
        return lines

    # Cluster workflows

    def _check_prerequisites(self) -> None:
        print_header("Checking Prerequisites")

        if not self.shell.which("minikube"):
            echo("Install from: https://minikube.sigs.k8s.io/docs/start/")
            raise RuntimeError("minikube is not installed")
        print_success(f"minikube found: {self.shell.output(['minikube', 'version', '--short'])}")

        if not self.shell.which("kubectl"):
            print_warning("kubectl is not installed")
            echo("Install from: https://kubernetes.io/docs/tasks/tools/")
            echo("You can use 'minikube kubectl' as alternative")
        else:
            print_success(f"kubectl found: {self.shell.output(['kubectl', 'version', '--client'])}")

        cores = os.cpu_count() or 0
        memory_gb = _total_memory_gb()
        if memory_gb is not None:
            print_success(f"System resources: {cores} cores, {memory_gb}GB RAM")
            if memory_gb < 16:
                print_warning("Low memory detected. Consider reducing MINIKUBE_MEMORY")
        echo()

    def _keep_existing_cluster(self, assume_yes: bool, recreate: bool) -> bool:
        """Return True when an existing running cluster should be reused."""
        print_header("Checking Existing Cluster")
        if not self.is_running():
            echo()
            return False

        print_warning(f"Cluster '{self.profile or 'minikube'}' is already running")
        echo()
        self.shell.run(["minikube", "profile", "list"], check=False)
        echo()

        if not recreate and not assume_yes:
            recreate = typer.confirm("Do you want to delete and recreate?", default=False)

        if recreate:
            print_info("Deleting existing cluster...")
            self.shell.run(["minikube", "delete", *self._p()])
            return False

        print_info("Using existing cluster")
        return True

    def _start(self, config: MinikubeConfig) -> None:
        print_header("Starting Minikube Cluster")
        echo("Configuration:")
        echo(f"  Profile:     {config.profile}")
        echo(f"  CPUs:        {config.cpus} cores")
        echo(f"  Memory:      {config.memory} MB ({config.memory_gb}GB)")
        echo(f"  Disk:        {config.disk_size}")
        echo(f"  Driver:      {config.driver}")
        echo(f"  Runtime:     {config.runtime}")
        echo(f"  K8s Version: {config.kubernetes_version}")
        echo()

        print_info("Starting cluster... (this may take 1-2 minutes)")
        args = [
            "minikube", "start", *self._p(),
            f"--cpus={config.cpus}",
            f"--memory={config.memory}",
            f"--disk-size={config.disk_size}",
        ]
        if config.driver:
            args.append(f"--driver={config.driver}")
        if config.runtime:
            args.append(f"--container-runtime={config.runtime}")
        if config.kubernetes_version:
            args.append(f"--kubernetes-version={config.kubernetes_version}")

        result = self.shell.run(args, check=False)
        if result.returncode != 0:
            raise RuntimeError("Failed to start minikube")
        print_success("Cluster started successfully")
        echo()

    def _enable_addons(self) -> None:
        print_header("Enabling Addons")
        listing = self.shell.output(["minikube", "addons", "list", *self._p()])
        enabled = {
            line.split("|")[1].strip()
            for line in listing.splitlines()
            if "enabled" in line and line.count("|") >= 2
        }
        for addon in ADDONS:
            if addon in enabled:
                print_success(f"{addon} already enabled")
                continue
            print_info(f"Enabling {addon}...")
            self.shell.run(["minikube", "addons", "enable", addon, *self._p()])
        echo()

    def _wait_for_cluster(self, attempts: int = 30, interval: int = 2) -> None:
        print_header("Waiting for Cluster to be Ready")
        print_info("Waiting for API server...")

        if not self.shell.dry_run:
            for _ in range(attempts):
                if self.shell.succeeds(["kubectl", "get", "nodes"]):
                    print_success("API server is ready")
                    break
                time.sleep(interval)
            else:
                raise RuntimeError("Timeout waiting for API server")

        print_info("Waiting for system pods...")
        Kubectl(self.shell, "kube-system").wait_for_pods(timeout=120, quiet=False)
        print_success("Cluster is ready")
        echo()

    def _show_cluster_info(self) -> None:
        print_header("Cluster Information")
        self.shell.run(["minikube", "profile", "list"], check=False)
        echo()
        echo("Nodes:")
        self.shell.run(["kubectl", "get", "nodes", "-o", "wide"], check=False)
        echo()
        echo("System Pods:")
        self.shell.run(["kubectl", "get", "pods", "-n", "kube-system"], check=False)
        echo()
        self._show_enabled_addons()

        profile = self.profile or "minikube"
        print_info(f"Cluster IP: {self.ip()}")
        print_info(f"Dashboard:  minikube dashboard -p {profile}")
        print_info(f"SSH:        minikube ssh -p {profile}")
        echo()

    def _show_enabled_addons(self) -> None:
        echo("Enabled Addons:")
        listing = self.shell.output(["minikube", "addons", "list", *self._p()])
        for line in listing.splitlines():
            if "enabled" in line:
                echo(line)
        echo()

    def _show_next_steps(self) -> None:
        profile = self.profile or "minikube"
        print_header("Next Steps")
        echo("Cluster is ready! Here's what you can do:")
        echo()
        echo("1. Check resource usage:")
        echo("   kubectl top nodes")
        echo("   kubectl top pods --all-namespaces")
        echo()
        echo("2. Deploy services:")
        echo("   export NAMESPACE=demo")
        echo("   minienv minio deploy")
        echo("   minienv spark deploy")
        echo()
        echo("3. Access Kubernetes dashboard:")
        echo("   minienv cluster dashboard")
        echo()
        echo("4. Stop cluster (preserves state):")
        echo("   minienv cluster stop")
        echo()
        echo("5. Delete cluster:")
        echo(f"   minikube delete -p {profile}")
        echo()

    def start_cluster(self, config: MinikubeConfig, assume_yes: bool = False, recreate: bool = False) -> None:
        """Start a fully provisioned cluster with addons enabled.

        An already running cluster is reused unless the operator asks to
        recreate it (interactively, or with ``recreate``).

        Raises:
            RuntimeError: If minikube is missing, fails to start, or the API
                server never answers
        """
        print_header("Minikube Cluster Startup")
        log.info("Starting cluster", fields={"profile": config.profile, "cpus": config.cpus,
                                             "memory": config.memory})

        self._check_prerequisites()
        if not self._keep_existing_cluster(assume_yes, recreate):
            self._start(config)
            self._enable_addons()
            self._wait_for_cluster()

        self._show_cluster_info()
        self._show_next_steps()
        print_header("Startup Complete!")

    def stop_cluster(self) -> bool:
        """Stop the cluster, preserving its state."""
        profile = self.profile or "minikube"
        print_header("Stopping Minikube Cluster")
        if not self.shell.succeeds(["minikube", "status", *self._p()]):
            print_warning(f"Cluster '{profile}' is not running")
            return True

        echo(f"Stopping cluster: {profile}")
        echo()
        result = self.shell.run(["minikube", "stop", *self._p()], check=False)
        if result.returncode != 0:
            print_error("Failed to stop cluster")
            return False

        print_success("Cluster stopped successfully")
        echo()
        echo("To start again: minienv cluster start")
        echo(f"To delete:      minikube delete -p {profile}")
        echo()
        return True

    def cluster_status(self) -> bool:
        """Print a full report of the cluster. Returns False when it is missing or unreachable."""
        profile = self.profile or "minikube"
        print_header("Minikube Cluster Status")

        if not self.shell.succeeds(["minikube", "status", *self._p()]):
            print_error(f"Cluster '{profile}' not found")
            echo()
            echo("To start: minienv cluster start")
            return False

        echo("Profiles:")
        self.shell.run(["minikube", "profile", "list"], check=False)
        echo()

        echo("Cluster Status:")
        self.shell.run(["minikube", "status", *self._p()], check=False)
        echo()

        if not self.shell.succeeds(["kubectl", "get", "nodes"]):
            print_error("Cluster is not accessible")
            echo(f"Try: minikube start -p {profile}")
            return False

        echo("Nodes:")
        self.shell.run(["kubectl", "get", "nodes", "-o", "wide"], check=False)
        echo()

        if "metrics.k8s.io" in self.shell.output(["kubectl", "get", "apiservices"]):
            self._show_resource_usage()

        echo("Pods by Namespace:")
        pods = self.shell.output(["kubectl", "get", "pods", "--all-namespaces", "--no-headers"])
        counts = Counter(line.split()[0] for line in pods.splitlines() if line.strip())
        for namespace, count in counts.most_common():
            echo(f"{count:>7} {namespace}")
        echo()

        echo("Services:")
        self.shell.run(["kubectl", "get", "svc", "--all-namespaces"], check=False)
        echo()

        echo(f"Cluster IP: {self.ip() or 'N/A'}")
        echo()

        echo("Disk Usage (inside cluster):")
        echo(self.shell.output(["minikube", "ssh", *self._p(), "df -h /"]) or "N/A")
        echo()

        self._show_enabled_addons()

        print_header("Quick Commands")
        echo(f"Dashboard:   minikube dashboard -p {profile}")
        echo(f"SSH:         minikube ssh -p {profile}")
        echo(f"Logs:        minikube logs -p {profile}")
        echo("Stop:        minienv cluster stop")
        echo(f"Delete:      minikube delete -p {profile}")
        echo()
        return True

    def _show_resource_usage(self) -> None:
        echo("Resource Usage:")
        echo()
        echo("Nodes:")
        if self.shell.run(["kubectl", "top", "nodes"], check=False).returncode != 0:
            print_error("Metrics not ready yet (wait 30 seconds)")
        echo()

        for title, sort_key in (("CPU", "cpu"), ("Memory", "memory")):
            echo(f"Top Pods by {title}:")
            top = self.shell.output(["kubectl", "top", "pods", "--all-namespaces", f"--sort-by={sort_key}"])
            if top:
                echo("\n".join(top.splitlines()[:10]))
            else:
                echo("No pods running")
            echo()

    def delete_cluster(self) -> None:
        """Delete the cluster and everything in it."""
        self.shell.run(["minikube", "delete", *self._p()])

    def dashboard(self) -> int:
        return self.shell.interactive(["minikube", "dashboard", *self._p()])


def _total_memory_gb() -> Optional[int]:
    try:
        return int(os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES") / 1024 ** 3)
    except (ValueError, OSError, AttributeError):
        return None
