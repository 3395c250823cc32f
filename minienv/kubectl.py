"""Kubernetes helpers shared by every service."""

import time
from pathlib import Path
from typing import Dict, IO, List, Optional, Sequence

import yaml

from minienv.logging import echo, print_error, print_info, print_success, print_warning
from minienv.shell import Shell


class Kubectl:
    """Thin wrapper around kubectl bound to one namespace."""

    def __init__(self, shell: Shell, namespace: str = "default"):
        self.shell = shell
        self.namespace = namespace

    def _ns(self, namespace: Optional[str] = None) -> List[str]:
        ns = self.namespace if namespace is None else namespace
        if ns == "":
            return []
        return ["-n", ns]

    # Namespaces and resources

    def create_namespace(self, namespace: Optional[str] = None) -> None:
        """Create the namespace unless it already exists.

        Raises:
            RuntimeError: If kubectl cannot create it
        """
        namespace = namespace or self.namespace
        if self.shell.succeeds(["kubectl", "get", "namespace", namespace]):
            print_info(f"Namespace '{namespace}' already exists")
            return

        print_info(f"Creating namespace '{namespace}'...")
        result = self.shell.run(["kubectl", "create", "namespace", namespace], check=False)
        if result.returncode != 0:
            raise RuntimeError(f"Failed to create namespace '{namespace}'")
        print_success(f"Namespace '{namespace}' created")

    def resource_exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        """Check whether a resource exists. A namespace of "" means cluster-scoped."""
        return self.shell.succeeds(["kubectl", "get", kind, name, *self._ns(namespace)])

    def get(
        self,
        kind: str,
        name: Optional[str] = None,
        label: Optional[str] = None,
        cluster_scoped: bool = False,
        extra: Sequence[str] = (),
    ) -> bool:
        """Print a resource table. Returns False when kubectl fails."""
        args = ["kubectl", "get", kind]
        if name:
            args.append(name)
        if label:
            args += ["-l", label]
        if not cluster_scoped:
            args += self._ns()
        args += list(extra)
        return self.shell.run(args, check=False).returncode == 0

    def jsonpath(self, kind: str, name: str, path: str) -> str:
        """Read one field of a resource, or "" when it is missing."""
        return self.shell.output(
            ["kubectl", "get", kind, name, *self._ns(), "-o", f"jsonpath={path}"]
        )

    # Readiness

    def wait_for_deployment(self, name: str, timeout: int = 300) -> bool:
        """Wait for a deployment to report the Available condition."""
        print_info(f"Waiting for deployment '{name}' to be ready (timeout: {timeout}s)...")
        result = self.shell.run(
            [
                "kubectl", "wait", "--for=condition=available",
                f"--timeout={timeout}s", f"deployment/{name}", *self._ns(),
            ],
            check=False,
            quiet=True,
        )
        if result.returncode == 0:
            print_success(f"Deployment '{name}' is ready")
            return True
        print_error(f"Deployment '{name}' failed to become ready within {timeout}s")
        return False

    def wait_for_statefulset(
        self, name: str, replicas: int = 1, timeout: int = 300, interval: int = 5
    ) -> bool:
        """Poll .status.readyReplicas until it matches the expected count."""
        print_info(f"Waiting for statefulset '{name}' to be ready (timeout: {timeout}s)...")
        if self.shell.dry_run:
            return True

        attempts = max(1, timeout // interval)
        for _ in range(attempts):
            ready = self.jsonpath("statefulset", name, "{.status.readyReplicas}")
            if ready == str(replicas):
                print_success(f"StatefulSet '{name}' is ready")
                return True
            time.sleep(interval)

        print_error(f"StatefulSet '{name}' failed to become ready within {timeout}s")
        return False

    def wait_for_pvc_bound(self, name: str, attempts: int = 60, interval: int = 2) -> bool:
        """Poll a PVC until its phase is Bound."""
        if self.shell.dry_run:
            return True
        for _ in range(attempts):
            if self.jsonpath("pvc", name, "{.status.phase}") == "Bound":
                return True
            time.sleep(interval)
        return False

    def wait_for_pods(self, label: Optional[str] = None, timeout: int = 120, quiet: bool = True) -> bool:
        """Wait for the pods matching a label, or every pod when no label is given, to be Ready."""
        selector = ["-l", label] if label else ["--all"]
        result = self.shell.run(
            [
                "kubectl", "wait", "--for=condition=Ready", "pods", *selector,
                *self._ns(), f"--timeout={timeout}s",
            ],
            check=False,
            quiet=quiet,
        )
        return result.returncode == 0

    # Pods

    def get_pod_status(self, label: str) -> None:
        """Print pods matching a label."""
        self.shell.run(["kubectl", "get", "pods", "-l", label, *self._ns(), "-o", "wide"], check=False)

    def first_pod(self, label: str) -> str:
        return self.shell.output(
            [
                "kubectl", "get", "pods", "-l", label, *self._ns(),
                "-o", "jsonpath={.items[0].metadata.name}",
            ]
        )

    def latest_pod(self, label: str) -> str:
        """Return the most recently created pod for a label, or ""."""
        return self.shell.output(
            [
                "kubectl", "get", "pods", "-l", label, *self._ns(),
                "--sort-by=.metadata.creationTimestamp",
                "-o", "jsonpath={.items[-1].metadata.name}",
            ]
        )

    def pod_logs(self, pod: str, lines: int = 50, follow: bool = False) -> int:
        args = ["kubectl", "logs"]
        if follow:
            args.append("-f")
        args += [pod, *self._ns(), f"--tail={lines}"]
        return self.shell.interactive(args)

    def show_logs(self, label: str, lines: int = 50, follow: bool = False) -> int:
        """Show logs of the first pod matching a label.

        Raises:
            RuntimeError: If no pod matches
        """
        print_info(f"Fetching logs for label: {label}")
        pod = self.first_pod(label)
        if not pod:
            raise RuntimeError(f"No pods found with label: {label}")
        return self.pod_logs(pod, lines, follow)

    def exec(
        self,
        pod: str,
        command: Sequence[str],
        tty: bool = False,
        stdin: Optional[IO] = None,
        capture: bool = False,
        container: Optional[str] = None,
    ):
        """Run a command inside a pod.

        Returns the exit code, or the captured stdout when ``capture`` is set.
        """
        args = ["kubectl", "exec"]
        if tty:
            args.append("-it")
        elif stdin is not None:
            args.append("-i")
        args += [pod, *self._ns()]
        if container:
            args += ["-c", container]
        args += ["--", *command]

        if capture:
            return self.shell.output(args)
        return self.shell.interactive(args, stdin=stdin)

    def copy_to_pod(self, local: str, pod: str, remote: str) -> None:
        """Copy a local file into a pod.

        Raises:
            subprocess.CalledProcessError: If kubectl cp fails
        """
        ns_prefix = f"{self.namespace}/" if self.namespace else ""
        self.shell.run(["kubectl", "cp", str(local), f"{ns_prefix}{pod}:{remote}"])

    def run_probe(
        self,
        name: str,
        image: str,
        command: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        timeout: int = 5,
    ) -> bool:
        """Run a throwaway pod that executes a command and report whether it succeeded."""
        args = [
            "kubectl", "run", name, "--rm", "-i", "--restart=Never", "--quiet",
            f"--image={image}", *self._ns(),
        ]
        for key, value in (env or {}).items():
            args.append(f"--env={key}={value}")
        args += ["--command", "--", "timeout", str(timeout), *command]
        return self.shell.succeeds(args)

    def rollout_restart(self, kind: str, name: str) -> bool:
        result = self.shell.run(["kubectl", "rollout", "restart", f"{kind}/{name}", *self._ns()], check=False)
        return result.returncode == 0

    def cleanup_failed_pods(self) -> None:
        """Delete pods stuck in the Failed or Unknown phase."""
        print_info(f"Cleaning up failed pods in namespace '{self.namespace}'...")
        for phase in ("Failed", "Unknown"):
            self.shell.run(
                ["kubectl", "delete", "pods", f"--field-selector=status.phase={phase}", *self._ns()],
                check=False,
                quiet=True,
            )
        print_success("Cleanup completed")

    def port_forward(self, service: str, local_port: int, remote_port: int) -> int:
        print_info(f"Port forwarding {service} {local_port}:{remote_port}")
        echo("Press Ctrl+C to stop port forwarding")
        return self.shell.interactive(
            ["kubectl", "port-forward", f"service/{service}", f"{local_port}:{remote_port}", *self._ns()]
        )

    # Services

    def get_service_nodeport(self, service: str, port_name: str = "http") -> str:
        return self.jsonpath("service", service, f"{{.spec.ports[?(@.name=='{port_name}')].nodePort}}")

    # Manifests

    def resolve_manifest_path(
        self,
        default_manifest: Path,
        service_name: str,
        project_manifests_dir: Optional[str] = None,
        project_root: Optional[str] = None,
    ) -> Path:
        """Pick a project-specific manifest when one exists, else the default.

        A relative ``project_manifests_dir`` is resolved from
        ``<project_root>/scripts`` so values like ``../k8s/manifests`` work.
        """
        if project_manifests_dir and project_root:
            manifests_dir = Path(project_manifests_dir)
            if not manifests_dir.is_absolute():
                manifests_dir = (Path(project_root) / "scripts" / manifests_dir).resolve()
            candidate = manifests_dir / f"{service_name}.yaml"
            if candidate.is_file():
                return candidate
        return Path(default_manifest)

    def apply_manifest(self, path: Path) -> None:
        """Apply a manifest file.

        Raises:
            FileNotFoundError: If the manifest does not exist
            RuntimeError: If kubectl apply fails
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Manifest file not found: {path}")

        print_info(f"Applying manifest: {path}")
        result = self.shell.run(["kubectl", "apply", "-f", str(path), *self._ns()], check=False)
        if result.returncode != 0:
            raise RuntimeError(f"Failed to apply manifest: {path}")
        print_success("Manifest applied successfully")

    def apply_manifest_text(self, text: str) -> None:
        """Apply manifest content through stdin."""
        result = self.shell.run(["kubectl", "apply", "-f", "-", *self._ns()], check=False, input=text)
        if result.returncode != 0:
            raise RuntimeError("Failed to apply manifest")

    def delete_manifest(self, path: Path) -> None:
        """Delete the resources of a manifest. A missing file is only a warning."""
        path = Path(path)
        if not path.is_file():
            print_warning(f"Manifest file not found: {path}")
            return

        print_info(f"Deleting resources from manifest: {path}")
        result = self.shell.run(
            ["kubectl", "delete", "-f", str(path), *self._ns(), "--ignore-not-found=true"],
            check=False,
        )
        if result.returncode != 0:
            print_warning("Some resources may not have been deleted")
        print_success("Resources deleted")

    def delete_pvcs(self, label: str) -> None:
        self.shell.run(
            ["kubectl", "delete", "pvc", "-l", label, *self._ns(), "--ignore-not-found=true"],
            check=False,
        )

    # Storage

    def create_pv(self, name: str, size: str = "1Gi", storage_class: str = "standard") -> None:
        """Create a hostPath PersistentVolume under /data unless it exists."""
        if self.resource_exists("pv", name, ""):
            print_info(f"PersistentVolume '{name}' already exists")
            return

        print_info(f"Creating PersistentVolume '{name}' ({size})...")
        pv = {
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {"name": name},
            "spec": {
                "capacity": {"storage": size},
                "accessModes": ["ReadWriteOnce"],
                "storageClassName": storage_class,
                "hostPath": {"path": f"/data/{name}"},
            },
        }
        result = self.shell.run(
            ["kubectl", "apply", "-f", "-"], check=False, input=yaml.safe_dump(pv, sort_keys=False)
        )
        if result.returncode != 0:
            raise RuntimeError(f"Failed to create PersistentVolume '{name}'")
        print_success(f"PersistentVolume '{name}' created")
