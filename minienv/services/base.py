"""Deployment template shared by every managed service.

A service is a static manifest plus a readiness check. ``deploy`` applies
the manifest and waits, ``status`` prints what kubectl knows about the
workload, and the subclasses add the service's own CLI on top through
``exec``.
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Tuple

import requests

from minienv.config import EnvConfig, MinikubeConfig, get_minikube_config
from minienv.kubectl import Kubectl
from minienv.logging import echo, logger, print_error, print_header, print_info, print_success, print_warning
from minienv.minikube import Minikube
from minienv.shell import Shell

DEPLOYMENT = "deployment"
STATEFULSET = "statefulset"
NO_WORKLOAD = "none"


class Service:
    """A single service deployed from a static manifest."""

    name: str = ""
    title: str = ""
    kind: str = DEPLOYMENT
    workload: str = ""
    label: str = ""
    service_name: str = ""
    manifest: str = ""
    timeout: int = 120
    pvc: Optional[str] = None
    has_health_check: bool = False
    restartable: bool = True

    http_timeout = 10

    def __init__(
        self,
        config: EnvConfig,
        shell: Optional[Shell] = None,
        minikube_config: Optional[MinikubeConfig] = None,
    ):
        self.config = config
        self.shell = shell or Shell(dry_run=config.dry_run)
        self.kube = Kubectl(self.shell, config.namespace)
        self.minikube = Minikube(self.shell)
        self.minikube_config = minikube_config or get_minikube_config()
        self.log = logger.with_component(self.name)

        self.workload = self.workload or self.name
        self.label = self.label or f"app={self.name}"
        self.service_name = self.service_name or self.name

    @property
    def namespace(self) -> str:
        return self.config.namespace

    @property
    def internal_host(self) -> str:
        return f"{self.service_name}.{self.namespace}.svc.cluster.local"

    def manifest_path(self) -> Path:
        """Return the manifest to use, preferring a project-specific override."""
        default = self.config.manifest(self.manifest or self.name)
        return self.kube.resolve_manifest_path(
            default,
            self.name,
            self.config.project_manifests_dir,
            self.config.project_root,
        )

    # Lifecycle

    def prepare(self) -> None:
        """Make sure the cluster and namespace exist."""
        self.minikube.ensure_running(self.minikube_config)
        self.kube.create_namespace(self.namespace)

    def wait_ready(self) -> bool:
        if self.kind == STATEFULSET:
            return self.kube.wait_for_statefulset(self.workload, 1, self.timeout)
        if self.kind == DEPLOYMENT:
            return self.kube.wait_for_deployment(self.workload, self.timeout)
        return True

    def fail_deploy(self, label: Optional[str] = None, component: Optional[str] = None) -> None:
        """Show recent logs and raise after a failed readiness wait."""
        component = component or self.title
        print_error(f"{component} deployment failed")
        try:
            self.kube.show_logs(label or self.label, 50)
        except RuntimeError as e:
            print_warning(str(e))
        raise RuntimeError(f"{component} deployment failed")

    def deploy(self) -> None:
        """Apply the manifest and wait for the workload to become ready.

        Raises:
            FileNotFoundError: If the manifest is missing
            RuntimeError: If minikube, the namespace or readiness fails
        """
        print_header(f"Deploying {self.title}")
        self.log.info("Deploying", fields={"namespace": self.namespace})

        self.prepare()
        self.kube.apply_manifest(self.manifest_path())

        if not self.wait_ready():
            self.fail_deploy()

        print_success(f"{self.title} deployed successfully")
        self.status()

    def remove(self) -> None:
        print_header(f"Removing {self.title}")
        self.kube.delete_manifest(self.manifest_path())
        print_success(f"{self.title} removed")

    def restart(self) -> None:
        """Roll the workload and wait for it again.

        Raises:
            RuntimeError: If the rollout restart command fails
        """
        print_header(f"Restarting {self.title}")
        if not self.kube.rollout_restart(self.kind, self.workload):
            raise RuntimeError(f"Failed to restart {self.title}")

        if self.wait_ready():
            print_success(f"{self.title} restarted successfully")
        else:
            print_warning(f"{self.title} restarted but is not ready yet")

    # Inspection

    def is_deployed(self) -> bool:
        return self.kube.resource_exists(self.kind, self.workload)

    def status(self) -> bool:
        """Print the state of the service. Returns False when it is not deployed."""
        print_header(f"{self.title} Status")

        if not self.is_deployed():
            print_warning(f"{self.title} is not deployed")
            return False

        kind_title = "StatefulSet" if self.kind == STATEFULSET else "Deployment"
        echo()
        print_info(f"{kind_title} Status:")
        self.kube.get(self.kind, self.workload)

        echo()
        print_info("Pods:")
        self.kube.get_pod_status(self.label)

        self.show_services()

        if self.pvc:
            echo()
            print_info("Persistent Volume:")
            if not self.kube.get("pvc", self.pvc):
                echo("  No PVC found")

        self.show_extra_status()

        if self.has_health_check:
            echo()
            print_info("Health Check:")
            echo("  ", nl=False)
            self.health_check()

        lines = self.access_info()
        if lines:
            echo()
            print_info("Access Information:")
            for line in lines:
                echo(line)
        return True

    def show_services(self) -> None:
        echo()
        print_info("Service:")
        self.kube.get("service", self.service_name)

    def show_extra_status(self) -> None:
        """Hook for service-specific status sections."""

    def probe(self) -> bool:
        return True

    def health_check(self) -> bool:
        """Run the service's connectivity probe and print the verdict."""
        if not self.has_health_check:
            return True
        healthy = self.probe()
        echo("✅ Healthy" if healthy else "❌ Unhealthy")
        return healthy

    def access_info(self) -> List[str]:
        """Lines describing how to reach the service, empty when unresolved."""
        return []

    def logs(self, lines: int = 50, follow: bool = False) -> int:
        print_header(f"{self.title} Logs")
        return self.kube.show_logs(self.label, lines, follow)

    # Access

    def pod(self) -> str:
        pod = self.kube.first_pod(self.label)
        if not pod:
            raise RuntimeError(f"{self.title} pod not found")
        return pod

    def exec(self, *command: str, tty: bool = True) -> int:
        return self.kube.exec(self.pod(), list(command), tty=tty)

    def exec_output(self, *command: str) -> str:
        return self.kube.exec(self.pod(), list(command), capture=True)

    def nodeport(self, port_name: str = "http") -> str:
        return self.kube.get_service_nodeport(self.service_name, port_name)

    def base_url(self, port_name: str = "http") -> str:
        """Return http://<minikube ip>:<nodeport>.

        Raises:
            RuntimeError: If the IP or NodePort cannot be resolved
        """
        url = self.minikube.external_url(self.kube, self.service_name, port_name)
        if not url:
            raise RuntimeError("Could not determine service URL")
        return url

    def open_ui(self) -> int:
        print_info(f"Opening {self.title} UI...")
        return self.minikube.open_service(self.service_name, self.namespace)

    # HTTP APIs (ZincSearch, Elasticsearch, Dex)

    def auth(self) -> Optional[Tuple[str, str]]:
        return None

    def request(self, method: str, path: str, port_name: str = "http", **kwargs) -> requests.Response:
        """Send an HTTP request to the service through its NodePort.

        Raises:
            RuntimeError: If the service URL cannot be resolved or the
                connection fails
        """
        url = f"{self.base_url(port_name)}/{path.lstrip('/')}"
        self.log.debug("HTTP request", fields={"method": method, "url": url})
        kwargs.setdefault("timeout", self.http_timeout)
        auth = self.auth()
        if auth:
            kwargs.setdefault("auth", auth)
        try:
            return requests.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise RuntimeError(f"Failed to connect to {self.title}: {e}")

    def print_response(self, response: requests.Response) -> Any:
        """Pretty-print a JSON response (or its raw text) and return the body."""
        try:
            body = response.json()
        except ValueError:
            echo(response.text)
            return response.text
        echo(json.dumps(body, indent=2))
        return body


def require(value: Optional[str], message: str) -> str:
    """Raise ValueError when a required argument is missing."""
    if not value:
        raise ValueError(message)
    return value

