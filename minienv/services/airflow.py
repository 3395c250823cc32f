"""Apache Airflow webserver and scheduler with an embedded metadata database."""

from typing import List, Optional, Sequence

from minienv.logging import echo, print_header, print_info, print_success, print_warning
from minienv.services.base import Service

POSTGRES_DEPLOYMENT = "airflow-postgres"
WEBSERVER_DEPLOYMENT = "airflow-webserver"
SCHEDULER_DEPLOYMENT = "airflow-scheduler"

WEBSERVER_LABEL = "app=airflow,component=webserver"
SCHEDULER_LABEL = "app=airflow,component=scheduler"

ADMIN_USER = "admin"
ADMIN_PASSWORD = "admin"

COMPONENT_ALIASES = {
    "webserver": "webserver",
    "web": "webserver",
    "scheduler": "scheduler",
    "sched": "scheduler",
    "postgres": "postgres",
    "db": "postgres",
}


class Airflow(Service):
    name = "airflow"
    title = "Apache Airflow"
    workload = WEBSERVER_DEPLOYMENT
    label = WEBSERVER_LABEL
    service_name = WEBSERVER_DEPLOYMENT
    timeout = 300
    has_health_check = True

    scheduler_timeout = 180
    postgres_timeout = 120

    def uses_standalone_postgres(self) -> bool:
        return (self.kube.resource_exists("statefulset", "postgres")
                or self.kube.resource_exists("service", "postgres"))

    def deploy(self) -> None:
        """Apply the manifest and wait for the database, webserver and scheduler in turn.

        Raises:
            FileNotFoundError: If the manifest is missing
            RuntimeError: If any component fails to become ready
        """
        print_header(f"Deploying {self.title}")
        self.prepare()

        standalone = self.uses_standalone_postgres()
        if standalone:
            print_info(f"Using standalone PostgreSQL service (postgres.{self.namespace}.svc.cluster.local)")
        else:
            print_info("Using embedded PostgreSQL (will be deployed with Airflow)")

        self.kube.apply_manifest(self.manifest_path())

        if not standalone:
            print_info("Waiting for embedded PostgreSQL to be ready...")
            if not self.kube.wait_for_deployment(POSTGRES_DEPLOYMENT, self.postgres_timeout):
                self.fail_deploy(f"app={POSTGRES_DEPLOYMENT}", "PostgreSQL")

        print_info("Waiting for Airflow Webserver to be ready (this may take a few minutes)...")
        if not self.kube.wait_for_deployment(WEBSERVER_DEPLOYMENT, self.timeout):
            self.fail_deploy(WEBSERVER_LABEL, "Airflow Webserver")

        print_info("Waiting for Airflow Scheduler to be ready...")
        if not self.kube.wait_for_deployment(SCHEDULER_DEPLOYMENT, self.scheduler_timeout):
            self.fail_deploy(SCHEDULER_LABEL, "Airflow Scheduler")

        print_success("Airflow deployed successfully")
        self.status()

    def restart(self) -> None:
        print_header(f"Restarting {self.title}")

        print_info("Restarting Scheduler...")
        scheduler_ok = self.kube.rollout_restart("deployment", SCHEDULER_DEPLOYMENT)
        print_info("Restarting Webserver...")
        webserver_ok = self.kube.rollout_restart("deployment", WEBSERVER_DEPLOYMENT)
        if not (scheduler_ok and webserver_ok):
            raise RuntimeError(f"Failed to restart {self.title}")

        ready = self.kube.wait_for_deployment(WEBSERVER_DEPLOYMENT, self.timeout)
        ready = self.kube.wait_for_deployment(SCHEDULER_DEPLOYMENT, self.scheduler_timeout) and ready
        if ready:
            print_success("Airflow restarted successfully")
        else:
            print_warning("Airflow restarted but is not ready yet")

    def probe(self) -> bool:
        return self.kube.run_probe(
            "airflow-health-check",
            "curlimages/curl:latest",
            ["curl", "-f", "-s", f"http://{self.internal_host}:8080/health"],
        )

    def status(self) -> bool:
        print_header(f"{self.title} Status")

        if not self.is_deployed():
            print_warning("Airflow is not deployed")
            return False

        echo()
        print_info("PostgreSQL:")
        if not self.kube.get("deployment", POSTGRES_DEPLOYMENT):
            self.kube.get_pod_status("app=postgres")

        echo()
        print_info("Airflow Webserver:")
        self.kube.get("deployment", WEBSERVER_DEPLOYMENT)
        self.kube.get_pod_status(WEBSERVER_LABEL)

        echo()
        print_info("Airflow Scheduler:")
        self.kube.get("deployment", SCHEDULER_DEPLOYMENT)
        self.kube.get_pod_status(SCHEDULER_LABEL)

        echo()
        print_info("Health Check:")
        echo("  ", nl=False)
        self.health_check()

        echo()
        print_info("Services:")
        self.kube.get("service", label="app=airflow")

        lines = self.access_info()
        if lines:
            echo()
            print_info("Access URLs:")
            for line in lines:
                echo(line)
        return True

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("http")
        if not (ip and port):
            return []
        return [
            f"  Airflow UI: http://{ip}:{port}",
            f"  Default credentials: {ADMIN_USER}/{ADMIN_PASSWORD}",
        ]

    def component_label(self, component: str) -> str:
        """Map a component name (or alias) to its pod label.

        Raises:
            ValueError: For an unknown component
        """
        canonical = COMPONENT_ALIASES.get(component)
        if canonical is None:
            raise ValueError(f"Unknown component: {component} (use 'webserver', 'scheduler', or 'postgres')")
        if canonical == "webserver":
            return WEBSERVER_LABEL
        if canonical == "scheduler":
            return SCHEDULER_LABEL
        if self.kube.resource_exists("deployment", POSTGRES_DEPLOYMENT):
            return f"app={POSTGRES_DEPLOYMENT}"
        return "app=postgres"

    def logs(self, lines: int = 50, follow: bool = False, component: str = "webserver") -> int:
        label = self.component_label(component)
        print_header(f"Airflow {component} Logs")
        return self.kube.show_logs(label, lines, follow)

    def pod(self) -> str:
        pod = self.kube.first_pod(WEBSERVER_LABEL)
        if not pod:
            raise RuntimeError("Airflow webserver pod not found")
        return pod

    def cli(self, args: Sequence[str]) -> int:
        """Run an airflow CLI command in the webserver pod."""
        pod = self.pod()
        print_info(f"Executing: airflow {' '.join(args)}")
        return self.kube.exec(pod, ["airflow", *args], tty=True)

    def create_user(
        self, username: Optional[str] = None, password: Optional[str] = None, role: Optional[str] = None
    ) -> int:
        username = username or "user"
        password = password or "user"
        role = role or "User"
        self.shell.masker.register_secret(password)

        print_info(f"Creating Airflow user: {username}")
        return self.cli([
            "users", "create",
            "--username", username,
            "--password", password,
            "--firstname", "User",
            "--lastname", "Name",
            "--role", role,
            "--email", f"{username}@example.com",
        ])
