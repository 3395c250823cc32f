"""Project environments: a directory with a .env that selects services.

A downstream project keeps a ``scripts/`` (or similar) directory holding a
``.env`` with ``PROJECT_NAME``, ``NAMESPACE`` and ``ENABLED_SERVICES``.
``Project`` deploys, removes and inspects those services as one unit, and
``generate_project_setup`` bootstraps such a directory.
"""

import os
import stat
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import typer

from minienv.config import (
    ConfigManager,
    EnvConfig,
    MinikubeConfig,
    config_manager,
    get_config,
)
from minienv.kubectl import Kubectl
from minienv.logging import (
    echo,
    logger,
    print_color,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
)
from minienv.minikube import Minikube
from minienv.services import get_service
from minienv.services.base import Service
from minienv.shell import Shell
from minienv.validation import DEFAULT_ENABLED_SERVICES

ENV_FILE = ".env"
SETUP_SCRIPT = "setup-env.sh"

MINIKUBE_COMMANDS = ("start", "stop", "delete", "status", "ip", "dashboard")

log = logger.with_component("project")


def parse_enabled_services(value: Optional[str]) -> List[str]:
    """Split a comma-separated ENABLED_SERVICES value, falling back to the default set."""
    names = [name.strip() for name in (value or "").split(",") if name.strip()]
    return names or list(DEFAULT_ENABLED_SERVICES)


@dataclass
class ProjectConfig:
    """Settings loaded from a project's .env file."""
    script_dir: Path
    project_name: str
    project_description: str
    namespace: str
    enabled_services: List[str]
    project_root: str
    project_manifests_dir: Optional[str] = None
    spark_project_path: Optional[str] = None
    minikube: Optional[MinikubeConfig] = None
    values: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, script_dir, manager: Optional[ConfigManager] = None) -> "ProjectConfig":
        """Load ``<script_dir>/.env``.

        Raises:
            FileNotFoundError: If the directory has no .env file
            ValueError: If the .env file has a malformed line
        """
        manager = manager or config_manager
        script_dir = Path(script_dir).resolve()
        env_file = script_dir / ENV_FILE
        if not env_file.is_file():
            raise FileNotFoundError(
                f"Project .env file not found at {env_file}. "
                "Create one with: minienv project generate <name> <description> <dir>"
            )

        values = manager.parse_env_file(env_file)
        project_name = values.get("PROJECT_NAME", "")
        project_root = str(script_dir.parent)

        minikube_overrides = {
            key: values[env_var]
            for key, env_var in manager.MINIKUBE_ENV_VARS.items()
            if values.get(env_var)
        }

        return cls(
            script_dir=script_dir,
            project_name=project_name,
            project_description=values.get("PROJECT_DESCRIPTION", ""),
            namespace=values.get("NAMESPACE") or project_name,
            enabled_services=parse_enabled_services(values.get("ENABLED_SERVICES")),
            project_root=project_root,
            project_manifests_dir=values.get("PROJECT_MANIFESTS_DIR") or None,
            spark_project_path=values.get("SPARK_PROJECT_PATH") or project_root,
            minikube=manager.get_minikube_config(**minikube_overrides),
            values=values,
        )

    def env_config(self, dry_run: bool = False) -> EnvConfig:
        """Build the service configuration for this project."""
        return get_config(
            namespace=self.namespace or None,
            project_root=self.project_root,
            project_manifests_dir=self.project_manifests_dir,
            spark_project_path=self.spark_project_path,
            dry_run=dry_run or None,
        )


class Project:
    """Runs the enabled services of a project as one environment."""

    def __init__(self, config: ProjectConfig, shell: Optional[Shell] = None, dry_run: bool = False):
        self.config = config
        self.env_config = config.env_config(dry_run=dry_run or (shell is not None and shell.dry_run))
        # Services see every value from the .env, as if it had been exported
        self.shell = shell or Shell(dry_run=self.env_config.dry_run, env=config.values)
        self.kube = Kubectl(self.shell, self.env_config.namespace)
        self.minikube_cli = Minikube(self.shell)

    @property
    def services_label(self) -> str:
        return ",".join(self.config.enabled_services)

    def service(self, name: str) -> Service:
        """Return one service configured for this project.

        Raises:
            ValueError: If the service is unknown
        """
        return get_service(name, self.env_config, shell=self.shell, minikube_config=self.config.minikube)

    def services(self) -> List[Service]:
        return [self.service(name) for name in self.config.enabled_services]

    def start(self) -> None:
        """Deploy every enabled service in order, stopping at the first failure.

        Raises:
            ValueError: If an enabled service is unknown
            RuntimeError: If minikube, the namespace or a deployment fails
        """
        services = self.services()
        print_info(f"Starting services: {self.services_label}")
        log.info("Starting project", fields={"project": self.config.project_name,
                                             "services": self.services_label})

        self.minikube_cli.ensure_running(self.config.minikube)
        self.kube.create_namespace(self.env_config.namespace)

        for service in services:
            print_info(f"Deploying {service.name}...")
            try:
                service.deploy()
            except (RuntimeError, FileNotFoundError, subprocess.CalledProcessError) as e:
                print_error(str(e))
                raise RuntimeError(f"Failed to deploy {service.name}") from e

        print_success("All services started successfully")

    def stop(self) -> None:
        """Remove the enabled services in reverse order."""
        services = self.services()
        print_info(f"Stopping services: {self.services_label}")

        for service in reversed(services):
            print_info(f"Removing {service.name}...")
            try:
                service.remove()
            except (RuntimeError, subprocess.CalledProcessError) as e:
                print_warning(f"Failed to remove {service.name}: {e}")

        print_success("All services stopped")

    def restart(self) -> None:
        """Restart each enabled service that has a long-running workload.

        Raises:
            RuntimeError: If one or more restarts fail
        """
        services = self.services()
        print_info(f"Restarting services: {self.services_label}")

        failed = []
        for service in services:
            if not service.restartable:
                print_info(f"Skipping {service.name}: nothing to restart")
                continue
            print_info(f"Restarting {service.name}...")
            try:
                service.restart()
            except RuntimeError as e:
                print_error(str(e))
                failed.append(service.name)

        if failed:
            raise RuntimeError(f"Failed to restart: {', '.join(failed)}")
        print_success("All services restarted")

    def status(self, title: Optional[str] = None) -> None:
        title = (title or self.config.project_name or "Project").upper()
        print_header(f"📊 {title} ENVIRONMENT STATUS")

        echo()
        print_info("Minikube Status:")
        self.shell.run(["minikube", "status"], check=False)

        echo()
        print_info(f"Minikube IP: {self.minikube_cli.ip()}")

        print_info(f"Service status for: {self.services_label}")
        for service in self.services():
            echo()
            print_info(f"=== {service.name} Status ===")
            service.status()

        echo()
        print_color("blue", "🎯 Project Configuration:")
        for line in self.describe():
            echo(line)

    def describe(self) -> List[str]:
        return [
            f"  Project: {self.config.project_name or 'Unknown'}",
            f"  Namespace: {self.env_config.namespace}",
            f"  Manifests: {self.config.project_manifests_dir or self.env_config.manifests_dir}",
            f"  Description: {self.config.project_description or 'No description'}",
            f"  Enabled Services: {self.services_label}",
        ]

    def logs(self, service: Optional[str] = None, lines: int = 50, follow: bool = False) -> None:
        """Show logs for one service, or the recent logs of every enabled service."""
        if service:
            self.service(service).logs(lines, follow)
            return

        for instance in self.services():
            echo()
            print_info(f"=== {instance.name} Logs ===")
            try:
                instance.logs(lines)
            except RuntimeError as e:
                print_warning(str(e))

    def minikube(self, command: str = "status", assume_yes: bool = False) -> int:
        """Run one of the minikube shortcuts.

        Raises:
            ValueError: For an unknown command
        """
        if command == "start":
            self.minikube_cli.ensure_running(self.config.minikube)
            return 0
        if command == "stop":
            print_info("Stopping Minikube...")
            return self.shell.run(["minikube", "stop"], check=False).returncode
        if command == "delete":
            print_warning("This will delete the Minikube cluster and all data!")
            if assume_yes or typer.confirm("Are you sure?", default=False):
                return self.shell.run(["minikube", "delete"], check=False).returncode
            return 0
        if command == "status":
            return self.shell.run(["minikube", "status"], check=False).returncode
        if command == "ip":
            echo(self.minikube_cli.ip())
            return 0
        if command == "dashboard":
            return self.minikube_cli.dashboard()
        raise ValueError(f"Unknown minikube command: {command}. Available: {', '.join(MINIKUBE_COMMANDS)}")


ENV_TEMPLATE = """\
# =============================================================================
# {name} Environment Configuration
# =============================================================================

# Project Configuration
PROJECT_NAME="{name}"
PROJECT_DESCRIPTION="{description}"

# Kubernetes Configuration
NAMESPACE="${{PROJECT_NAME}}"

# Project-specific manifest overrides (relative to ../scripts)
# PROJECT_MANIFESTS_DIR="../k8s/manifests"

# Service Selection - Choose what you need
ENABLED_SERVICES="minio,spark,airflow"
# Other combinations:
# ENABLED_SERVICES="minio,spark"          # Storage + processing
# ENABLED_SERVICES="minio,airflow"        # Storage + orchestration
# ENABLED_SERVICES="spark,airflow"        # Processing + orchestration

# =============================================================================
# MINIKUBE CONFIGURATION
# =============================================================================

# Minikube resource allocation
MINIKUBE_CPUS="4"
MINIKUBE_MEMORY="8192"
MINIKUBE_DISK_SIZE="20g"
MINIKUBE_DRIVER="docker"

# =============================================================================
# SERVICE-SPECIFIC CONFIGURATION
# =============================================================================

# MinIO
MINIO_STORAGE_SIZE="5Gi"

# Spark
SPARK_WORKER_REPLICAS="2"
SPARK_WORKER_MEMORY="1G"
SPARK_WORKER_CORES="1"

# Airflow
AIRFLOW_ADMIN_USER="admin"
AIRFLOW_ADMIN_PASSWORD="admin"

# =============================================================================
# DEVELOPMENT FLAGS
# =============================================================================
DEVELOPMENT_MODE="true"
VERBOSE_LOGGING="false"
"""

SETUP_TEMPLATE = """\
#!/bin/bash
# {name} Environment Setup
# Runs minienv with this directory's .env as the project configuration

SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"

if ! command -v minienv >/dev/null 2>&1; then
    echo "❌ minienv not found. Install it with: pip install minienv"
    exit 1
fi

exec minienv project --dir "$SCRIPT_DIR" "$@"
"""


def generate_project_setup(name: str, description: Optional[str], target_dir) -> List[Path]:
    """Write a .env and an executable setup-env.sh for a new project.

    Args:
        name: Project name, also the default namespace
        description: Free-form description (defaults to "<name> Environment")
        target_dir: Directory to create the files in (created if missing)

    Returns:
        The paths written

    Raises:
        ValueError: If the name or target directory is empty
    """
    if not name or not str(target_dir or "").strip():
        raise ValueError("Usage: minienv project generate <project_name> <description> <target_dir>")

    target = Path(target_dir)
    target.mkdir(parents=True, exist_ok=True)

    env_file = target / ENV_FILE
    env_file.write_text(ENV_TEMPLATE.format(name=name, description=description or f"{name} Environment"))

    setup_script = target / SETUP_SCRIPT
    setup_script.write_text(SETUP_TEMPLATE.format(name=name))
    mode = os.stat(setup_script).st_mode
    os.chmod(setup_script, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    log.info("Generated project", fields={"project": name, "target": str(target)})
    print_success(f"Generated project setup for '{name}' in {target}")
    print_info("Files created:")
    echo(f"  - {env_file}")
    echo(f"  - {setup_script}")
    echo()
    print_info("Usage:")
    echo(f"  cd {target}")
    echo(f"  ./{SETUP_SCRIPT} start")
    return [env_file, setup_script]
