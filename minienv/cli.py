"""Command-line interface for minienv."""

from pathlib import Path
from typing import Optional

import typer

from minienv import __version__
from minienv.config import get_minikube_config
from minienv.logging import echo, print_error, print_header, print_info
from minienv.minikube import Minikube
from minienv.project import MINIKUBE_COMMANDS, Project, ProjectConfig, generate_project_setup
from minienv.service_cli import SERVICE_APPS, CliState, aliased, cli_errors, exit_with
from minienv.services import SERVICES
from minienv.shell import Shell
from minienv.validation import format_validation_result, validate_project, validate_tools

app = typer.Typer(help="Deploy and manage development services on a local minikube cluster.")


def _version_callback(value: bool):
    if value:
        echo(f"minienv {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace (default: $NAMESPACE or 'default')"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print state-changing commands instead of running them"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
):
    ctx.obj = CliState(namespace=namespace, dry_run=dry_run)


for _name, _service_app in SERVICE_APPS.items():
    app.add_typer(_service_app, name=_name)


def _shell(ctx: typer.Context) -> Shell:
    state = ctx.ensure_object(CliState)
    return Shell(dry_run=state.env_config().dry_run)


@app.command()
def config(ctx: typer.Context):
    """Display the resolved configuration."""
    state = ctx.ensure_object(CliState)
    with cli_errors():
        env_config = state.env_config()
        minikube_config = get_minikube_config()

        echo("Resolved Configuration:")
        echo(f"  Namespace: {env_config.namespace}")
        echo(f"  Manifests Directory: {env_config.manifests_dir}")
        echo(f"  Project Root: {env_config.project_root or 'None'}")
        echo(f"  Project Manifests: {env_config.project_manifests_dir or 'None'}")
        echo(f"  Spark Project Path: {env_config.spark_project_path}")
        echo(f"  Dry Run: {env_config.dry_run}")

        echo("\nMinikube (used when a deploy has to start it):")
        echo(f"  CPUs: {minikube_config.cpus}")
        echo(f"  Memory: {minikube_config.memory}MB")
        echo(f"  Disk: {minikube_config.disk_size}")
        echo(f"  Driver: {minikube_config.driver or 'default'}")

        echo("\nServices:")
        for name, cls in SERVICES.items():
            echo(f"  {name:<14} {cls.title}")


# Cluster

cluster_app = typer.Typer(help="Create, inspect and stop the minikube cluster.")
app.add_typer(cluster_app, name="cluster")


@cluster_app.command("start")
def cluster_start(
    ctx: typer.Context,
    cpus: Optional[int] = typer.Option(None, "--cpus", help="CPU cores (default: $MINIKUBE_CPUS or 10)"),
    memory: Optional[int] = typer.Option(None, "--memory", help="Memory in MB (default: $MINIKUBE_MEMORY or 20480)"),
    disk_size: Optional[str] = typer.Option(None, "--disk-size", help="Disk size (default: $MINIKUBE_DISK_SIZE or 100g)"),
    driver: Optional[str] = typer.Option(None, "--driver", help="Driver (default: $MINIKUBE_DRIVER or vfkit)"),
    runtime: Optional[str] = typer.Option(None, "--runtime", help="Container runtime (default: containerd)"),
    kubernetes_version: Optional[str] = typer.Option(None, "--kubernetes-version", help="Kubernetes version (default: v1.28.0)"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Minikube profile (default: minikube)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Reuse a running cluster without asking"),
    recreate: bool = typer.Option(False, "--recreate", help="Delete and recreate a running cluster"),
):
    """Start a minikube cluster with addons enabled."""
    with cli_errors():
        minikube_config = get_minikube_config(
            cluster=True,
            cpus=cpus,
            memory=memory,
            disk_size=disk_size,
            driver=driver,
            runtime=runtime,
            kubernetes_version=kubernetes_version,
            profile=profile,
        )
        Minikube(_shell(ctx), profile=minikube_config.profile).start_cluster(
            minikube_config, assume_yes=yes, recreate=recreate
        )


@cluster_app.command("stop")
def cluster_stop(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Minikube profile"),
):
    """Stop the cluster, preserving its state."""
    with cli_errors():
        profile = profile or get_minikube_config(cluster=True).profile
        stopped = Minikube(_shell(ctx), profile=profile).stop_cluster()
    if not stopped:
        raise typer.Exit(1)


@cluster_app.command("status")
def cluster_status(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Minikube profile"),
):
    """Show cluster status, resource usage and addons."""
    with cli_errors():
        profile = profile or get_minikube_config(cluster=True).profile
        healthy = Minikube(_shell(ctx), profile=profile).cluster_status()
    if not healthy:
        raise typer.Exit(1)


@cluster_app.command("delete")
def cluster_delete(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Minikube profile"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete the cluster and all of its data."""
    with cli_errors():
        profile = profile or get_minikube_config(cluster=True).profile
        if not yes and not typer.confirm(f"Delete cluster '{profile}' and all its data?", default=False):
            print_info("Aborted")
            return
        Minikube(_shell(ctx), profile=profile).delete_cluster()


@cluster_app.command("dashboard")
def cluster_dashboard(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Minikube profile"),
):
    """Open the Kubernetes dashboard."""
    with cli_errors():
        profile = profile or get_minikube_config(cluster=True).profile
        exit_with(Minikube(_shell(ctx), profile=profile).dashboard())


# Tools

tools_app = typer.Typer(help="Host tool checks.")
app.add_typer(tools_app, name="tools")


@tools_app.command("check")
def tools_check():
    """Check that minikube, kubectl and curl are installed."""
    result = validate_tools()
    echo(format_validation_result(result, subject="Tools"))
    if not result.is_valid:
        raise typer.Exit(1)


# Project

project_app = typer.Typer(help="Run the services enabled in a project's .env as one environment.")
app.add_typer(project_app, name="project")

for _name, _service_app in SERVICE_APPS.items():
    project_app.add_typer(_service_app, name=_name)


@project_app.callback(invoke_without_command=True)
def project_main(
    ctx: typer.Context,
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory holding the project's .env"),
):
    state = ctx.ensure_object(CliState)
    state.project_dir = directory

    if ctx.invoked_subcommand == "generate":
        return

    if ctx.invoked_subcommand in SERVICE_APPS:
        # Service commands run against the project's namespace and settings
        project = _load_project(ctx)
        state.config = project.env_config
        state.shell = project.shell
        state.minikube_config = project.config.minikube
        return

    if ctx.invoked_subcommand is None:
        project = _load_project(ctx)
        with cli_errors():
            project.status()


def _load_project(ctx: typer.Context) -> Project:
    """Load and validate the project, exiting on any problem."""
    state = ctx.ensure_object(CliState)

    tools = validate_tools()
    if not tools.is_valid:
        print_error(format_validation_result(tools, subject="Tools"))
        raise typer.Exit(1)

    with cli_errors():
        dry_run = state.env_config().dry_run
        project_config = ProjectConfig.load(state.project_dir or Path("."))
        if state.namespace:
            project_config.namespace = state.namespace

    result = validate_project(project_config)
    if not result.is_valid:
        print_error(format_validation_result(result, subject="Project"))
        raise typer.Exit(1)

    title = (project_config.project_name or "Project").upper()
    print_header(f"🎯 {title} ENVIRONMENT")
    return Project(project_config, dry_run=dry_run)


@aliased(project_app, "start", "deploy")
def project_start(ctx: typer.Context):
    """Start minikube and deploy the enabled services."""
    project = _load_project(ctx)
    with cli_errors():
        project.start()


@aliased(project_app, "stop", "remove")
def project_stop(ctx: typer.Context):
    """Remove the enabled services."""
    project = _load_project(ctx)
    with cli_errors():
        project.stop()


@project_app.command("restart")
def project_restart(ctx: typer.Context):
    """Restart the enabled services."""
    project = _load_project(ctx)
    with cli_errors():
        project.restart()


@project_app.command("status")
def project_status(ctx: typer.Context):
    """Show minikube, service and project status."""
    project = _load_project(ctx)
    with cli_errors():
        project.status()


@project_app.command("logs")
def project_logs(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None, help="Service (default: every enabled service)"),
    lines: int = typer.Argument(50, help="Number of lines to show"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow the log stream"),
):
    """Show logs for one service or all enabled services."""
    project = _load_project(ctx)
    with cli_errors():
        project.logs(service, lines, follow)


@project_app.command("minikube")
def project_minikube(
    ctx: typer.Context,
    command: str = typer.Argument("status", help=", ".join(MINIKUBE_COMMANDS)),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before deleting"),
):
    """Run a minikube command for the project."""
    project = _load_project(ctx)
    with cli_errors():
        exit_with(project.minikube(command, assume_yes=yes))


@project_app.command("help")
def project_help(ctx: typer.Context):
    """Show this message."""
    echo(ctx.parent.get_help())


@project_app.command("generate")
def project_generate(
    name: str = typer.Argument(..., help="Project name (also the default namespace)"),
    description: Optional[str] = typer.Argument(None, help="Project description"),
    target_dir: Optional[Path] = typer.Argument(None, help="Directory to create (default: ./<name>/scripts)"),
):
    """Generate a .env and setup-env.sh for a new project."""
    with cli_errors():
        generate_project_setup(name, description, target_dir or Path(name) / "scripts")
