"""Typer sub-applications, one per service.

Every service gets the same lifecycle commands (deploy, remove, restart,
status, logs, help) plus its own commands on top. The aliases the old
shell scripts accepted are registered as hidden commands.
"""

import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import typer

from minienv.config import EnvConfig, MinikubeConfig, get_config
from minienv.logging import echo, print_error, print_warning
from minienv.services import SERVICES, get_service
from minienv.services.base import Service
from minienv.shell import Shell

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


@dataclass
class CliState:
    """Options shared by every command, set by the top-level callback."""
    namespace: Optional[str] = None
    dry_run: bool = False
    config: Optional[EnvConfig] = None
    shell: Optional[Shell] = None
    minikube_config: Optional[MinikubeConfig] = None
    project_dir: Optional[Path] = None

    def env_config(self) -> EnvConfig:
        if self.config is None:
            self.config = get_config(namespace=self.namespace, dry_run=self.dry_run or None)
        return self.config


def load_service(ctx: typer.Context, name: str) -> Service:
    state = ctx.ensure_object(CliState)
    return get_service(name, state.env_config(), shell=state.shell, minikube_config=state.minikube_config)


@contextmanager
def cli_errors():
    """Turn library exceptions into an error line and a non-zero exit."""
    try:
        yield
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        print_warning("Interrupted")
        raise typer.Exit(130)
    except subprocess.CalledProcessError as e:
        print_error(f"Command failed with exit code {e.returncode}")
        raise typer.Exit(e.returncode or 1)
    except (ValueError, FileNotFoundError, RuntimeError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        raise typer.Exit(1)


def exit_with(code: Optional[int]) -> None:
    if code:
        raise typer.Exit(code)


def aliased(app: typer.Typer, name: str, *aliases: str, **kwargs):
    """Register a command under its name and hidden aliases."""
    def decorator(fn):
        app.command(name, **kwargs)(fn)
        for alias in aliases:
            app.command(alias, hidden=True, **kwargs)(fn)
        return fn
    return decorator


def service_app(name: str, restart: bool = True, logs: bool = True) -> typer.Typer:
    """Build the sub-application with the lifecycle commands every service shares."""
    title = SERVICES[name].title
    app = typer.Typer(help=f"Manage {title}. Runs 'status' when no command is given.")

    def show_status(ctx: typer.Context) -> None:
        with cli_errors():
            deployed = load_service(ctx, name).status()
        if not deployed:
            raise typer.Exit(1)

    @app.callback(invoke_without_command=True)
    def main(ctx: typer.Context):
        if ctx.invoked_subcommand is None:
            show_status(ctx)

    @aliased(app, "deploy", "start", help=f"Deploy {title}")
    def deploy(ctx: typer.Context):
        with cli_errors():
            load_service(ctx, name).deploy()

    @aliased(app, "remove", "stop", "delete", help=f"Remove {title}")
    def remove(ctx: typer.Context):
        with cli_errors():
            load_service(ctx, name).remove()

    if restart:
        @app.command("restart", help=f"Restart {title}")
        def restart_service(ctx: typer.Context):
            with cli_errors():
                load_service(ctx, name).restart()

    @app.command("status", help=f"Show {title} status")
    def status(ctx: typer.Context):
        show_status(ctx)

    if logs:
        @app.command("logs", help=f"Show {title} logs")
        def show_logs(
            ctx: typer.Context,
            lines: int = typer.Argument(50, help="Number of lines to show"),
            follow: bool = typer.Option(False, "--follow", "-f", help="Follow the log stream"),
        ):
            with cli_errors():
                exit_with(load_service(ctx, name).logs(lines, follow))

    @app.command("help", help="Show this message")
    def show_help(ctx: typer.Context):
        echo(ctx.parent.get_help())

    return app


# PostgreSQL

postgres_app = service_app("postgres")


@aliased(postgres_app, "psql", "cli", context_settings=PASSTHROUGH)
def postgres_psql(ctx: typer.Context):
    """Open an interactive psql session; extra arguments go to psql."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").psql(ctx.args))


@aliased(postgres_app, "sql", "query", "exec")
def postgres_sql(
    ctx: typer.Context,
    query: Optional[str] = typer.Argument(None, help="SQL to execute"),
    database: Optional[str] = typer.Argument(None, help="Database (default: postgres)"),
):
    """Execute a SQL query."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").sql(query, database))


@aliased(postgres_app, "list-db", "databases")
def postgres_list_databases(ctx: typer.Context):
    """List all databases."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").list_databases())


@aliased(postgres_app, "list-tables", "tables")
def postgres_list_tables(ctx: typer.Context, database: Optional[str] = typer.Argument(None)):
    """List tables in a database."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").list_tables(database))


@aliased(postgres_app, "create-db", "createdb")
def postgres_create_database(
    ctx: typer.Context,
    dbname: Optional[str] = typer.Argument(None),
    owner: Optional[str] = typer.Argument(None),
):
    """Create a database."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").create_database(dbname, owner))


@aliased(postgres_app, "create-user", "createuser")
def postgres_create_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Argument(None),
    password: Optional[str] = typer.Argument(None),
):
    """Create a user."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").create_user(username, password))


@postgres_app.command("grant")
def postgres_grant(
    ctx: typer.Context,
    dbname: Optional[str] = typer.Argument(None),
    username: Optional[str] = typer.Argument(None),
):
    """Grant all privileges on a database to a user."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").grant(dbname, username))


@postgres_app.command("backup")
def postgres_backup(
    ctx: typer.Context,
    dbname: Optional[str] = typer.Argument(None),
    backup_file: Optional[str] = typer.Argument(None, help="Default: backup-<timestamp>.sql"),
):
    """Dump a database to a local SQL file."""
    with cli_errors():
        load_service(ctx, "postgres").backup(dbname, backup_file)


@postgres_app.command("restore")
def postgres_restore(
    ctx: typer.Context,
    backup_file: Optional[str] = typer.Argument(None),
    dbname: Optional[str] = typer.Argument(None),
):
    """Restore a database from a local SQL file."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").restore(backup_file, dbname))


@postgres_app.command("version")
def postgres_version(ctx: typer.Context):
    """Show the PostgreSQL server version."""
    with cli_errors():
        exit_with(load_service(ctx, "postgres").version())


# MongoDB

mongodb_app = service_app("mongodb")


@aliased(mongodb_app, "mongosh", "shell", "cli", context_settings=PASSTHROUGH)
def mongodb_shell(ctx: typer.Context):
    """Open an interactive mongosh session; extra arguments go to mongosh."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").mongosh(ctx.args))


@aliased(mongodb_app, "eval", "exec", "command")
def mongodb_eval(
    ctx: typer.Context,
    command: Optional[str] = typer.Argument(None, help="JavaScript to evaluate"),
    database: Optional[str] = typer.Argument(None, help="Database (default: admin)"),
):
    """Evaluate a mongosh command."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").eval(command, database))


@aliased(mongodb_app, "list-db", "databases")
def mongodb_list_databases(ctx: typer.Context):
    """List all databases."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").list_databases())


@aliased(mongodb_app, "list-collections", "collections")
def mongodb_list_collections(ctx: typer.Context, database: Optional[str] = typer.Argument(None)):
    """List collections in a database."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").list_collections(database))


@aliased(mongodb_app, "create-db", "createdb")
def mongodb_create_database(ctx: typer.Context, dbname: Optional[str] = typer.Argument(None)):
    """Create a database."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").create_database(dbname))


@aliased(mongodb_app, "create-user", "createuser")
def mongodb_create_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Argument(None),
    password: Optional[str] = typer.Argument(None),
    database: Optional[str] = typer.Argument(None, help="Default: admin"),
    role: Optional[str] = typer.Argument(None, help="Default: readWrite"),
):
    """Create a user."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").create_user(username, password, database, role))


@mongodb_app.command("grant")
def mongodb_grant(
    ctx: typer.Context,
    username: Optional[str] = typer.Argument(None),
    database: Optional[str] = typer.Argument(None),
    role: Optional[str] = typer.Argument(None, help="Default: readWrite"),
):
    """Grant a role on a database to a user."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").grant(username, database, role))


@mongodb_app.command("backup")
def mongodb_backup(
    ctx: typer.Context,
    dbname: Optional[str] = typer.Argument(None),
    backup_dir: Optional[str] = typer.Argument(None, help="Default: ./mongodb-backup-<timestamp>"),
):
    """Dump a database to a gzipped archive."""
    with cli_errors():
        load_service(ctx, "mongodb").backup(dbname, backup_dir)


@mongodb_app.command("restore")
def mongodb_restore(
    ctx: typer.Context,
    backup_file: Optional[str] = typer.Argument(None),
    dbname: Optional[str] = typer.Argument(None),
):
    """Restore a database from a gzipped archive."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").restore(backup_file, dbname))


@mongodb_app.command("import")
def mongodb_import(
    ctx: typer.Context,
    file: Optional[str] = typer.Argument(None),
    database: Optional[str] = typer.Argument(None),
    collection: Optional[str] = typer.Argument(None),
):
    """Import a JSON array file into a collection."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").import_json(file, database, collection))


@mongodb_app.command("export")
def mongodb_export(
    ctx: typer.Context,
    database: Optional[str] = typer.Argument(None),
    collection: Optional[str] = typer.Argument(None),
    output_file: Optional[str] = typer.Argument(None),
):
    """Export a collection to a JSON array file."""
    with cli_errors():
        load_service(ctx, "mongodb").export_json(database, collection, output_file)


@mongodb_app.command("version")
def mongodb_version(ctx: typer.Context):
    """Show the MongoDB server version."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").version())


@aliased(mongodb_app, "stats", "statistics")
def mongodb_stats(ctx: typer.Context):
    """Show server statistics."""
    with cli_errors():
        exit_with(load_service(ctx, "mongodb").stats())


# MinIO

minio_app = service_app("minio")


@aliased(minio_app, "console", "ui")
def minio_console(ctx: typer.Context):
    """Open the MinIO console."""
    with cli_errors():
        exit_with(load_service(ctx, "minio").open_console())


# Dremio

dremio_app = service_app("dremio")


@aliased(dremio_app, "ui", "web")
def dremio_ui(ctx: typer.Context):
    """Open the Dremio web UI."""
    with cli_errors():
        exit_with(load_service(ctx, "dremio").open_ui())


# Spark

spark_app = service_app("spark", restart=False, logs=False)


@aliased(spark_app, "mount", "setup-mount")
def spark_mount(ctx: typer.Context, path: Optional[str] = typer.Argument(None, help="Default: project path")):
    """Mount the project directory into minikube."""
    with cli_errors():
        load_service(ctx, "spark").mount(path)


@aliased(spark_app, "check-mount", "mount-status")
def spark_check_mount(ctx: typer.Context):
    """Check whether a minikube mount is running."""
    with cli_errors():
        active = load_service(ctx, "spark").check_mount()
    if not active:
        raise typer.Exit(1)


@spark_app.command("logs")
def spark_logs(
    ctx: typer.Context,
    pod: Optional[str] = typer.Argument(None, help="Pod name (default: most recent driver)"),
    lines: int = typer.Argument(50, help="Number of lines to show"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow the log stream"),
):
    """Show logs of a Spark pod."""
    with cli_errors():
        exit_with(load_service(ctx, "spark").logs(lines, follow, pod))


@aliased(spark_app, "example", "submit-example")
def spark_example(ctx: typer.Context, yes: bool = typer.Option(False, "--yes", "-y", help="Run without asking")):
    """Print the SparkPi example job and submit it on confirmation."""
    with cli_errors():
        exit_with(load_service(ctx, "spark").example(assume_yes=yes))


# Airflow

airflow_app = service_app("airflow", logs=False)


@airflow_app.command("logs")
def airflow_logs(
    ctx: typer.Context,
    component: str = typer.Argument("webserver", help="webserver, scheduler or postgres"),
    lines: int = typer.Argument(50, help="Number of lines to show"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow the log stream"),
):
    """Show logs of an Airflow component."""
    with cli_errors():
        exit_with(load_service(ctx, "airflow").logs(lines, follow, component))


@aliased(airflow_app, "cli", "cmd", context_settings=PASSTHROUGH)
def airflow_cli(ctx: typer.Context):
    """Run an airflow CLI command in the webserver pod."""
    with cli_errors():
        exit_with(load_service(ctx, "airflow").cli(ctx.args))


@aliased(airflow_app, "create-user", "adduser")
def airflow_create_user(
    ctx: typer.Context,
    username: Optional[str] = typer.Argument(None, help="Default: user"),
    password: Optional[str] = typer.Argument(None, help="Default: user"),
    role: Optional[str] = typer.Argument(None, help="Default: User"),
):
    """Create an Airflow user."""
    with cli_errors():
        exit_with(load_service(ctx, "airflow").create_user(username, password, role))


@aliased(airflow_app, "ui", "web")
def airflow_ui(ctx: typer.Context):
    """Open the Airflow web UI."""
    with cli_errors():
        exit_with(load_service(ctx, "airflow").open_ui())


# Redpanda

redpanda_app = service_app("redpanda")
topic_app = typer.Typer(help="Manage Redpanda topics")
redpanda_app.add_typer(topic_app, name="topic")


@redpanda_app.command("rpk", context_settings=PASSTHROUGH)
def redpanda_rpk(ctx: typer.Context):
    """Run an rpk command in the broker pod."""
    with cli_errors():
        exit_with(load_service(ctx, "redpanda").rpk(ctx.args))


@topic_app.command("create")
def redpanda_topic_create(
    ctx: typer.Context,
    topic: Optional[str] = typer.Argument(None, help="Default: test-topic"),
    partitions: Optional[int] = typer.Argument(None, help="Default: 3"),
    replicas: Optional[int] = typer.Argument(None, help="Default: 1"),
):
    """Create a topic."""
    with cli_errors():
        exit_with(load_service(ctx, "redpanda").create_topic(topic, partitions, replicas))


@topic_app.command("list")
def redpanda_topic_list(ctx: typer.Context):
    """List topics."""
    with cli_errors():
        exit_with(load_service(ctx, "redpanda").list_topics())


@redpanda_app.command("produce")
def redpanda_produce(ctx: typer.Context, topic: Optional[str] = typer.Argument(None)):
    """Produce messages from stdin."""
    with cli_errors():
        exit_with(load_service(ctx, "redpanda").produce(topic))


@redpanda_app.command("consume")
def redpanda_consume(ctx: typer.Context, topic: Optional[str] = typer.Argument(None)):
    """Consume messages from a topic."""
    with cli_errors():
        exit_with(load_service(ctx, "redpanda").consume(topic))


# ZincSearch

zincsearch_app = service_app("zincsearch")
zinc_index_app = typer.Typer(help="Manage ZincSearch indices")
zincsearch_app.add_typer(zinc_index_app, name="index")


@zinc_index_app.command("create")
def zincsearch_index_create(ctx: typer.Context, index: Optional[str] = typer.Argument(None)):
    """Create an index."""
    with cli_errors():
        load_service(ctx, "zincsearch").create_index(index)


@zinc_index_app.command("list")
def zincsearch_index_list(ctx: typer.Context):
    """List indices."""
    with cli_errors():
        load_service(ctx, "zincsearch").list_indices()


@zinc_index_app.command("doc")
def zincsearch_index_doc(
    ctx: typer.Context,
    index: Optional[str] = typer.Argument(None),
    doc: Optional[str] = typer.Argument(None, help="JSON document (default: a test document)"),
):
    """Index a document."""
    with cli_errors():
        load_service(ctx, "zincsearch").index_doc(index, doc)


@zincsearch_app.command("search")
def zincsearch_search(
    ctx: typer.Context,
    index: Optional[str] = typer.Argument(None),
    query: Optional[str] = typer.Argument(None),
):
    """Search an index."""
    with cli_errors():
        load_service(ctx, "zincsearch").search(index, query)


@aliased(zincsearch_app, "ui", "web")
def zincsearch_ui(ctx: typer.Context):
    """Open the ZincSearch web UI."""
    with cli_errors():
        exit_with(load_service(ctx, "zincsearch").open_ui())


# Elasticsearch

elasticsearch_app = service_app("elasticsearch")
es_index_app = typer.Typer(help="Manage Elasticsearch indices")
elasticsearch_app.add_typer(es_index_app, name="index")


@elasticsearch_app.command("health")
def elasticsearch_health(ctx: typer.Context):
    """Show cluster health."""
    with cli_errors():
        load_service(ctx, "elasticsearch").cluster_health()


@elasticsearch_app.command("stats")
def elasticsearch_stats(ctx: typer.Context):
    """Show cluster statistics."""
    with cli_errors():
        load_service(ctx, "elasticsearch").cluster_stats()


@elasticsearch_app.command("nodes")
def elasticsearch_nodes(ctx: typer.Context):
    """Show node information."""
    with cli_errors():
        load_service(ctx, "elasticsearch").node_info()


@es_index_app.command("create")
def elasticsearch_index_create(ctx: typer.Context, index: Optional[str] = typer.Argument(None)):
    """Create an index."""
    with cli_errors():
        load_service(ctx, "elasticsearch").create_index(index)


@es_index_app.command("list")
def elasticsearch_index_list(ctx: typer.Context):
    """List indices."""
    with cli_errors():
        load_service(ctx, "elasticsearch").list_indices()


@es_index_app.command("delete")
def elasticsearch_index_delete(ctx: typer.Context, index: Optional[str] = typer.Argument(None)):
    """Delete an index."""
    with cli_errors():
        load_service(ctx, "elasticsearch").delete_index(index)


@es_index_app.command("doc")
def elasticsearch_index_doc(
    ctx: typer.Context,
    index: Optional[str] = typer.Argument(None),
    doc: Optional[str] = typer.Argument(None, help="JSON document (default: a test document)"),
):
    """Index a document."""
    with cli_errors():
        load_service(ctx, "elasticsearch").index_doc(index, doc)


@elasticsearch_app.command("search")
def elasticsearch_search(
    ctx: typer.Context,
    index: Optional[str] = typer.Argument(None),
    query: Optional[str] = typer.Argument(None, help="'*' matches everything"),
):
    """Search an index."""
    with cli_errors():
        load_service(ctx, "elasticsearch").search(index, query)


@aliased(elasticsearch_app, "ui", "web")
def elasticsearch_ui(ctx: typer.Context):
    """Open the cluster health page."""
    with cli_errors():
        exit_with(load_service(ctx, "elasticsearch").open_ui())


# Dex

dex_app = service_app("dex")


@dex_app.command("test")
def dex_test(ctx: typer.Context):
    """Fetch the OpenID discovery document."""
    with cli_errors():
        load_service(ctx, "dex").test()


# Postfix

postfix_app = service_app("postfix")


@aliased(postfix_app, "test", "send")
def postfix_send(
    ctx: typer.Context,
    to: Optional[str] = typer.Argument(None, help="Default: test@example.com"),
    sender: Optional[str] = typer.Argument(None, help="Default: sender@example.com"),
    subject: Optional[str] = typer.Argument(None),
    body: Optional[str] = typer.Argument(None),
):
    """Send a test email from inside the pod."""
    with cli_errors():
        exit_with(load_service(ctx, "postfix").send_test_email(to, sender, subject, body))


@postfix_app.command("queue")
def postfix_queue(ctx: typer.Context):
    """Show the mail queue."""
    with cli_errors():
        exit_with(load_service(ctx, "postfix").queue())


@postfix_app.command("flush")
def postfix_flush(ctx: typer.Context):
    """Flush the mail queue."""
    with cli_errors():
        exit_with(load_service(ctx, "postfix").flush())


SERVICE_APPS: Dict[str, typer.Typer] = {
    "postgres": postgres_app,
    "mongodb": mongodb_app,
    "minio": minio_app,
    "dremio": dremio_app,
    "spark": spark_app,
    "airflow": airflow_app,
    "redpanda": redpanda_app,
    "zincsearch": zincsearch_app,
    "elasticsearch": elasticsearch_app,
    "dex": dex_app,
    "postfix": postfix_app,
}
