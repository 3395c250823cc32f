"""PostgreSQL StatefulSet and psql helpers."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from minienv.logging import print_info, print_success
from minienv.services.base import STATEFULSET, Service, require

USER = "postgres"
PASSWORD = "postgres"


class Postgres(Service):
    name = "postgres"
    title = "PostgreSQL"
    kind = STATEFULSET
    timeout = 120
    pvc = "postgres-pvc"
    has_health_check = True

    def probe(self) -> bool:
        return self.kube.run_probe(
            "postgres-health-check",
            "postgres:15",
            ["psql", "-h", self.internal_host, "-U", USER, "-c", "SELECT 1;"],
            env={"PGPASSWORD": PASSWORD},
        )

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("postgres")
        if not (ip and port):
            return []
        return [
            f"  Host: {ip}:{port}",
            f"  Internal: {self.internal_host}:5432",
            "",
            "  Connection String:",
            f"    postgresql://{USER}:{PASSWORD}@{ip}:{port}/postgres",
            "",
            "  Default Credentials:",
            f"    Username: {USER}",
            f"    Password: {PASSWORD}",
            "    Database: postgres",
        ]

    def psql(self, args: Sequence[str] = ()) -> int:
        """Open an interactive psql session."""
        pod = self.pod()
        print_info("Connecting to PostgreSQL CLI...")
        return self.kube.exec(pod, ["psql", "-U", USER, *args], tty=True)

    def sql(self, query: Optional[str], database: Optional[str] = None) -> int:
        """Run one SQL statement.

        Raises:
            ValueError: If no query is given
        """
        require(query, "No SQL query provided")
        pod = self.pod()
        print_info("Executing SQL query...")
        return self.kube.exec(pod, ["psql", "-U", USER, "-d", database or "postgres", "-c", query], tty=True)

    def list_databases(self) -> int:
        print_info("Listing databases...")
        return self.sql("\\l")

    def list_tables(self, database: Optional[str] = None) -> int:
        database = database or "postgres"
        print_info(f"Listing tables in database: {database}")
        return self.sql("\\dt", database)

    def create_database(self, dbname: Optional[str], owner: Optional[str] = None) -> int:
        require(dbname, "Database name required")
        print_info(f"Creating database: {dbname}")
        code = self.sql(f"CREATE DATABASE {dbname} OWNER {owner or USER};", "postgres")
        if code == 0:
            print_success(f"Database '{dbname}' created")
        return code

    def create_user(self, username: Optional[str], password: Optional[str]) -> int:
        if not username or not password:
            raise ValueError("Username and password required")
        self.shell.masker.register_secret(password)
        print_info(f"Creating user: {username}")
        code = self.sql(f"CREATE USER {username} WITH PASSWORD '{password}';", "postgres")
        if code == 0:
            print_success(f"User '{username}' created")
        return code

    def grant(self, dbname: Optional[str], username: Optional[str]) -> int:
        if not dbname or not username:
            raise ValueError("Database name and username required")
        print_info(f"Granting privileges on {dbname} to {username}")
        code = self.sql(f"GRANT ALL PRIVILEGES ON DATABASE {dbname} TO {username};", "postgres")
        if code == 0:
            print_success("Privileges granted")
        return code

    def backup(self, dbname: Optional[str] = None, backup_file: Optional[str] = None) -> Path:
        """Dump a database to a local SQL file and return its path."""
        dbname = dbname or "postgres"
        path = Path(backup_file or f"backup-{datetime.now().strftime('%Y%m%d-%H%M%S')}.sql")
        pod = self.pod()

        print_info(f"Backing up database: {dbname} to {path}")
        if self.shell.run_to_file(
            ["kubectl", "exec", pod, "-n", self.namespace, "--", "pg_dump", "-U", USER, dbname], path
        ):
            print_success(f"Backup saved to: {path}")
        return path

    def restore(self, backup_file: Optional[str], dbname: Optional[str] = None) -> int:
        """Feed a SQL dump into psql.

        Raises:
            FileNotFoundError: If the backup file does not exist
        """
        if not backup_file or not Path(backup_file).is_file():
            raise FileNotFoundError(f"Backup file not found: {backup_file}")
        dbname = dbname or "postgres"
        pod = self.pod()

        print_info(f"Restoring database: {dbname} from {backup_file}")
        with open(backup_file) as f:
            code = self.kube.exec(pod, ["psql", "-U", USER, dbname], stdin=f)
        if code == 0:
            print_success("Database restored")
        return code

    def version(self) -> int:
        return self.exec("psql", "-U", USER, "-c", "SELECT version();", tty=False)

