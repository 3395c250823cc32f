"""MongoDB StatefulSet and mongosh / mongo-tools helpers."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from minienv.logging import print_info, print_success
from minienv.services.base import STATEFULSET, Service, require

USER = "admin"
PASSWORD = "mongodb"
AUTH = ["--username", USER, "--password", PASSWORD, "--authenticationDatabase", "admin"]


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


class MongoDB(Service):
    name = "mongodb"
    title = "MongoDB"
    kind = STATEFULSET
    timeout = 120
    pvc = "mongodb-pvc"
    has_health_check = True

    def probe(self) -> bool:
        return self.kube.run_probe(
            "mongodb-health-check",
            "mongo:8.0",
            ["mongosh", "--host", self.internal_host, *AUTH, "--eval", "db.adminCommand('ping')"],
        )

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("mongodb")
        if not (ip and port):
            return []
        return [
            f"  Host: {ip}:{port}",
            f"  Internal: {self.internal_host}:27017",
            "",
            "  Connection String:",
            f"    mongodb://{USER}:{PASSWORD}@{ip}:{port}/admin",
            "",
            "  Default Credentials:",
            f"    Username: {USER}",
            f"    Password: {PASSWORD}",
            "    Database: admin",
        ]

    def _mongosh(self) -> List[str]:
        return ["mongosh", "-u", USER, "-p", PASSWORD, "--authenticationDatabase", "admin"]

    def mongosh(self, args: Sequence[str] = ()) -> int:
        """Open an interactive MongoDB shell."""
        pod = self.pod()
        print_info("Connecting to MongoDB Shell...")
        return self.kube.exec(pod, [*self._mongosh(), *args], tty=True)

    def eval(self, command: Optional[str], database: Optional[str] = None) -> int:
        """Evaluate a JavaScript expression in mongosh.

        Raises:
            ValueError: If no command is given
        """
        require(command, "No command provided")
        pod = self.pod()
        print_info("Executing MongoDB command...")
        return self.kube.exec(pod, [*self._mongosh(), database or "admin", "--eval", command], tty=True)

    def list_databases(self) -> int:
        print_info("Listing databases...")
        return self.eval("db.adminCommand('listDatabases')", "admin")

    def list_collections(self, database: Optional[str] = None) -> int:
        database = database or "admin"
        print_info(f"Listing collections in database: {database}")
        return self.eval("db.getCollectionNames()", database)

    def create_database(self, dbname: Optional[str]) -> int:
        # MongoDB only materialises a database on first write
        require(dbname, "Database name required")
        print_info(f"Creating database: {dbname} (will be created on first write)")
        code = self.eval("db.createCollection('_init')", dbname)
        if code == 0:
            print_success(f"Database '{dbname}' initialized")
        return code

    def create_user(
        self,
        username: Optional[str],
        password: Optional[str],
        database: Optional[str] = None,
        role: Optional[str] = None,
    ) -> int:
        if not username or not password:
            raise ValueError("Username and password required")
        database = database or "admin"
        role = role or "readWrite"
        self.shell.masker.register_secret(password)

        print_info(f"Creating user: {username} in database: {database} with role: {role}")
        code = self.eval(
            f"db.createUser({{user: '{username}', pwd: '{password}', roles: [{{role: '{role}', db: '{database}'}}]}})",
            database,
        )
        if code == 0:
            print_success(f"User '{username}' created")
        return code

    def grant(self, username: Optional[str], database: Optional[str], role: Optional[str] = None) -> int:
        if not username or not database:
            raise ValueError("Username and database required")
        role = role or "readWrite"
        print_info(f"Granting role '{role}' on '{database}' to '{username}'")
        code = self.eval(f"db.grantRolesToUser('{username}', [{{role: '{role}', db: '{database}'}}])", "admin")
        if code == 0:
            print_success("Role granted")
        return code

    def backup(self, dbname: Optional[str] = None, backup_dir: Optional[str] = None) -> Path:
        """Write a gzipped mongodump archive and return its path."""
        dbname = dbname or "admin"
        directory = Path(backup_dir or f"./mongodb-backup-{_timestamp()}")
        pod = self.pod()

        print_info(f"Backing up database: {dbname} to {directory}")
        archive = directory / f"{dbname}.archive.gz"
        if self.shell.run_to_file(
            ["kubectl", "exec", pod, "-n", self.namespace, "--",
             "mongodump", *AUTH, "--db", dbname, "--archive", "--gzip"],
            archive,
            binary=True,
        ):
            print_success(f"Backup saved to: {archive}")
        return archive

    def restore(self, backup_file: Optional[str], dbname: Optional[str]) -> int:
        """Restore a gzipped archive into a database.

        Raises:
            FileNotFoundError: If the archive does not exist
            ValueError: If no database is given
        """
        if not backup_file or not Path(backup_file).is_file():
            raise FileNotFoundError(f"Backup file not found: {backup_file}")
        require(dbname, "Database name required")
        pod = self.pod()

        print_info(f"Restoring database: {dbname} from {backup_file}")
        with open(backup_file, "rb") as f:
            code = self.kube.exec(
                pod, ["mongorestore", *AUTH, "--db", dbname, "--archive", "--gzip"], stdin=f
            )
        if code == 0:
            print_success("Database restored")
        return code

    def version(self) -> int:
        return self.exec(*self._mongosh(), "--eval", "db.version(); db.serverStatus().host", tty=False)

    def stats(self) -> int:
        print_info("MongoDB Server Statistics...")
        return self.eval("db.serverStatus()", "admin")

    def import_json(self, file: Optional[str], database: Optional[str], collection: Optional[str]) -> int:
        """Copy a JSON array file into the pod and mongoimport it.

        Raises:
            ValueError: If any argument is missing
            FileNotFoundError: If the file does not exist
        """
        if not file or not database or not collection:
            raise ValueError("File, database, and collection required")
        if not Path(file).is_file():
            raise FileNotFoundError(f"File not found: {file}")
        pod = self.pod()

        print_info(f"Importing {file} to {database}.{collection}")
        self.kube.copy_to_pod(file, pod, "/tmp/import.json")
        code = self.kube.exec(
            pod,
            ["mongoimport", *AUTH, "--db", database, "--collection", collection,
             "--file", "/tmp/import.json", "--jsonArray"],
        )
        if code == 0:
            print_success("Data imported")
        return code

    def export_json(
        self, database: Optional[str], collection: Optional[str], output_file: Optional[str] = None
    ) -> Path:
        """Export a collection as a JSON array file and return its path."""
        if not database or not collection:
            raise ValueError("Database and collection required")
        path = Path(output_file or f"{collection}-{_timestamp()}.json")
        pod = self.pod()

        print_info(f"Exporting {database}.{collection} to {path}")
        if self.shell.run_to_file(
            ["kubectl", "exec", pod, "-n", self.namespace, "--",
             "mongoexport", *AUTH, "--db", database, "--collection", collection, "--jsonArray"],
            path,
        ):
            print_success(f"Data exported to: {path}")
        return path
