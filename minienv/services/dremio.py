"""Dremio lakehouse engine."""

from typing import List

from minienv.logging import print_info
from minienv.services.base import Service


class Dremio(Service):
    name = "dremio"
    title = "Dremio"
    timeout = 600

    def wait_ready(self) -> bool:
        print_info("Waiting for Dremio to be ready (this may take 3-5 minutes)...")
        return super().wait_ready()

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        web_port = self.nodeport("web")
        if not (ip and web_port):
            return []
        jdbc_port = self.nodeport("jdbc")
        return [
            f"  Web UI:  http://{ip}:{web_port}",
            f"  JDBC:    jdbc:dremio:direct={ip}:{jdbc_port}",
            "",
            "  First-time setup: Create admin account on Web UI",
        ]
