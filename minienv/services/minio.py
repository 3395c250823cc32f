"""MinIO object storage."""

from typing import List

from minienv.services.base import Service

ACCESS_KEY = "minioadmin"
SECRET_KEY = "minioadmin"


class MinIO(Service):
    name = "minio"
    title = "MinIO"
    timeout = 120
    has_health_check = True

    def probe(self) -> bool:
        return self.kube.run_probe(
            "minio-health-check",
            "minio/mc",
            ["mc", "alias", "set", "healthcheck", f"http://{self.internal_host}:9000", ACCESS_KEY, SECRET_KEY],
        )

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        api_port = self.nodeport("api")
        if not (ip and api_port):
            return []
        console_port = self.nodeport("console")
        return [
            f"  API:     http://{ip}:{api_port}",
            f"  Console: http://{ip}:{console_port}",
            f"  Default credentials: {ACCESS_KEY}/{SECRET_KEY}",
        ]

    def open_console(self) -> int:
        return self.open_ui()
