"""Redpanda (Kafka API compatible) broker and rpk helpers."""

from typing import List, Optional, Sequence

from minienv.logging import echo, print_info
from minienv.services.base import STATEFULSET, Service

DEFAULT_TOPIC = "test-topic"


class Redpanda(Service):
    name = "redpanda"
    title = "Redpanda"
    kind = STATEFULSET
    service_name = "redpanda-external"
    timeout = 180

    def wait_ready(self) -> bool:
        print_info("Waiting for Redpanda to be ready...")
        return super().wait_ready()

    def show_services(self) -> None:
        echo()
        print_info("Services:")
        self.kube.get("service", label=self.label)

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        kafka_port = self.nodeport("kafka")
        if not (ip and kafka_port):
            return []
        return [
            f"  Kafka API:         {ip}:{kafka_port}",
            f"  Admin API:         http://{ip}:{self.nodeport('admin')}",
            f"  HTTP Proxy:        http://{ip}:{self.nodeport('http-proxy')}",
            f"  Schema Registry:   http://{ip}:{self.nodeport('schema-registry')}",
        ]

    def pod(self) -> str:
        # rpk talks to the first broker of the StatefulSet
        pod = f"{self.workload}-0"
        if not self.kube.resource_exists("pod", pod):
            raise RuntimeError(f"{self.title} pod not found")
        return pod

    def rpk(self, args: Sequence[str]) -> int:
        pod = self.pod()
        print_info(f"Executing: rpk {' '.join(args)}")
        return self.kube.exec(pod, ["rpk", *args], tty=True)

    def create_topic(
        self, topic: Optional[str] = None, partitions: Optional[int] = None, replicas: Optional[int] = None
    ) -> int:
        topic = topic or DEFAULT_TOPIC
        partitions = partitions or 3
        replicas = replicas or 1
        print_info(f"Creating topic: {topic} (partitions: {partitions}, replicas: {replicas})")
        return self.rpk(["topic", "create", topic, "--partitions", str(partitions), "--replicas", str(replicas)])

    def list_topics(self) -> int:
        print_info("Listing topics...")
        return self.rpk(["topic", "list"])

    def produce(self, topic: Optional[str] = None) -> int:
        topic = topic or DEFAULT_TOPIC
        print_info(f"Producing to topic: {topic}")
        echo("Type messages (Ctrl+D to finish):")
        return self.rpk(["topic", "produce", topic])

    def consume(self, topic: Optional[str] = None) -> int:
        topic = topic or DEFAULT_TOPIC
        print_info(f"Consuming from topic: {topic}")
        return self.rpk(["topic", "consume", topic])
