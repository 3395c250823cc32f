"""Elasticsearch single-node cluster and REST helpers."""

import shutil
import webbrowser
from typing import Any, List, Optional

from minienv.logging import echo, print_error, print_header, print_info, print_success
from minienv.services.base import STATEFULSET, Service, require
from minienv.services.zincsearch import DEFAULT_INDEX, parse_document


class Elasticsearch(Service):
    name = "elasticsearch"
    title = "Elasticsearch"
    kind = STATEFULSET
    timeout = 180

    def remove(self) -> None:
        print_header(f"Removing {self.title}")
        self.kube.delete_manifest(self.manifest_path())

        # StatefulSet volume claims outlive the manifest
        print_info("Removing persistent volume claims...")
        self.kube.delete_pvcs(self.label)
        print_success(f"{self.title} removed")

    def show_extra_status(self) -> None:
        echo()
        print_info("Persistent Volume Claims:")
        self.kube.get("pvc", label=self.label)

        echo()
        try:
            self.cluster_health()
        except RuntimeError as e:
            print_error(str(e))

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("http")
        if not (ip and port):
            return []
        return [
            f"  REST API:    http://{ip}:{port}",
            f"  Health:      http://{ip}:{port}/_cluster/health",
            f"  Cluster:     http://{ip}:{port}/_cluster/state",
            "",
            "  Security is disabled for development - no authentication required",
        ]

    def cluster_health(self) -> Any:
        print_info("Cluster Health:")
        return self.print_response(self.request("GET", "/_cluster/health"))

    def cluster_stats(self) -> Any:
        print_header("Cluster Statistics")
        return self.print_response(self.request("GET", "/_cluster/stats"))

    def node_info(self) -> Any:
        print_header("Node Information")
        return self.print_response(self.request("GET", "/_nodes"))

    def create_index(self, index: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        print_info(f"Creating index: {index}")
        settings = {"settings": {"number_of_shards": 1, "number_of_replicas": 0}}
        return self.print_response(self.request("PUT", f"/{index}", json=settings))

    def list_indices(self) -> str:
        print_info("Listing indices...")
        response = self.request("GET", "/_cat/indices", params={"v": "true"})
        echo(response.text)
        return response.text

    def delete_index(self, index: Optional[str]) -> Any:
        require(index, "Index name required")
        print_info(f"Deleting index: {index}")
        return self.print_response(self.request("DELETE", f"/{index}"))

    def index_doc(self, index: Optional[str] = None, doc: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        document = parse_document(doc, {"value": 123})
        print_info(f"Indexing document to: {index}")
        return self.print_response(self.request("POST", f"/{index}/_doc", json=document))

    def search(self, index: Optional[str] = None, query: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        query = query or "*"
        print_info(f"Searching index: {index} for: {query}")
        if query == "*":
            body = {"query": {"match_all": {}}}
        else:
            body = {"query": {"match": {"message": query}}}
        return self.print_response(self.request("GET", f"/{index}/_search", json=body))

    def open_ui(self) -> int:
        """Open the cluster health page in a browser, or print its URL."""
        url = f"{self.base_url()}/_cluster/health?pretty"
        print_info("Opening Elasticsearch cluster health...")
        if (shutil.which("open") or shutil.which("xdg-open")) and webbrowser.open(url):
            return 0
        echo(f"URL: {url}")
        return 0
