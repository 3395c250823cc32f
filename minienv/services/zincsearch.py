"""ZincSearch full-text search engine."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from minienv.logging import print_info
from minienv.services.base import Service

ADMIN_USER = "admin"
ADMIN_PASSWORD = "admin"
DEFAULT_INDEX = "test-index"


def parse_document(doc: Optional[str], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Parse a JSON document argument, or build the default test document.

    Raises:
        ValueError: If the document is not valid JSON
    """
    if not doc:
        document = {"message": "test document",
                    "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")}
        document.update(defaults)
        return document
    try:
        return json.loads(doc)
    except json.JSONDecodeError as e:
        raise ValueError(f"Document is not valid JSON: {e}")


class ZincSearch(Service):
    name = "zincsearch"
    title = "ZincSearch"
    timeout = 120

    def auth(self) -> Optional[Tuple[str, str]]:
        return (ADMIN_USER, ADMIN_PASSWORD)

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("http")
        if not (ip and port):
            return []
        return [
            f"  Web UI:      http://{ip}:{port}",
            f"  API Docs:    http://{ip}:{port}/ui/",
            f"  Default credentials: {ADMIN_USER}/{ADMIN_PASSWORD}",
        ]

    def create_index(self, index: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        print_info(f"Creating index: {index}")
        response = self.request("PUT", "/api/index", json={"name": index, "storage_type": "disk"})
        return self.print_response(response)

    def list_indices(self) -> Any:
        print_info("Listing indices...")
        return self.print_response(self.request("GET", "/api/index"))

    def index_doc(self, index: Optional[str] = None, doc: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        document = parse_document(doc, {})
        print_info(f"Indexing document to: {index}")
        return self.print_response(self.request("POST", f"/api/{index}/_doc", json=document))

    def search(self, index: Optional[str] = None, query: Optional[str] = None) -> Any:
        index = index or DEFAULT_INDEX
        query = query or "*"
        print_info(f"Searching index: {index} for: {query}")
        body = {
            "search_type": "match",
            "query": {"term": query},
            "from": 0,
            "max_results": 20,
        }
        return self.print_response(self.request("POST", f"/api/{index}/_search", json=body))
