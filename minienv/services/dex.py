"""Dex OIDC provider."""

from typing import Any, List

from minienv.logging import print_info
from minienv.services.base import Service

TEST_PASSWORD = "password"
TEST_USERS = ("admin@example.com", "user@example.com")
CLIENT_ID = "example-app"
DISCOVERY_PATH = "/dex/.well-known/openid-configuration"


class Dex(Service):
    name = "dex"
    title = "Dex"
    timeout = 60

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("http")
        if not (ip and port):
            return []
        lines = [
            f"  OIDC Issuer:  http://{ip}:{port}/dex",
            f"  Config:       http://{ip}:{port}{DISCOVERY_PATH}",
            f"  Client ID:    {CLIENT_ID}",
            "",
            "  Test users:",
        ]
        lines += [f"    {user} / {TEST_PASSWORD}" for user in TEST_USERS]
        return lines

    def test(self) -> Any:
        """Fetch and print the OIDC discovery document."""
        print_info("Testing OIDC configuration...")
        response = self.request("GET", DISCOVERY_PATH)
        body = self.print_response(response)
        if not response.ok:
            raise RuntimeError(f"OIDC discovery returned HTTP {response.status_code}")
        return body
