"""Proxmox VE collector.

Nodes become hypervisor servers; running QEMU VMs and LXC containers
become services on their node.
"""

import logging
from typing import Any, Dict, List

from pydantic import Field

from ..model import Infrastructure, Server, ServerType, Service, ServiceType
from ..utils import to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

TOKEN_ID_ENV = "INFRAMAP_PROXMOX_TOKEN_ID"
TOKEN_ENV = "INFRAMAP_PROXMOX_TOKEN"

NODES_PATH = "/api2/json/nodes"
RESOURCES_PATH = "/api2/json/cluster/resources?type=vm"

CATEGORY = "virtualization"

RESOURCE_TYPES = {
    "qemu": ServiceType.VM,
    "lxc": ServiceType.LXC,
}


class ProxmoxConfig(SourceConfig):
    """``sources.proxmox`` section."""
    api_url: str = Field("", description="Proxmox VE URL, e.g. https://pve.local:8006")
    token_id: str = Field("", description="API token ID, user@realm!name")
    token: str = Field("", description="API token secret")
    insecure: bool = Field(False, description="Skip TLS verification")
    test_nodes: str = Field("", description="Static /nodes response")
    test_resources: str = Field("", description="Static /cluster/resources response")


class ProxmoxCollector(BaseCollector):
    """Reads nodes, VMs and containers from the Proxmox VE API."""

    config_model = ProxmoxConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="proxmox",
            display_name="Proxmox VE",
            description="Collects nodes, VMs and LXC containers from Proxmox VE",
            config_key="proxmox",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        api_url = section.get("api_url")
        return isinstance(api_url, str) and api_url != ""

    def apply_env_fallbacks(self) -> None:
        self.config.token_id = self._env_fallback(self.config.token_id, TOKEN_ID_ENV)
        self.config.token = self._env_fallback(self.config.token, TOKEN_ENV)

    def validate(self) -> List[ValidationProblem]:
        problems = []
        if not self.config.api_url:
            problems.append(ValidationProblem(
                field="sources.proxmox.api_url",
                message="api_url is required",
                suggestion="set the URL of your Proxmox VE instance, e.g. https://pve.local:8006",
            ))
        uses_files = self.config.test_nodes and self.config.test_resources
        if not uses_files and not (self.config.token_id and self.config.token):
            problems.append(ValidationProblem(
                field="sources.proxmox.token_id",
                message="token_id and token are required for API authentication",
                suggestion=f"create an API token in Proxmox or export {TOKEN_ID_ENV} and {TOKEN_ENV}",
            ))
        return problems

    def gather(self, infra: Infrastructure) -> None:
        nodes = self._get_data(NODES_PATH, self.config.test_nodes)
        resources = self._get_data(RESOURCES_PATH, self.config.test_resources)

        for node in nodes:
            name = to_str(node.get("node")).lower()
            if not name:
                continue
            server = infra.get_server(name)
            if server is None:
                infra.add_server(Server(
                    hostname=name,
                    server_type=ServerType.HYPERVISOR,
                    online=node.get("status") == "online",
                ))
            elif server.server_type != ServerType.HYPERVISOR:
                # The hypervisor role is only known to this source
                logger.info("Reclassifying %s from %s to hypervisor", name, server.server_type.value)
                server.server_type = ServerType.HYPERVISOR

        guests = 0
        for resource in resources:
            if resource.get("status") != "running":
                continue
            server = infra.get_server(to_str(resource.get("node")))
            if server is None:
                continue
            server.add_service(Service(
                name=to_str(resource.get("name")),
                service_type=RESOURCE_TYPES.get(to_str(resource.get("type")), ServiceType.VM),
                category=CATEGORY,
            ))
            guests += 1

        self.summary = f"{len(nodes)} nodes, {guests} guests"

    def _get_data(self, path: str, test_file: str) -> List[Dict[str, Any]]:
        """Return the ``data`` list of an API response or saved file."""
        if test_file:
            body = self._load_json_file(test_file)
        else:
            body = self._http_get_json(
                self.config.api_url.rstrip("/") + path,
                headers={"Authorization": f"PVEAPIToken={self.config.token_id}={self.config.token}"},
                verify=not self.config.insecure,
            )
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise SourceError(f"proxmox {path}: response has no data list")
        return [item for item in body["data"] if isinstance(item, dict)]
