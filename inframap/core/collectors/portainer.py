"""Portainer collector.

Lists running containers of one Portainer endpoint through its Docker
proxy API and attaches them to a single server.
"""

import logging
from typing import Any, Dict, List

from pydantic import Field

from ..model import Infrastructure, PortMapping, ServerType, Service, detect_service_type
from ..utils import to_int, to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

API_KEY_ENV = "INFRAMAP_PORTAINER_API_KEY"
COMPOSE_PROJECT_LABEL = "com.docker.compose.project"


class PortainerConfig(SourceConfig):
    """``sources.portainer`` section."""
    url: str = Field("", description="Portainer base URL, e.g. https://portainer.local:9443")
    api_key: str = Field("", description="Portainer access token")
    endpoint: int = Field(1, description="Portainer environment (endpoint) ID")
    server: str = Field("portainer", description="Hostname the containers run on")
    test_file: str = Field("", description="Static containers JSON instead of the API")
    insecure: bool = Field(False, description="Skip TLS verification")


class PortainerCollector(BaseCollector):
    """Adds running Portainer containers as services."""

    config_model = PortainerConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="portainer",
            display_name="Portainer",
            description="Collects containers from Portainer via its API",
            config_key="portainer",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        url = section.get("url")
        return isinstance(url, str) and url != ""

    def apply_env_fallbacks(self) -> None:
        self.config.api_key = self._env_fallback(self.config.api_key, API_KEY_ENV)

    def validate(self) -> List[ValidationProblem]:
        problems = []
        if not self.config.url:
            problems.append(ValidationProblem(
                field="sources.portainer.url",
                message="url is required",
                suggestion="set the URL of your Portainer instance, e.g. https://portainer.local:9443",
            ))
        if not self.config.api_key and not self.config.test_file:
            problems.append(ValidationProblem(
                field="sources.portainer.api_key",
                message="api_key is required",
                suggestion=f"create an access token in Portainer or export {API_KEY_ENV}",
            ))
        return problems

    @property
    def containers_url(self) -> str:
        return (
            f"{self.config.url.rstrip('/')}/api/endpoints/{self.config.endpoint}"
            "/docker/containers/json?all=false"
        )

    def gather(self, infra: Infrastructure) -> None:
        if self.config.test_file:
            containers = self._load_json_file(self.config.test_file)
        else:
            containers = self._http_get_json(
                self.containers_url,
                headers={"X-API-Key": self.config.api_key},
                verify=not self.config.insecure,
            )
        if not isinstance(containers, list):
            raise SourceError("portainer containers response is not a list")

        server = infra.get_or_create_server(self.config.server or "portainer", ServerType.LAB)

        count = 0
        for container in containers:
            if not isinstance(container, dict) or container.get("State") != "running":
                continue
            server.add_service(_build_service(container))
            count += 1

        logger.info("Portainer endpoint %s: %d running containers", self.config.endpoint, count)
        self.summary = f"{count} containers"


def _container_name(names: Any) -> str:
    if isinstance(names, list) and names:
        return to_str(names[0]).lstrip("/") or "unknown"
    return "unknown"


def _build_service(container: Dict[str, Any]) -> Service:
    name = _container_name(container.get("Names"))
    image = to_str(container.get("Image"))

    ports = []
    for port in container.get("Ports") or []:
        public = to_int(port.get("PublicPort"))
        if public > 0:
            ports.append(PortMapping(
                host_port=public,
                container_port=to_int(port.get("PrivatePort")),
                protocol=to_str(port.get("Type")) or "tcp",
            ))

    labels = container.get("Labels") or {}
    return Service(
        name=name,
        image=image,
        service_type=detect_service_type(image, name),
        ports=ports,
        category=to_str(labels.get(COMPOSE_PROJECT_LABEL)),
    )
