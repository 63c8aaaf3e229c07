"""Docker Compose collector.

Parses explicit compose files (optionally Jinja2-templated) and scans
directories for compose projects. Every service lands on the server the
file is configured for.
"""

import logging
import os
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field

from ..model import Infrastructure, PortMapping, ServerType, Service, VolumeMount, detect_service_type
from ..utils import expand_path, strip_template_expressions, to_int, to_str
from ..utils.text import TEMPLATE_PLACEHOLDER
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

COMPOSE_FILENAMES = frozenset({
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
})

SKIP_DIRECTORIES = frozenset({"node_modules", "vendor"})

# Server used when a file or scan dir does not name one
DEFAULT_SERVER = "local"


class ComposeFileEntry(BaseModel):
    path: str = Field(..., description="Path to a compose file")
    server: str = Field("", description="Hostname the services run on")
    template: bool = Field(False, description="File contains {{ }} template expressions")


class ScanDirEntry(BaseModel):
    path: str = Field(..., description="Directory scanned recursively for compose files")
    server: str = Field("", description="Hostname the services run on")


class ComposeConfig(SourceConfig):
    """``sources.compose`` section."""
    files: List[ComposeFileEntry] = Field(default_factory=list)
    scan_dirs: List[ScanDirEntry] = Field(default_factory=list)


class ComposeCollector(BaseCollector):
    """Turns compose services into Service entries on their host."""

    config_model = ComposeConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="compose",
            display_name="Docker Compose",
            description="Parses docker-compose files and Jinja2 templates for services",
            config_key="compose",
            detect_hint="docker-compose.yml",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        for key in ("files", "scan_dirs"):
            value = section.get(key)
            if isinstance(value, list) and value:
                return True
        return False

    def validate(self) -> List[ValidationProblem]:
        problems = []
        for i, entry in enumerate(self.config.files):
            if not os.path.isfile(expand_path(entry.path)):
                problems.append(ValidationProblem(
                    field=f"sources.compose.files[{i}]",
                    message=f"file not found: {entry.path}",
                    suggestion="check the path or remove this entry",
                ))
        for i, entry in enumerate(self.config.scan_dirs):
            if not os.path.isdir(expand_path(entry.path)):
                problems.append(ValidationProblem(
                    field=f"sources.compose.scan_dirs[{i}]",
                    message=f"directory not found: {entry.path}",
                    suggestion="check the path or remove this entry",
                ))
        return problems

    def gather(self, infra: Infrastructure) -> None:
        count = 0
        for entry in self.config.files:
            path = expand_path(entry.path)
            try:
                count += self.parse_file(infra, path, entry.server, entry.template)
            except SourceError as e:
                raise SourceError(f"parsing compose file {entry.path}: {e}") from e

        for entry in self.config.scan_dirs:
            count += self._scan_directory(infra, expand_path(entry.path), entry.server)

        self.summary = f"{count} services"

    def _scan_directory(self, infra: Infrastructure, root: str, server: str) -> int:
        if not os.path.isdir(root):
            raise SourceError(f"scan directory not found: {root}")

        count = 0
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and d not in SKIP_DIRECTORIES
            )
            for filename in sorted(filenames):
                if filename not in COMPOSE_FILENAMES:
                    continue
                path = os.path.join(dirpath, filename)
                try:
                    count += self.parse_file(infra, path, server, template=False)
                except SourceError as e:
                    logger.warning("Skipping %s: %s", path, e)
        return count

    def parse_file(self, infra: Infrastructure, path: str, server: str, template: bool) -> int:
        """Parse one compose file into services on ``server``.

        Returns:
            Number of services added.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise SourceError(str(e)) from e

        if template or "{{" in content:
            content = strip_template_expressions(content)

        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SourceError(f"yaml parse: {e}") from e

        if not isinstance(document, dict):
            return 0
        services = document.get("services")
        if not isinstance(services, dict):
            return 0

        host = infra.get_or_create_server(server or DEFAULT_SERVER, ServerType.LOCAL)

        added = 0
        for name, spec in services.items():
            if not isinstance(spec, dict):
                continue
            service = _build_service(to_str(name), spec, path)
            host.add_service(service)
            for network in service.networks:
                infra.add_network_member(network, service.name)
            added += 1

        logger.info("Compose file %s: %d services on %s", path, added, host.hostname)
        return added


def _build_service(name: str, spec: Dict[str, Any], path: str) -> Service:
    image = to_str(spec.get("image"))
    return Service(
        name=name,
        image=image,
        service_type=detect_service_type(image, name),
        ports=_parse_ports(spec.get("ports")),
        networks=_names(spec.get("networks")),
        depends_on=_names(spec.get("depends_on")),
        volumes=_parse_volumes(spec.get("volumes")),
        compose_file=path,
    )


def _parse_ports(raw: Any) -> List[PortMapping]:
    if not isinstance(raw, list):
        return []

    ports = []
    for item in raw:
        if isinstance(item, dict):
            # Long syntax: {target, published, protocol, host_ip}
            pm = PortMapping(
                host_port=to_int(item.get("published")),
                container_port=to_int(item.get("target")),
                protocol=to_str(item.get("protocol")) or "tcp",
                host_ip=to_str(item.get("host_ip")),
            )
        else:
            spec = to_str(item).replace(f"{TEMPLATE_PLACEHOLDER}:", "")
            if not spec or spec == TEMPLATE_PLACEHOLDER:
                continue
            pm = PortMapping.parse(spec)
        if pm.host_port > 0:
            ports.append(pm)
    return ports


def _names(raw: Any) -> List[str]:
    """Names from a list or from the keys of a mapping (long syntax)."""
    if isinstance(raw, list):
        return [to_str(item) for item in raw]
    if isinstance(raw, dict):
        return [to_str(key) for key in raw]
    return []


def _parse_volumes(raw: Any) -> List[VolumeMount]:
    if not isinstance(raw, list):
        return []

    volumes = []
    for item in raw:
        if isinstance(item, dict):
            volumes.append(VolumeMount(
                source=to_str(item.get("source")),
                target=to_str(item.get("target")),
            ))
            continue
        parts = to_str(item).split(":")
        volumes.append(VolumeMount(
            source=parts[0],
            target=parts[1] if len(parts) > 1 else "",
        ))
    return volumes
