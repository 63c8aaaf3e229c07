"""systemd collector.

Lists running service units on the local host, or on remote hosts over
ssh, and adds them as system (or database) services.
"""

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from ..model import Infrastructure, ServerType, Service, ServiceType, detect_service_type
from ..utils import to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

LIST_UNITS = ["systemctl", "list-units", "--type=service", "--state=running", "--output=json"]
UNIT_SUFFIX = ".service"


class SystemdServerEntry(BaseModel):
    host: str = Field("", description="Hostname the units belong to")
    ssh: str = Field("", description="ssh target (user@host) for remote hosts")
    filter: List[str] = Field(default_factory=list, description="Keep only units containing one of these")
    exclude: List[str] = Field(default_factory=list, description="Drop units containing one of these")
    test_file: str = Field("", description="Static systemctl JSON output")


class SystemdConfig(SourceConfig):
    """``sources.systemd`` section."""
    servers: List[SystemdServerEntry] = Field(default_factory=list)


class SystemdCollector(BaseCollector):
    """Adds running systemd units as services."""

    config_model = SystemdConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="systemd",
            display_name="systemd Services",
            description="Collects running systemd services from local or remote servers",
            config_key="systemd",
            detect_hint="systemctl",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        servers = section.get("servers")
        return isinstance(servers, list) and len(servers) > 0

    def validate(self) -> List[ValidationProblem]:
        problems = []
        for i, entry in enumerate(self.config.servers):
            if not entry.host:
                problems.append(ValidationProblem(
                    field=f"sources.systemd.servers[{i}].host",
                    message="host is required",
                    suggestion="set the hostname for this server",
                ))
        return problems

    def gather(self, infra: Infrastructure) -> None:
        count = 0
        for entry in self.config.servers:
            if not entry.host:
                raise SourceError("systemd server entry has no host")
            try:
                units = self._list_units(entry)
            except SourceError as e:
                raise SourceError(f"getting units for {entry.host}: {e}") from e

            server = infra.get_or_create_server(entry.host, ServerType.LAB)
            for unit in units:
                name = to_str(unit.get("unit"))
                if name.endswith(UNIT_SUFFIX):
                    name = name[:-len(UNIT_SUFFIX)]
                if not name:
                    continue
                if entry.filter and not _matches_any(name, entry.filter):
                    continue
                if _matches_any(name, entry.exclude):
                    continue

                if detect_service_type("", name) == ServiceType.DATABASE:
                    service_type = ServiceType.DATABASE
                else:
                    service_type = ServiceType.SYSTEM
                server.add_service(Service(name=name, service_type=service_type))
                count += 1

        self.summary = f"{count} units on {len(self.config.servers)} servers"

    def _list_units(self, entry: SystemdServerEntry) -> List[Dict[str, Any]]:
        if entry.test_file:
            units = self._load_json_file(entry.test_file)
        elif entry.ssh:
            units = self._run_json_command(["ssh", entry.ssh] + LIST_UNITS)
        else:
            units = self._run_json_command(LIST_UNITS)

        if not isinstance(units, list):
            raise SourceError("systemctl output is not a JSON list")
        return [u for u in units if isinstance(u, dict)]


def _matches_any(name: str, patterns: List[str]) -> bool:
    lower = name.lower()
    return any(p.lower() in lower for p in patterns)
