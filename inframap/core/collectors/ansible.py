"""Ansible inventory collector.

Reads a YAML inventory for the canonical server set and public IPs, and
optional group_vars for system service ports and health checks.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field

from ..model import HealthCheck, Infrastructure, PortMapping, Server, ServerGroup, ServerType, Service, ServiceType
from ..utils import expand_path, to_int, to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_GROUP = "tailnet"
BOOTSTRAP_GROUP = "bootstrap"

# (service name, group_vars key holding its port)
SYSTEM_SERVICE_PORTS = [
    ("netdata", "netdata_port"),
    ("cockpit", "cockpit_port"),
]


class AnsibleConfig(SourceConfig):
    """``sources.ansible`` section."""
    inventory: str = Field("", description="Path to the YAML inventory (hosts.yml)")
    group_vars: str = Field("", description="Path to the group_vars directory")
    primary_group: str = Field("", description="Group holding the canonical server set")


class AnsibleCollector(BaseCollector):
    """Builds servers and groups from an Ansible YAML inventory."""

    config_model = AnsibleConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="ansible",
            display_name="Ansible Inventory",
            description="Parses Ansible YAML inventory and group_vars for servers and system services",
            config_key="ansible",
            detect_hint="hosts.yml",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        inventory = section.get("inventory")
        return isinstance(inventory, str) and inventory != ""

    def validate(self) -> List[ValidationProblem]:
        problems = []
        if self.config.inventory and not os.path.isfile(expand_path(self.config.inventory)):
            problems.append(ValidationProblem(
                field="sources.ansible.inventory",
                message=f"file not found: {self.config.inventory}",
                suggestion="check the path to your Ansible hosts.yml",
            ))
        if self.config.group_vars and not os.path.isdir(expand_path(self.config.group_vars)):
            problems.append(ValidationProblem(
                field="sources.ansible.group_vars",
                message=f"directory not found: {self.config.group_vars}",
                suggestion="check the path to your group_vars directory",
            ))
        return problems

    @property
    def primary_group(self) -> str:
        return self.config.primary_group or DEFAULT_PRIMARY_GROUP

    def gather(self, infra: Infrastructure) -> None:
        if not self.config.inventory:
            return

        inventory = self._read_yaml(expand_path(self.config.inventory))
        if not isinstance(inventory, dict):
            raise SourceError(f"inventory {self.config.inventory} is not a mapping of groups")

        created = self._parse_inventory(infra, inventory)

        if self.config.group_vars:
            self._parse_group_vars(infra, expand_path(self.config.group_vars))

        self.summary = f"{created} servers"

    def _parse_inventory(self, infra: Infrastructure, inventory: Dict[str, Any]) -> int:
        groups = {
            to_str(name): _extract_hosts(data)
            for name, data in inventory.items()
            if to_str(name) != "all"
        }

        # tailscale_hostname -> public IP
        public_ips: Dict[str, str] = {}
        for host_vars in groups.get(BOOTSTRAP_GROUP, {}).values():
            ts_name = to_str(host_vars.get("tailscale_hostname")).lower()
            address = to_str(host_vars.get("ansible_host"))
            if ts_name and address:
                public_ips[ts_name] = address

        created = 0
        for name, host_vars in sorted(groups.get(self.primary_group, {}).items()):
            hostname = _resolve_hostname(name, host_vars)
            server_type = _server_type(to_str(host_vars.get("server_type")), hostname)
            member_of = sorted(g for g, hosts in groups.items() if name in hosts)

            server = infra.get_server(hostname)
            if server is None:
                server = infra.add_server(Server(hostname=hostname, server_type=server_type))
                created += 1
            if not server.public_ip and hostname in public_ips:
                server.public_ip = public_ips[hostname]
            for group in member_of:
                if group not in server.ansible_groups:
                    server.ansible_groups.append(group)

        for group_name, hosts in groups.items():
            if not hosts:
                continue
            members = sorted({_resolve_hostname(n, v) for n, v in hosts.items()})
            infra.server_groups[group_name] = ServerGroup(
                name=group_name,
                label=group_name,
                servers=members,
            )

        logger.info("Ansible inventory: %d servers in group %r", created, self.primary_group)
        return created

    def _parse_group_vars(self, infra: Infrastructure, group_vars_dir: str) -> None:
        all_vars = self._read_optional_yaml(os.path.join(group_vars_dir, "all.yml"))
        if all_vars:
            self._add_system_services(infra, all_vars)

        primary_vars = self._read_optional_yaml(
            os.path.join(group_vars_dir, self.primary_group, "vars.yml")
        )
        if primary_vars:
            self._attach_health_checks(infra, primary_vars)

    def _add_system_services(self, infra: Infrastructure, variables: Dict[str, Any]) -> None:
        for service_name, key in SYSTEM_SERVICE_PORTS:
            port = to_int(variables.get(key))
            if port == 0:
                continue
            for server in infra.sorted_servers():
                server.add_service(Service(
                    name=service_name,
                    service_type=ServiceType.SYSTEM,
                    ports=[PortMapping(host_port=port, container_port=port)],
                ))

    def _attach_health_checks(self, infra: Infrastructure, variables: Dict[str, Any]) -> None:
        checks = variables.get("service_health_checks")
        if not isinstance(checks, dict):
            return

        for name, check in checks.items():
            if not isinstance(check, dict):
                continue
            health = HealthCheck(
                port=to_int(check.get("port")),
                path=to_str(check.get("path")),
                expected_status=to_int(check.get("expected_status")),
                timeout=to_int(check.get("timeout")),
            )
            for server in infra.servers.values():
                for svc in server.services:
                    if svc.name == to_str(name):
                        svc.health_check = health

    @staticmethod
    def _read_yaml(path: str) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f)
        except OSError as e:
            raise SourceError(f"reading {path}: {e}") from e
        except yaml.YAMLError as e:
            raise SourceError(f"parsing {path}: {e}") from e

    def _read_optional_yaml(self, path: str) -> Optional[Dict[str, Any]]:
        """Read a group_vars file; a missing or broken file is skipped."""
        if not os.path.isfile(path):
            return None
        try:
            data = self._read_yaml(path)
        except SourceError as e:
            logger.warning("Skipping group_vars file: %s", e)
            return None
        return data if isinstance(data, dict) else None


def _extract_hosts(group: Any) -> Dict[str, Dict[str, Any]]:
    """Pull ``{host name: vars}`` out of an inventory group."""
    if not isinstance(group, dict):
        return {}
    hosts = group.get("hosts")
    if not isinstance(hosts, dict):
        return {}
    return {
        to_str(name): (host_vars if isinstance(host_vars, dict) else {})
        for name, host_vars in hosts.items()
    }


def _resolve_hostname(name: str, host_vars: Dict[str, Any]) -> str:
    return (to_str(host_vars.get("hostname")) or name).lower()


def _server_type(value: str, hostname: str) -> ServerType:
    if not value:
        return ServerType.LAB
    try:
        return ServerType(value.lower())
    except ValueError:
        logger.warning("Unknown server_type %r for %s, using lab", value, hostname)
        return ServerType.LAB
