"""Infrastructure model.

Pure data containers for the graph assembled by the collectors. Maps are
keyed by name and carry no ordering; anything that presents them sorts
first.

Single-writer discipline: only the collector currently running may mutate
an ``Infrastructure``. The pipeline runs collectors one at a time, so no
locking is done here. Parallel collection would need each collector to
return its own sub-graph for the merge stage to combine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..utils import to_int


class ServerType(str, Enum):
    """Role of a server; drives grouping and colour."""
    PRODUCTION = "production"
    LAB = "lab"
    LOCAL = "local"
    CLUSTER = "cluster"
    HYPERVISOR = "hypervisor"


class ServiceType(str, Enum):
    """Kind of workload running on a server."""
    CONTAINER = "container"
    DATABASE = "database"
    APP = "app"
    SYSTEM = "system"
    VM = "vm"
    LXC = "lxc"
    POD = "pod"


@dataclass
class PortMapping:
    """A port binding, Docker style."""

    host_port: int = 0
    container_port: int = 0
    protocol: str = "tcp"  # "tcp" | "udp"
    host_ip: str = ""

    @classmethod
    def parse(cls, spec: str) -> "PortMapping":
        """Parse ``"8080"``, ``"8080:80"`` or ``"127.0.0.1:8080:80"``.

        An optional ``/udp`` or ``/tcp`` suffix sets the protocol. The
        arrow form produced by ``str()`` (``"8080→80/udp"``) is accepted
        too. Unparseable port segments become 0.
        """
        pm = cls()
        spec = spec.strip().replace("→", ":")
        if "/" in spec:
            spec, proto = spec.split("/", 1)
            pm.protocol = proto.lower() or "tcp"

        parts = spec.split(":")
        if len(parts) == 1:
            pm.host_port = to_int(parts[0])
            pm.container_port = pm.host_port
        elif len(parts) == 2:
            pm.host_port = to_int(parts[0])
            pm.container_port = to_int(parts[1])
        elif len(parts) == 3:
            pm.host_ip = parts[0]
            pm.host_port = to_int(parts[1])
            pm.container_port = to_int(parts[2])
        return pm

    def __str__(self) -> str:
        proto = "" if self.protocol in ("", "tcp") else f"/{self.protocol}"
        if self.host_port == self.container_port:
            return f"{self.host_port}{proto}"
        return f"{self.host_port}→{self.container_port}{proto}"


@dataclass
class VolumeMount:
    source: str
    target: str = ""


@dataclass
class HealthCheck:
    port: int = 0
    path: str = ""
    expected_status: int = 0
    timeout: int = 0


@dataclass
class Service:
    """A container, database, VM, LXC, daemon or app on a server."""

    name: str
    service_type: ServiceType = ServiceType.CONTAINER
    image: str = ""
    ports: List[PortMapping] = field(default_factory=list)
    networks: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)  # sibling service names
    volumes: List[VolumeMount] = field(default_factory=list)
    health_check: Optional[HealthCheck] = None
    compose_file: str = ""
    category: str = ""  # presentation only: media, database, ...
    ingress_host: str = ""  # public hostname routed to the service, if any


@dataclass
class Server:
    """A physical or virtual host, keyed by lowercase hostname."""

    hostname: str
    server_type: ServerType = ServerType.LAB
    label: str = ""
    public_ip: str = ""
    tailscale_ip: str = ""
    os: str = ""
    online: bool = True
    ansible_groups: List[str] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)

    def __post_init__(self):
        self.hostname = self.hostname.lower()
        if not self.label:
            self.label = self.hostname

    def add_service(self, service: Service) -> None:
        self.services.append(service)

    def enrich(
        self,
        tailscale_ip: str = "",
        os: str = "",
        online: Optional[bool] = None,
    ) -> None:
        """Update the fields an overlay source is authoritative for.

        Empty values leave the current field alone. Classification and
        public IP are never touched.
        """
        if tailscale_ip:
            self.tailscale_ip = tailscale_ip
        if os:
            self.os = os
        if online is not None:
            self.online = online


@dataclass
class ServerGroup:
    """Named bucket of hostnames. A host may sit in several groups."""

    name: str
    label: str = ""
    servers: List[str] = field(default_factory=list)


@dataclass
class Device:
    """A Tailscale peer that is not a server (phone, laptop, IoT)."""

    hostname: str
    os: str = ""
    tailscale_ip: str = ""
    online: bool = False
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.hostname = self.hostname.lower()


@dataclass
class Network:
    """A container network and the services attached to it."""

    name: str
    driver: str = ""
    services: List[str] = field(default_factory=list)


@dataclass
class Infrastructure:
    """Top-level aggregate of everything discovered in one run."""

    servers: Dict[str, Server] = field(default_factory=dict)
    server_groups: Dict[str, ServerGroup] = field(default_factory=dict)
    devices: Dict[str, Device] = field(default_factory=dict)
    networks: Dict[str, Network] = field(default_factory=dict)
    tailnet_name: str = ""

    def get_server(self, hostname: str) -> Optional[Server]:
        return self.servers.get(hostname.lower())

    def add_server(self, server: Server) -> Server:
        self.servers[server.hostname] = server
        return server

    def get_or_create_server(
        self,
        hostname: str,
        server_type: ServerType,
        label: str = "",
    ) -> Server:
        """Return the server for ``hostname``, creating it if absent.

        An existing server is returned untouched, whatever ``server_type``
        says.
        """
        existing = self.get_server(hostname)
        if existing is not None:
            return existing
        return self.add_server(Server(hostname=hostname, server_type=server_type, label=label))

    def add_network_member(self, network: str, service: str) -> None:
        net = self.networks.setdefault(network, Network(name=network))
        if service not in net.services:
            net.services.append(service)

    def sorted_servers(self, server_type: Optional[ServerType] = None) -> List[Server]:
        servers = [
            s for s in self.servers.values()
            if server_type is None or s.server_type == server_type
        ]
        return sorted(servers, key=lambda s: s.hostname)

    def sorted_devices(self) -> List[Device]:
        return sorted(self.devices.values(), key=lambda d: d.hostname)

    def service_count(self) -> int:
        return sum(len(s.services) for s in self.servers.values())
