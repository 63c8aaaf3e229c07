"""Deterministic D2 generator for infrastructure diagrams.

Takes a merged Infrastructure and produces D2 text. Every map-derived
collection is sorted before emission, so equal models give byte-identical
output.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from ..model import Infrastructure, Server, ServerType, Service, ServiceType
from ..utils import quote, sanitize_id
from .icons import lookup_icon, lookup_os_icon
from .themes import Theme, get_theme

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)

MINIMAL = "minimal"
STANDARD = "standard"
DETAILED = "detailed"
DETAIL_LEVELS = (MINIMAL, STANDARD, DETAILED)

ROOT_ID = "tailnet"

# Classification groups, in rendering order
GROUP_ORDER = [
    ServerType.PRODUCTION,
    ServerType.LAB,
    ServerType.CLUSTER,
    ServerType.HYPERVISOR,
    ServerType.LOCAL,
]

# More rendered services than this switches the server to a grid
GRID_THRESHOLD = 8
GRID_COLUMNS = 4

SYSTEM_SUMMARY_ID = "system-services"
UNCATEGORIZED = "services"

GENERIC_NAMES = frozenset({"db", "database", "cache", "proxy", "web", "server", "app", "api"})

# image keyword -> display name, first hit wins
PRODUCT_NAMES = [
    ("postgres", "PostgreSQL"),
    ("mysql", "MySQL"),
    ("mariadb", "MariaDB"),
    ("redis", "Redis"),
    ("mongo", "MongoDB"),
    ("memcached", "Memcached"),
    ("influxdb", "InfluxDB"),
    ("nginx", "Nginx"),
    ("traefik", "Traefik"),
    ("caddy", "Caddy"),
]

DASHED = "{ style.stroke-dash: 3 }"


def humanize_service_name(name: str, image: str) -> str:
    """Product name for generic service names like ``db``, else ``name``."""
    if name.lower() not in GENERIC_NAMES or not image:
        return name
    image = image.lower()
    for keyword, display in PRODUCT_NAMES:
        if keyword in image:
            return display
    return name


@dataclass
class _Node:
    """A service as it will be emitted inside a server."""

    id: str
    label: str
    category: str = ""
    props: List[str] = field(default_factory=list)
    service: Optional[Service] = None  # None for the system summary


class D2Renderer:
    """Projects an Infrastructure into D2 under a detail-level contract.

    Args:
        detail_level: ``minimal``, ``standard`` or ``detailed``.
        theme: Theme name; unknown names use ``default``.
        direction: D2 layout direction.
        show_devices: Render non-server Tailscale peers.
        group_by: ``category`` groups local servers' services into
            sub-containers.
    """

    def __init__(
        self,
        detail_level: str = STANDARD,
        theme: str = "default",
        direction: str = "right",
        show_devices: bool = True,
        group_by: str = "category",
    ):
        detail_level = detail_level or STANDARD
        if detail_level not in DETAIL_LEVELS:
            raise ValueError(
                f"unknown detail level {detail_level!r}, expected one of {', '.join(DETAIL_LEVELS)}"
            )
        self.detail_level = detail_level
        self.theme: Theme = get_theme(theme)
        self.direction = direction or "right"
        self.show_devices = show_devices
        self.group_by = group_by

    @property
    def minimal(self) -> bool:
        return self.detail_level == MINIMAL

    @property
    def detailed(self) -> bool:
        return self.detail_level == DETAILED

    def render(self, infra: Infrastructure) -> str:
        """Render the whole diagram."""
        lines = [f"direction: {self.direction}", ""]

        root_label = f"Tailscale — {infra.tailnet_name}" if infra.tailnet_name else "Tailscale VPN"
        lines.append(f"{ROOT_ID}: {quote(root_label)} {{")

        # service name -> D2 path, per server, for the edge passes
        paths: Dict[str, Dict[str, str]] = {}

        for server_type in GROUP_ORDER:
            servers = infra.sorted_servers(server_type)
            if not servers:
                continue
            group_id = sanitize_id(server_type.value)
            group = infra.server_groups.get(server_type.value)
            label = group.label if group is not None else server_type.value
            color = self.theme.for_server_type(server_type)

            lines.append(f"  {group_id}: {quote(label)} {{")
            lines.append(f"    style.fill: {quote(color.fill)}")
            lines.append(f"    style.stroke: {quote(color.stroke)}")
            lines.append("")
            for server in servers:
                prefix = f"{ROOT_ID}.{group_id}.{sanitize_id(server.hostname)}"
                paths[server.hostname] = self._render_server(lines, server, prefix, "    ")
            lines.append("  }")
            lines.append("")

        if self.show_devices and infra.devices and not self.minimal:
            self._render_devices(lines, infra)

        lines.append("}")
        lines.append("")

        if not self.minimal:
            self._render_external(lines, infra, paths)
            self._render_dependencies(lines, infra, paths)

        logger.debug(
            "Rendered %d servers at %s detail (%d lines)",
            len(infra.servers),
            self.detail_level,
            len(lines),
        )
        return "\n".join(lines) + "\n"

    # ── Servers ──────────────────────────────────────────────────

    def _render_server(
        self, lines: List[str], server: Server, prefix: str, indent: str
    ) -> Dict[str, str]:
        """Emit one server; return ``{service name: path}`` for rendered services."""
        sid = sanitize_id(server.hostname)

        if self.minimal:
            lines.append(f"{indent}{sid}: {quote(server.label)}")
            return {}

        label = server.label
        if server.public_ip:
            label = f"{label} — {server.public_ip}"
        lines.append(f"{indent}{sid}: {quote(label)} {{")

        icon = lookup_os_icon(server.os)
        if icon:
            lines.append(f"{indent}  icon: {icon}")
        if server.tailscale_ip:
            lines.append(f"{indent}  tooltip: {quote('Tailscale: ' + server.tailscale_ip)}")

        nodes = self._service_nodes(server.services)
        if len(nodes) > GRID_THRESHOLD:
            lines.append(f"{indent}  grid-columns: {GRID_COLUMNS}")

        paths: Dict[str, str] = {}
        inner = indent + "  "
        categories = sorted({n.category or UNCATEGORIZED for n in nodes})
        if server.server_type == ServerType.LOCAL and self.group_by == "category" and len(categories) > 1:
            for category in categories:
                cid = sanitize_id(category)
                lines.append(f"{inner}{cid}: {quote(category[:1].upper() + category[1:])} {{")
                color = self.theme.for_element(category)
                lines.append(f"{inner}  style.fill: {quote(color.fill)}")
                lines.append(f"{inner}  style.stroke: {quote(color.stroke)}")
                members = [n for n in nodes if (n.category or UNCATEGORIZED) == category]
                for node in _sorted_nodes(members):
                    self._emit_node(lines, node, inner + "  ")
                    if node.service is not None:
                        paths.setdefault(node.service.name, f"{prefix}.{cid}.{node.id}")
                lines.append(f"{inner}}}")
        else:
            for node in _sorted_nodes(nodes):
                self._emit_node(lines, node, inner)
                if node.service is not None:
                    paths.setdefault(node.service.name, f"{prefix}.{node.id}")

        lines.append(f"{indent}}}")
        return paths

    def _service_nodes(self, services: List[Service]) -> List[_Node]:
        """Services to draw after detail-level filtering; works on a copy."""
        nodes = []
        system_count = 0
        for svc in services:
            if svc.service_type == ServiceType.SYSTEM and not self.detailed:
                system_count += 1
                continue
            nodes.append(_Node(
                id=sanitize_id(svc.name),
                label=self._service_label(svc),
                category=svc.category,
                props=self._service_props(svc),
                service=svc,
            ))

        if system_count:
            color = self.theme.for_element("system")
            nodes.append(_Node(
                id=SYSTEM_SUMMARY_ID,
                label=f"System ({system_count})",
                props=[f"style.fill: {quote(color.fill)}", f"style.stroke: {quote(color.stroke)}"],
            ))
        return nodes

    def _service_label(self, svc: Service) -> str:
        name = humanize_service_name(svc.name, svc.image)
        if self.detailed:
            parts = [name] + [f":{p.host_port}" for p in svc.ports if p.host_port > 0]
            if svc.ingress_host:
                parts.append(f"({svc.ingress_host})")
            return " ".join(parts)

        for port in svc.ports:
            if port.host_port > 0:
                return f"{name} :{port.host_port}"
        return name

    def _service_props(self, svc: Service) -> List[str]:
        props = []
        if svc.service_type == ServiceType.DATABASE:
            color = self.theme.for_element("database")
            props += ["shape: cylinder", f"style.fill: {quote(color.fill)}", f"style.stroke: {quote(color.stroke)}"]
        elif svc.service_type == ServiceType.VM:
            props.append("shape: rectangle")
        elif svc.service_type == ServiceType.LXC:
            props.append("shape: hexagon")
        elif svc.service_type == ServiceType.SYSTEM:
            color = self.theme.for_element("system")
            props += [f"style.fill: {quote(color.fill)}", f"style.stroke: {quote(color.stroke)}"]

        icon = lookup_icon(svc.name, svc.image)
        if icon:
            props.append(f"icon: {icon}")
        return props

    @staticmethod
    def _emit_node(lines: List[str], node: _Node, indent: str) -> None:
        if not node.props:
            lines.append(f"{indent}{node.id}: {quote(node.label)}")
            return
        lines.append(f"{indent}{node.id}: {quote(node.label)} {{")
        for prop in node.props:
            lines.append(f"{indent}  {prop}")
        lines.append(f"{indent}}}")

    # ── Devices ──────────────────────────────────────────────────

    def _render_devices(self, lines: List[str], infra: Infrastructure) -> None:
        color = self.theme.for_element("devices")
        lines.append(f"  devices: {quote('Other Devices')} {{")
        lines.append(f"    style.fill: {quote(color.fill)}")
        lines.append(f"    style.stroke: {quote(color.stroke)}")
        lines.append("")
        for device in infra.sorted_devices():
            label = device.hostname
            if device.os and self.detailed:
                label = f"{device.hostname} ({device.os})"
            did = sanitize_id(device.hostname)
            icon = lookup_os_icon(device.os)
            if icon:
                lines.append(f"    {did}: {quote(label)} {{")
                lines.append(f"      icon: {icon}")
                lines.append("    }")
            else:
                lines.append(f"    {did}: {quote(label)}")
        lines.append("  }")
        lines.append("")

    # ── Edges ────────────────────────────────────────────────────

    def _render_external(
        self, lines: List[str], infra: Infrastructure, paths: Dict[str, Dict[str, str]]
    ) -> None:
        """Synthetic internet -> cloudflare -> production chain."""
        production = infra.sorted_servers(ServerType.PRODUCTION)
        if not production:
            return

        cloud = self.theme.for_element("cloud")
        lines += [
            f"cloudflare: {quote('Cloudflare')} {{",
            "  shape: cloud",
            f"  style.fill: {quote(cloud.fill)}",
            f"  style.stroke: {quote(cloud.stroke)}",
            "}",
            f"internet: {quote('Internet')} {{",
            "  shape: cloud",
            "}",
            "",
            f"internet -> cloudflare {DASHED}",
        ]

        group_id = sanitize_id(ServerType.PRODUCTION.value)
        for server in production:
            target = f"{ROOT_ID}.{group_id}.{sanitize_id(server.hostname)}"
            server_paths = paths.get(server.hostname, {})
            for svc in server.services:
                if svc.service_type != ServiceType.SYSTEM and svc.name in server_paths:
                    target = server_paths[svc.name]
                    break
            lines.append(f"cloudflare -> {target}")
        lines.append("")

    def _render_dependencies(
        self, lines: List[str], infra: Infrastructure, paths: Dict[str, Dict[str, str]]
    ) -> None:
        """``depends_on`` edges between services drawn as individual nodes."""
        edges = set()
        for server in infra.servers.values():
            server_paths = paths.get(server.hostname, {})
            for svc in server.services:
                source = server_paths.get(svc.name)
                if source is None:
                    continue
                for dep in svc.depends_on:
                    target = server_paths.get(dep)
                    if target is None:
                        logger.debug("Dependency %s -> %s on %s not drawn", svc.name, dep, server.hostname)
                        continue
                    if self.detailed:
                        edges.add(f"{source} -> {target}: {quote('depends_on')} {DASHED}")
                    else:
                        edges.add(f"{source} -> {target} {DASHED}")
        lines.extend(sorted(edges))


def _sorted_nodes(nodes: List[_Node]) -> List[_Node]:
    return sorted(nodes, key=lambda n: (n.id, n.label))


def render_d2(infra: Infrastructure, config: "AppConfig") -> str:
    """Render ``infra`` with the display and render settings of ``config``."""
    renderer = D2Renderer(
        detail_level=config.render.detail_level,
        theme=config.theme,
        direction=config.direction,
        show_devices=config.display.show_devices,
        group_by=config.display.group_by,
    )
    return renderer.render(infra)
