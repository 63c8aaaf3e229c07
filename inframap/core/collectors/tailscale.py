"""Tailscale collector.

Overlays mesh state on servers found by earlier collectors. Peers that
match no known server become devices, or lab servers when tagged as one.
"""

import logging
import os
from typing import Any, Dict, List

from pydantic import Field

from ..model import Device, Infrastructure, Server, ServerType
from ..utils import expand_path, to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import SourceError, ValidationProblem

logger = logging.getLogger(__name__)

SERVER_TAG_MARKER = "server"


class TailscaleConfig(SourceConfig):
    """``sources.tailscale`` section."""
    enabled: bool = Field(False, description="Read tailscale status")
    json_file: str = Field("", description="Static `tailscale status --json` output")
    include_offline: bool = Field(False, description="Keep offline peers")


class TailscaleCollector(BaseCollector):
    """Enriches servers with Tailscale IPs and collects other devices."""

    config_model = TailscaleConfig

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="tailscale",
            display_name="Tailscale",
            description="Reads tailscale status for IPs, online state and devices",
            config_key="tailscale",
            detect_hint="tailscale",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        return section.get("enabled") is True

    def validate(self) -> List[ValidationProblem]:
        if self.config.json_file:
            if not os.path.isfile(expand_path(self.config.json_file)):
                return [ValidationProblem(
                    field="sources.tailscale.json_file",
                    message=f"file not found: {self.config.json_file}",
                    suggestion="check the path or remove json_file to query tailscale directly",
                )]
            return []
        if not self._binary_available("tailscale"):
            return [ValidationProblem(
                field="sources.tailscale",
                message="tailscale CLI not found in PATH",
                suggestion="install tailscale or set json_file to a saved `tailscale status --json`",
            )]
        return []

    def gather(self, infra: Infrastructure) -> None:
        if self.config.json_file:
            status = self._load_json_file(self.config.json_file)
        else:
            status = self._run_json_command(["tailscale", "status", "--json"])

        if not isinstance(status, dict):
            raise SourceError("tailscale status is not a JSON object")

        tailnet = status.get("CurrentTailnet")
        if isinstance(tailnet, dict) and tailnet.get("Name"):
            infra.tailnet_name = to_str(tailnet["Name"])

        peers = []
        own = status.get("Self")
        if isinstance(own, dict):
            peers.append(own)
        others = status.get("Peer")
        if isinstance(others, dict):
            for _, peer in sorted(others.items()):
                if not isinstance(peer, dict):
                    continue
                if not peer.get("Online") and not self.config.include_offline:
                    continue
                peers.append(peer)

        enriched = devices = 0
        for peer in peers:
            if not to_str(peer.get("HostName")):
                logger.debug("Skipping tailscale peer without a hostname")
                continue
            if self._apply_peer(infra, peer):
                enriched += 1
            else:
                devices += 1

        self.summary = f"{enriched} servers, {devices} devices"

    def _apply_peer(self, infra: Infrastructure, peer: Dict[str, Any]) -> bool:
        """Fold one peer into the model.

        Returns:
            True if the peer is (or became) a server, False for a device.
        """
        hostname = to_str(peer.get("HostName")).lower()
        ips = peer.get("TailscaleIPs") or []
        tailscale_ip = to_str(ips[0]) if isinstance(ips, list) and ips else ""
        os_name = to_str(peer.get("OS"))
        online = bool(peer.get("Online"))
        tags = [to_str(t) for t in (peer.get("Tags") or []) if t]

        server = infra.get_server(hostname)
        if server is not None:
            server.enrich(tailscale_ip=tailscale_ip, os=os_name, online=online)
            return True

        if any(SERVER_TAG_MARKER in tag for tag in tags):
            server = infra.add_server(Server(hostname=hostname, server_type=ServerType.LAB))
            server.enrich(tailscale_ip=tailscale_ip, os=os_name, online=online)
            logger.debug("Tagged peer %s added as lab server", hostname)
            return True

        infra.devices[hostname] = Device(
            hostname=hostname,
            os=os_name,
            tailscale_ip=tailscale_ip,
            online=online,
            tags=tags,
        )
        return False
