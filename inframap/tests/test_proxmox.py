"""Tests for the Proxmox VE collector."""

import logging
from pathlib import Path

import httpx
import pytest

from inframap.core.collectors.errors import SourceError
from inframap.core.collectors.proxmox import TOKEN_ENV, TOKEN_ID_ENV, ProxmoxCollector
from inframap.core.model import Infrastructure, Server, ServerType, ServiceType

FIXTURES = Path(__file__).parent / "fixtures" / "proxmox"


def _static_section() -> dict:
    return {
        "api_url": "https://pve.test:8006",
        "test_nodes": str(FIXTURES / "nodes.json"),
        "test_resources": str(FIXTURES / "resources.json"),
    }


def _run(section: dict, infra: Infrastructure = None, transport=None):
    infra = infra or Infrastructure()
    collector = ProxmoxCollector()
    collector.configure(section)
    collector.transport = transport
    collector.collect(infra)
    return infra, collector


def _api_handler(seen: list):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/nodes"):
            return httpx.Response(200, content=(FIXTURES / "nodes.json").read_bytes())
        return httpx.Response(200, content=(FIXTURES / "resources.json").read_bytes())
    return handler


class TestNodes:

    def test_nodes_become_hypervisors(self):
        infra, _ = _run(_static_section())
        assert sorted(infra.servers) == ["pve1", "pve2"]
        assert all(s.server_type == ServerType.HYPERVISOR for s in infra.servers.values())

    def test_online_status(self):
        infra, _ = _run(_static_section())
        assert infra.servers["pve1"].online is True
        assert infra.servers["pve2"].online is False

    def test_known_server_reclassified(self):
        infra = Infrastructure()
        infra.add_server(Server(hostname="pve1", server_type=ServerType.LAB, public_ip="192.0.2.5"))
        _run(_static_section(), infra)
        assert infra.servers["pve1"].server_type == ServerType.HYPERVISOR
        assert infra.servers["pve1"].public_ip == "192.0.2.5"

    def test_reclassification_is_logged(self, caplog):
        infra = Infrastructure()
        infra.add_server(Server(hostname="pve1", server_type=ServerType.LAB))
        with caplog.at_level(logging.INFO, logger="inframap.core.collectors.proxmox"):
            _run(_static_section(), infra)
        assert "Reclassifying pve1 from lab to hypervisor" in caplog.text


class TestGuests:

    def test_running_guests_on_known_nodes(self):
        infra, collector = _run(_static_section())
        services = {s.name: s for s in infra.servers["pve1"].services}
        assert list(services) == ["homeassistant", "pihole"]
        assert services["homeassistant"].service_type == ServiceType.VM
        assert services["pihole"].service_type == ServiceType.LXC
        assert services["pihole"].category == "virtualization"
        assert collector.summary == "2 nodes, 2 guests"

    def test_orphan_guest_dropped(self):
        infra, _ = _run(_static_section())
        assert "pve9" not in infra.servers
        assert infra.service_count() == 2


class TestApi:

    def test_token_header_and_parity(self):
        seen = []
        section = {"api_url": "https://pve.test:8006/", "token_id": "root@pam!inframap", "token": "s3cret"}
        infra, _ = _run(section, transport=httpx.MockTransport(_api_handler(seen)))

        assert [r.url.path for r in seen] == ["/api2/json/nodes", "/api2/json/cluster/resources"]
        assert seen[1].url.params["type"] == "vm"
        assert seen[0].headers["Authorization"] == "PVEAPIToken=root@pam!inframap=s3cret"
        static, _ = _run(_static_section())
        assert infra.servers == static.servers
        assert infra.servers["pve1"].services

    def test_missing_data_list(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"errors": "nope"}))
        with pytest.raises(SourceError, match="no data list"):
            _run({"api_url": "https://pve.test", "token_id": "a", "token": "b"}, transport=transport)


class TestConfig:

    def test_tokens_from_environment(self, monkeypatch):
        monkeypatch.setenv(TOKEN_ID_ENV, "root@pam!env")
        monkeypatch.setenv(TOKEN_ENV, "env-secret")
        collector = ProxmoxCollector()
        collector.configure({"api_url": "https://pve.test"})
        assert (collector.config.token_id, collector.config.token) == ("root@pam!env", "env-secret")
        assert collector.validate() == []

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv(TOKEN_ID_ENV, raising=False)
        monkeypatch.delenv(TOKEN_ENV, raising=False)
        collector = ProxmoxCollector()
        collector.configure({"api_url": "https://pve.test", "token_id": "root@pam!x"})
        assert [p.field for p in collector.validate()] == ["sources.proxmox.token_id"]

    def test_static_files_need_no_token(self, monkeypatch):
        monkeypatch.delenv(TOKEN_ID_ENV, raising=False)
        monkeypatch.delenv(TOKEN_ENV, raising=False)
        collector = ProxmoxCollector()
        collector.configure(_static_section())
        assert collector.validate() == []
