"""Tests for the infrastructure model and service categorization."""

import pytest

from inframap.core.model import (
    Device,
    Infrastructure,
    PortMapping,
    Server,
    ServerType,
    Service,
    ServiceType,
    categorize_service,
    detect_service_type,
)


class TestPortMapping:

    def test_single_port(self):
        pm = PortMapping.parse("8080")
        assert (pm.host_port, pm.container_port, pm.protocol) == (8080, 8080, "tcp")

    def test_host_and_container(self):
        pm = PortMapping.parse("8080:80")
        assert (pm.host_port, pm.container_port) == (8080, 80)

    def test_host_ip(self):
        pm = PortMapping.parse("127.0.0.1:8443:443")
        assert pm.host_ip == "127.0.0.1"
        assert (pm.host_port, pm.container_port) == (8443, 443)

    def test_protocol_suffix(self):
        pm = PortMapping.parse("53:53/udp")
        assert pm.protocol == "udp"
        assert pm.host_port == 53

    def test_unparseable_segment_is_zero(self):
        pm = PortMapping.parse("PLACEHOLDER:80")
        assert pm.host_port == 0
        assert pm.container_port == 80

    def test_numeric_segments_share_config_coercion(self):
        pm = PortMapping.parse(" 8080.0:80")
        assert (pm.host_port, pm.container_port) == (8080, 80)

    @pytest.mark.parametrize("pm, text", [
        (PortMapping(8080, 8080), "8080"),
        (PortMapping(8080, 80), "8080→80"),
        (PortMapping(53, 53, "udp"), "53/udp"),
        (PortMapping(5353, 53, "udp"), "5353→53/udp"),
    ])
    def test_str(self, pm, text):
        assert str(pm) == text

    def test_arrow_form_parses_back(self):
        original = PortMapping(5353, 53, "udp")
        parsed = PortMapping.parse(str(original))
        assert (parsed.host_port, parsed.container_port, parsed.protocol) == (5353, 53, "udp")


class TestServer:

    def test_hostname_lowercased_and_label_defaulted(self):
        server = Server(hostname="GW")
        assert server.hostname == "gw"
        assert server.label == "gw"

    def test_enrich_sets_only_given_fields(self):
        server = Server(hostname="gw", server_type=ServerType.PRODUCTION, public_ip="203.0.113.10", os="debian")
        server.enrich(tailscale_ip="100.64.0.2", online=False)

        assert server.tailscale_ip == "100.64.0.2"
        assert server.online is False
        assert server.os == "debian"
        assert server.server_type == ServerType.PRODUCTION
        assert server.public_ip == "203.0.113.10"

    def test_device_hostname_lowercased(self):
        assert Device(hostname="Pixel-8").hostname == "pixel-8"


class TestInfrastructure:

    def test_get_or_create_keeps_existing_server(self):
        infra = Infrastructure()
        first = infra.get_or_create_server("GW", ServerType.PRODUCTION)
        second = infra.get_or_create_server("gw", ServerType.LOCAL)

        assert first is second
        assert second.server_type == ServerType.PRODUCTION
        assert list(infra.servers) == ["gw"]

    def test_get_server_is_case_insensitive(self):
        infra = Infrastructure()
        infra.get_or_create_server("lab1", ServerType.LAB)
        assert infra.get_server("LAB1") is not None

    def test_sorted_servers_filters_by_type(self):
        infra = Infrastructure()
        for name, st in [("zeta", ServerType.LAB), ("alpha", ServerType.LAB), ("gw", ServerType.PRODUCTION)]:
            infra.get_or_create_server(name, st)

        assert [s.hostname for s in infra.sorted_servers()] == ["alpha", "gw", "zeta"]
        assert [s.hostname for s in infra.sorted_servers(ServerType.LAB)] == ["alpha", "zeta"]

    def test_service_count(self):
        infra = Infrastructure()
        infra.get_or_create_server("a", ServerType.LAB).add_service(Service(name="x"))
        infra.get_or_create_server("b", ServerType.LAB).add_service(Service(name="y"))
        assert infra.service_count() == 2

    def test_network_members_are_unique(self):
        infra = Infrastructure()
        infra.add_network_member("frontend", "web")
        infra.add_network_member("frontend", "web")
        infra.add_network_member("frontend", "db")
        assert infra.networks["frontend"].services == ["web", "db"]


class TestCategorizeService:

    def test_exact_name_match(self):
        assert categorize_service("jellyfin") == "media"

    def test_image_substring(self):
        assert categorize_service("db", "postgres:15") == "database"

    def test_specific_key_wins_over_contained_key(self):
        assert categorize_service("proxy", "jc21/nginx-proxy-manager:latest") == "infrastructure"
        assert categorize_service("npm-app", "lscr.io/nginx") == "infrastructure"

    def test_unmatched_is_empty(self):
        assert categorize_service("worker", "python:3.12") == ""

    def test_is_deterministic(self):
        results = {categorize_service("stack", "grafana/grafana-postgres") for _ in range(20)}
        assert len(results) == 1


class TestDetectServiceType:

    @pytest.mark.parametrize("image, name", [
        ("postgres:15", "db"),
        ("", "mariadb"),
        ("bitnami/redis:7", "cache"),
    ])
    def test_database(self, image, name):
        assert detect_service_type(image, name) == ServiceType.DATABASE

    def test_container(self):
        assert detect_service_type("nginx:1.25", "web") == ServiceType.CONTAINER


class TestLazyExports:

    def test_core_attributes_resolve(self):
        import inframap.core as core
        from inframap.core.collectors import collect_infrastructure
        from inframap.core.diagrams import render_d2

        assert core.Infrastructure is Infrastructure
        assert core.collect_infrastructure is collect_infrastructure
        assert core.render_d2 is render_d2

    def test_unknown_attribute(self):
        import inframap.core as core
        with pytest.raises(AttributeError):
            core.does_not_exist
