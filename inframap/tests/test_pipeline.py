"""Tests for the registry, the collect/validate pipelines and the merge stage."""

from pathlib import Path
from typing import List

import pytest

from inframap.core.collectors import (
    BaseCollector,
    CollectorMetadata,
    CollectorRegistry,
    ConfigurationError,
    PipelineError,
    SourceConfig,
    SourceError,
    ValidationFailed,
    ValidationProblem,
    collect_infrastructure,
    default_registry,
    merge,
    validate_sources,
)
from inframap.core.model import Infrastructure, Service, ServerType

FIXTURES = Path(__file__).parent / "fixtures"


class _HostConfig(SourceConfig):
    host: str = ""
    fail: bool = False


def _collector(key: str, server_type: ServerType = ServerType.LAB):
    """Build a collector class that adds one server from ``sources.<key>.host``."""

    class _Collector(BaseCollector):
        config_model = _HostConfig

        def metadata(self) -> CollectorMetadata:
            return CollectorMetadata(
                name=key,
                display_name=key.title(),
                description=f"{key} test collector",
                config_key=key,
            )

        def is_enabled(self, section) -> bool:
            return bool(section.get("host"))

        def validate(self) -> List[ValidationProblem]:
            if self.config.fail:
                return [ValidationProblem(field=f"sources.{key}.fail", message="told to fail")]
            return []

        def gather(self, infra: Infrastructure) -> None:
            if self.config.fail:
                raise SourceError(f"{key} unreachable")
            infra.get_or_create_server(self.config.host, server_type)
            self.summary = "1 server"

    _Collector.__name__ = f"{key.title()}Collector"
    return _Collector


def _registry(*keys: str) -> CollectorRegistry:
    registry = CollectorRegistry()
    for key in keys:
        registry.register(_collector(key))
    return registry


# ── Registry ─────────────────────────────────────────────────────────────


class TestRegistry:

    def test_default_order(self):
        assert default_registry().names() == [
            "ansible", "compose", "kubernetes", "portainer", "proxmox", "systemd", "tailscale",
        ]

    def test_duplicate_registration(self):
        registry = CollectorRegistry()
        cls = _collector("one")
        registry.register(cls)
        with pytest.raises(ValueError, match="already registered"):
            registry.register(cls)
        assert len(registry) == 1

    def test_create_all_returns_fresh_instances(self):
        registry = _registry("one")
        assert registry.create_all()[0] is not registry.create_all()[0]


# ── Collect ──────────────────────────────────────────────────────────────


class TestCollect:

    def test_runs_enabled_and_records_skipped(self):
        infra, results = collect_infrastructure(
            {"one": {"host": "a"}, "three": {"host": "c"}},
            _registry("one", "two", "three"),
        )
        assert sorted(infra.servers) == ["a", "c"]
        assert [r.status_line() for r in results] == [
            "  One: ok (1 server)",
            "  Two: skipped",
            "  Three: ok (1 server)",
        ]

    def test_merge_runs_after_collection(self):
        infra, _ = collect_infrastructure({"one": {"host": "a"}}, _registry("one"))
        assert infra.server_groups["lab"].servers == ["a"]

    def test_first_failure_aborts(self):
        with pytest.raises(PipelineError) as excinfo:
            collect_infrastructure(
                {"one": {"host": "a"}, "two": {"host": "b", "fail": True}, "three": {"host": "c"}},
                _registry("one", "two", "three"),
            )

        err = excinfo.value
        assert err.error.collector == "Two"
        assert isinstance(err.error.cause, SourceError)
        assert isinstance(err.__cause__, SourceError)
        assert [r.name for r in err.results] == ["One", "Two"]
        assert err.results[0].ok
        assert err.results[1].status_line() == "  Two: failed (two unreachable)"

    def test_configuration_error_aborts(self):
        with pytest.raises(PipelineError) as excinfo:
            collect_infrastructure({"one": {"host": "a", "fail": "sometimes"}}, _registry("one"))
        assert isinstance(excinfo.value.error.cause, ConfigurationError)

    def test_empty_sources(self):
        infra, results = collect_infrastructure(None, _registry("one"))
        assert infra.servers == {}
        assert results[0].skipped

    def test_static_sources_end_to_end(self):
        sources = {
            "ansible": {"inventory": str(FIXTURES / "ansible" / "hosts.yml")},
            "tailscale": {"enabled": True, "json_file": str(FIXTURES / "tailscale" / "status.json")},
        }
        infra, results = collect_infrastructure(sources)
        assert infra.servers["gw"].tailscale_ip == "100.64.0.2"
        assert [r.name for r in results if not r.skipped] == ["Ansible Inventory", "Tailscale"]


# ── Validate ─────────────────────────────────────────────────────────────


class TestValidate:

    def test_collects_every_problem(self):
        report = validate_sources(
            {"one": {"host": "a", "fail": True}, "two": {"host": "b"}, "three": {"host": "c", "fail": True}},
            _registry("one", "two", "three", "four"),
        )
        assert [p.field for p in report.problems] == ["sources.one.fail", "sources.three.fail"]
        assert report.passed == ["Two"]
        assert report.skipped == ["Four"]
        assert not report.ok

    def test_raise_for_problems(self):
        report = validate_sources({"one": {"host": "a", "fail": True}}, _registry("one"))
        with pytest.raises(ValidationFailed) as excinfo:
            report.raise_for_problems()
        assert len(excinfo.value.problems) == 1

    def test_clean_report(self):
        report = validate_sources({"one": {"host": "a"}}, _registry("one"))
        assert report.ok
        report.raise_for_problems()

    def test_configuration_error_is_a_problem(self):
        report = validate_sources({"one": {"host": "a", "fail": "sometimes"}}, _registry("one"))
        assert [p.field for p in report.problems] == ["sources.one"]


# ── Merge ────────────────────────────────────────────────────────────────


class TestMerge:

    def test_fills_missing_categories_only(self):
        infra = Infrastructure()
        server = infra.get_or_create_server("gw", ServerType.PRODUCTION)
        server.add_service(Service(name="jellyfin"))
        server.add_service(Service(name="plex", category="custom"))
        merge(infra)
        assert [s.category for s in server.services] == ["media", "custom"]

    def test_type_groups(self):
        infra = Infrastructure()
        for name, st in [("zeta", ServerType.LAB), ("alpha", ServerType.LAB), ("pve", ServerType.HYPERVISOR)]:
            infra.get_or_create_server(name, st)
        merge(infra)

        assert set(infra.server_groups) == {"lab", "hypervisor"}
        assert infra.server_groups["lab"].label == "Lab Servers"
        assert infra.server_groups["lab"].servers == ["alpha", "zeta"]
        assert infra.server_groups["hypervisor"].label == "Hypervisors"
