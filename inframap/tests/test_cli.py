"""Tests for the command-line interface, end to end over the static fixtures."""

from pathlib import Path
from unittest.mock import patch

import pytest

from inframap.__main__ import _split_pair, build_parser, main
from inframap.core.collectors import ExportError

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def _write_config(tmp_path: Path, body: str) -> str:
    path = tmp_path / "inframap.yml"
    path.write_text(body)
    return str(path)


def _lab_config(tmp_path: Path) -> str:
    return _write_config(tmp_path, (
        f"output: {tmp_path / 'lab.d2'}\n"
        "sources:\n"
        "  ansible:\n"
        f"    inventory: {FIXTURES / 'ansible' / 'hosts.yml'}\n"
        "  compose:\n"
        "    files:\n"
        f"      - path: {FIXTURES / 'compose' / 'docker-compose.yml'}\n"
        "        server: gw\n"
        "  tailscale:\n"
        "    enabled: true\n"
        f"    json_file: {FIXTURES / 'tailscale' / 'status.json'}\n"
    ))


class TestSplitPair:

    @pytest.mark.parametrize("value, expected", [
        ("docker-compose.yml:gw", ("docker-compose.yml", "gw")),
        ("C:/stacks/compose.yml:nas", ("C:/stacks/compose.yml", "nas")),
        ("docker-compose.yml", ("docker-compose.yml", "")),
    ])
    def test_split(self, value, expected):
        assert _split_pair(value) == expected


class TestParser:

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_rejects_unknown_detail(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["generate", "--detail", "verbose"])


# ── generate ─────────────────────────────────────────────────────────────


class TestGenerate:

    def test_end_to_end(self, tmp_path, capsys):
        assert main(["-c", _lab_config(tmp_path), "generate"]) == 0

        out = capsys.readouterr().out
        assert "Collecting infrastructure data..." in out
        assert "  Ansible Inventory: ok (3 servers)" in out
        assert "  Kubernetes: skipped" in out
        assert "Generated" in out and "(4 servers, 3 services)" in out

        d2 = (tmp_path / "lab.d2").read_text()
        assert 'tailnet: "Tailscale — example.ts.net" {' in d2
        assert 'gw: "gw — 203.0.113.10" {' in d2
        assert 'tooltip: "Tailscale: 100.64.0.2"' in d2
        assert "shape: cylinder" in d2
        assert "tailnet.production.gw.web -> tailnet.production.gw.db" in d2
        assert "cloudflare -> tailnet.production.gw.web" in d2

    def test_flags_override_config(self, tmp_path):
        output = tmp_path / "flags.d2"
        code = main([
            "-c", _write_config(tmp_path, "sources: {}\n"),
            "generate",
            "-o", str(output),
            "--ansible-inventory", str(FIXTURES / "ansible" / "hosts.yml"),
            "--compose-file", f"{FIXTURES / 'compose' / 'docker-compose.yml'}:lab1",
            "--tailscale-json", str(FIXTURES / "tailscale" / "status.json"),
            "--detail", "minimal",
            "--theme", "ocean",
        ])
        assert code == 0
        d2 = output.read_text()
        assert '    lab1: "lab1"\n' in d2
        assert "->" not in d2

    def test_collector_failure_aborts(self, tmp_path, capsys):
        config = _write_config(tmp_path, (
            f"output: {tmp_path / 'never.d2'}\n"
            "sources:\n"
            "  ansible:\n"
            f"    inventory: {tmp_path / 'missing.yml'}\n"
        ))
        assert main(["-c", config, "generate"]) == 1

        captured = capsys.readouterr()
        assert "  Ansible Inventory: failed" in captured.out
        assert "Generation aborted" in captured.err
        assert not (tmp_path / "never.d2").exists()

    def test_bad_config(self, tmp_path, capsys):
        config = _write_config(tmp_path, "direction: sideways\n")
        assert main(["-c", config, "generate"]) == 1
        assert "Failed to load config" in capsys.readouterr().err

    def test_render_failure_is_not_fatal(self, tmp_path, capsys):
        with patch("inframap.__main__.export_diagram", side_effect=ExportError("d2 not found in PATH")) as export:
            code = main(["-c", _lab_config(tmp_path), "generate", "--render", "--format", "png"])

        assert code == 0
        assert export.call_args.args == (str(tmp_path / "lab.d2"), "png")
        assert "Auto-render failed: d2 not found in PATH" in capsys.readouterr().err
        assert (tmp_path / "lab.d2").exists()

    def test_render_success(self, tmp_path, capsys):
        with patch("inframap.__main__.export_diagram", return_value="lab.svg"):
            assert main(["-c", _lab_config(tmp_path), "generate", "--render"]) == 0
        assert "Rendered lab.svg" in capsys.readouterr().out


# ── validate ─────────────────────────────────────────────────────────────


class TestValidate:

    def test_valid(self, tmp_path, capsys):
        assert main(["-c", _lab_config(tmp_path), "validate"]) == 0
        out = capsys.readouterr().out
        assert "  Ansible Inventory: configuration valid" in out
        assert "3 checks passed, 0 errors" in out

    def test_problems_exit_non_zero(self, tmp_path, capsys):
        config = _write_config(tmp_path, (
            "sources:\n"
            "  ansible:\n"
            f"    inventory: {tmp_path / 'missing.yml'}\n"
            "  proxmox:\n"
            "    api_url: https://pve.test:8006\n"
        ))
        with patch.dict("os.environ", {}, clear=True):
            assert main(["-c", config, "validate"]) == 1

        out = capsys.readouterr().out
        assert "sources.ansible.inventory: file not found" in out
        assert "sources.proxmox.token_id" in out
        assert "0 checks passed, 2 errors" in out
