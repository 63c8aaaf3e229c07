"""Tests for the d2 CLI export step."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from inframap.core.collectors import ExportError
from inframap.core.diagrams.exporter import EXPORT_TIMEOUT, export_diagram, output_path_for

WHICH = "inframap.core.diagrams.exporter.shutil.which"
RUN = "inframap.core.diagrams.exporter.subprocess.run"


def _completed(returncode: int = 0, stderr: str = "") -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.stderr = stderr
    return proc


class TestOutputPath:

    @pytest.mark.parametrize("d2_path, fmt, expected", [
        ("infra.d2", "svg", "infra.svg"),
        ("out/infra.d2", "png", "out/infra.png"),
        ("diagram", "pdf", "diagram.pdf"),
        ("diagram.txt", "svg", "diagram.txt.svg"),
    ])
    def test_paths(self, d2_path, fmt, expected):
        assert output_path_for(d2_path, fmt) == expected


class TestExport:

    def test_runs_d2(self):
        with patch(WHICH, return_value="/usr/local/bin/d2"), patch(RUN, return_value=_completed()) as run:
            assert export_diagram("infra.d2", "PNG") == "infra.png"

        assert run.call_args.args[0] == ["/usr/local/bin/d2", "infra.d2", "infra.png"]
        assert run.call_args.kwargs["timeout"] == EXPORT_TIMEOUT

    def test_unsupported_format(self):
        with pytest.raises(ExportError, match="unsupported format"):
            export_diagram("infra.d2", "gif")

    def test_d2_missing(self):
        with patch(WHICH, return_value=None):
            with pytest.raises(ExportError, match="d2 not found"):
                export_diagram("infra.d2")

    def test_non_zero_exit(self):
        with patch(WHICH, return_value="/usr/bin/d2"), patch(RUN, return_value=_completed(1, "syntax error")):
            with pytest.raises(ExportError, match="exit=1.*syntax error"):
                export_diagram("infra.d2")

    def test_timeout(self):
        err = subprocess.TimeoutExpired(cmd=["d2"], timeout=5)
        with patch(WHICH, return_value="/usr/bin/d2"), patch(RUN, side_effect=err):
            with pytest.raises(ExportError, match="timed out after 5s"):
                export_diagram("infra.d2", timeout=5)
