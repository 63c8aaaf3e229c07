"""D2 text -> SVG/PNG via the external ``d2`` executable.

The renderer only writes ``.d2`` text; turning it into an image is left
to the d2 CLI (https://d2lang.com/tour/install), run as a subprocess.
"""

import logging
import os
import shutil
import subprocess

from ..collectors.errors import ExportError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("svg", "png", "pdf")

# d2 lays out large diagrams slowly
EXPORT_TIMEOUT = 120


def output_path_for(d2_path: str, fmt: str) -> str:
    """``infra.d2`` -> ``infra.svg``; other names get the extension appended."""
    root, ext = os.path.splitext(d2_path)
    base = root if ext == ".d2" else d2_path
    return f"{base}.{fmt}"


def export_diagram(d2_path: str, fmt: str = "svg", timeout: int = EXPORT_TIMEOUT) -> str:
    """Render a ``.d2`` file with the d2 CLI.

    Args:
        d2_path: The D2 source written by the generator.
        fmt: Output format, one of ``svg``, ``png`` or ``pdf``.

    Returns:
        Path of the rendered file.

    Raises:
        ExportError: If d2 is not installed, times out or exits non-zero.
    """
    fmt = (fmt or "svg").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ExportError(f"unsupported format {fmt!r}, expected one of {', '.join(SUPPORTED_FORMATS)}")

    d2_bin = shutil.which("d2")
    if d2_bin is None:
        raise ExportError("d2 not found in PATH, install it from https://d2lang.com/tour/install")

    out_path = output_path_for(d2_path, fmt)
    cmd = [d2_bin, d2_path, out_path]
    logger.info("Rendering %s -> %s", d2_path, out_path)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ExportError(f"d2 timed out after {timeout}s") from e
    except OSError as e:
        raise ExportError(f"d2 execution failed: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()
        raise ExportError(
            f"d2 render failed (exit={result.returncode}): {stderr[:300] if stderr else '(empty)'}"
        )
    return out_path
