"""Text utilities.

Identifier sanitization for D2, label quoting, template stripping and
the single numeric coercion used by every collector.
"""

import os
import re
from typing import Any

_NON_ID_CHARS = re.compile(r"[^a-z0-9_-]")
_TEMPLATE_EXPR = re.compile(r"\{\{[^}]*\}\}")

# Inert token substituted for {{ ... }} expressions before YAML parsing
TEMPLATE_PLACEHOLDER = "PLACEHOLDER"


def sanitize_id(name: str) -> str:
    """Convert a human-readable name into a D2 identifier.

    Lowercases, turns spaces, dots and slashes into hyphens and strips
    everything outside ``[a-z0-9_-]``. An empty result becomes ``unknown``.

    The mapping is not injective: ``"my.server"`` and ``"my-server"`` both
    yield ``"my-server"``.
    """
    s = (name or "").lower()
    for ch in (" ", ".", "/"):
        s = s.replace(ch, "-")
    s = _NON_ID_CHARS.sub("", s)
    return s or "unknown"


def quote(label: str) -> str:
    """Wrap a label in double quotes, escaping embedded quotes."""
    return '"' + label.replace('"', '\\"') + '"'


def strip_template_expressions(content: str) -> str:
    """Replace ``{{ var }}`` expressions with an inert placeholder token."""
    return _TEMPLATE_EXPR.sub(TEMPLATE_PLACEHOLDER, content)


def expand_path(path: str) -> str:
    """Expand a leading ``~`` and environment variables in a path."""
    if not path:
        return path
    return os.path.expandvars(os.path.expanduser(path))


def to_int(value: Any) -> int:
    """Coerce a decoded config value to int.

    YAML and JSON decoders hand back ints, floats or numeric strings for
    the same logical value. Anything that cannot be read as a number
    (including booleans) yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return 0
    return 0


def to_str(value: Any) -> str:
    """Coerce a decoded value to str; ``None`` becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)
