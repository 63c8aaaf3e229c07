"""Shared helpers for identifiers, templates, paths and numeric coercion."""

from .text import expand_path, quote, sanitize_id, strip_template_expressions, to_int, to_str

__all__ = [
    "expand_path",
    "quote",
    "sanitize_id",
    "strip_template_expressions",
    "to_int",
    "to_str",
]
