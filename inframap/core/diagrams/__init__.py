"""D2 diagram generation and export."""

from .d2 import DETAIL_LEVELS, D2Renderer, humanize_service_name, render_d2
from .exporter import export_diagram
from .icons import lookup_icon, lookup_os_icon
from .themes import THEMES, Theme, ThemeColor, get_theme, theme_names

__all__ = [
    "DETAIL_LEVELS",
    "D2Renderer",
    "THEMES",
    "Theme",
    "ThemeColor",
    "export_diagram",
    "get_theme",
    "humanize_service_name",
    "lookup_icon",
    "lookup_os_icon",
    "render_d2",
    "theme_names",
]
