"""inframap.yml loading.

The file is read with PyYAML and decoded into pydantic models. The
``sources`` tree is kept as a raw mapping: each collector decodes its own
section through its own schema.
"""

import logging
import os
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .collectors.errors import ConfigurationError
from .utils import expand_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "inframap.yml"
DEFAULT_OUTPUT = "infrastructure.d2"


class DisplayConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    show_devices: bool = Field(True, description="Render non-server Tailscale peers")
    show_volumes: bool = Field(False, description="Reserved; volumes are collected but not drawn")
    group_by: str = Field("category", description="'category' groups local services by category")


class RenderConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    detail_level: Literal["minimal", "standard", "detailed"] = Field(
        "standard", description="How much of the graph the diagram shows"
    )
    auto_render: bool = Field(False, description="Run d2 on the generated file")
    format: Literal["svg", "png", "pdf"] = Field("svg", description="Image format for auto_render")


class AppConfig(BaseModel):
    """Top-level inframap.yml schema."""

    model_config = ConfigDict(extra="ignore")

    output: str = Field(DEFAULT_OUTPUT, description="Path of the generated .d2 file")
    layout: str = Field("dagre", description="d2 layout engine")
    direction: Literal["right", "left", "up", "down"] = Field("right", description="Diagram direction")
    theme: str = Field("default", description="Colour theme name")
    sources: Dict[str, Any] = Field(default_factory=dict, description="Raw per-collector sections")
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)


def parse_config(data: Optional[Dict[str, Any]]) -> AppConfig:
    """Decode an already-loaded mapping.

    Raises:
        ConfigurationError: If the mapping does not match the schema.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config root must be a mapping, got {type(data).__name__}")
    # `sources:` with nothing under it decodes to None
    if data.get("sources") is None:
        data = {**data, "sources": {}}
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load inframap.yml.

    Args:
        path: Explicit config file. When omitted, ``inframap.yml`` in the
            working directory is used if present, else the defaults.

    Raises:
        ConfigurationError: If an explicit file is missing, or any file is
            unreadable or invalid.
    """
    if path is None:
        if not os.path.isfile(DEFAULT_CONFIG_FILE):
            logger.info("No %s found, using defaults", DEFAULT_CONFIG_FILE)
            return AppConfig()
        path = DEFAULT_CONFIG_FILE

    path = expand_path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"reading config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"parsing config {path}: {e}") from e

    logger.info("Loaded config from %s", path)
    return parse_config(data)
