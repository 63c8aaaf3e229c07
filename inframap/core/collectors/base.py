"""Base interface for infrastructure collectors.

Defines the Strategy base class every data source implements. Shared
plumbing (config decoding, the run-once guard, JSON subprocess and HTTP
calls) lives here; source-specific gathering is delegated.
"""

import json
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ..model import Infrastructure
from ..utils import expand_path
from .errors import ConfigurationError, SourceError, ValidationProblem

logger = logging.getLogger(__name__)

# Upper bound for any single subprocess or HTTP call, in seconds
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class CollectorMetadata:
    """Static identity of a collector."""

    name: str  # internal key, e.g. "ansible"
    display_name: str  # e.g. "Ansible Inventory"
    description: str
    config_key: str  # key under ``sources``
    detect_hint: str = ""  # file or binary hinting the source exists locally


class SourceConfig(BaseModel):
    """Base schema for a collector's config section.

    Unknown keys are ignored so older config files keep working.
    """

    model_config = ConfigDict(extra="ignore")


class BaseCollector(ABC):
    """Abstract base for data-source collectors.

    Subclasses implement:
    - metadata(): static identity
    - is_enabled(): decide from the raw config section
    - validate(): pre-flight problems, no collection
    - gather(): read the source and mutate the Infrastructure

    ``config_model`` names the pydantic schema for the collector's section.
    """

    config_model: Type[SourceConfig] = SourceConfig

    # Injected by tests to replace the network layer
    transport: Optional[httpx.BaseTransport] = None

    def __init__(self) -> None:
        self.config = self.config_model()
        self.summary = ""
        self._collected = False

    @abstractmethod
    def metadata(self) -> CollectorMetadata:
        ...

    @abstractmethod
    def is_enabled(self, section: Dict[str, Any]) -> bool:
        """Return True if the (present) section asks for this collector."""
        ...

    @abstractmethod
    def validate(self) -> List[ValidationProblem]:
        ...

    @abstractmethod
    def gather(self, infra: Infrastructure) -> None:
        """Read the source and add or enrich entities in ``infra``."""
        ...

    def enabled(self, sources: Optional[Dict[str, Any]]) -> bool:
        """Check this collector's own section of the raw ``sources`` tree.

        A missing or non-mapping section means disabled.
        """
        section = (sources or {}).get(self.metadata().config_key)
        if not isinstance(section, dict):
            return False
        return self.is_enabled(section)

    def configure(self, section: Optional[Dict[str, Any]]) -> None:
        """Decode the collector's section through its schema.

        ``None`` or an empty mapping leaves the defaults in place. Secret
        fallbacks from the environment are applied either way.

        Raises:
            ConfigurationError: If the section is present but malformed.
        """
        if section:
            key = self.metadata().config_key
            if not isinstance(section, dict):
                raise ConfigurationError(
                    f"sources.{key} must be a mapping, got {type(section).__name__}"
                )
            try:
                self.config = self.config_model.model_validate(section)
            except ValidationError as e:
                raise ConfigurationError(f"invalid sources.{key} section: {e}") from e
        self.apply_env_fallbacks()

    def apply_env_fallbacks(self) -> None:
        """Fill unset secrets from environment variables. No-op by default."""

    def collect(self, infra: Infrastructure) -> None:
        """Run the collector once against the shared model."""
        if self._collected:
            raise RuntimeError(f"{self.metadata().display_name} collector already ran")
        self._collected = True
        self.gather(infra)

    # ── Shared source helpers ────────────────────────────────────

    def _load_json_file(self, path: str) -> Any:
        path = expand_path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise SourceError(f"reading {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SourceError(f"parsing {path}: {e}") from e

    def _run_json_command(self, cmd: List[str], timeout: int = DEFAULT_TIMEOUT) -> Any:
        """Run a CLI tool and parse JSON from its stdout.

        Raises:
            SourceError: On a missing binary, non-zero exit, timeout or
                invalid JSON.
        """
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise SourceError(f"{cmd[0]} not found in PATH") from e
        except subprocess.TimeoutExpired as e:
            raise SourceError(f"{cmd[0]} timed out after {timeout}s") from e

        if proc.returncode != 0:
            raise SourceError(
                f"{' '.join(cmd)} exited with {proc.returncode}: {proc.stderr.strip()[:200]}"
            )

        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise SourceError(f"parsing {cmd[0]} output: {e}") from e

    def _http_get_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        verify: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Any:
        """GET a JSON document.

        Raises:
            SourceError: On transport failure, non-200 status or invalid JSON.
        """
        logger.debug("GET %s", url)
        try:
            with httpx.Client(timeout=timeout, verify=verify, transport=self.transport) as client:
                response = client.get(url, headers=headers or {})
        except httpx.HTTPError as e:
            raise SourceError(f"GET {url} failed: {e}") from e

        if response.status_code != 200:
            raise SourceError(f"GET {url} returned {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise SourceError(f"GET {url} returned invalid JSON: {e}") from e

    @staticmethod
    def _binary_available(name: str) -> bool:
        return shutil.which(name) is not None

    @staticmethod
    def _env_fallback(value: str, env_var: str) -> str:
        return value or os.environ.get(env_var, "")
