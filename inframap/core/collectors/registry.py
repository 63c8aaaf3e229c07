"""Collector registry.

An explicit, ordered manifest of collector classes. Nothing registers
itself on import; ``default_registry()`` is the single place that lists
the built-in collectors.
"""

import logging
from typing import List, Type

from .base import BaseCollector

logger = logging.getLogger(__name__)


class CollectorRegistry:
    """Append-only ordered list of collector classes.

    Order matters: collectors run in registration order, and later ones
    enrich what earlier ones created.
    """

    def __init__(self) -> None:
        self._collectors: List[Type[BaseCollector]] = []

    def register(self, collector_cls: Type[BaseCollector]) -> None:
        """Append a collector class. Registering the same class twice is an error."""
        if collector_cls in self._collectors:
            raise ValueError(f"{collector_cls.__name__} is already registered")
        self._collectors.append(collector_cls)
        logger.debug("Registered collector: %s", collector_cls.__name__)

    def create_all(self) -> List[BaseCollector]:
        """Fresh collector instances, in registration order."""
        return [cls() for cls in self._collectors]

    def names(self) -> List[str]:
        return [c.metadata().name for c in self.create_all()]

    def __len__(self) -> int:
        return len(self._collectors)


def default_registry() -> CollectorRegistry:
    """Registry with every built-in collector.

    Tailscale runs last so it enriches servers the other sources created.
    """
    from .ansible import AnsibleCollector
    from .compose import ComposeCollector
    from .kubernetes import KubernetesCollector
    from .portainer import PortainerCollector
    from .proxmox import ProxmoxCollector
    from .systemd import SystemdCollector
    from .tailscale import TailscaleCollector

    registry = CollectorRegistry()
    for collector_cls in (
        AnsibleCollector,
        ComposeCollector,
        KubernetesCollector,
        PortainerCollector,
        ProxmoxCollector,
        SystemdCollector,
        TailscaleCollector,
    ):
        registry.register(collector_cls)
    return registry
