"""Infrastructure model shared by collectors, merger and renderer."""

from .categories import CATEGORY_PATTERNS, DATABASE_KEYWORDS, categorize_service, detect_service_type
from .models import (
    Device,
    HealthCheck,
    Infrastructure,
    Network,
    PortMapping,
    Server,
    ServerGroup,
    ServerType,
    Service,
    ServiceType,
    VolumeMount,
)

__all__ = [
    "CATEGORY_PATTERNS",
    "DATABASE_KEYWORDS",
    "Device",
    "HealthCheck",
    "Infrastructure",
    "Network",
    "PortMapping",
    "Server",
    "ServerGroup",
    "ServerType",
    "Service",
    "ServiceType",
    "VolumeMount",
    "categorize_service",
    "detect_service_type",
]
