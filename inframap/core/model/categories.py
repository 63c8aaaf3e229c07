"""Service categorization.

Curated keyword tables that map service names and images to a
presentation category and to the database service type. Dict order is
the match order: more specific keys come before keys they contain.
"""

from typing import Dict, List

from .models import ServiceType

# Substrings that identify a database image or unit
DATABASE_KEYWORDS: List[str] = [
    "postgres",
    "mysql",
    "mariadb",
    "mongo",
    "redis",
    "memcached",
    "influxdb",
    "sqlite",
]

CATEGORY_PATTERNS: Dict[str, str] = {
    # Media
    "plex": "media",
    "jellyfin": "media",
    "jellyseerr": "media",
    "radarr": "media",
    "sonarr": "media",
    "prowlarr": "media",
    "bazarr": "media",
    "overseerr": "media",
    "tautulli": "media",
    "emby": "media",
    "kodi": "media",
    # Downloads
    "transmission": "downloads",
    "qbittorrent": "downloads",
    "sabnzbd": "downloads",
    "gluetun": "downloads",
    "nzbget": "downloads",
    "deluge": "downloads",
    "aria2": "downloads",
    # Databases
    **{kw: "database" for kw in DATABASE_KEYWORDS},
    # Infrastructure
    "nginx-proxy-manager": "infrastructure",
    "traefik": "infrastructure",
    "nginx": "infrastructure",
    "caddy": "infrastructure",
    "portainer": "infrastructure",
    "watchtower": "infrastructure",
    "docker": "infrastructure",
    # Monitoring
    "uptime-kuma": "monitoring",
    "netdata": "monitoring",
    "grafana": "monitoring",
    "prometheus": "monitoring",
    "cockpit": "monitoring",
    # Tools
    "stirling-pdf": "tools",
    "it-tools": "tools",
    "homepage": "tools",
    "homarr": "tools",
    "dashy": "tools",
    # Productivity
    "super-productivity": "productivity",
    "vikunja": "productivity",
    "n8n": "productivity",
    # Dev
    "gitea": "dev",
    "gitlab": "dev",
    "forgejo": "dev",
    "semaphore": "dev",
    # Home
    "home-assistant": "home",
    "homeassistant": "home",
    # Security
    "vaultwarden": "security",
    "bitwarden": "security",
    "authelia": "security",
    # Communication
    "ntfy": "communication",
}


def categorize_service(name: str, image: str = "") -> str:
    """Return the category for a service, or ``""`` when nothing matches.

    An exact name match wins; otherwise the first key (in table order)
    found inside ``"<name> <image>"``.
    """
    exact = CATEGORY_PATTERNS.get(name.lower())
    if exact:
        return exact

    haystack = f"{name} {image}".lower()
    for pattern, category in CATEGORY_PATTERNS.items():
        if pattern in haystack:
            return category
    return ""


def detect_service_type(image: str, name: str) -> ServiceType:
    """Classify a workload as database or plain container by keyword."""
    haystack = f"{image} {name}".lower()
    for keyword in DATABASE_KEYWORDS:
        if keyword in haystack:
            return ServiceType.DATABASE
    return ServiceType.CONTAINER
