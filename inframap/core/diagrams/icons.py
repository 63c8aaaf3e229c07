"""Icon URL lookup for services and operating systems.

Tables are scanned in insertion order, so specific keys sit before the
shorter keys they contain (``nginx-proxy-manager`` before ``nginx``) and
very short keys (``go``, ``node``) come last.
"""

from typing import Dict

TERRASTRUCT = "https://icons.terrastruct.com"
SELFHST = "https://cdn.jsdelivr.net/gh/selfhst/icons/svg"


def _ts(name: str) -> str:
    return f"{TERRASTRUCT}/dev/{name}.svg"


def _sh(name: str) -> str:
    return f"{SELFHST}/{name}.svg"


SERVICE_ICONS: Dict[str, str] = {
    # Databases
    "postgresql": _ts("postgresql"),
    "postgres": _ts("postgresql"),
    "mysql": _ts("mysql"),
    "mariadb": _sh("mariadb"),
    "redis": _ts("redis"),
    "mongodb": _sh("mongodb"),
    "mongo": _sh("mongodb"),
    "couchdb": _sh("couchdb"),
    # Web / proxy
    "nginx-proxy-manager": _sh("nginx-proxy-manager"),
    "nginx": _ts("nginx"),
    "traefik": _sh("traefik"),
    "caddy": _sh("caddy"),
    "cloudflare": _sh("cloudflare"),
    # Monitoring
    "netdata": _sh("netdata"),
    "grafana": _sh("grafana"),
    "prometheus": _sh("prometheus"),
    "uptime-kuma": _sh("uptime-kuma"),
    # Containers and infrastructure
    "portainer": _sh("portainer"),
    "docker": _ts("docker"),
    "tailscale": _sh("tailscale"),
    "cockpit": _sh("cockpit"),
    "kubernetes": _ts("kubernetes"),
    "proxmox": _sh("proxmox"),
    "terraform": _ts("terraform"),
    # Media
    "plex": _sh("plex"),
    "jellyseerr": _sh("jellyseerr"),
    "jellyfin": _sh("jellyfin"),
    "radarr": _sh("radarr"),
    "sonarr": _sh("sonarr"),
    "prowlarr": _sh("prowlarr"),
    "bazarr": _sh("bazarr"),
    "overseerr": _sh("overseerr"),
    "tautulli": _sh("tautulli"),
    # Downloads
    "transmission": _sh("transmission"),
    "qbittorrent": _sh("qbittorrent"),
    "sabnzbd": _sh("sabnzbd"),
    "gluetun": _sh("gluetun"),
    # Tools
    "vaultwarden": _sh("vaultwarden"),
    "bitwarden": _sh("bitwarden"),
    "homepage": _sh("homepage"),
    "homarr": _sh("homarr"),
    "home-assistant": _sh("home-assistant"),
    "homeassistant": _sh("home-assistant"),
    "stirling-pdf": _sh("stirling-pdf"),
    "it-tools": _sh("it-tools"),
    # Self-hosted apps
    "n8n": _sh("n8n"),
    "gitea": _sh("gitea"),
    "vikunja": _sh("vikunja"),
    "ntfy": _sh("ntfy"),
    "semaphore": _sh("semaphore"),
    "kiwix": _sh("kiwix"),
    "audiobookshelf": _sh("audiobookshelf"),
    "recyclarr": _sh("recyclarr"),
    "super-productivity": _sh("super-productivity"),
    "obsidian": _sh("obsidian"),
    # Runtimes
    "nodejs": _ts("nodejs"),
    "python": _ts("python"),
    "k8s": _ts("kubernetes"),
    "npm": _sh("nginx-proxy-manager"),
    "node": _ts("nodejs"),
    "go": _sh("golang"),
}

OS_ICONS: Dict[str, str] = {
    "debian": _ts("debian"),
    "linux": _ts("linux"),
    "macos": _ts("apple"),
    "ios": _ts("apple"),
    "android": _ts("android"),
    "windows": _ts("windows"),
}


def lookup_icon(name: str, image: str = "") -> str:
    """Icon URL for a service, or ``""``.

    Tries an exact name match, then a key contained in the image, then a
    key contained in the name.
    """
    name = name.lower()
    if name in SERVICE_ICONS:
        return SERVICE_ICONS[name]

    image = image.lower()
    if image:
        for key, url in SERVICE_ICONS.items():
            if key in image:
                return url

    for key, url in SERVICE_ICONS.items():
        if key in name:
            return url
    return ""


def lookup_os_icon(os_name: str) -> str:
    os_name = os_name.lower()
    if not os_name:
        return ""
    for key, url in OS_ICONS.items():
        if key in os_name:
            return url
    return ""
