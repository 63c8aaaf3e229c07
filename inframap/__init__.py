"""inframap - D2 infrastructure diagrams from Ansible, Compose, Tailscale and friends."""

__version__ = "0.3.0"
