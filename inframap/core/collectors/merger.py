"""Post-collection merge.

Runs once after every collector: fills in service categories and builds
one server group per server type.
"""

import logging

from ..model import Infrastructure, ServerGroup, ServerType, categorize_service

logger = logging.getLogger(__name__)

TYPE_GROUP_LABELS = {
    ServerType.PRODUCTION: "Production",
    ServerType.LAB: "Lab Servers",
    ServerType.LOCAL: "Local",
    ServerType.CLUSTER: "Kubernetes",
    ServerType.HYPERVISOR: "Hypervisors",
}


def merge(infra: Infrastructure) -> None:
    """Categorize services and group servers by type, in place."""
    categorized = 0
    for server in infra.servers.values():
        for service in server.services:
            if not service.category:
                service.category = categorize_service(service.name, service.image)
                if service.category:
                    categorized += 1

    for server_type, label in TYPE_GROUP_LABELS.items():
        members = [s.hostname for s in infra.sorted_servers(server_type)]
        if not members:
            continue
        infra.server_groups[server_type.value] = ServerGroup(
            name=server_type.value,
            label=label,
            servers=members,
        )

    logger.debug("Merge: %d services categorized", categorized)
