"""Kubernetes collector.

Reads pods, services and ingresses either through ``kubectl`` or from
saved ``kubectl get ... -o json`` files. Each namespace becomes one
``cluster`` server.
"""

import logging
import os
from typing import Any, Dict, List, Set

from pydantic import Field

from ..model import Infrastructure, PortMapping, ServerType, Service, detect_service_type
from ..utils import expand_path, to_int, to_str
from .base import BaseCollector, CollectorMetadata, SourceConfig
from .errors import ValidationProblem

logger = logging.getLogger(__name__)

CATEGORY = "kubernetes"


class KubernetesConfig(SourceConfig):
    """``sources.kubernetes`` section."""
    kubeconfig: str = Field("", description="Path passed as --kubeconfig")
    context: str = Field("", description="Context passed as --context")
    namespaces: List[str] = Field(default_factory=list, description="Only these namespaces")
    test_pods: str = Field("", description="Static `kubectl get pods -A -o json` output")
    test_services: str = Field("", description="Static `kubectl get svc -A -o json` output")
    test_ingresses: str = Field("", description="Static `kubectl get ingress -A -o json` output")


class KubernetesCollector(BaseCollector):
    """Maps running pods to services on per-namespace cluster servers."""

    config_model = KubernetesConfig

    def __init__(self) -> None:
        super().__init__()
        # service@namespace -> ingress host
        self.ingress_hosts: Dict[str, str] = {}

    def metadata(self) -> CollectorMetadata:
        return CollectorMetadata(
            name="kubernetes",
            display_name="Kubernetes",
            description="Collects pods, services, and ingresses from Kubernetes clusters",
            config_key="kubernetes",
            detect_hint="kubectl",
        )

    def is_enabled(self, section: Dict[str, Any]) -> bool:
        return True

    @property
    def uses_files(self) -> bool:
        return any((self.config.test_pods, self.config.test_services, self.config.test_ingresses))

    def validate(self) -> List[ValidationProblem]:
        problems = []
        if self.uses_files:
            for key in ("test_pods", "test_services", "test_ingresses"):
                path = getattr(self.config, key)
                if path and not os.path.isfile(expand_path(path)):
                    problems.append(ValidationProblem(
                        field=f"sources.kubernetes.{key}",
                        message=f"file not found: {path}",
                    ))
            return problems

        if not self._binary_available("kubectl"):
            problems.append(ValidationProblem(
                field="sources.kubernetes",
                message="kubectl not found in PATH",
                suggestion="install kubectl or configure test_pods with saved JSON",
            ))
        if self.config.kubeconfig and not os.path.isfile(expand_path(self.config.kubeconfig)):
            problems.append(ValidationProblem(
                field="sources.kubernetes.kubeconfig",
                message=f"file not found: {self.config.kubeconfig}",
            ))
        return problems

    def gather(self, infra: Infrastructure) -> None:
        pods = _items(self._fetch("pods", self.config.test_pods))
        svc_ports = _service_ports(_items(self._fetch("svc", self.config.test_services)))
        self.ingress_hosts = _ingress_hosts(_items(self._fetch("ingress", self.config.test_ingresses)))

        wanted = set(self.config.namespaces)
        seen: Dict[str, Set[str]] = {}
        count = 0

        for pod in pods:
            metadata = pod.get("metadata") or {}
            if to_str((pod.get("status") or {}).get("phase")) != "Running":
                continue
            namespace = to_str(metadata.get("namespace")) or "default"
            if wanted and namespace not in wanted:
                continue

            server = infra.get_or_create_server(
                f"k8s-{namespace}", ServerType.CLUSTER, label=f"k8s/{namespace}"
            )
            names = seen.setdefault(namespace, set())
            app_label = to_str((metadata.get("labels") or {}).get("app"))

            # Deployment replicas share the app label
            for container in (pod.get("spec") or {}).get("containers") or []:
                name = app_label or to_str(container.get("name"))
                if not name or name in names:
                    continue
                names.add(name)

                image = to_str(container.get("image"))
                key = f"{name}@{namespace}"
                server.add_service(Service(
                    name=name,
                    image=image,
                    service_type=detect_service_type(image, name),
                    ports=_container_ports(container, svc_ports.get(key, 0)),
                    category=CATEGORY,
                    ingress_host=self.ingress_hosts.get(key, ""),
                ))
                count += 1

        logger.info("Kubernetes: %d services, %d ingress hosts", count, len(self.ingress_hosts))
        self.summary = f"{count} services in {len(seen)} namespaces"

    def _kubectl(self, resource: str) -> List[str]:
        cmd = ["kubectl"]
        if self.config.kubeconfig:
            cmd += ["--kubeconfig", expand_path(self.config.kubeconfig)]
        if self.config.context:
            cmd += ["--context", self.config.context]
        return cmd + ["get", resource, "-A", "-o", "json"]

    def _fetch(self, resource: str, test_file: str) -> Any:
        if test_file:
            return self._load_json_file(test_file)
        if self.uses_files:
            # Static mode with this resource left out
            return {"items": []}
        return self._run_json_command(self._kubectl(resource))


def _items(document: Any) -> List[Dict[str, Any]]:
    if not isinstance(document, dict):
        return []
    items = document.get("items")
    return [i for i in items if isinstance(i, dict)] if isinstance(items, list) else []


def _service_ports(services: List[Dict[str, Any]]) -> Dict[str, int]:
    """``name@namespace`` -> exposed port, NodePort preferred."""
    ports = {}
    for svc in services:
        metadata = svc.get("metadata") or {}
        spec_ports = (svc.get("spec") or {}).get("ports") or []
        if not spec_ports:
            continue
        first = spec_ports[0]
        port = to_int(first.get("nodePort")) or to_int(first.get("port"))
        key = f"{to_str(metadata.get('name'))}@{to_str(metadata.get('namespace')) or 'default'}"
        ports[key] = port
    return ports


def _ingress_hosts(ingresses: List[Dict[str, Any]]) -> Dict[str, str]:
    """Backend ``service@namespace`` -> ingress host."""
    hosts = {}
    for ingress in ingresses:
        namespace = to_str((ingress.get("metadata") or {}).get("namespace")) or "default"
        for rule in (ingress.get("spec") or {}).get("rules") or []:
            http = rule.get("http")
            if not isinstance(http, dict):
                continue
            for path in http.get("paths") or []:
                backend = (path.get("backend") or {}).get("service") or {}
                hosts[f"{to_str(backend.get('name'))}@{namespace}"] = to_str(rule.get("host"))
    return hosts


def _container_ports(container: Dict[str, Any], service_port: int) -> List[PortMapping]:
    if service_port:
        return [PortMapping(host_port=service_port, container_port=service_port)]

    declared = container.get("ports") or []
    if not declared:
        return []
    first = declared[0]
    return [PortMapping(
        container_port=to_int(first.get("containerPort")),
        protocol=to_str(first.get("protocol")).lower() or "tcp",
    )]
