"""Kubernetes access for Ingress, Service and Secret objects."""

import base64
import logging
from typing import Any

from kubernetes.client import ApiClient, ApiException, CoreV1Api, NetworkingV1Api

from models import BackendLookupError, ConfigurationError, ManagedIngress

logger = logging.getLogger(__name__)

API_KEY_FIELD = "api-key"


class KubeGateway:
    """All cluster reads and writes the reconcilers need.

    Ingress objects are returned as ``ManagedIngress`` views built from the
    camelCase serialization of the API objects. Finalizer writes carry the
    observed resourceVersion so a concurrent edit surfaces as a 409 instead
    of being overwritten.
    """

    def __init__(self, core_api: CoreV1Api, networking_api: NetworkingV1Api) -> None:
        self._core = core_api
        self._networking = networking_api
        self._serializer = ApiClient()

    def _to_ingress(self, obj: Any) -> ManagedIngress:
        return ManagedIngress.from_dict(self._serializer.sanitize_for_serialization(obj))

    def get_ingress(self, namespace: str, name: str) -> ManagedIngress | None:
        """Read an Ingress, or None if it no longer exists."""
        try:
            obj = self._networking.read_namespaced_ingress(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_ingress(obj)

    def get_service_ports(self, namespace: str, name: str) -> list[dict[str, Any]]:
        """Return the ports of a backend Service as {'name', 'port'} dicts."""
        try:
            service = self._core.read_namespaced_service(name, namespace)
        except ApiException as e:
            if e.status == 404:
                raise BackendLookupError(
                    f"backend service {namespace}/{name} not found"
                ) from e
            raise
        ports = (service.spec.ports if service.spec else None) or []
        return [{"name": p.name or "", "port": p.port} for p in ports]

    def read_api_key(self, name: str, namespace: str) -> str:
        """Read the Pangolin API key from its Secret."""
        try:
            secret = self._core.read_namespaced_secret(name, namespace)
        except ApiException as e:
            raise ConfigurationError(
                f"failed to get API key secret {namespace}/{name}: {e.reason}"
            ) from e
        encoded = (secret.data or {}).get(API_KEY_FIELD)
        if not encoded:
            raise ConfigurationError(
                f"{API_KEY_FIELD} not found in secret {namespace}/{name}"
            )
        return base64.b64decode(encoded).decode().strip()

    def patch_metadata(
        self,
        ingress: ManagedIngress,
        annotations: dict[str, str | None] | None = None,
        finalizers: list[str] | None = None,
    ) -> ManagedIngress:
        """Write annotations and/or finalizers in one merge patch.

        An annotation value of None removes the key. The observed
        resourceVersion is sent only with finalizer writes: an annotation
        write may record an id that already exists in Pangolin and must not
        be lost to an unrelated concurrent edit.
        """
        metadata: dict[str, Any] = {}
        if finalizers is not None and ingress.resource_version:
            metadata["resourceVersion"] = ingress.resource_version
        if annotations is not None:
            metadata["annotations"] = annotations
        if finalizers is not None:
            metadata["finalizers"] = finalizers

        obj = self._networking.patch_namespaced_ingress(
            ingress.name, ingress.namespace, {"metadata": metadata}
        )
        return self._to_ingress(obj)

    def patch_load_balancer(
        self, ingress: ManagedIngress, entries: list[dict[str, str]]
    ) -> None:
        """Replace status.loadBalancer.ingress."""
        self._networking.patch_namespaced_ingress_status(
            ingress.name,
            ingress.namespace,
            {"status": {"loadBalancer": {"ingress": entries}}},
        )
