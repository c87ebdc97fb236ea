"""Shared fakes for the Pangolin API and the Kubernetes gateway."""

import copy
from typing import Any

import pytest
from kubernetes.client import ApiException

from models import (
    BackendLookupError,
    CreateResourceRequest,
    Domain,
    ManagedIngress,
    NotFoundError,
    PangolinAPIError,
    Resource,
    Site,
    Target,
    TargetRequest,
    UpdateResourceRequest,
)


class FakePangolin:
    """In-memory stand-in for PangolinClient that records every call."""

    def __init__(self) -> None:
        self.resources: dict[int, dict[str, Any]] = {}
        self.targets: dict[int, tuple[str, Target]] = {}
        self.domains = [Domain(id="dom-1", base_domain="example.com")]
        self.site = Site(id=7, nice_id="home", proxy_ip="203.0.113.10")
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self._next_id = 100

    def _call(self, operation: str, arg: Any = None) -> None:
        self.calls.append((operation, arg))
        if operation in self.failures:
            raise self.failures[operation]

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def add_target(self, resource_id: str, site_id: int, ip: str, port: int) -> int:
        target_id = self._new_id()
        self.targets[target_id] = (
            resource_id,
            Target(id=target_id, site_id=site_id, ip=ip, port=port),
        )
        return target_id

    def targets_of(self, resource_id: str) -> list[Target]:
        return [t for rid, t in self.targets.values() if rid == resource_id]

    def create_resource(self, request: CreateResourceRequest) -> Resource:
        self._call("create_resource", request)
        resource_id = self._new_id()
        self.resources[resource_id] = request.to_dict()
        return Resource(id=resource_id, name=request.name, subdomain=request.subdomain)

    def get_resource(self, resource_id: str) -> Resource:
        self._call("get_resource", resource_id)
        if int(resource_id) not in self.resources:
            raise NotFoundError("resource not found", 404)
        return Resource(id=int(resource_id))

    def update_resource(
        self, resource_id: str, request: UpdateResourceRequest
    ) -> Resource:
        self._call("update_resource", (resource_id, request))
        if int(resource_id) not in self.resources:
            raise NotFoundError("resource not found", 404)
        self.resources[int(resource_id)].update(request.to_dict())
        return Resource(id=int(resource_id))

    def delete_resource(self, resource_id: str) -> None:
        self._call("delete_resource", resource_id)
        if self.resources.pop(int(resource_id), None) is None:
            raise NotFoundError("resource not found", 404)
        for target_id in [t for t, (rid, _) in self.targets.items() if rid == resource_id]:
            del self.targets[target_id]

    def list_targets(self, resource_id: str) -> list[Target]:
        self._call("list_targets", resource_id)
        return self.targets_of(resource_id)

    def create_target(self, resource_id: str, request: TargetRequest) -> Target:
        self._call("create_target", (resource_id, request))
        target_id = self._new_id()
        target = Target(
            id=target_id,
            site_id=request.site_id,
            ip=request.ip,
            port=request.port,
            path=request.path,
        )
        self.targets[target_id] = (resource_id, target)
        return target

    def update_target(self, target_id: str, request: TargetRequest) -> Target:
        self._call("update_target", (target_id, request))
        resource_id, _ = self.targets[int(target_id)]
        target = Target(
            id=int(target_id),
            site_id=request.site_id,
            ip=request.ip,
            port=request.port,
            path=request.path,
        )
        self.targets[int(target_id)] = (resource_id, target)
        return target

    def delete_target(self, target_id: str) -> None:
        self._call("delete_target", target_id)
        if self.targets.pop(int(target_id), None) is None:
            raise PangolinAPIError("target not found", 404)

    def list_domains(self) -> list[Domain]:
        self._call("list_domains")
        return list(self.domains)

    def get_site_by_nice_id(self, nice_id: str) -> Site:
        self._call("get_site_by_nice_id", nice_id)
        return self.site


class FakeGateway:
    """In-memory stand-in for KubeGateway holding Ingress bodies."""

    def __init__(self) -> None:
        self.ingresses: dict[str, dict[str, Any]] = {}
        self.services: dict[str, list[dict[str, Any]]] = {}
        self.metadata_patches: list[dict[str, Any]] = []
        self.status_patches: list[list[dict[str, str]]] = []
        self.fail_metadata_patch: Exception | None = None
        # Another writer bumps resourceVersion just before the next annotation write
        self.concurrent_edit_on_annotation_write = False

    def add_ingress(self, body: dict[str, Any]) -> str:
        meta = body["metadata"]
        meta.setdefault("resourceVersion", "1")
        key = f"{meta['namespace']}/{meta['name']}"
        self.ingresses[key] = body
        return key

    def add_service(self, namespace: str, name: str, ports: list[dict[str, Any]]) -> None:
        self.services[f"{namespace}/{name}"] = ports

    def body(self, key: str) -> dict[str, Any]:
        return self.ingresses[key]

    def get_ingress(self, namespace: str, name: str) -> ManagedIngress | None:
        body = self.ingresses.get(f"{namespace}/{name}")
        if body is None:
            return None
        return ManagedIngress.from_dict(copy.deepcopy(body))

    def get_service_ports(self, namespace: str, name: str) -> list[dict[str, Any]]:
        ports = self.services.get(f"{namespace}/{name}")
        if ports is None:
            raise BackendLookupError(f"backend service {namespace}/{name} not found")
        return ports

    def read_api_key(self, name: str, namespace: str) -> str:
        return "test-key"

    def patch_metadata(
        self,
        ingress: ManagedIngress,
        annotations: dict[str, str | None] | None = None,
        finalizers: list[str] | None = None,
    ) -> ManagedIngress:
        if self.fail_metadata_patch is not None:
            raise self.fail_metadata_patch
        meta = self.ingresses[ingress.key]["metadata"]
        if annotations is not None and self.concurrent_edit_on_annotation_write:
            self.concurrent_edit_on_annotation_write = False
            meta["resourceVersion"] = str(int(meta.get("resourceVersion", "0")) + 1)
        # Only finalizer writes carry the observed resourceVersion
        if (
            finalizers is not None
            and ingress.resource_version
            and ingress.resource_version != meta.get("resourceVersion")
        ):
            raise ApiException(status=409, reason="Conflict")
        self.metadata_patches.append(
            {"annotations": annotations, "finalizers": finalizers}
        )
        if annotations is not None:
            current = meta.setdefault("annotations", {})
            for key, value in annotations.items():
                if value is None:
                    current.pop(key, None)
                else:
                    current[key] = value
        if finalizers is not None:
            meta["finalizers"] = list(finalizers)
        meta["resourceVersion"] = str(int(meta.get("resourceVersion", "0")) + 1)
        return ManagedIngress.from_dict(copy.deepcopy(self.ingresses[ingress.key]))

    def patch_load_balancer(
        self, ingress: ManagedIngress, entries: list[dict[str, str]]
    ) -> None:
        self.status_patches.append(entries)
        body = self.ingresses[ingress.key]
        body.setdefault("status", {})["loadBalancer"] = {"ingress": entries}


def make_ingress(
    name: str = "web",
    namespace: str = "default",
    host: str = "app.example.com",
    service: str = "web-svc",
    port: int | str = 80,
    path: str = "/",
    path_type: str = "Prefix",
    ingress_class: str = "pangolin",
    annotations: dict[str, str] | None = None,
    finalizers: list[str] | None = None,
    rules: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build an Ingress body with a single host/path rule by default."""
    port_ref = {"number": port} if isinstance(port, int) else {"name": port}
    if rules is None:
        rules = [
            {
                "host": host,
                "http": {
                    "paths": [
                        {
                            "path": path,
                            "pathType": path_type,
                            "backend": {"service": {"name": service, "port": port_ref}},
                        }
                    ]
                },
            }
        ]
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "generation": 1,
            "annotations": dict(annotations or {}),
            "finalizers": list(finalizers or []),
        },
        "spec": {"ingressClassName": ingress_class, "rules": rules},
    }


@pytest.fixture
def pangolin() -> FakePangolin:
    return FakePangolin()


@pytest.fixture
def gateway() -> FakeGateway:
    gw = FakeGateway()
    gw.add_service("default", "web-svc", [{"name": "http", "port": 80}])
    return gw
