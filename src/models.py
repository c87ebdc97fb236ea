"""Domain models for the Pangolin ingress operator.

This module defines typed data structures for the Pangolin API entities, the
requests sent to it, the Ingress view the reconcilers work on, and the
operator's exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from constants import ANNOTATION_INGRESS_CLASS, ANNOTATION_RESOURCE_ID, TARGET_METHOD


# =============================================================================
# Enums for constrained values
# =============================================================================


class PathMatchType(Enum):
    """Pangolin target path match type."""

    PREFIX = "prefix"
    EXACT = "exact"
    REGEX = "regex"

    @classmethod
    def from_path_type(cls, path_type: str | None) -> "PathMatchType":
        """Map a Kubernetes Ingress pathType to a Pangolin match type."""
        if path_type == "Exact":
            return cls.EXACT
        if path_type == "ImplementationSpecific":
            return cls.REGEX
        return cls.PREFIX


# =============================================================================
# Pangolin API entities
# =============================================================================


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Remove unset optional fields from a request body."""
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class Header:
    """A custom proxy or health-check header."""

    name: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Resource:
    """A Pangolin proxy resource."""

    id: int
    name: str = ""
    subdomain: str = ""
    full_domain: str = ""
    domain_id: str = ""
    http: bool = True
    protocol: str = ""
    enabled: bool = True
    sticky_session: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        """Create from Pangolin API payload."""
        return cls(
            id=int(data["resourceId"]),
            name=data.get("name") or "",
            subdomain=data.get("subdomain") or "",
            full_domain=data.get("fullDomain") or "",
            domain_id=data.get("domainId") or "",
            http=bool(data.get("http", True)),
            protocol=data.get("protocol") or "",
            enabled=bool(data.get("enabled", True)),
            sticky_session=bool(data.get("stickySession", False)),
        )


@dataclass(frozen=True)
class Target:
    """A backend target attached to a resource."""

    id: int
    site_id: int
    ip: str
    port: int
    method: str = ""
    enabled: bool = True
    path: str | None = None
    path_match_type: str | None = None
    health_status: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Target":
        """Create from Pangolin API payload."""
        return cls(
            id=int(data["targetId"]),
            site_id=int(data.get("siteId") or 0),
            ip=data.get("ip") or "",
            port=int(data.get("port") or 0),
            method=data.get("method") or "",
            enabled=bool(data.get("enabled", True)),
            path=data.get("path"),
            path_match_type=data.get("pathMatchType"),
            health_status=data.get("healthStatus") or "",
        )

    @property
    def identity(self) -> tuple[int, str, int]:
        """Matching key: which site, which backend address, which port."""
        return (self.site_id, self.ip, self.port)


@dataclass(frozen=True)
class Site:
    """A Pangolin site (proxy location)."""

    id: int
    nice_id: str = ""
    name: str = ""
    address: str = ""
    proxy_ip: str = ""
    online: bool = False
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Site":
        """Create from Pangolin API payload."""
        return cls(
            id=int(data["siteId"]),
            nice_id=data.get("niceId") or "",
            name=data.get("name") or "",
            address=data.get("address") or "",
            proxy_ip=data.get("proxyIp") or "",
            online=bool(data.get("online", False)),
            type=data.get("type") or "",
        )


@dataclass(frozen=True)
class Domain:
    """A base domain registered with the Pangolin organization."""

    id: str
    base_domain: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Domain":
        """Create from Pangolin API payload."""
        return cls(id=str(data["domainId"]), base_domain=data.get("baseDomain") or "")


# =============================================================================
# Settings parsed from annotations
# =============================================================================


@dataclass(frozen=True)
class HealthCheckSettings:
    """Target health-check settings. ``None`` means not set."""

    enabled: bool | None = None
    path: str | None = None
    scheme: str | None = None
    mode: str | None = None
    hostname: str | None = None
    port: int | None = None
    interval: int | None = None
    unhealthy_interval: int | None = None
    timeout: int | None = None
    headers: tuple[Header, ...] | None = None
    follow_redirects: bool | None = None
    method: str | None = None
    status: int | None = None
    tls_server_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the hc* fields of a target request."""
        return _drop_none(
            {
                "hcEnabled": self.enabled,
                "hcPath": self.path,
                "hcScheme": self.scheme,
                "hcMode": self.mode,
                "hcHostname": self.hostname,
                "hcPort": self.port,
                "hcInterval": self.interval,
                "hcUnhealthyInterval": self.unhealthy_interval,
                "hcTimeout": self.timeout,
                "hcHeaders": (
                    [h.to_dict() for h in self.headers] if self.headers else None
                ),
                "hcFollowRedirects": self.follow_redirects,
                "hcMethod": self.method,
                "hcStatus": self.status,
                "hcTlsServerName": self.tls_server_name,
            }
        )


@dataclass(frozen=True)
class IngressSettings:
    """Resource and target settings parsed once per Ingress."""

    enabled: bool | None = None
    sso: bool | None = None
    ssl: bool | None = None
    block_access: bool | None = None
    email_whitelist_enabled: bool | None = None
    apply_rules: bool | None = None
    sticky_session: bool | None = None
    tls_server_name: str | None = None
    set_host_header: str | None = None
    headers: tuple[Header, ...] | None = None
    post_auth_path: str | None = None
    health_check: HealthCheckSettings = field(default_factory=HealthCheckSettings)


# =============================================================================
# Pangolin API requests
# =============================================================================


@dataclass(frozen=True)
class CreateResourceRequest:
    """Fields accepted by the resource creation endpoint."""

    name: str
    subdomain: str
    domain_id: str
    http: bool = True
    protocol: str = "tcp"
    sticky_session: bool = False
    post_auth_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "http": self.http,
            "protocol": self.protocol,
            "domainId": self.domain_id,
        }
        if self.subdomain:
            data["subdomain"] = self.subdomain
        if self.sticky_session:
            data["stickySession"] = True
        if self.post_auth_path:
            data["postAuthPath"] = self.post_auth_path
        return data


@dataclass(frozen=True)
class UpdateResourceRequest:
    """Full settings payload for the resource update endpoint."""

    name: str
    subdomain: str
    domain_id: str
    settings: IngressSettings = field(default_factory=IngressSettings)

    def to_dict(self) -> dict[str, Any]:
        s = self.settings
        data = _drop_none(
            {
                "name": self.name or None,
                "subdomain": self.subdomain or None,
                "domainId": self.domain_id or None,
                "enabled": s.enabled,
                "sso": s.sso,
                "ssl": s.ssl,
                "blockAccess": s.block_access,
                "emailWhitelistEnabled": s.email_whitelist_enabled,
                "applyRules": s.apply_rules,
                "stickySession": s.sticky_session,
                "tlsServerName": s.tls_server_name,
                "setHostHeader": s.set_host_header,
                "postAuthPath": s.post_auth_path,
            }
        )
        if s.headers:
            data["headers"] = [h.to_dict() for h in s.headers]
        return data


@dataclass(frozen=True)
class TargetRequest:
    """Payload for both target creation and target update."""

    site_id: int
    ip: str
    port: int
    path: str
    path_match_type: PathMatchType = PathMatchType.PREFIX
    method: str = TARGET_METHOD
    enabled: bool = True
    health_check: HealthCheckSettings = field(default_factory=HealthCheckSettings)

    @property
    def identity(self) -> tuple[int, str, int]:
        return (self.site_id, self.ip, self.port)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "siteId": self.site_id,
            "ip": self.ip,
            "method": self.method,
            "port": self.port,
            "enabled": self.enabled,
            "path": self.path,
            "pathMatchType": self.path_match_type.value,
        }
        data.update(self.health_check.to_dict())
        return data


# =============================================================================
# Ingress view
# =============================================================================


@dataclass(frozen=True)
class RoutingPath:
    """One HTTP path of an Ingress rule."""

    path: str
    path_type: str | None
    service_name: str
    service_port_number: int | None = None
    service_port_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoutingPath":
        """Create from an Ingress ``HTTPIngressPath`` dict."""
        service = (data.get("backend") or {}).get("service") or {}
        port = service.get("port") or {}
        return cls(
            path=data.get("path") or "",
            path_type=data.get("pathType"),
            service_name=service.get("name") or "",
            service_port_number=port.get("number") or None,
            service_port_name=port.get("name") or None,
        )


@dataclass(frozen=True)
class RoutingRule:
    """A host and its ordered backend paths."""

    host: str
    paths: tuple[RoutingPath, ...] = ()


@dataclass(frozen=True)
class ManagedIngress:
    """The subset of an Ingress object the reconcilers need."""

    namespace: str
    name: str
    generation: int = 0
    resource_version: str = ""
    ingress_class_name: str | None = None
    legacy_class: str | None = None
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: tuple[str, ...] = ()
    deletion_timestamp: str | None = None
    rules: tuple[RoutingRule, ...] = ()
    load_balancer: tuple[dict[str, str], ...] = ()

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def resource_id(self) -> str:
        """The stored resource-id annotation, empty when absent."""
        return self.annotations.get(ANNOTATION_RESOURCE_ID, "")

    @property
    def is_deleting(self) -> bool:
        return bool(self.deletion_timestamp)

    @property
    def hosts(self) -> list[str]:
        """Distinct hosts in declaration order."""
        seen: list[str] = []
        for rule in self.rules:
            if rule.host and rule.host not in seen:
                seen.append(rule.host)
        return seen

    @property
    def observed_address(self) -> str:
        """First address published in status.loadBalancer, if any."""
        if not self.load_balancer:
            return ""
        first = self.load_balancer[0]
        return first.get("ip") or first.get("hostname") or ""

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def has_class(self, ingress_class: str) -> bool:
        """True if either the class field or the legacy annotation names the class."""
        return ingress_class in (self.ingress_class_name, self.legacy_class)

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "ManagedIngress":
        """Create from an Ingress body (camelCase dict)."""
        meta = body.get("metadata") or {}
        spec = body.get("spec") or {}
        status = body.get("status") or {}
        annotations = dict(meta.get("annotations") or {})

        rules = []
        for rule in spec.get("rules") or []:
            http = rule.get("http") or {}
            rules.append(
                RoutingRule(
                    host=(rule.get("host") or "").strip(),
                    paths=tuple(
                        RoutingPath.from_dict(p) for p in http.get("paths") or []
                    ),
                )
            )

        load_balancer = (status.get("loadBalancer") or {}).get("ingress") or []

        return cls(
            namespace=meta.get("namespace") or "",
            name=meta.get("name") or "",
            generation=int(meta.get("generation") or 0),
            resource_version=meta.get("resourceVersion") or "",
            ingress_class_name=spec.get("ingressClassName"),
            legacy_class=annotations.get(ANNOTATION_INGRESS_CLASS),
            annotations=annotations,
            finalizers=tuple(meta.get("finalizers") or ()),
            deletion_timestamp=meta.get("deletionTimestamp"),
            rules=tuple(rules),
            load_balancer=tuple(dict(entry) for entry in load_balancer),
        )


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class PangolinAPIError(OperatorError):
    """Error communicating with the Pangolin API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConflictError(PangolinAPIError):
    """The Pangolin API answered 409 Conflict."""

    pass


class NotFoundError(PangolinAPIError):
    """The Pangolin API answered 404 Not Found."""

    pass


class DomainNotFoundError(OperatorError):
    """The base domain is not registered with the Pangolin organization."""

    pass


class InvalidHostError(OperatorError):
    """An Ingress host has no registrable domain."""

    pass


class BackendLookupError(OperatorError):
    """A backend service or one of its named ports could not be resolved."""

    pass
