"""Utility functions for the Pangolin ingress operator."""

import ipaddress

from constants import DEFAULT_RESOURCE_PREFIX


def parse_host(host: str) -> tuple[str, str]:
    """Split a host into (subdomain, base domain).

    The last two labels form the base domain, everything before them the
    subdomain. A host with fewer than two labels has no registrable domain
    and is returned as ``(host, "")``.

    Known limitation: this does not consult the public suffix list, so
    ``app.example.co.uk`` yields ``("app.example", "co.uk")``.

    Example: 'a.b.example.com' -> ('a.b', 'example.com')
    """
    host = host.strip()
    if not host:
        return "", ""
    parts = host.split(".")
    if len(parts) < 2:
        return host, ""
    domain = ".".join(parts[-2:])
    return ".".join(parts[:-2]), domain


def make_resource_name(prefix: str, namespace: str, name: str, subdomain: str) -> str:
    """Generate the Pangolin resource name for an Ingress host.

    Example: ('pangolin-controller', 'default', 'web', 'app')
        -> 'pangolin-controller-default-web-app'
    """
    return f"{prefix or DEFAULT_RESOURCE_PREFIX}-{namespace}-{name}-{subdomain}"


def service_address(service_name: str, namespace: str) -> str:
    """In-cluster DNS name of a backend service."""
    return f"{service_name}.{namespace}.svc.cluster.local"


def parse_resource_links(value: str, hosts: list[str]) -> dict[str, str]:
    """Decode the resource-id annotation into a host -> resource id map.

    A plain id belongs to the first declared host. Several hosts are stored
    as 'host=id' pairs separated by commas.
    """
    value = value.strip()
    if not value:
        return {}
    if "=" not in value:
        return {hosts[0]: value} if hosts else {"": value}

    links: dict[str, str] = {}
    for item in value.split(","):
        host, sep, resource_id = item.partition("=")
        if sep and host.strip() and resource_id.strip():
            links[host.strip()] = resource_id.strip()
    return links


def format_resource_links(links: dict[str, str], hosts: list[str]) -> str:
    """Encode a host -> resource id map for the resource-id annotation."""
    if not links:
        return ""
    if len(links) == 1:
        ((host, resource_id),) = links.items()
        if not hosts or host in ("", hosts[0]):
            return resource_id
    return ",".join(f"{host}={resource_id}" for host, resource_id in links.items())


def load_balancer_entry(address: str) -> dict[str, str]:
    """Build a status.loadBalancer.ingress entry for an address."""
    try:
        ipaddress.ip_address(address)
    except ValueError:
        return {"hostname": address}
    return {"ip": address}
