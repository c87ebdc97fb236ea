"""Pangolin resource management for Ingress hosts."""

import logging
from collections.abc import Callable

from cache import DomainCache
from models import (
    CreateResourceRequest,
    IngressSettings,
    InvalidHostError,
    ManagedIngress,
    UpdateResourceRequest,
)
from pangolin_client import PangolinClient
from utils import make_resource_name, parse_host

logger = logging.getLogger(__name__)


def build_requests(
    name: str,
    subdomain: str,
    domain_id: str,
    settings: IngressSettings,
) -> tuple[CreateResourceRequest, UpdateResourceRequest]:
    """Build the creation payload and the full settings payload.

    The creation endpoint accepts only a subset of the settings, so every
    resource is created with the minimal payload and then updated.
    """
    create = CreateResourceRequest(
        name=name,
        subdomain=subdomain,
        domain_id=domain_id,
        sticky_session=bool(settings.sticky_session),
        post_auth_path=settings.post_auth_path,
    )
    update = UpdateResourceRequest(
        name=name,
        subdomain=subdomain,
        domain_id=domain_id,
        settings=settings,
    )
    return create, update


def ensure_resource(
    client: PangolinClient,
    domains: DomainCache,
    ingress: ManagedIngress,
    host: str,
    settings: IngressSettings,
    resource_id: str | None,
    persist_id: Callable[[str], None],
    prefix: str,
) -> str:
    """Ensure the Pangolin resource for one Ingress host exists and is current.

    With a stored resource ID the resource is updated. Without one it is
    created, its ID is handed to ``persist_id`` before anything else happens,
    and the full settings are applied afterwards. If applying the settings
    fails, the next reconcile finds the stored ID and retries the update
    instead of creating a duplicate.

    Args:
        client: Pangolin client
        domains: Domain ID cache
        ingress: The Ingress being reconciled
        host: Host of the rule
        settings: Settings parsed from the Ingress annotations
        resource_id: Stored resource ID for this host, if any
        persist_id: Writes a newly created resource ID to the Ingress
        prefix: Resource name prefix

    Returns:
        The resource ID
    """
    subdomain, domain = parse_host(host)
    if not domain:
        raise InvalidHostError(f"host {host} is missing a registrable domain")

    domain_id = domains.resolve(domain)
    name = make_resource_name(prefix, ingress.namespace, ingress.name, subdomain)
    create, update = build_requests(name, subdomain, domain_id, settings)

    if resource_id:
        client.update_resource(resource_id, update)
        logger.info(f"Updated Pangolin resource {resource_id} ({name})")
        return resource_id

    resource = client.create_resource(create)
    resource_id = str(resource.id)
    logger.info(f"Created Pangolin resource {resource_id} ({name}) for host {host}")

    persist_id(resource_id)

    client.update_resource(resource_id, update)
    logger.debug("Applied settings to new Pangolin resource %s", resource_id)
    return resource_id
