"""Publishing the Pangolin proxy address in Ingress status."""

import logging

from cache import SiteCache
from kube import KubeGateway
from models import ManagedIngress
from pangolin_client import PangolinClient
from utils import load_balancer_entry, parse_resource_links

logger = logging.getLogger(__name__)


def update_status(
    client: PangolinClient,
    gateway: KubeGateway,
    sites: SiteCache,
    ingress: ManagedIngress,
) -> bool:
    """Write the site's proxy address to status.loadBalancer if it changed.

    Skipped when the Ingress has no resource yet or the site has no known
    address. Returns True if the status was written.
    """
    links = parse_resource_links(ingress.resource_id, ingress.hosts)
    if not links:
        logger.debug("No resource ID on %s, skipping status update", ingress.key)
        return False

    # Confirms the resource still exists before advertising it
    client.get_resource(next(iter(links.values())))

    site = sites.get()
    if not site.proxy_ip:
        logger.info(
            f"Site {site.nice_id} has no proxy IP, skipping status update for {ingress.key}"
        )
        return False

    if ingress.observed_address == site.proxy_ip:
        return False

    gateway.patch_load_balancer(ingress, [load_balancer_entry(site.proxy_ip)])
    logger.info(f"Updated status of {ingress.key} with proxy address {site.proxy_ip}")
    return True
