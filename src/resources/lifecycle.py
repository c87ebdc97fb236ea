"""Finalizer handling and deletion-triggered teardown."""

import logging

from constants import FINALIZER
from kube import KubeGateway
from models import ManagedIngress, NotFoundError
from pangolin_client import PangolinClient
from utils import parse_resource_links

logger = logging.getLogger(__name__)


def ensure_finalizer(gateway: KubeGateway, ingress: ManagedIngress) -> ManagedIngress:
    """Add the operator finalizer before any external state is created."""
    if ingress.has_finalizer(FINALIZER):
        return ingress
    logger.info(f"Adding finalizer to Ingress {ingress.key}")
    return gateway.patch_metadata(
        ingress, finalizers=[*ingress.finalizers, FINALIZER]
    )


def delete_linked_resources(client: PangolinClient, ingress: ManagedIngress) -> None:
    """Delete every Pangolin resource linked to the Ingress.

    Targets are removed by Pangolin together with their resource. A resource
    that is already gone counts as deleted.
    """
    links = parse_resource_links(ingress.resource_id, ingress.hosts)
    if not links:
        logger.info(f"No Pangolin resource ID on {ingress.key}, skipping deletion")
        return

    for host, resource_id in links.items():
        try:
            client.delete_resource(resource_id)
        except NotFoundError:
            logger.info(f"Pangolin resource {resource_id} ({host or '-'}) already deleted")
            continue
        logger.info(f"Deleted Pangolin resource {resource_id} ({host or '-'})")


def finalize(
    client: PangolinClient, gateway: KubeGateway, ingress: ManagedIngress
) -> bool:
    """Tear down external state of a deleting Ingress and release it.

    Returns True if the finalizer was removed. Errors from the Pangolin API
    propagate, leaving the finalizer and the resource-id annotation in
    place so the deletion is retried.
    """
    if not ingress.is_deleting or not ingress.has_finalizer(FINALIZER):
        return False

    delete_linked_resources(client, ingress)

    remaining = [f for f in ingress.finalizers if f != FINALIZER]
    gateway.patch_metadata(ingress, finalizers=remaining)
    logger.info(f"Removed finalizer from Ingress {ingress.key}")
    return True
