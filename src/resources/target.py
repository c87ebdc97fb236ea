"""Target management for Pangolin resources.

Target IDs are assigned by Pangolin and never stored on the Ingress, so a
target is recognized by (site ID, backend address, port). Path and
health-check settings are mutable attributes of that identity: changing them
updates the existing target in place.
"""

import logging

from metrics import STALE_TARGETS_DELETED
from models import HealthCheckSettings, PathMatchType, Site, TargetRequest
from pangolin_client import PangolinClient

logger = logging.getLogger(__name__)


def reconcile_targets(
    client: PangolinClient,
    resource_id: str,
    desired: list[TargetRequest],
) -> list[int]:
    """Converge the targets of a resource to the desired set.

    Lists existing targets once, updates each match or creates the missing
    ones, then deletes every listed target that was not claimed. Deletion
    failures are logged and skipped; a later reconcile retries them.

    Returns:
        IDs of the active targets, in desired order
    """
    existing = client.list_targets(resource_id)
    by_identity = {}
    for target in existing:
        by_identity.setdefault(target.identity, target)

    active: list[int] = []
    claimed: set[tuple[int, str, int]] = set()
    for request in desired:
        if request.identity in claimed:
            logger.warning(
                f"Resource {resource_id}: skipping duplicate target "
                f"{request.ip}:{request.port} (path {request.path})"
            )
            continue
        claimed.add(request.identity)

        match = by_identity.get(request.identity)
        if match is not None:
            client.update_target(str(match.id), request)
            active.append(match.id)
            logger.info(
                f"Updated Pangolin target {match.id} "
                f"({request.ip}:{request.port}) on resource {resource_id}"
            )
        else:
            created = client.create_target(resource_id, request)
            active.append(created.id)
            logger.info(
                f"Created Pangolin target {created.id} "
                f"({request.ip}:{request.port}) on resource {resource_id}"
            )

    for target in existing:
        if target.id in active:
            continue
        try:
            client.delete_target(str(target.id))
        except Exception as e:
            logger.error(f"Failed to delete stale Pangolin target {target.id}: {e}")
            STALE_TARGETS_DELETED.labels(status="error").inc()
        else:
            logger.info(
                f"Deleted stale Pangolin target {target.id} ({target.ip}:{target.port})"
            )
            STALE_TARGETS_DELETED.labels(status="success").inc()

    return active


def reconcile_target(
    client: PangolinClient,
    resource_id: str,
    site: Site,
    address: str,
    port: int,
    path: str,
    path_match_type: PathMatchType,
    health_check: HealthCheckSettings,
) -> int:
    """Converge a resource to exactly one target and return its ID."""
    request = TargetRequest(
        site_id=site.id,
        ip=address,
        port=port,
        path=path,
        path_match_type=path_match_type,
        health_check=health_check,
    )
    return reconcile_targets(client, resource_id, [request])[0]
