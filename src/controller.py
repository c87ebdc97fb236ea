"""Ingress reconciliation: one pass from an Ingress key to converged Pangolin state."""

import logging
import time

from annotations import extract_settings
from cache import DomainCache, SiteCache
from constants import ANNOTATION_RESOURCE_ID, DEFAULT_TARGET_PATH, FINALIZER
from kube import KubeGateway
from metrics import RECONCILE_DURATION, RECONCILE_IN_PROGRESS, RECONCILE_TOTAL
from models import (
    BackendLookupError,
    IngressSettings,
    ManagedIngress,
    NotFoundError,
    PathMatchType,
    RoutingPath,
    Site,
    TargetRequest,
)
from pangolin_client import PangolinClient
from resources.lifecycle import ensure_finalizer, finalize
from resources.resource import ensure_resource
from resources.status import update_status
from resources.target import reconcile_targets
from utils import format_resource_links, parse_resource_links, service_address

logger = logging.getLogger(__name__)


def split_key(key: str) -> tuple[str, str]:
    """Split a 'namespace/name' key."""
    namespace, _, name = key.partition("/")
    if not name:
        raise ValueError(f"invalid object key: {key!r}")
    return namespace, name


class IngressController:
    """Reconciles Ingress objects of one ingress class against Pangolin.

    The domain and site caches are owned by the instance so that separate
    controllers (and tests) never share state.
    """

    def __init__(
        self,
        client: PangolinClient,
        gateway: KubeGateway,
        ingress_class: str,
        site_nice_id: str,
        resource_prefix: str,
    ) -> None:
        self.client = client
        self.gateway = gateway
        self.ingress_class = ingress_class
        self.resource_prefix = resource_prefix
        self.domains = DomainCache(client)
        self.sites = SiteCache(client, site_nice_id)

    def is_managed(self, ingress: ManagedIngress) -> bool:
        """Managed if the class field or the legacy annotation matches."""
        return ingress.has_class(self.ingress_class)

    def reconcile(self, key: str) -> None:
        """Converge one Ingress. Raises on any error so the key is retried."""
        namespace, name = split_key(key)
        ingress = self.gateway.get_ingress(namespace, name)
        if ingress is None:
            logger.info(f"Ingress {key} not found, must have been deleted")
            return

        if ingress.is_deleting:
            self._reconcile_delete(ingress)
            return

        if not self.is_managed(ingress):
            logger.debug(f"Ingress {key} not managed by class {self.ingress_class}")
            return

        logger.info(f"Reconciling Ingress {key}")
        start_time = time.monotonic()
        RECONCILE_IN_PROGRESS.inc()
        try:
            ingress = ensure_finalizer(self.gateway, ingress)
            ingress = self._reconcile_rules(ingress)
            try:
                update_status(self.client, self.gateway, self.sites, ingress)
            except Exception as e:
                logger.warning(f"Failed to update status of Ingress {key}: {e}")

            RECONCILE_TOTAL.labels(operation="reconcile", status="success").inc()
            logger.info(f"Successfully reconciled Ingress {key}")
        except Exception:
            RECONCILE_TOTAL.labels(operation="reconcile", status="error").inc()
            raise
        finally:
            RECONCILE_DURATION.labels(operation="reconcile").observe(
                time.monotonic() - start_time
            )
            RECONCILE_IN_PROGRESS.dec()

    def _reconcile_delete(self, ingress: ManagedIngress) -> None:
        # The finalizer marks the Ingress as ours even if its class changed since
        if not ingress.has_finalizer(FINALIZER):
            return

        logger.info(f"Deleting Pangolin resources of Ingress {ingress.key}")
        start_time = time.monotonic()
        try:
            finalize(self.client, self.gateway, ingress)
            RECONCILE_TOTAL.labels(operation="delete", status="success").inc()
        except Exception:
            RECONCILE_TOTAL.labels(operation="delete", status="error").inc()
            raise
        finally:
            RECONCILE_DURATION.labels(operation="delete").observe(
                time.monotonic() - start_time
            )

    def _reconcile_rules(self, ingress: ManagedIngress) -> ManagedIngress:
        """Ensure one resource per host and the targets for its paths."""
        settings = extract_settings(ingress.annotations)
        hosts = ingress.hosts
        links = parse_resource_links(ingress.resource_id, hosts)

        if len(hosts) < len(ingress.rules):
            logger.info(f"Skipping rules without host on Ingress {ingress.key}")

        for host in hosts:
            paths = [p for rule in ingress.rules if rule.host == host for p in rule.paths]
            backends = [self._resolve_backend(ingress, path) for path in paths]

            def persist_id(resource_id: str, host: str = host) -> None:
                nonlocal ingress
                links[host] = resource_id
                ingress = self._write_links(ingress, links)

            resource_id = ensure_resource(
                self.client,
                self.domains,
                ingress,
                host,
                settings,
                links.get(host),
                persist_id,
                self.resource_prefix,
            )
            links[host] = resource_id

            # An empty desired set removes every target left from earlier paths
            desired = []
            if backends:
                site = self.sites.get()
                desired = [
                    self._target_request(site, ingress, path, port, settings)
                    for path, port in zip(paths, backends)
                ]
            reconcile_targets(self.client, resource_id, desired)

        return self._prune_links(ingress, links, hosts)

    def _prune_links(
        self, ingress: ManagedIngress, links: dict[str, str], hosts: list[str]
    ) -> ManagedIngress:
        """Delete resources of hosts the Ingress no longer declares."""
        stale = [host for host in links if host not in hosts]
        if not stale:
            return ingress

        for host in stale:
            resource_id = links[host]
            try:
                self.client.delete_resource(resource_id)
            except NotFoundError:
                logger.info(
                    f"Pangolin resource {resource_id} of removed host {host} already deleted"
                )
            else:
                logger.info(
                    f"Deleted Pangolin resource {resource_id} of removed host {host}"
                )
            del links[host]
        return self._write_links(ingress, links)

    def _write_links(
        self, ingress: ManagedIngress, links: dict[str, str]
    ) -> ManagedIngress:
        value = format_resource_links(links, ingress.hosts)
        if value == ingress.resource_id:
            return ingress
        return self.gateway.patch_metadata(
            ingress, annotations={ANNOTATION_RESOURCE_ID: value or None}
        )

    def _resolve_backend(self, ingress: ManagedIngress, path: RoutingPath) -> int:
        """Resolve the numeric port of a path's backend service."""
        if not path.service_name:
            raise BackendLookupError(
                f"path {path.path or '/'} on {ingress.key} has no service backend"
            )

        ports = self.gateway.get_service_ports(ingress.namespace, path.service_name)
        if path.service_port_number:
            return path.service_port_number
        for port in ports:
            if port["name"] == path.service_port_name:
                return int(port["port"])
        raise BackendLookupError(
            f"could not determine service port for service {path.service_name}"
        )

    @staticmethod
    def _target_request(
        site: Site,
        ingress: ManagedIngress,
        path: RoutingPath,
        port: int,
        settings: IngressSettings,
    ) -> TargetRequest:
        return TargetRequest(
            site_id=site.id,
            ip=service_address(path.service_name, ingress.namespace),
            port=port,
            path=path.path or DEFAULT_TARGET_PATH,
            path_match_type=PathMatchType.from_path_type(path.path_type),
            health_check=settings.health_check,
        )
