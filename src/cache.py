"""Read-through caches for Pangolin domains and the configured site.

Both caches are owned by the controller instance and shared by all reconcile
workers. Lookups take a shared lock; a miss calls the Pangolin API without
holding any lock and only takes the exclusive lock to merge the result, so
concurrent misses may each list redundantly. Merges are idempotent.
"""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

from models import ConfigurationError, DomainNotFoundError, Site
from pangolin_client import PangolinClient

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Reader-writer lock: many readers or one writer, writers preferred."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Generator[None, None, None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class DomainCache:
    """Maps base domains (e.g. 'example.com') to Pangolin domain IDs."""

    def __init__(self, client: PangolinClient) -> None:
        self._client = client
        self._lock = ReadWriteLock()
        self._domains: dict[str, str] = {}

    def resolve(self, base_domain: str) -> str:
        """Return the domain ID for a base domain.

        A miss re-lists all domains of the organization, since the API has
        no point lookup by name.

        Raises:
            DomainNotFoundError: the base domain is not registered in Pangolin
        """
        with self._lock.read():
            domain_id = self._domains.get(base_domain)
        if domain_id is not None:
            return domain_id

        logger.debug("Domain cache miss for %s, listing Pangolin domains", base_domain)
        listed = {d.base_domain: d.id for d in self._client.list_domains()}

        with self._lock.write():
            self._domains.update(listed)
            domain_id = self._domains.get(base_domain)

        if domain_id is None:
            raise DomainNotFoundError(f"no Pangolin domain configured for {base_domain}")
        return domain_id

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._domains)


class SiteCache:
    """Holds the single site that all targets attach to.

    The site is resolved once and kept for the lifetime of the process.
    """

    def __init__(self, client: PangolinClient, nice_id: str) -> None:
        self._client = client
        self._nice_id = nice_id
        self._lock = ReadWriteLock()
        self._site: Site | None = None

    def get(self) -> Site:
        """Return the configured site, fetching it on first use."""
        if not self._nice_id:
            raise ConfigurationError("Pangolin site nice id is not configured")

        with self._lock.read():
            site = self._site
        if site is not None:
            return site

        site = self._client.get_site_by_nice_id(self._nice_id)
        logger.info(
            "Resolved Pangolin site %s (id=%d, proxyIp=%s)",
            self._nice_id,
            site.id,
            site.proxy_ip or "-",
        )
        with self._lock.write():
            self._site = site
        return site
