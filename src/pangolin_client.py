"""Pangolin REST API client with rate limiting and error mapping."""

import logging
import time
from typing import Any

import httpx

from metrics import PANGOLIN_API_CALLS, PANGOLIN_API_DURATION
from models import (
    ConfigurationError,
    ConflictError,
    CreateResourceRequest,
    Domain,
    NotFoundError,
    PangolinAPIError,
    Resource,
    Site,
    Target,
    TargetRequest,
    UpdateResourceRequest,
)
from ratelimit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def decode_data(response: httpx.Response) -> Any:
    """Unwrap the ``{"data": ...}`` envelope of a Pangolin response."""
    try:
        envelope = response.json()
    except ValueError as e:
        raise PangolinAPIError(
            f"failed to parse response envelope: {e}", response.status_code
        ) from e
    if not isinstance(envelope, dict) or envelope.get("data") is None:
        raise PangolinAPIError("response missing data field", response.status_code)
    return envelope["data"]


def check_response(response: httpx.Response) -> None:
    """Raise the matching PangolinAPIError for a non-2xx response."""
    if response.is_success:
        return

    msg = f"API request failed with status {response.status_code}: {response.text}"
    if response.status_code == httpx.codes.CONFLICT:
        raise ConflictError(msg, response.status_code)
    if response.status_code == httpx.codes.NOT_FOUND:
        raise NotFoundError(msg, response.status_code)
    raise PangolinAPIError(msg, response.status_code)


class PangolinClient:
    """Thin synchronous client for the Pangolin integration API.

    Every call is a single request/response with no local retries: failures
    propagate to the caller, and the work queue retries the whole reconcile
    with backoff.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        org_id: str,
        timeout: float = DEFAULT_TIMEOUT,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Pangolin API base URL
            api_key: Bearer token
            org_id: Organization the resources, sites and domains belong to
            timeout: Per-call timeout in seconds
            rate_limiter: Optional limiter wrapped around every call
            transport: Optional httpx transport (used by tests)
        """
        if not org_id:
            raise ConfigurationError("Pangolin org id is required")
        self.base_url = base_url.rstrip("/")
        self.org_id = org_id
        self._rate_limiter = rate_limiter
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    def __enter__(self) -> "PangolinClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Perform one authenticated request and map failures to exceptions."""
        if body is not None:
            logger.debug("Pangolin API request %s %s body=%s", method, path, body)

        start = time.monotonic()
        status = "error"
        try:
            if self._rate_limiter is not None:
                with self._rate_limiter.acquire():
                    response = self._client.request(method, path, json=body)
            else:
                response = self._client.request(method, path, json=body)
            check_response(response)
            status = "success"
            return response
        except httpx.HTTPError as e:
            raise PangolinAPIError(f"failed to execute request: {e}") from e
        finally:
            PANGOLIN_API_CALLS.labels(operation=operation, status=status).inc()
            PANGOLIN_API_DURATION.labels(operation=operation).observe(
                time.monotonic() - start
            )

    # -------------------------------------------------------------------------
    # Resource operations
    # -------------------------------------------------------------------------

    def create_resource(self, request: CreateResourceRequest) -> Resource:
        """Create a new resource in the organization."""
        logger.info("Creating Pangolin resource: %s", request.name)
        response = self._request(
            "create_resource", "PUT", f"/v1/org/{self.org_id}/resource", request.to_dict()
        )
        return Resource.from_dict(decode_data(response))

    def get_resource(self, resource_id: str) -> Resource:
        """Get a resource by ID."""
        response = self._request("get_resource", "GET", f"/v1/resource/{resource_id}")
        return Resource.from_dict(decode_data(response))

    def list_resources(self) -> list[Resource]:
        """List all resources of the organization."""
        response = self._request(
            "list_resources", "GET", f"/v1/org/{self.org_id}/resources"
        )
        data = decode_data(response)
        return [Resource.from_dict(r) for r in data.get("resources") or []]

    def update_resource(
        self, resource_id: str, request: UpdateResourceRequest
    ) -> Resource:
        """Apply the full settings payload to an existing resource."""
        response = self._request(
            "update_resource", "POST", f"/v1/resource/{resource_id}", request.to_dict()
        )
        return Resource.from_dict(decode_data(response))

    def delete_resource(self, resource_id: str) -> None:
        """Delete a resource; Pangolin removes its targets with it."""
        logger.info("Deleting Pangolin resource: %s", resource_id)
        self._request("delete_resource", "DELETE", f"/v1/resource/{resource_id}")

    # -------------------------------------------------------------------------
    # Target operations
    # -------------------------------------------------------------------------

    def create_target(self, resource_id: str, request: TargetRequest) -> Target:
        """Create a target for a resource."""
        response = self._request(
            "create_target",
            "PUT",
            f"/v1/resource/{resource_id}/target",
            request.to_dict(),
        )
        return Target.from_dict(decode_data(response))

    def list_targets(self, resource_id: str) -> list[Target]:
        """List all targets of a resource."""
        response = self._request(
            "list_targets", "GET", f"/v1/resource/{resource_id}/targets"
        )
        data = decode_data(response)
        return [Target.from_dict(t) for t in data.get("targets") or []]

    def update_target(self, target_id: str, request: TargetRequest) -> Target:
        """Update a target in place."""
        response = self._request(
            "update_target", "POST", f"/v1/target/{target_id}", request.to_dict()
        )
        return Target.from_dict(decode_data(response))

    def delete_target(self, target_id: str) -> None:
        """Delete a target by ID."""
        self._request("delete_target", "DELETE", f"/v1/target/{target_id}")

    # -------------------------------------------------------------------------
    # Site and domain operations
    # -------------------------------------------------------------------------

    def get_site(self, site_id: str) -> Site:
        """Get a site by numeric ID."""
        response = self._request("get_site", "GET", f"/v1/site/{site_id}")
        return Site.from_dict(decode_data(response))

    def get_site_by_nice_id(self, nice_id: str) -> Site:
        """Get a site of the organization by its nice ID."""
        response = self._request(
            "get_site_by_nice_id", "GET", f"/v1/org/{self.org_id}/site/{nice_id}"
        )
        return Site.from_dict(decode_data(response))

    def list_sites(self) -> list[Site]:
        """List all sites of the organization."""
        response = self._request("list_sites", "GET", f"/v1/org/{self.org_id}/sites")
        data = decode_data(response)
        return [Site.from_dict(s) for s in data.get("sites") or []]

    def list_domains(self) -> list[Domain]:
        """List all domains available to the organization."""
        response = self._request(
            "list_domains", "GET", f"/v1/org/{self.org_id}/domains"
        )
        data = decode_data(response)
        return [Domain.from_dict(d) for d in data.get("domains") or []]

    def get_domain(self, domain_id: str) -> Domain:
        """Get a domain of the organization by ID."""
        response = self._request(
            "get_domain", "GET", f"/v1/org/{self.org_id}/domain/{domain_id}"
        )
        return Domain.from_dict(decode_data(response))
