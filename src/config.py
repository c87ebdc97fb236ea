"""Process configuration loaded from environment variables."""

import os
from dataclasses import dataclass

from constants import DEFAULT_RESOURCE_PREFIX
from models import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class ControllerConfig:
    """Startup parameters of the operator.

    Environment variables:
        INGRESS_CLASS: Ingress class handled by this operator (default: pangolin)
        PANGOLIN_BASE_URL: Pangolin API base URL
        PANGOLIN_API_KEY_SECRET: Secret holding the API key under 'api-key'
        PANGOLIN_API_KEY_NAMESPACE: Namespace of that secret
        PANGOLIN_ORG_ID: Pangolin organization id (required)
        PANGOLIN_SITE_NICE_ID: Site that targets attach to (required)
        RESOURCE_PREFIX: Prefix for generated resource names
        LEADER_ELECT: Enable kopf peering between replicas
        WORKERS: Number of reconcile worker threads
        WATCH_NAMESPACE: Restrict watching to one namespace
        METRICS_PORT: Prometheus metrics port
        PANGOLIN_API_TIMEOUT: Per-call timeout in seconds
        PANGOLIN_MAX_CONCURRENT_CALLS: Max concurrent API calls
        PANGOLIN_REQUESTS_PER_SECOND: Max API requests per second
    """

    ingress_class: str = "pangolin"
    base_url: str = "https://api.tunnel.tf"
    api_key_secret: str = "pangolin-api-key"
    api_key_namespace: str = "pangolin-system"
    org_id: str = ""
    site_nice_id: str = ""
    resource_prefix: str = DEFAULT_RESOURCE_PREFIX
    leader_elect: bool = False
    workers: int = 4
    watch_namespace: str = ""
    metrics_port: int = 9090
    api_timeout: float = 30.0
    max_concurrent_calls: int = 10
    requests_per_second: float = 20.0

    @classmethod
    def from_env(cls) -> "ControllerConfig":
        """Build the configuration from the process environment."""
        return cls(
            ingress_class=os.environ.get("INGRESS_CLASS", "pangolin"),
            base_url=os.environ.get("PANGOLIN_BASE_URL", "https://api.tunnel.tf"),
            api_key_secret=os.environ.get("PANGOLIN_API_KEY_SECRET", "pangolin-api-key"),
            api_key_namespace=os.environ.get(
                "PANGOLIN_API_KEY_NAMESPACE", "pangolin-system"
            ),
            org_id=os.environ.get("PANGOLIN_ORG_ID", ""),
            site_nice_id=os.environ.get("PANGOLIN_SITE_NICE_ID", ""),
            resource_prefix=os.environ.get("RESOURCE_PREFIX", DEFAULT_RESOURCE_PREFIX),
            leader_elect=_env_bool("LEADER_ELECT"),
            workers=int(os.environ.get("WORKERS", "4")),
            watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
            metrics_port=int(os.environ.get("METRICS_PORT", "9090")),
            api_timeout=float(os.environ.get("PANGOLIN_API_TIMEOUT", "30")),
            max_concurrent_calls=int(
                os.environ.get("PANGOLIN_MAX_CONCURRENT_CALLS", "10")
            ),
            requests_per_second=float(
                os.environ.get("PANGOLIN_REQUESTS_PER_SECOND", "20")
            ),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if a required parameter is missing."""
        if not self.org_id:
            raise ConfigurationError(
                "Pangolin org id must be configured via PANGOLIN_ORG_ID"
            )
        if not self.site_nice_id:
            raise ConfigurationError(
                "Pangolin site nice id must be configured via PANGOLIN_SITE_NICE_ID"
            )
        if self.workers < 1:
            raise ConfigurationError("WORKERS must be at least 1")
