"""Shared operator state - thread-safe holder for API clients and the controller."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import ControllerConfig
from controller import IngressController
from kube import KubeGateway
from pangolin_client import PangolinClient
from ratelimit import RateLimiter


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Kubernetes API clients
    - Pangolin client (API key read from its Secret once per process)
    - The Ingress controller

    The Pangolin client is created on first use rather than at startup, so
    a missing or unreadable Secret fails the reconcile (and is retried)
    instead of preventing the operator from starting.
    """

    config: ControllerConfig = field(default_factory=ControllerConfig)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _gateway: KubeGateway | None = field(default=None, repr=False)
    _pangolin: PangolinClient | None = field(default=None, repr=False)
    _controller: IngressController | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_gateway(self) -> KubeGateway:
        """Get or create the Kubernetes gateway (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._gateway is None:
                self._gateway = KubeGateway(
                    k8s_client.CoreV1Api(), k8s_client.NetworkingV1Api()
                )
            return self._gateway

    def get_controller(self) -> IngressController:
        """Get or create the controller and its Pangolin client (thread-safe)."""
        gateway = self.get_gateway()
        with self._lock:
            if self._controller is None:
                cfg = self.config
                api_key = gateway.read_api_key(cfg.api_key_secret, cfg.api_key_namespace)
                self._pangolin = PangolinClient(
                    cfg.base_url,
                    api_key,
                    cfg.org_id,
                    timeout=cfg.api_timeout,
                    rate_limiter=RateLimiter(
                        max_concurrent=cfg.max_concurrent_calls,
                        requests_per_second=cfg.requests_per_second,
                    ),
                )
                self._controller = IngressController(
                    self._pangolin,
                    gateway,
                    ingress_class=cfg.ingress_class,
                    site_nice_id=cfg.site_nice_id,
                    resource_prefix=cfg.resource_prefix,
                )
            return self._controller

    def reconcile(self, key: str) -> None:
        """Reconcile entry point handed to the worker pool."""
        self.get_controller().reconcile(key)

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._pangolin is not None:
                self._pangolin.close()
                self._pangolin = None
            self._controller = None
