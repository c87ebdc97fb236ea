"""Kopf handlers wiring Ingress watch events into the reconcile work queue."""

import logging
import sys
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from admission import AdmissionTracker
from config import ControllerConfig
from metrics import init_metrics, set_operator_info
from models import ConfigurationError
from state import OperatorState
from workqueue import WorkerPool, WorkQueue

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

PEERING_NAME = "pangolin-ingress-controller"

state = OperatorState()
queue = WorkQueue()
tracker = AdmissionTracker()
workers: WorkerPool | None = None


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Validate configuration and start metrics and reconcile workers."""
    global workers

    config = ControllerConfig.from_env()
    try:
        config.validate()
    except ConfigurationError as e:
        raise kopf.PermanentError(str(e)) from e
    state.config = config

    # Reduce logging noise
    settings.posting.level = logging.WARNING
    if config.leader_elect:
        settings.peering.name = PEERING_NAME
        settings.peering.mandatory = True
    else:
        settings.peering.standalone = True

    try:
        start_http_server(config.metrics_port)
        logger.info(f"Prometheus metrics server started on port {config.metrics_port}")
    except OSError as e:
        logger.warning(
            f"Failed to start metrics server on port {config.metrics_port}: {e}"
        )

    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.ingress_class, config.org_id)

    workers = WorkerPool(queue, state.reconcile, workers=config.workers)
    workers.start()

    logger.info(
        f"Pangolin ingress operator started "
        f"(version {OPERATOR_VERSION}, class {config.ingress_class})"
    )


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Stop workers and close connections on operator shutdown."""
    logger.info("Pangolin ingress operator shutting down")
    if workers is not None:
        workers.stop()
    state.close()


@kopf.on.event("networking.k8s.io", "v1", "ingresses")
def ingress_event(
    type: str | None,
    body: kopf.Body,
    namespace: str,
    name: str,
    **_: Any,
) -> None:
    """Queue relevant Ingress changes for reconciliation."""
    key = f"{namespace}/{name}"
    if type == "DELETED":
        tracker.forget(key)
        return

    watch_namespace = state.config.watch_namespace
    if watch_namespace and namespace != watch_namespace:
        return

    if tracker.admit(key, body.get("metadata", {})):
        logger.debug(f"Queueing Ingress {key} ({type or 'LISTED'})")
        queue.add(key)


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ControllerConfig.from_env()
    logger.info("Starting Pangolin ingress operator...")
    kopf.run(
        clusterwide=not config.watch_namespace,
        namespaces=[config.watch_namespace] if config.watch_namespace else (),
        standalone=not config.leader_elect,
        peering_name=PEERING_NAME if config.leader_elect else None,
    )


if __name__ == "__main__":
    main()
