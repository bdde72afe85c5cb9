from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv
from kubernetes import client

from .config import ControllerConfig, load_config
from .controller import FleetSync, HeartbeatRenewer, NodeReconciler, StatusAsserter
from .infrastructure.error_handling import BackoffConfig, CycleBackoff
from .infrastructure.kube_client import build_api_client
from .infrastructure.metrics import start_metrics_server
from .infrastructure.scheduler import BackgroundScheduler
from .utils import Clock, RealClock

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    noise_levels = {
        "urllib3": logging.WARNING,
        "kubernetes": logging.WARNING,
        "kubernetes.client.rest": logging.WARNING,
        "schedule": logging.WARNING,
    }
    for name, lvl in noise_levels.items():
        logging.getLogger(name).setLevel(lvl)


def build_scheduler(cfg: ControllerConfig, api_client: client.ApiClient, clock: Optional[Clock] = None) -> BackgroundScheduler:
    """Wire every component around one shared API client."""
    clock = clock or RealClock()
    core = client.CoreV1Api(api_client)
    coordination = client.CoordinationV1Api(api_client)

    heartbeat = HeartbeatRenewer(
        coordination,
        namespace=cfg.lease_namespace,
        clock=clock,
        request_timeout=cfg.request_timeout,
    )
    status = StatusAsserter(
        core,
        reason=cfg.condition_reason,
        message=cfg.condition_message,
        clock=clock,
        request_timeout=cfg.request_timeout,
    )
    reconciler = NodeReconciler(heartbeat, status, respect_kubelet_seconds=cfg.respect_kubelet_seconds, clock=clock)
    fleet = FleetSync(
        core,
        reconciler,
        allowed_labels=cfg.allowed_labels,
        max_workers=cfg.max_workers,
        request_timeout=cfg.request_timeout,
    )
    backoff = CycleBackoff(BackoffConfig(
        initial_delay=cfg.sync_interval_seconds,
        max_delay=cfg.cycle_backoff_max_seconds,
    ))
    return BackgroundScheduler(fleet, interval_seconds=cfg.sync_interval_seconds, backoff=backoff)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep selected Kubernetes nodes Ready from outside the node")
    parser.add_argument("--settings", default=None, help="optional YAML settings file")
    parser.add_argument("--once", action="store_true", help="run a single sync cycle and exit")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()

    try:
        cfg = load_config(args.settings)
    except ValueError as exc:
        configure_logging(args.log_level or "INFO")
        logger.critical(f"Configuration invalid: {exc}")
        return 1

    configure_logging(args.log_level or cfg.log_level)
    if cfg.allowed_labels:
        logger.info(f"Restricting to nodes with any of labels: {', '.join(sorted(cfg.allowed_labels))}")
    else:
        logger.info("No label allowlist configured; applying to all nodes")

    try:
        api_client = build_api_client(cfg.kubeconfig, cfg.kube_context)
    except Exception as exc:
        logger.critical(f"failed to build kubeconfig: {exc}")
        return 1

    scheduler = build_scheduler(cfg, api_client)

    if args.once:
        scheduler.run_tick()
        return 1 if scheduler.last_error is not None else 0

    start_metrics_server(cfg.metrics_port)

    def _shutdown(signum, _frame):
        logger.info(f"Received signal {signum}, stopping after the current cycle")
        scheduler.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    scheduler.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
