from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Dict, List, Optional

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..infrastructure import metrics
from ..infrastructure.error_handling import NodeSyncError, SyncError
from .eligibility import node_has_allowed_label
from .reconciler import STEP_LEASE, STEP_STATUS, NodeReconciler, SyncOutcome

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one pass over the node list."""

    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, NodeSyncError] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.deferred)

    def summary(self) -> str:
        return (
            f"{len(self.succeeded)} updated, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped, {len(self.deferred)} deferred "
            f"in {self.duration_seconds:.2f}s"
        )


class FleetSync:
    """Lists every node once and reconciles the eligible ones.

    A failing node never stops the rest of the cycle. A failing list call
    aborts the cycle with ``SyncError`` before any node is touched.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        reconciler: NodeReconciler,
        allowed_labels: AbstractSet[str] = frozenset(),
        max_workers: int = 1,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.api = core_api
        self.reconciler = reconciler
        self.allowed_labels = allowed_labels
        self.max_workers = max(1, max_workers)
        self.request_timeout = request_timeout

    def list_nodes(self) -> List[Any]:
        kwargs: Dict[str, Any] = {}
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            return list(self.api.list_node(**kwargs).items or [])
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise SyncError("list nodes", e) from e

    def sync_all_nodes(self) -> CycleReport:
        start = time.monotonic()
        nodes = self.list_nodes()
        report = CycleReport()

        eligible = []
        for node in nodes:
            if not node_has_allowed_label(node, self.allowed_labels):
                name = node.metadata.name if node is not None else "<none>"
                logger.debug(f"Skipping node {name}: no matching allowed labels")
                report.skipped.append(name)
                metrics.NODE_SYNCS.labels("skipped").inc()
                continue
            eligible.append(node)

        if self.max_workers == 1 or len(eligible) <= 1:
            for node in eligible:
                self._record(report, node.metadata.name, *self._sync_one(node))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="node-sync") as executor:
                futures = [(node.metadata.name, executor.submit(self._sync_one, node)) for node in eligible]
                for name, future in futures:
                    self._record(report, name, *future.result())

        report.duration_seconds = time.monotonic() - start
        return report

    def _sync_one(self, node: Any):
        try:
            return self.reconciler.sync_node(node), None
        except NodeSyncError as e:
            return None, e
        except Exception as e:
            logger.exception(f"Unexpected error reconciling node {node.metadata.name}")
            return None, NodeSyncError(node.metadata.name, "sync node", e)

    def _record(self, report: CycleReport, name: str, outcome: Optional[SyncOutcome], error: Optional[NodeSyncError]) -> None:
        if error is not None:
            logger.warning(f"failed updating node {name}: {error}")
            report.failed[name] = error
            metrics.NODE_SYNCS.labels("error").inc()
            if error.step == STEP_LEASE:
                metrics.PATCH_ERRORS.labels("lease").inc()
            elif error.step == STEP_STATUS:
                metrics.PATCH_ERRORS.labels("status").inc()
        elif outcome is SyncOutcome.DEFERRED:
            report.deferred.append(name)
            metrics.NODE_SYNCS.labels("deferred").inc()
        else:
            logger.info(f"updated node {name}")
            report.succeeded.append(name)
            metrics.NODE_SYNCS.labels("ok").inc()
