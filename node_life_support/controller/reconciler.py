from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from ..infrastructure.error_handling import NodeSyncError, UpdateError
from ..utils import Clock, RealClock, parse_rfc3339
from .heartbeat import HeartbeatRenewer
from .status import READY, StatusAsserter

logger = logging.getLogger(__name__)

STEP_LEASE = "update lease"
STEP_STATUS = "update node status"


class SyncOutcome(str, Enum):
    UPDATED = "updated"
    DEFERRED = "deferred"


class NodeReconciler:
    """Renews the lease, then asserts Ready, for one node.

    The lease goes first so a node whose kubelet briefly recovers is never
    left with a stale lease even if the status patch fails. No retries; the
    next tick is the retry.
    """

    def __init__(
        self,
        heartbeat: HeartbeatRenewer,
        status: StatusAsserter,
        respect_kubelet_seconds: int = 0,
        clock: Optional[Clock] = None,
    ) -> None:
        self.heartbeat = heartbeat
        self.status = status
        self.respect_kubelet_seconds = respect_kubelet_seconds
        self.clock = clock or RealClock()

    def sync_node(self, node: Any) -> SyncOutcome:
        name = node.metadata.name
        if self._kubelet_is_reporting(node):
            logger.info(f"Deferring node {name}: kubelet reported {READY} within {self.respect_kubelet_seconds}s")
            return SyncOutcome.DEFERRED

        try:
            self.heartbeat.renew(name)
        except UpdateError as e:
            raise NodeSyncError(name, STEP_LEASE, e) from e

        try:
            self.status.assert_ready(name)
        except UpdateError as e:
            raise NodeSyncError(name, STEP_STATUS, e) from e

        return SyncOutcome.UPDATED

    def _kubelet_is_reporting(self, node: Any) -> bool:
        """True when someone other than us set Ready=True recently."""
        if self.respect_kubelet_seconds <= 0:
            return False
        status = getattr(node, "status", None)
        for cond in getattr(status, "conditions", None) or []:
            if cond.type != READY:
                continue
            if cond.status != "True" or cond.reason == self.status.reason:
                return False
            heartbeat = _as_utc(cond.last_heartbeat_time)
            if heartbeat is None:
                return False
            window = timedelta(seconds=self.respect_kubelet_seconds)
            return self.clock.now_utc() - heartbeat <= window
        return False


def _as_utc(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return parse_rfc3339(value)
        except ValueError:
            return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
