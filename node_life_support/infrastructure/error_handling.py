from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class NodeLifeSupportError(Exception):
    """Base class for controller errors."""


class UpdateError(NodeLifeSupportError):
    """A single patch against a node's lease or status was not applied.

    Raised for a missing record, a transport failure, or a rejection by the
    API server (bad timestamp, RBAC denial, ...). ``record`` is ``"lease"`` or
    ``"status"``.
    """

    def __init__(self, node_name: str, record: str, cause: BaseException) -> None:
        self.node_name = node_name
        self.record = record
        self.cause = cause
        self.status = getattr(cause, "status", None)
        super().__init__(_describe(cause))


class NodeSyncError(NodeLifeSupportError):
    """Reconciling one node failed; ``step`` names the step that failed."""

    def __init__(self, node_name: str, step: str, cause: BaseException) -> None:
        self.node_name = node_name
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")


class SyncError(NodeLifeSupportError):
    """A whole cycle was aborted before any node was processed."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation}: {_describe(cause)}")


def _describe(cause: BaseException) -> str:
    # ApiException.__str__ dumps headers and body; keep log lines short.
    status = getattr(cause, "status", None)
    reason = getattr(cause, "reason", None)
    if status is not None and reason is not None:
        return f"({status}) {reason}"
    return str(cause) or type(cause).__name__


@dataclass
class BackoffConfig:
    initial_delay: float = 30.0
    max_delay: float = 0.0
    exponential_base: float = 2.0
    jitter: bool = False


class CycleBackoff:
    """Bounded exponential delay between cycles after cycle-level failures.

    ``max_delay <= 0`` disables backoff: ``next_delay`` then always returns
    the base interval. Per-node failures never feed this.
    """

    def __init__(self, config: Optional[BackoffConfig] = None) -> None:
        self.config = config or BackoffConfig()
        self.consecutive_failures = 0

    @property
    def enabled(self) -> bool:
        return self.config.max_delay > 0

    def record_success(self) -> None:
        if self.consecutive_failures:
            logger.info(f"Control plane reachable again after {self.consecutive_failures} failed cycle(s)")
        self.consecutive_failures = 0

    def record_failure(self) -> None:
        self.consecutive_failures += 1

    def next_delay(self) -> float:
        base = self.config.initial_delay
        if not self.enabled or self.consecutive_failures == 0:
            return base
        delay = base * (self.config.exponential_base ** self.consecutive_failures)
        delay = min(delay, max(self.config.max_delay, base))
        if self.config.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return max(base, delay)


__all__ = [
    "NodeLifeSupportError",
    "UpdateError",
    "NodeSyncError",
    "SyncError",
    "BackoffConfig",
    "CycleBackoff",
]
