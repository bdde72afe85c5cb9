"""
Infrastructure for the controller: Kubernetes client bootstrap, the
background scheduler, error types and Prometheus metrics.
"""

from .error_handling import (
    BackoffConfig,
    CycleBackoff,
    NodeLifeSupportError,
    NodeSyncError,
    SyncError,
    UpdateError,
)

__all__ = [
    'BackoffConfig', 'CycleBackoff',
    'NodeLifeSupportError', 'NodeSyncError', 'SyncError', 'UpdateError',
]
