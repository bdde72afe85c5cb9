"""Node heartbeat impersonation: eligibility, lease renewal, Ready assertion."""

from .eligibility import build_allowed_labels, node_has_allowed_label, parse_label_allowlist
from .fleet_sync import CycleReport, FleetSync
from .heartbeat import HeartbeatRenewer
from .reconciler import NodeReconciler, SyncOutcome
from .status import StatusAsserter

__all__ = [
    "build_allowed_labels",
    "node_has_allowed_label",
    "parse_label_allowlist",
    "CycleReport",
    "FleetSync",
    "HeartbeatRenewer",
    "NodeReconciler",
    "SyncOutcome",
    "StatusAsserter",
]
