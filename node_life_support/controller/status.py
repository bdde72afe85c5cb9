from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..infrastructure.error_handling import UpdateError
from ..utils import Clock, RealClock, format_time

logger = logging.getLogger(__name__)

# Node conditions are merged by "type" under a strategic merge patch, so only
# the Ready entry is replaced and the other condition types survive.
STRATEGIC_MERGE_PATCH: str = "application/strategic-merge-patch+json"

READY: str = "Ready"


class StatusAsserter:
    """Overwrites a node's Ready condition with ``True``.

    Last writer wins: a kubelet that comes back mid-cycle can be overwritten,
    and vice versa.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        reason: str,
        message: str,
        clock: Optional[Clock] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.api = core_api
        self.reason = reason
        self.message = message
        self.clock = clock or RealClock()
        self.request_timeout = request_timeout

    def build_condition(self) -> Dict[str, Any]:
        now = format_time(self.clock.now_utc())
        return {
            "type": READY,
            "status": "True",
            "lastHeartbeatTime": now,
            "lastTransitionTime": now,
            "reason": self.reason,
            "message": self.message,
        }

    def build_patch(self) -> Dict[str, Any]:
        return {"status": {"conditions": [self.build_condition()]}}

    def assert_ready(self, node_name: str) -> None:
        body = self.build_patch()
        kwargs: Dict[str, Any] = {"_content_type": STRATEGIC_MERGE_PATCH}
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            self.api.patch_node_status(node_name, body, **kwargs)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise UpdateError(node_name, "status", e) from e
        logger.debug(f"Asserted {READY}=True on node {node_name}")
