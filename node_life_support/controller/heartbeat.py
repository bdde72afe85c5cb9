from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..infrastructure.error_handling import UpdateError
from ..utils import Clock, RealClock, format_micro_time

logger = logging.getLogger(__name__)

MERGE_PATCH: str = "application/merge-patch+json"


class HeartbeatRenewer:
    """Renews a node's Lease as if the kubelet had done it."""

    def __init__(
        self,
        coordination_api: client.CoordinationV1Api,
        namespace: str = "kube-node-lease",
        clock: Optional[Clock] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.api = coordination_api
        self.namespace = namespace
        self.clock = clock or RealClock()
        self.request_timeout = request_timeout

    def build_patch(self, node_name: str) -> Dict[str, Any]:
        return {
            "spec": {
                "holderIdentity": node_name,
                "renewTime": format_micro_time(self.clock.now_utc()),
            }
        }

    def renew(self, node_name: str) -> None:
        # The node lease shares the node's name.
        body = self.build_patch(node_name)
        kwargs: Dict[str, Any] = {"_content_type": MERGE_PATCH}
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            self.api.patch_namespaced_lease(node_name, self.namespace, body, **kwargs)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise UpdateError(node_name, "lease", e) from e
        logger.debug(f"Renewed lease {self.namespace}/{node_name} at {body['spec']['renewTime']}")
