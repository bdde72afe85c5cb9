from __future__ import annotations

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

logger = logging.getLogger(__name__)


def build_api_client(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> client.ApiClient:
    """In-cluster service account first, then the kubeconfig file.

    Raises ``ConfigException`` when neither is usable.
    """
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes configuration")
        return client.ApiClient()
    except ConfigException as e:
        logger.debug(f"In-cluster configuration unavailable: {e}")

    config.load_kube_config(config_file=kubeconfig, context=context)
    logger.info(f"Using kubeconfig {kubeconfig or '~/.kube/config'}" + (f" (context {context})" if context else ""))
    return client.ApiClient()
