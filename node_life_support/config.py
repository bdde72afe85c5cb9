import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Final, FrozenSet, Mapping, Optional

import jsonschema
import yaml

from .controller.eligibility import build_allowed_labels, parse_label_allowlist

logger: Final = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS: Final[int] = 30
DEFAULT_LEASE_NAMESPACE: Final[str] = "kube-node-lease"
DEFAULT_REQUEST_TIMEOUT_SECONDS: Final[float] = 10.0

CONDITION_REASON: Final[str] = "NodeLifeSupportOverride"
CONDITION_MESSAGE: Final[str] = "node-life-support controller asserting node health."

SETTINGS_SCHEMA: Final[Dict[str, Any]] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "node_label_allowlist": {
            "oneOf": [
                {"type": "string"},
                {"type": "array", "items": {"type": "string"}},
                {"type": "null"},
            ]
        },
        "sync_interval_seconds": {"type": "integer"},
        "lease_namespace": {"type": "string"},
        "request_timeout_seconds": {"type": "number"},
        "max_workers": {"type": "integer"},
        "cycle_backoff_max_seconds": {"type": "integer"},
        "respect_kubelet_seconds": {"type": "integer"},
        "metrics_port": {"type": "integer"},
        "kubeconfig": {"type": ["string", "null"]},
        "kube_context": {"type": ["string", "null"]},
        "log_level": {"type": "string"},
    },
}

# env var -> (settings key, parser)
_ENV_OVERRIDES: Final = {
    "NODE_LABEL_ALLOWLIST": ("node_label_allowlist", str),
    "SYNC_INTERVAL_SECONDS": ("sync_interval_seconds", int),
    "LEASE_NAMESPACE": ("lease_namespace", str),
    "REQUEST_TIMEOUT_SECONDS": ("request_timeout_seconds", float),
    "SYNC_MAX_WORKERS": ("max_workers", int),
    "CYCLE_BACKOFF_MAX_SECONDS": ("cycle_backoff_max_seconds", int),
    "RESPECT_KUBELET_SECONDS": ("respect_kubelet_seconds", int),
    "METRICS_PORT": ("metrics_port", int),
    "KUBECONFIG": ("kubeconfig", str),
    "KUBE_CONTEXT": ("kube_context", str),
    "LOG_LEVEL": ("log_level", str),
}


@dataclass(frozen=True)
class ControllerConfig:
    """Immutable runtime settings, built once at startup and shared by reference."""

    allowed_labels: FrozenSet[str] = field(default_factory=frozenset)
    sync_interval_seconds: int = DEFAULT_SYNC_INTERVAL_SECONDS
    lease_namespace: str = DEFAULT_LEASE_NAMESPACE
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_workers: int = 1
    cycle_backoff_max_seconds: int = 0
    respect_kubelet_seconds: int = 0
    metrics_port: int = 0
    kubeconfig: Optional[str] = None
    kube_context: Optional[str] = None
    log_level: str = "INFO"
    condition_reason: str = CONDITION_REASON
    condition_message: str = CONDITION_MESSAGE

    @property
    def request_timeout(self) -> Optional[float]:
        """Value for the client's ``_request_timeout`` kwarg; ``None`` means no deadline."""
        if self.request_timeout_seconds <= 0:
            return None
        return self.request_timeout_seconds


def load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML settings document. A missing file yields an empty mapping."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug("Settings file %s (missing)", path)
        return {}
    except yaml.YAMLError as e:
        raise ValueError(f"Settings file {path} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping.")
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for var, (key, parser) in _ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None:
            continue
        raw = raw.strip()
        if raw == "" and key != "node_label_allowlist":
            continue
        try:
            overrides[key] = parser(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from e
    return overrides


def _allowed_labels_from(value: Any) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return parse_label_allowlist(value)
    return build_allowed_labels(str(v).strip() for v in value)


def build_config(settings: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> ControllerConfig:
    """Merge settings with environment overrides into a validated ``ControllerConfig``."""
    try:
        jsonschema.validate(instance=dict(settings), schema=SETTINGS_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValueError(f"Invalid settings: {e.message}") from e

    merged: Dict[str, Any] = dict(settings)
    merged.update(_env_overrides(os.environ if environ is None else environ))

    cfg = ControllerConfig()
    kwargs: Dict[str, Any] = {}
    for key, value in merged.items():
        if key == "node_label_allowlist":
            kwargs["allowed_labels"] = _allowed_labels_from(value)
        elif value is not None:
            kwargs[key] = value
    cfg = replace(cfg, **kwargs)
    validate_config(cfg)
    return cfg


def load_config(settings_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> ControllerConfig:
    settings = load_yaml(settings_path) if settings_path else {}
    return build_config(settings, environ)


def validate_config(cfg: ControllerConfig) -> None:
    """Sanity-check a config. Raises ``ValueError`` on the first problem found."""
    if cfg.sync_interval_seconds <= 0:
        raise ValueError("sync_interval_seconds must be positive.")
    if not cfg.lease_namespace:
        raise ValueError("lease_namespace must not be empty.")
    if cfg.request_timeout_seconds < 0:
        raise ValueError("request_timeout_seconds must not be negative.")
    if cfg.max_workers < 1:
        raise ValueError("max_workers must be at least 1.")
    if cfg.cycle_backoff_max_seconds < 0:
        raise ValueError("cycle_backoff_max_seconds must not be negative.")
    if cfg.respect_kubelet_seconds < 0:
        raise ValueError("respect_kubelet_seconds must not be negative.")
    if not 0 <= cfg.metrics_port <= 65535:
        raise ValueError("metrics_port must be between 0 and 65535.")
    if logging.getLevelName(cfg.log_level.upper()) not in (
        logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
    ):
        raise ValueError(f"Unknown log_level {cfg.log_level!r}.")
    if cfg.cycle_backoff_max_seconds and cfg.cycle_backoff_max_seconds < cfg.sync_interval_seconds:
        logger.warning(
            "cycle_backoff_max_seconds (%s) is below sync_interval_seconds (%s); backoff has no effect",
            cfg.cycle_backoff_max_seconds, cfg.sync_interval_seconds,
        )
