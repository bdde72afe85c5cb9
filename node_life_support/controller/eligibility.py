from __future__ import annotations

from typing import AbstractSet, Any, FrozenSet, Iterable, Optional


def build_allowed_labels(keys: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Build the allowed label-key set, dropping empty keys and duplicates."""
    if keys is None:
        return frozenset()
    return frozenset(k for k in keys if k)


def parse_label_allowlist(raw: Optional[str]) -> FrozenSet[str]:
    """Parse a comma-separated list of label keys, e.g. ``"disktype, gpu"``."""
    if not raw:
        return frozenset()
    return build_allowed_labels(part.strip() for part in raw.split(","))


def node_labels(node: Any) -> dict:
    metadata = getattr(node, "metadata", None)
    return getattr(metadata, "labels", None) or {}


def node_has_allowed_label(node: Any, allowed: AbstractSet[str]) -> bool:
    """True if ``node`` carries at least one label key in ``allowed``.

    An empty ``allowed`` set matches every node. A ``None`` node never matches.
    Only keys are compared, label values are ignored.
    """
    if node is None:
        return False
    if not allowed:
        return True
    return any(key in allowed for key in node_labels(node))
