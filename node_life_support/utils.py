from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone


# -----------------------
# Clock primitives
# -----------------------
class Clock(ABC):
    """Source of "now" for timestamps written to the API server."""

    @abstractmethod
    def now_utc(self) -> datetime:
        ...


class RealClock(Clock):
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Always returns the same instant. Only meant for tests."""

    def __init__(self, dt_utc: datetime):
        if dt_utc.tzinfo is None:
            dt_utc = dt_utc.replace(tzinfo=timezone.utc)
        self._dt = dt_utc.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._dt


def parse_rfc3339(s: str) -> datetime:
    """Parse a Kubernetes ``Time``/``MicroTime`` string into an aware UTC datetime."""
    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp: {s!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# -----------------------
# Kubernetes time formats
# -----------------------
def format_micro_time(dt: datetime) -> str:
    """Render ``dt`` as a Kubernetes MicroTime: UTC, six fractional digits, ``Z``.

    The API server rejects lease renew times that lack the fixed-width
    fractional part, so ``isoformat`` (which drops ``.000000``) is not used.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_time(dt: datetime) -> str:
    """Render ``dt`` as a Kubernetes Time (RFC 3339, second precision, ``Z``)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
