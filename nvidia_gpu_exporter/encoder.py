"""
Prometheus text exposition encoder.
"""

from __future__ import annotations

from collections.abc import Iterable

from prometheus_client import generate_latest
from prometheus_client.metrics_core import Metric

from .const import CONTENT_TYPE


class EncodingError(Exception):
    """Exception raised when metric families cannot be serialized."""

    pass


class _FamilySnapshot:
    """Adapts an already gathered family list to the registry interface."""

    def __init__(self, families: Iterable[Metric]):
        self._families = list(families)

    def collect(self) -> Iterable[Metric]:
        return self._families


def encode(families: Iterable[Metric]) -> str:
    """
    Serialize metric families into the text exposition format.

    The whole payload is rendered into memory first, so a failure never
    leaves partial output behind.

    Args:
        families: Families returned by Exporter.gather()

    Returns:
        Exposition text

    Raises:
        EncodingError: If rendering or UTF-8 transcoding fails
    """
    try:
        payload = generate_latest(_FamilySnapshot(families))  # type: ignore[arg-type]
    except (ValueError, TypeError, AttributeError) as e:
        raise EncodingError(f"Failed to encode metrics: {e}") from e

    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"Failed to encode metrics as UTF-8: {e}") from e


__all__ = ["CONTENT_TYPE", "EncodingError", "encode"]
