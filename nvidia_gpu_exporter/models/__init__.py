"""
Data models for collected GPU telemetry.
"""

from .metrics import OPTIONAL_FIELDS, Device, Metrics

__all__ = [
    "Device",
    "Metrics",
    "OPTIONAL_FIELDS",
]
