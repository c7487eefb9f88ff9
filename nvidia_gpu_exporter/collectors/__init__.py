"""
Metric collectors for GPU telemetry.
"""

from .base import (
    CollectionError,
    DeviceHandle,
    DeviceSource,
    MandatoryFieldError,
    MetricsCollector,
    SourceError,
    SourceUnavailable,
)
from .nvml import NvmlCollector, NvmlSource

__all__ = [
    "CollectionError",
    "DeviceHandle",
    "DeviceSource",
    "MandatoryFieldError",
    "MetricsCollector",
    "SourceError",
    "SourceUnavailable",
    "NvmlCollector",
    "NvmlSource",
]
