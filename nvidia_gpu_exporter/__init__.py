"""
NVIDIA GPU Exporter - NVML telemetry as a Prometheus scrape target.
"""

from .const import APP_VERSION

__version__ = APP_VERSION
