"""
Metric registry: maps collected snapshots onto Prometheus gauges.

The gauge catalogue is created once per Exporter. Each gather() clears all
labelled gauges, runs one collection and writes either the healthy surface
(every device keyed by its minor number) or the degraded one (up=0,
device_count=0, driver_info{version="unavailable"}). Families without any
sample are dropped from the result.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Gauge
from prometheus_client.metrics_core import Metric

from .collectors.base import CollectionError, MetricsCollector
from .const import NAMESPACE, UNAVAILABLE_VERSION
from .logging import get_logger
from .models.metrics import Device, Metrics


logger = get_logger("exporter")


@dataclass(frozen=True)
class DeviceGauge:
    """Definition of a per-device family keyed by the ``minor`` label."""

    field: str
    name: str
    documentation: str


# Per-device families, in exposition order.
DEVICE_GAUGES: tuple[DeviceGauge, ...] = (
    DeviceGauge("temperature", "temperatures", "Temperature as reported by the device"),
    DeviceGauge("power_usage", "power_usage", "Power usage as reported by the device"),
    DeviceGauge(
        "power_usage_average",
        "power_usage_average",
        "Power usage as reported by the device averaged over 10s",
    ),
    DeviceGauge("fan_speed", "fanspeed", "Fan speed as reported by the device"),
    DeviceGauge("memory_total", "memory_total", "Total memory as reported by the device"),
    DeviceGauge("memory_used", "memory_used", "Used memory as reported by the device"),
    DeviceGauge(
        "utilization_memory",
        "utilization_memory",
        "Memory Utilization as reported by the device",
    ),
    DeviceGauge("utilization_gpu", "utilization_gpu", "GPU utilization as reported by the device"),
    DeviceGauge(
        "utilization_gpu_average",
        "utilization_gpu_average",
        "GPU utilization as reported by the device averaged over 10s",
    ),
    DeviceGauge("clock_graphics", "clock_graphics_mhz", "Graphics clock speed in MHz"),
    DeviceGauge("clock_sm", "clock_sm_mhz", "SM clock speed in MHz"),
    DeviceGauge("clock_memory", "clock_memory_mhz", "Memory clock speed in MHz"),
    DeviceGauge(
        "clock_graphics_max", "clock_graphics_max_mhz", "Maximum graphics clock speed in MHz"
    ),
    DeviceGauge("clock_sm_max", "clock_sm_max_mhz", "Maximum SM clock speed in MHz"),
    DeviceGauge("clock_memory_max", "clock_memory_max_mhz", "Maximum memory clock speed in MHz"),
    DeviceGauge("power_limit", "power_limit_milliwatts", "Power management limit in milliwatts"),
    DeviceGauge(
        "power_limit_default",
        "power_limit_default_milliwatts",
        "Default power management limit in milliwatts",
    ),
    DeviceGauge(
        "performance_state",
        "performance_state",
        "Current performance state (P-State: 0-15, lower is better)",
    ),
    DeviceGauge("pcie_link_gen", "pcie_link_generation", "PCIe link generation"),
    DeviceGauge("pcie_link_width", "pcie_link_width", "PCIe link width"),
    DeviceGauge("pcie_tx_throughput", "pcie_tx_throughput_kb", "PCIe transmit throughput in KB/s"),
    DeviceGauge("pcie_rx_throughput", "pcie_rx_throughput_kb", "PCIe receive throughput in KB/s"),
    DeviceGauge(
        "encoder_utilization", "encoder_utilization", "Encoder utilization percentage (0-100)"
    ),
    DeviceGauge(
        "decoder_utilization", "decoder_utilization", "Decoder utilization percentage (0-100)"
    ),
    DeviceGauge("ecc_errors_corrected", "ecc_errors_corrected_total", "Total corrected ECC errors"),
    DeviceGauge(
        "ecc_errors_uncorrected", "ecc_errors_uncorrected_total", "Total uncorrected ECC errors"
    ),
    DeviceGauge("compute_processes", "compute_processes", "Number of compute processes running"),
    DeviceGauge("graphics_processes", "graphics_processes", "Number of graphics processes running"),
)

INFO_LABELS = ("index", "minor", "uuid", "name")


class Exporter:
    """
    Registry of NVIDIA GPU gauges, refreshed on every gather().

    One instance is shared by all concurrent scrape requests. The whole
    clear-collect-update-read sequence runs under a single lock so a scrape
    never observes another scrape's partial update.
    """

    def __init__(self, collector: MetricsCollector):
        """
        Initialize exporter.

        Args:
            collector: Source of Metrics snapshots
        """
        self.collector = collector
        self.registry = CollectorRegistry(auto_describe=True)
        self._lock = threading.Lock()

        self.up = Gauge(
            "up",
            "NVML Metric Collection Operational",
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.driver_info = Gauge(
            "driver_info",
            "NVML Info",
            ["version"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.device_count = Gauge(
            "device_count",
            "Count of found nvidia devices",
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.device_info = Gauge(
            "info",
            "Info as reported by the device",
            list(INFO_LABELS),
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.device_gauges: dict[str, Gauge] = {
            gauge_def.field: Gauge(
                gauge_def.name,
                gauge_def.documentation,
                ["minor"],
                namespace=NAMESPACE,
                registry=self.registry,
            )
            for gauge_def in DEVICE_GAUGES
        }

    @property
    def labelled_gauges(self) -> list[Gauge]:
        """Every gauge that carries labels (cleared at the start of a cycle)."""
        return [self.driver_info, self.device_info, *self.device_gauges.values()]

    def gather(self) -> list[Metric]:
        """
        Run one collection cycle and return the non-empty metric families.

        Never raises: collection failures produce the degraded surface.
        """
        logger.debug("Starting metrics collection")

        with self._lock:
            for gauge in self.labelled_gauges:
                gauge.clear()

            try:
                metrics = self.collector.collect()
            except CollectionError as e:
                logger.warning(
                    f"Failed to collect metrics (NVML unavailable): {e}. "
                    "Reporting up=0, device_count=0"
                )
                self._set_degraded()
            except Exception as e:
                logger.exception(f"Unexpected error while collecting metrics: {e}")
                self._set_degraded()
            else:
                logger.debug(
                    f"Collected metrics: version={metrics.version}, "
                    f"device_count={metrics.device_count}"
                )
                self._set_healthy(metrics)

            families = []
            for family in self.registry.collect():
                if family.samples:
                    families.append(family)
                else:
                    logger.debug(f"Skipping empty metric family: {family.name}")

        logger.debug(f"Collected {len(families)} metric families")
        return families

    def _set_healthy(self, metrics: Metrics) -> None:
        self.up.set(1)
        self.device_count.set(metrics.device_count)
        self.driver_info.labels(version=metrics.version).set(1)

        for device in metrics.devices:
            self._set_device(device)

    def _set_degraded(self) -> None:
        self.up.set(0)
        self.device_count.set(0)
        self.driver_info.labels(version=UNAVAILABLE_VERSION).set(1)

    def _set_device(self, device: Device) -> None:
        self.device_info.labels(
            index=device.index,
            minor=device.minor_number,
            uuid=device.uuid,
            name=device.name,
        ).set(1)

        for field_name, gauge in self.device_gauges.items():
            value = getattr(device, field_name)
            # Unsupported capability is exported as 0; consumers cannot tell
            # it apart from a real zero reading.
            if value is None:
                value = 0.0
            gauge.labels(minor=device.minor_number).set(value)
