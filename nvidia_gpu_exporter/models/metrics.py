"""
Metrics snapshot model produced by a collection cycle.

A snapshot is created fresh on every scrape, read once to update the
exporter's gauges and then dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field


# Measurements that may be unsupported by a board or driver.
# None means "capability missing", which is not the same as a reading of 0.
OPTIONAL_FIELDS: tuple[str, ...] = (
    "clock_graphics",
    "clock_sm",
    "clock_memory",
    "clock_graphics_max",
    "clock_sm_max",
    "clock_memory_max",
    "power_limit",
    "power_limit_default",
    "performance_state",
    "pcie_link_gen",
    "pcie_link_width",
    "pcie_tx_throughput",
    "pcie_rx_throughput",
    "encoder_utilization",
    "decoder_utilization",
    "ecc_errors_corrected",
    "ecc_errors_uncorrected",
    "compute_processes",
    "graphics_processes",
)


@dataclass
class Device:
    """
    One GPU as seen by a single collection cycle.

    Identity fields are kept as strings since they are only ever used as
    label values. ``minor_number`` is unique within a snapshot and keys
    every per-device series.
    """

    # Identity
    index: str
    minor_number: str
    uuid: str
    name: str

    # Mandatory measurements
    temperature: float
    fan_speed: float
    power_usage: float
    power_usage_average: float
    memory_total: float
    memory_used: float
    utilization_gpu: float
    utilization_gpu_average: float
    utilization_memory: float

    # Clocks (MHz)
    clock_graphics: float | None = None
    clock_sm: float | None = None
    clock_memory: float | None = None
    clock_graphics_max: float | None = None
    clock_sm_max: float | None = None
    clock_memory_max: float | None = None

    # Power limits (mW)
    power_limit: float | None = None
    power_limit_default: float | None = None

    # P-State, 0 is the fastest
    performance_state: float | None = None

    # PCIe
    pcie_link_gen: float | None = None
    pcie_link_width: float | None = None
    pcie_tx_throughput: float | None = None
    pcie_rx_throughput: float | None = None

    # Video engines (%)
    encoder_utilization: float | None = None
    decoder_utilization: float | None = None

    # ECC
    ecc_errors_corrected: float | None = None
    ecc_errors_uncorrected: float | None = None

    # Running processes
    compute_processes: float | None = None
    graphics_processes: float | None = None

    def missing_capabilities(self) -> list[str]:
        """Optional measurements this device did not report."""
        return [name for name in OPTIONAL_FIELDS if getattr(self, name) is None]

    def __repr__(self) -> str:
        return f"Device(index={self.index}, minor={self.minor_number}, name={self.name!r})"


@dataclass
class Metrics:
    """Result of one successful collection cycle."""

    version: str
    devices: list[Device] = field(default_factory=list)

    @property
    def device_count(self) -> int:
        return len(self.devices)
