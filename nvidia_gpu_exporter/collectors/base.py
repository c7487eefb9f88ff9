"""
Collector interfaces and the collection error taxonomy.

A collector turns one pass over a hardware source into a Metrics snapshot.
The source is reached only through the DeviceSource/DeviceHandle protocols,
so tests can plug in a fake instead of real hardware.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from ..models.metrics import Metrics


class SourceError(Exception):
    """A single query against the hardware source failed."""

    def __init__(self, query: str, reason: str | Exception):
        self.query = query
        self.reason = reason
        super().__init__(f"{query}: {reason}")


class CollectionError(Exception):
    """Exception raised when a collection cycle cannot produce a snapshot."""

    pass


class SourceUnavailable(CollectionError):
    """The hardware library could not be initialized or enumerated."""

    pass


class MandatoryFieldError(CollectionError):
    """A required per-device counter could not be read."""

    def __init__(self, device_index: int, error: SourceError):
        self.device_index = device_index
        self.error = error
        super().__init__(f"Device {device_index}: {error}")


class Clock(Enum):
    """Clock domains that can be queried per device."""

    GRAPHICS = "graphics"
    SM = "sm"
    MEMORY = "memory"


class PcieDirection(Enum):
    """PCIe throughput counters."""

    TX = "tx"
    RX = "rx"


class EccErrorType(Enum):
    """ECC error classes (aggregate counters)."""

    CORRECTED = "corrected"
    UNCORRECTED = "uncorrected"


@runtime_checkable
class DeviceHandle(Protocol):
    """Per-device queries. Every method returns a value or raises SourceError."""

    def uuid(self) -> str: ...

    def name(self) -> str: ...

    def minor_number(self) -> int: ...

    def temperature(self) -> float: ...

    def power_usage(self) -> float: ...

    def fan_speed(self) -> float: ...

    def memory_info(self) -> tuple[float, float]: ...

    def utilization_rates(self) -> tuple[float, float]: ...

    def clock(self, kind: Clock) -> float: ...

    def max_clock(self, kind: Clock) -> float: ...

    def power_limit(self) -> float: ...

    def power_limit_default(self) -> float: ...

    def performance_state(self) -> float: ...

    def pcie_link_gen(self) -> float: ...

    def pcie_link_width(self) -> float: ...

    def pcie_throughput(self, direction: PcieDirection) -> float: ...

    def encoder_utilization(self) -> float: ...

    def decoder_utilization(self) -> float: ...

    def ecc_errors(self, kind: EccErrorType) -> float: ...

    def compute_processes(self) -> float: ...

    def graphics_processes(self) -> float: ...


@runtime_checkable
class DeviceSource(Protocol):
    """Structural protocol for the vendor monitoring library."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def driver_version(self) -> str: ...

    def device_count(self) -> int: ...

    def device_by_index(self, index: int) -> DeviceHandle: ...


@runtime_checkable
class MetricsCollector(Protocol):
    """Anything that can produce a Metrics snapshot on demand."""

    def collect(self) -> Metrics: ...
