"""
NVML-backed hardware source and collector.

NvmlSource wraps pynvml behind the DeviceSource protocol. NvmlCollector
walks any DeviceSource once per scrape and builds a Metrics snapshot:

- driver version or device enumeration failure -> SourceUnavailable
- any mandatory field failure on any device -> MandatoryFieldError
  (the whole cycle is dropped, not just the device)
- optional field failure -> field recorded as None
"""

from __future__ import annotations

import threading
import warnings
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from .base import (
    Clock,
    DeviceHandle,
    DeviceSource,
    EccErrorType,
    MandatoryFieldError,
    PcieDirection,
    SourceError,
    SourceUnavailable,
)
from ..logging import get_logger
from ..models.metrics import Device, Metrics

# Suppress deprecation warning from the pynvml shim (recommends nvidia-ml-py).
warnings.filterwarnings("ignore", category=FutureWarning, message=".*pynvml.*deprecated.*")
import pynvml  # noqa: E402


logger = get_logger("collectors.nvml")


_CLOCK_TYPES = {
    Clock.GRAPHICS: pynvml.NVML_CLOCK_GRAPHICS,
    Clock.SM: pynvml.NVML_CLOCK_SM,
    Clock.MEMORY: pynvml.NVML_CLOCK_MEM,
}

_PCIE_COUNTERS = {
    PcieDirection.TX: pynvml.NVML_PCIE_UTIL_TX_BYTES,
    PcieDirection.RX: pynvml.NVML_PCIE_UTIL_RX_BYTES,
}

_ECC_ERROR_TYPES = {
    EccErrorType.CORRECTED: pynvml.NVML_MEMORY_ERROR_TYPE_CORRECTED,
    EccErrorType.UNCORRECTED: pynvml.NVML_MEMORY_ERROR_TYPE_UNCORRECTED,
}


def _text(value: str | bytes) -> str:
    """Older pynvml releases return bytes for string queries."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _call(query: str, func: Callable[..., Any], *args: Any) -> Any:
    """Run a pynvml call, converting NVMLError into SourceError."""
    try:
        return func(*args)
    except pynvml.NVMLError as e:
        raise SourceError(query, e) from e


class NvmlDevice:
    """DeviceHandle implementation for a single NVML device handle."""

    def __init__(self, handle: Any, index: int):
        self.handle = handle
        self.index = index

    def uuid(self) -> str:
        return _text(_call("uuid", pynvml.nvmlDeviceGetUUID, self.handle))

    def name(self) -> str:
        return _text(_call("name", pynvml.nvmlDeviceGetName, self.handle))

    def minor_number(self) -> int:
        return int(_call("minor_number", pynvml.nvmlDeviceGetMinorNumber, self.handle))

    def temperature(self) -> float:
        return float(_call(
            "temperature",
            pynvml.nvmlDeviceGetTemperature,
            self.handle,
            pynvml.NVML_TEMPERATURE_GPU,
        ))

    def power_usage(self) -> float:
        # Milliwatts
        return float(_call("power_usage", pynvml.nvmlDeviceGetPowerUsage, self.handle))

    def fan_speed(self) -> float:
        return float(_call("fan_speed", pynvml.nvmlDeviceGetFanSpeed_v2, self.handle, 0))

    def memory_info(self) -> tuple[float, float]:
        info = _call("memory_info", pynvml.nvmlDeviceGetMemoryInfo, self.handle)
        return float(info.total), float(info.used)

    def utilization_rates(self) -> tuple[float, float]:
        rates = _call("utilization_rates", pynvml.nvmlDeviceGetUtilizationRates, self.handle)
        return float(rates.gpu), float(rates.memory)

    def clock(self, kind: Clock) -> float:
        return float(_call(
            f"clock_{kind.value}",
            pynvml.nvmlDeviceGetClockInfo,
            self.handle,
            _CLOCK_TYPES[kind],
        ))

    def max_clock(self, kind: Clock) -> float:
        return float(_call(
            f"clock_{kind.value}_max",
            pynvml.nvmlDeviceGetMaxClockInfo,
            self.handle,
            _CLOCK_TYPES[kind],
        ))

    def power_limit(self) -> float:
        return float(_call(
            "power_limit", pynvml.nvmlDeviceGetPowerManagementLimit, self.handle
        ))

    def power_limit_default(self) -> float:
        return float(_call(
            "power_limit_default",
            pynvml.nvmlDeviceGetPowerManagementDefaultLimit,
            self.handle,
        ))

    def performance_state(self) -> float:
        return float(_call(
            "performance_state", pynvml.nvmlDeviceGetPerformanceState, self.handle
        ))

    def pcie_link_gen(self) -> float:
        return float(_call(
            "pcie_link_gen", pynvml.nvmlDeviceGetCurrPcieLinkGeneration, self.handle
        ))

    def pcie_link_width(self) -> float:
        return float(_call(
            "pcie_link_width", pynvml.nvmlDeviceGetCurrPcieLinkWidth, self.handle
        ))

    def pcie_throughput(self, direction: PcieDirection) -> float:
        # KB/s
        return float(_call(
            f"pcie_{direction.value}_throughput",
            pynvml.nvmlDeviceGetPcieThroughput,
            self.handle,
            _PCIE_COUNTERS[direction],
        ))

    def encoder_utilization(self) -> float:
        utilization, _sampling_period = _call(
            "encoder_utilization", pynvml.nvmlDeviceGetEncoderUtilization, self.handle
        )
        return float(utilization)

    def decoder_utilization(self) -> float:
        utilization, _sampling_period = _call(
            "decoder_utilization", pynvml.nvmlDeviceGetDecoderUtilization, self.handle
        )
        return float(utilization)

    def ecc_errors(self, kind: EccErrorType) -> float:
        return float(_call(
            f"ecc_errors_{kind.value}",
            pynvml.nvmlDeviceGetTotalEccErrors,
            self.handle,
            _ECC_ERROR_TYPES[kind],
            pynvml.NVML_AGGREGATE_ECC,
        ))

    def compute_processes(self) -> float:
        procs = _call(
            "compute_processes", pynvml.nvmlDeviceGetComputeRunningProcesses, self.handle
        )
        return float(len(procs))

    def graphics_processes(self) -> float:
        procs = _call(
            "graphics_processes", pynvml.nvmlDeviceGetGraphicsRunningProcesses, self.handle
        )
        return float(len(procs))

    def __repr__(self) -> str:
        return f"NvmlDevice(index={self.index})"


class NvmlSource:
    """
    DeviceSource backed by the NVIDIA Management Library.

    NVML is initialized in open() and shut down in close() for every scrape,
    so a driver that becomes available after startup is picked up without a
    restart. nvmlInit/nvmlShutdown are reference counted by NVML itself.
    """

    def open(self) -> None:
        _call("init", pynvml.nvmlInit)

    def close(self) -> None:
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as e:
            logger.debug(f"NVML shutdown failed: {e}")

    def driver_version(self) -> str:
        return _text(_call("driver_version", pynvml.nvmlSystemGetDriverVersion))

    def device_count(self) -> int:
        return int(_call("device_count", pynvml.nvmlDeviceGetCount))

    def device_by_index(self, index: int) -> NvmlDevice:
        handle = _call(f"device_by_index({index})", pynvml.nvmlDeviceGetHandleByIndex, index)
        return NvmlDevice(handle, index)


def probe(query: Callable[..., float], *args: Any) -> float | None:
    """
    Query an optional capability.

    Returns the value, or None when the device or driver does not support it.
    """
    try:
        return query(*args)
    except SourceError as e:
        logger.debug(f"Optional capability unavailable: {e}")
        return None


class NvmlCollector:
    """
    Collects a Metrics snapshot from a DeviceSource.

    Access to the source is serialized with a lock since NVML is not
    guaranteed to be safe for concurrent queries. With a timeout set, the
    query runs on a single worker thread and a scrape that takes longer
    raises SourceUnavailable instead of blocking the caller indefinitely.
    """

    def __init__(self, source: DeviceSource | None = None, timeout: float | None = None):
        """
        Initialize collector.

        Args:
            source: Hardware source (defaults to NVML)
            timeout: Maximum seconds to wait for one collection, None to wait forever
        """
        self.source: DeviceSource = source if source is not None else NvmlSource()
        self.timeout = timeout
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: Future[Metrics] | None = None

    def collect(self) -> Metrics:
        """
        Collect metrics for all devices.

        Raises:
            SourceUnavailable: Source could not be opened or enumerated, timed out,
                or an earlier timed out query has not returned yet
            MandatoryFieldError: A required counter failed on any device
        """
        if self.timeout is None:
            return self._collect_serialized()

        # A timed out query may still be stuck in the driver; never queue
        # another one behind it.
        if self._pending is not None and not self._pending.done():
            raise SourceUnavailable("Previous hardware query is still running")

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nvml")

        future = self._executor.submit(self._collect_serialized)
        self._pending = future
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise SourceUnavailable(
                f"Hardware query did not finish within {self.timeout}s"
            ) from None

    def close(self) -> None:
        """Release the worker thread, if one was started."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self._pending = None

    def _collect_serialized(self) -> Metrics:
        with self._lock:
            try:
                self.source.open()
            except SourceError as e:
                raise SourceUnavailable(str(e)) from e

            try:
                return self._read_metrics()
            finally:
                self.source.close()

    def _read_metrics(self) -> Metrics:
        try:
            version = self.source.driver_version()
            count = self.source.device_count()
        except SourceError as e:
            raise SourceUnavailable(str(e)) from e

        logger.debug(f"Driver {version}, {count} device(s)")

        devices: list[Device] = []
        seen_minors: set[str] = set()
        for index in range(count):
            try:
                handle = self.source.device_by_index(index)
                device = self._read_device(index, handle)
            except SourceError as e:
                raise MandatoryFieldError(index, e) from e

            # Minor numbers key every per-device series
            if device.minor_number in seen_minors:
                raise MandatoryFieldError(index, SourceError(
                    "minor_number", f"duplicate minor number {device.minor_number}"
                ))
            seen_minors.add(device.minor_number)

            missing = device.missing_capabilities()
            if missing:
                logger.debug(f"Device {index} does not support: {', '.join(missing)}")
            devices.append(device)

        return Metrics(version=version, devices=devices)

    def _read_device(self, index: int, handle: DeviceHandle) -> Device:
        """Read one device. SourceError from a mandatory query propagates."""
        uuid = handle.uuid()
        name = handle.name()
        minor_number = str(handle.minor_number())
        temperature = handle.temperature()
        power_usage = handle.power_usage()
        memory_total, memory_used = handle.memory_info()
        utilization_gpu, utilization_memory = handle.utilization_rates()

        # Fanless (passively cooled) boards report "not supported"
        fan_speed = probe(handle.fan_speed)
        if fan_speed is None:
            fan_speed = 0.0

        return Device(
            index=str(index),
            minor_number=minor_number,
            uuid=uuid,
            name=name,
            temperature=temperature,
            fan_speed=fan_speed,
            power_usage=power_usage,
            # Instantaneous copies; NVML exposes no 10s window here.
            power_usage_average=power_usage,
            memory_total=memory_total,
            memory_used=memory_used,
            utilization_gpu=utilization_gpu,
            utilization_gpu_average=utilization_gpu,
            utilization_memory=utilization_memory,
            clock_graphics=probe(handle.clock, Clock.GRAPHICS),
            clock_sm=probe(handle.clock, Clock.SM),
            clock_memory=probe(handle.clock, Clock.MEMORY),
            clock_graphics_max=probe(handle.max_clock, Clock.GRAPHICS),
            clock_sm_max=probe(handle.max_clock, Clock.SM),
            clock_memory_max=probe(handle.max_clock, Clock.MEMORY),
            power_limit=probe(handle.power_limit),
            power_limit_default=probe(handle.power_limit_default),
            performance_state=probe(handle.performance_state),
            pcie_link_gen=probe(handle.pcie_link_gen),
            pcie_link_width=probe(handle.pcie_link_width),
            pcie_tx_throughput=probe(handle.pcie_throughput, PcieDirection.TX),
            pcie_rx_throughput=probe(handle.pcie_throughput, PcieDirection.RX),
            encoder_utilization=probe(handle.encoder_utilization),
            decoder_utilization=probe(handle.decoder_utilization),
            ecc_errors_corrected=probe(handle.ecc_errors, EccErrorType.CORRECTED),
            ecc_errors_uncorrected=probe(handle.ecc_errors, EccErrorType.UNCORRECTED),
            compute_processes=probe(handle.compute_processes),
            graphics_processes=probe(handle.graphics_processes),
        )
