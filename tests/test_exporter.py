"""
Tests for the Exporter metric registry.
"""

import threading

from prometheus_client.metrics_core import Metric

from nvidia_gpu_exporter.collectors.base import MandatoryFieldError, SourceError
from nvidia_gpu_exporter.collectors.nvml import NvmlCollector
from nvidia_gpu_exporter.exporter import DEVICE_GAUGES, Exporter
from nvidia_gpu_exporter.models.metrics import Metrics

from fakes import (
    FailingCollector,
    FakeDevice,
    FakeSource,
    SequenceCollector,
    StaticCollector,
    make_device,
)


def _by_name(families: list[Metric]) -> dict[str, Metric]:
    return {family.name: family for family in families}


def _value(families: list[Metric], name: str, /, **labels: str) -> float:
    for family in families:
        for sample in family.samples:
            if sample.name == name and sample.labels == labels:
                return sample.value
    raise AssertionError(f"No sample {name}{labels}")


def test_healthy_single_device(single_device_metrics: Metrics) -> None:
    families = Exporter(StaticCollector(single_device_metrics)).gather()

    assert _value(families, "nvidia_up") == 1
    assert _value(families, "nvidia_device_count") == 1
    assert _value(families, "nvidia_driver_info", version="525.116.04") == 1
    assert _value(
        families, "nvidia_info", index="0", minor="0", uuid="GPU-1", name="X"
    ) == 1
    assert _value(families, "nvidia_temperatures", minor="0") == 65
    assert _value(families, "nvidia_fanspeed", minor="0") == 75
    assert _value(families, "nvidia_memory_total", minor="0") == 10737418240
    assert _value(families, "nvidia_power_usage_average", minor="0") == 250000


def test_two_devices_keyed_by_minor(two_device_metrics: Metrics) -> None:
    families = Exporter(StaticCollector(two_device_metrics)).gather()
    by_name = _by_name(families)

    assert _value(families, "nvidia_device_count") == 2
    for gauge_def in DEVICE_GAUGES:
        family = by_name[f"nvidia_{gauge_def.name}"]
        assert sorted(s.labels["minor"] for s in family.samples) == ["0", "1"]

    assert len(by_name["nvidia_info"].samples) == 2


def test_unavailable_source_reports_degraded_surface() -> None:
    families = Exporter(FailingCollector()).gather()
    by_name = _by_name(families)

    assert set(by_name) == {"nvidia_up", "nvidia_device_count", "nvidia_driver_info"}
    assert _value(families, "nvidia_up") == 0
    assert _value(families, "nvidia_device_count") == 0
    assert _value(families, "nvidia_driver_info", version="unavailable") == 1
    assert len(by_name["nvidia_driver_info"].samples) == 1


def test_mandatory_failure_reports_degraded_surface() -> None:
    source = FakeSource(devices=[
        FakeDevice(minor=0),
        FakeDevice(minor=1, failures={"temperature"}),
    ])

    families = Exporter(NvmlCollector(source)).gather()
    names = {family.name for family in families}

    assert _value(families, "nvidia_up") == 0
    assert _value(families, "nvidia_device_count") == 0
    assert "nvidia_info" not in names
    assert "nvidia_temperatures" not in names


def test_failure_after_success_drops_device_labels(single_device_metrics: Metrics) -> None:
    exporter = Exporter(SequenceCollector([
        single_device_metrics,
        MandatoryFieldError(0, SourceError("temperature", "GPU is lost")),
    ]))

    first = _by_name(exporter.gather())
    assert "nvidia_info" in first
    assert "nvidia_temperatures" in first

    second = exporter.gather()
    assert {family.name for family in second} == {
        "nvidia_up",
        "nvidia_device_count",
        "nvidia_driver_info",
    }
    driver_samples = _by_name(second)["nvidia_driver_info"].samples
    assert [s.labels for s in driver_samples] == [{"version": "unavailable"}]


def test_recovery_after_failure(single_device_metrics: Metrics) -> None:
    exporter = Exporter(SequenceCollector([
        MandatoryFieldError(0, SourceError("temperature", "GPU is lost")),
        single_device_metrics,
    ]))

    exporter.gather()
    families = exporter.gather()

    assert _value(families, "nvidia_up") == 1
    driver_samples = _by_name(families)["nvidia_driver_info"].samples
    assert [s.labels for s in driver_samples] == [{"version": "525.116.04"}]


def test_removed_device_disappears() -> None:
    exporter = Exporter(SequenceCollector([
        Metrics(version="1", devices=[make_device("0", "0"), make_device("1", "1")]),
        Metrics(version="1", devices=[make_device("0", "0")]),
    ]))

    exporter.gather()
    families = exporter.gather()

    minors = [s.labels["minor"] for s in _by_name(families)["nvidia_temperatures"].samples]
    assert minors == ["0"]


def test_unsupported_capability_exported_as_zero() -> None:
    metrics = Metrics(version="1", devices=[make_device(clock_graphics=None)])

    families = Exporter(StaticCollector(metrics)).gather()

    assert _value(families, "nvidia_clock_graphics_mhz", minor="0") == 0
    assert _value(families, "nvidia_ecc_errors_corrected_total", minor="0") == 0


def test_no_devices_omits_device_families() -> None:
    families = Exporter(StaticCollector(Metrics(version="1"))).gather()
    names = {family.name for family in families}

    assert names == {"nvidia_up", "nvidia_device_count", "nvidia_driver_info"}
    assert _value(families, "nvidia_up") == 1
    assert _value(families, "nvidia_device_count") == 0


def test_every_family_has_samples(single_device_metrics: Metrics) -> None:
    for families in (
        Exporter(StaticCollector(single_device_metrics)).gather(),
        Exporter(FailingCollector()).gather(),
    ):
        assert families
        assert all(family.samples for family in families)
        assert "nvidia_up" in _by_name(families)


def test_gather_is_repeatable(single_device_metrics: Metrics) -> None:
    exporter = Exporter(StaticCollector(single_device_metrics))

    def snapshot() -> list[tuple]:
        return sorted(
            (s.name, tuple(sorted(s.labels.items())), s.value)
            for family in exporter.gather()
            for s in family.samples
        )

    assert snapshot() == snapshot()


def test_unexpected_error_degrades() -> None:
    families = Exporter(FailingCollector(RuntimeError("boom"))).gather()

    assert _value(families, "nvidia_up") == 0
    assert _value(families, "nvidia_driver_info", version="unavailable") == 1


def test_each_gather_collects_once(single_device_metrics: Metrics) -> None:
    collector = StaticCollector(single_device_metrics)
    exporter = Exporter(collector)

    exporter.gather()
    exporter.gather()

    assert collector.calls == 2


def test_concurrent_gathers_see_complete_snapshots(two_device_metrics: Metrics) -> None:
    exporter = Exporter(StaticCollector(two_device_metrics))
    results: list[list[Metric]] = []
    errors: list[BaseException] = []

    def worker() -> None:
        try:
            for _ in range(20):
                results.append(exporter.gather())
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == 80
    for families in results:
        by_name = _by_name(families)
        assert len(by_name["nvidia_info"].samples) == 2
        assert len(by_name["nvidia_temperatures"].samples) == 2


def test_registry_is_private() -> None:
    first = Exporter(StaticCollector(Metrics(version="1")))
    second = Exporter(StaticCollector(Metrics(version="2")))

    assert first.registry is not second.registry
    assert _value(first.gather(), "nvidia_driver_info", version="1") == 1
    assert _value(second.gather(), "nvidia_driver_info", version="2") == 1
