"""
Tests for the metrics snapshot model.
"""

from dataclasses import fields

from nvidia_gpu_exporter.models.metrics import OPTIONAL_FIELDS, Device, Metrics

from fakes import make_device


def test_optional_fields_default_to_none() -> None:
    device = Device(
        index="0",
        minor_number="0",
        uuid="GPU-12345",
        name="Test GPU",
        temperature=50.0,
        fan_speed=50.0,
        power_usage=100.0,
        power_usage_average=100.0,
        memory_total=8589934592.0,
        memory_used=4294967296.0,
        utilization_gpu=75.0,
        utilization_gpu_average=75.0,
        utilization_memory=50.0,
    )

    for name in OPTIONAL_FIELDS:
        assert getattr(device, name) is None
    assert device.missing_capabilities() == list(OPTIONAL_FIELDS)


def test_optional_fields_are_declared_on_device() -> None:
    declared = {f.name for f in fields(Device)}
    assert set(OPTIONAL_FIELDS) <= declared


def test_absence_is_distinct_from_zero() -> None:
    device = make_device(performance_state=0.0, ecc_errors_corrected=None)

    assert device.performance_state == 0.0
    assert "performance_state" not in device.missing_capabilities()
    assert "ecc_errors_corrected" in device.missing_capabilities()


def test_memory_used_within_total() -> None:
    device = make_device()
    assert device.memory_used <= device.memory_total


def test_metrics_device_count() -> None:
    metrics = Metrics(
        version="525.116.04",
        devices=[make_device(minor="0"), make_device(minor="3", index="1")],
    )

    assert metrics.device_count == 2


def test_empty_metrics() -> None:
    metrics = Metrics(version="525.116.04")
    assert metrics.version == "525.116.04"
    assert metrics.device_count == 0
