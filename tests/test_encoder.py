"""
Tests for the text exposition encoder.
"""

import pytest
from prometheus_client.metrics_core import GaugeMetricFamily, Metric

from nvidia_gpu_exporter.encoder import CONTENT_TYPE, EncodingError, encode
from nvidia_gpu_exporter.exporter import Exporter
from nvidia_gpu_exporter.models.metrics import Metrics

from fakes import FailingCollector, StaticCollector


def test_content_type() -> None:
    assert CONTENT_TYPE == "text/plain; version=0.0.4"


def test_encode_healthy_surface(single_device_metrics: Metrics) -> None:
    text = encode(Exporter(StaticCollector(single_device_metrics)).gather())

    assert "# HELP nvidia_up NVML Metric Collection Operational\n" in text
    assert "# TYPE nvidia_up gauge\n" in text
    assert "nvidia_up 1.0\n" in text
    assert "nvidia_device_count 1.0\n" in text
    assert 'nvidia_driver_info{version="525.116.04"} 1.0\n' in text
    assert 'nvidia_info{index="0",minor="0",uuid="GPU-1",name="X"} 1.0\n' in text
    assert 'nvidia_temperatures{minor="0"} 65.0\n' in text
    assert "# TYPE nvidia_temperatures gauge\n" in text


def test_encode_degraded_surface() -> None:
    text = encode(Exporter(FailingCollector()).gather())

    assert "nvidia_up 0.0\n" in text
    assert "nvidia_device_count 0.0\n" in text
    assert 'nvidia_driver_info{version="unavailable"} 1.0\n' in text
    assert "nvidia_temperatures" not in text


def test_encode_empty() -> None:
    assert encode([]) == ""


def test_encode_escapes_label_values() -> None:
    family = GaugeMetricFamily("nvidia_info", "Info", labels=["name"])
    family.add_metric(['Quadro "P"\\x'], 1)

    text = encode([family])

    assert 'nvidia_info{name="Quadro \\"P\\"\\\\x"} 1.0\n' in text


def test_encode_invalid_sample_raises() -> None:
    family = Metric("nvidia_broken", "Broken family", "gauge")
    family.add_sample("nvidia_broken", {}, "not-a-number")

    with pytest.raises(EncodingError):
        encode([family])


def test_encode_accepts_generator(single_device_metrics: Metrics) -> None:
    families = Exporter(StaticCollector(single_device_metrics)).gather()

    assert encode(iter(families)) == encode(families)
