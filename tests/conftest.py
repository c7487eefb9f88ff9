"""
Pytest configuration and fixtures.
"""

import pytest

from nvidia_gpu_exporter.models.metrics import Metrics

from fakes import FakeSource, make_device


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def single_device_metrics() -> Metrics:
    return Metrics(
        version="525.116.04",
        devices=[make_device(minor="0", uuid="GPU-1", name="X")],
    )


@pytest.fixture
def two_device_metrics() -> Metrics:
    return Metrics(
        version="525.116.04",
        devices=[make_device(minor="0", index="0"), make_device(minor="1", index="1")],
    )
