"""
Tests for the application lifecycle.
"""

import asyncio
import socket

import aiohttp
import pytest

from nvidia_gpu_exporter.app import Application, BindError
from nvidia_gpu_exporter.config.schema import AddressParseError, Config
from nvidia_gpu_exporter.exporter import Exporter
from nvidia_gpu_exporter.models.metrics import Metrics

from fakes import StaticCollector


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _config(listen: str) -> Config:
    config = Config()
    config.web.listen = listen
    return config


def test_serves_until_shutdown(single_device_metrics: Metrics) -> None:
    port = _free_port()

    async def scenario() -> None:
        app = Application(
            _config(f"127.0.0.1:{port}"),
            exporter=Exporter(StaticCollector(single_device_metrics)),
        )
        await app.start()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"http://127.0.0.1:{port}/metrics") as resp:
                    assert resp.status == 200
                    assert "nvidia_up 1.0" in await resp.text()
        finally:
            await app.stop()

    asyncio.run(scenario())


def test_run_returns_after_shutdown_request(single_device_metrics: Metrics) -> None:
    async def scenario() -> None:
        app = Application(
            _config(f"127.0.0.1:{_free_port()}"),
            exporter=Exporter(StaticCollector(single_device_metrics)),
        )
        task = asyncio.create_task(app.run())
        await asyncio.sleep(0.1)
        app.request_shutdown()
        await asyncio.wait_for(task, timeout=5)

    asyncio.run(scenario())


def test_bind_failure(single_device_metrics: Metrics) -> None:
    with socket.socket() as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen()
        port = taken.getsockname()[1]

        async def scenario() -> None:
            app = Application(
                _config(f"127.0.0.1:{port}"),
                exporter=Exporter(StaticCollector(single_device_metrics)),
            )
            with pytest.raises(BindError):
                await app.start()

        asyncio.run(scenario())


def test_malformed_address_rejected(single_device_metrics: Metrics) -> None:
    with pytest.raises(AddressParseError):
        Application(
            _config("nowhere"),
            exporter=Exporter(StaticCollector(single_device_metrics)),
        )
