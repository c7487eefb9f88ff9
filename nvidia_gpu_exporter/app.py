"""
Main application orchestrator.

Handles:
- Building the collector, exporter and HTTP server from configuration
- Binding the listener
- Shutdown on SIGINT/SIGTERM
"""

import asyncio
import signal

from aiohttp import web

from .collectors.nvml import NvmlCollector
from .config.schema import Config
from .exporter import Exporter
from .logging import get_logger
from .server import MetricsServer


logger = get_logger("app")


class BindError(Exception):
    """Exception raised when the HTTP listener cannot be bound."""

    pass


class Application:
    """
    Main application class.

    Owns the process-wide Exporter and serves it over HTTP until a
    shutdown signal arrives. In-flight scrapes are not drained.
    """

    def __init__(self, config: Config, exporter: Exporter | None = None):
        """
        Initialize application.

        Args:
            config: Application configuration
            exporter: Exporter to serve (defaults to one backed by NVML)

        Raises:
            AddressParseError: If the listen address is malformed
        """
        self.config = config
        self.host, self.port = config.web.address()

        if exporter is None:
            self.collector: NvmlCollector | None = NvmlCollector(timeout=config.nvml.timeout)
            exporter = Exporter(self.collector)
        else:
            self.collector = None
        self.exporter = exporter

        self.server = MetricsServer(self.exporter, config.web.telemetry_path)
        self._runner: web.AppRunner | None = None
        self._shutdown_event = asyncio.Event()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        logger.warning("Received shutdown signal, shutting down")
        self._shutdown_event.set()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def start(self) -> None:
        """
        Bind the listener and start serving.

        Raises:
            BindError: If the address cannot be bound
        """
        self._runner = web.AppRunner(self.server.create_app(), handle_signals=False)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._runner = None
            raise BindError(f"Failed to bind {self.config.web.listen}: {e}") from e

        logger.info(
            f"Serving metrics on http://{self.config.web.listen}{self.config.web.telemetry_path}"
        )

    async def stop(self) -> None:
        """Stop serving and release resources."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

        if self.collector is not None:
            self.collector.close()

        logger.info("Server stopped")

    async def run(self) -> None:
        """Run the application until shutdown."""
        await self.start()
        self._setup_signal_handlers()

        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()


async def run_app(config: Config) -> None:
    """
    Create and run the application.

    Args:
        config: Resolved configuration (file values merged with CLI overrides)
    """
    logger.debug(f"Listen address: {config.web.listen}")
    logger.debug(f"Telemetry path: {config.web.telemetry_path}")
    logger.debug(f"NVML timeout: {config.nvml.timeout}")

    app = Application(config)
    await app.run()
