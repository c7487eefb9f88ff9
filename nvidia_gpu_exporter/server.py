"""
HTTP endpoint serving the exposition text via aiohttp.

Routes:
- GET <telemetry path>: gather + encode, text/plain; version=0.0.4
- GET /: landing page linking to the telemetry path
"""

from __future__ import annotations

import asyncio
import html

from aiohttp import web

from .const import APP_NAME, CONTENT_TYPE, DEFAULT_TELEMETRY_PATH
from .encoder import EncodingError, encode
from .exporter import Exporter
from .logging import get_logger


logger = get_logger("server")

LANDING_PAGE = """<html>
    <head><title>{title}</title></head>
    <body>
        <h1>{title}</h1>
        <p><a href='{path}'>Metrics</a></p>
    </body>
</html>
"""


class MetricsServer:
    """
    Builds the aiohttp application around a shared Exporter.

    gather() blocks on hardware queries, so it runs on the default thread
    pool and the event loop keeps accepting other connections meanwhile.
    """

    def __init__(self, exporter: Exporter, telemetry_path: str = DEFAULT_TELEMETRY_PATH):
        """
        Initialize server.

        Args:
            exporter: Shared metric registry
            telemetry_path: Path under which metrics are exposed
        """
        self.exporter = exporter
        self.telemetry_path = telemetry_path

    def create_app(self) -> web.Application:
        """Create the aiohttp application with both routes registered."""
        app = web.Application()
        app.router.add_get(self.telemetry_path, self.handle_metrics)
        if self.telemetry_path != "/":
            app.router.add_get("/", self.handle_index)
        return app

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Scrape handler."""
        logger.debug(f"Metrics endpoint called by {request.remote}")

        families = await asyncio.to_thread(self.exporter.gather)
        logger.debug(f"Gathered {len(families)} metric families")

        try:
            body = encode(families)
        except EncodingError as e:
            logger.warning(str(e))
            return web.Response(status=500, text=str(e))

        logger.debug(f"Encoded metrics ({len(body)} bytes)")
        return web.Response(
            status=200,
            body=body.encode("utf-8"),
            headers={"Content-Type": CONTENT_TYPE},
        )

    async def handle_index(self, request: web.Request) -> web.Response:
        """Landing page."""
        page = LANDING_PAGE.format(
            title=APP_NAME,
            path=html.escape(self.telemetry_path, quote=True),
        )
        return web.Response(text=page, content_type="text/html")
