"""
HTTP server for GKE Events Notifier.

Binds the listener, routes push requests to the handler and liveness checks
to a fixed response, and drains in-flight requests on shutdown.
"""

import asyncio
import signal
import sys
from enum import Enum
from typing import Optional

import structlog
from aiohttp import web

from .config.settings import Config
from .errors import StartupError
from .handler import PubSubHandler
from .slack.delivery import SlackDelivery

logger = structlog.get_logger(__name__)


class ServerState(str, Enum):
    """Lifecycle state of the server."""

    STARTING = "starting"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


async def handle_healthz(request: web.Request) -> web.Response:
    """Respond with "OK" indicating the application is running."""
    return web.Response(text="OK\n")


class NotifierServer:
    """
    Notifier HTTP server.

    Owns the shared delivery engine and the shutdown event that aborts
    pending deliveries once draining starts.
    """

    def __init__(self, config: Config, delivery: Optional[SlackDelivery] = None):
        """
        Initialize the server.

        Args:
            config: Notifier configuration
            delivery: Delivery engine, built from config when omitted
        """
        self.config = config
        self.delivery = delivery or SlackDelivery(
            max_attempts=config.slack.max_attempts,
            base_delay_seconds=config.slack.base_delay_seconds,
            timeout_seconds=config.slack.timeout_seconds,
        )
        self._shutdown_event = asyncio.Event()
        self._stop_requested = asyncio.Event()
        self.handler = PubSubHandler(config, self.delivery, self._shutdown_event)

        self._state = ServerState.STARTING
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def state(self) -> ServerState:
        """Current lifecycle state."""
        return self._state

    @property
    def port(self) -> int:
        """Bound port, useful when listening on port 0."""
        if self._runner is not None and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self.config.server.port

    def create_app(self) -> web.Application:
        """Build the aiohttp application with its routes."""
        app = web.Application(client_max_size=self.config.server.max_body_bytes)
        app.router.add_get("/healthz", handle_healthz)
        app.router.add_post("/", self.handler.handle)
        return app

    async def start(self) -> None:
        """
        Start listening.

        Raises:
            StartupError: If the listener cannot be bound
        """
        server_config = self.config.server
        self._app = self.create_app()
        self._runner = web.AppRunner(
            self._app,
            handler_cancellation=True,
            shutdown_timeout=server_config.shutdown_grace_seconds,
        )
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, server_config.host or None, server_config.port)
        try:
            await self._site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._state = ServerState.STOPPED
            raise StartupError(
                f"Failed to listen on {server_config.listen_address}: {e}",
                details={"errno": e.errno},
            ) from e

        self._state = ServerState.LISTENING
        logger.info("Starting HTTP server", address=server_config.listen_address, port=self.port)

    def request_stop(self) -> None:
        """Ask a running server to shut down."""
        self._stop_requested.set()

    async def stop(self) -> None:
        """Drain in-flight requests and release resources."""
        if self._state in (ServerState.DRAINING, ServerState.STOPPED):
            return

        logger.info("Shutting down HTTP server...")
        self._state = ServerState.DRAINING
        self._shutdown_event.set()

        if self._runner is not None:
            try:
                await self._runner.cleanup()
            except Exception as e:
                logger.error("Error shutting down HTTP server", error=str(e), exc_info=True)

        await self.delivery.close()
        self._state = ServerState.STOPPED

    async def run(self) -> None:
        """Start the server and serve until SIGINT or SIGTERM."""
        await self.start()
        self._setup_signal_handlers()
        try:
            await self._stop_requested.wait()
        finally:
            self._remove_signal_handlers()
            await self.stop()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()

            def signal_handler(signum: int) -> None:
                logger.info("Received signal, initiating shutdown", signal=signum)
                self.request_stop()

            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(signum, signal_handler, signum)

    def _remove_signal_handlers(self) -> None:
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(signum)
