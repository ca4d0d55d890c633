"""Main entry point - runs the relayer API, processor and source chain listener."""

import asyncio
import logging
import signal

import uvicorn

from shadowbridge.api.app import create_app
from shadowbridge.config import get_settings
from shadowbridge.services import build_services

logger = logging.getLogger(__name__)


class Application:
    """Main application: the HTTP server owns the relay services' lifespan."""

    def __init__(self):
        self.settings = get_settings()
        self.services = None
        self.server = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        # Configure logging
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting ShadowBridge relayer...")
        logger.info(f"Environment: {self.settings.environment}")
        logger.info(f"Store backend: {self.settings.store_backend.value}")

        if self.settings.dry_run:
            logger.warning("DRY_RUN enabled - settling against the in-process ledger")
        elif not self.settings.has_chain_credentials:
            logger.warning(
                "Destination chain not configured - transfers will fail at submission"
            )
        if not self.settings.has_source_listener:
            logger.warning("SOURCE_CONTRACT_ADDRESS not set - source chain listener disabled")

        self.services = build_services(self.settings)
        api_task = asyncio.create_task(self._run_api())
        logger.info("API task created")

        # Wait for shutdown signal or for the server to exit on its own
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())
        await asyncio.wait({api_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        # Let uvicorn exit cleanly so the lifespan shutdown runs
        if self.server is not None:
            self.server.should_exit = True
        shutdown_task.cancel()
        await asyncio.gather(api_task, shutdown_task, return_exceptions=True)
        logger.info("Shutdown complete")

    async def _run_api(self):
        """Run the FastAPI server; its lifespan starts and stops the relay services."""
        try:
            app = create_app(self.settings, self.services)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            self.server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await self.server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    app = Application()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
