"""
Main entry point for GKE Events Notifier.

Parses flags and environment variables into the configuration, sets up
logging and runs the HTTP server until it is asked to stop.
"""

import asyncio
import sys
from typing import Optional

import click
import structlog
from pydantic import ValidationError

from . import __version__
from .config.settings import Config, load_config
from .errors import StartupError
from .server import NotifierServer
from .utils.logging import setup_logging


@click.command()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Verbose mode.")
@click.option(
    "--port",
    envvar="PORT",
    default="8080",
    show_default=True,
    help="Port to listen on.",
)
@click.option(
    "--allowed-type-urls",
    envvar="ALLOWED_TYPE_URLS",
    default="",
    help="Comma separated allowed type URLs. If empty, all types will be allowed.",
)
@click.option(
    "--slack-webhook-url",
    envvar="SLACK_WEBHOOK_URL",
    required=True,
    help="Slack webhook URL.",
)
@click.version_option(version=__version__)
def main(
    verbose: bool,
    port: str,
    allowed_type_urls: Optional[str],
    slack_webhook_url: str,
) -> None:
    """GKE Events Notifier - relays GKE cluster notifications from Pub/Sub to Slack."""
    setup_logging("DEBUG" if verbose else "INFO")
    logger = structlog.get_logger()

    try:
        config = load_config(
            slack_webhook_url=slack_webhook_url,
            port=port,
            allowed_type_urls=allowed_type_urls,
            verbose=verbose,
        )
    except (ValidationError, ValueError) as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    logger.info(
        "Program started",
        version=config.version,
        port=config.server.port,
        allowed_type_urls=sorted(config.filters.allowed_type_urls),
    )

    try:
        asyncio.run(_serve(config))
    except StartupError as e:
        logger.error("HTTP server encountered an error", error=e.message, **e.details)
        sys.exit(1)

    logger.info("Program gracefully stopped")


async def _serve(config: Config) -> None:
    server = NotifierServer(config)
    await server.run()


if __name__ == "__main__":
    main()
