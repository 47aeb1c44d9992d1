"""
Pub/Sub push request handler.

Runs one inbound request through decode, filter, format and delivery and
maps the outcome to an HTTP status. Filtered or empty events are answered
with 200 so Pub/Sub does not redeliver them.
"""

import asyncio
from typing import Optional

import aiohttp
import structlog
from aiohttp import web

from .config.settings import Config
from .errors import DecodeError, PermanentDeliveryError
from .pubsub.filters import is_type_url_allowed
from .pubsub.message import decode_push_request
from .slack.delivery import SlackDelivery
from .slack.formatter import build_notification

logger = structlog.get_logger(__name__)


class PubSubHandler:
    """Handler for Pub/Sub push requests."""

    def __init__(
        self,
        config: Config,
        delivery: SlackDelivery,
        shutdown_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize the handler.

        Args:
            config: Notifier configuration
            delivery: Shared Slack delivery engine
            shutdown_event: Set on shutdown to abort pending deliveries
        """
        self.config = config
        self.delivery = delivery
        self.shutdown_event = shutdown_event

    async def handle(self, request: web.Request) -> web.Response:
        """Handle a single push request."""
        try:
            body = await request.read()
        except (aiohttp.ClientError, web.HTTPException, OSError) as e:
            logger.error("Data read failed", error=str(e))
            return _bad_request()

        try:
            push_request = decode_push_request(body)
        except DecodeError as e:
            logger.error("Data unmarshal failed", error=e.message, **e.details)
            return _bad_request()

        logger.debug("Request", data=body.decode("utf-8", errors="replace").replace(" ", ""))

        message = push_request.message
        data = message.event_data
        if not data:
            logger.warning("Received empty data payload, skipping.")
            return web.Response()

        type_url = message.attributes.type_url
        if not type_url:
            logger.warning("No type_url in message attributes, skipping Slack notification.")
            return web.Response()

        allowed_type_urls = self.config.filters.allowed_type_urls
        if not is_type_url_allowed(type_url, allowed_type_urls):
            logger.debug(
                "Received type_url is not on allowed list, skipping",
                type_url=type_url,
                allowed_list=sorted(allowed_type_urls),
            )
            return web.Response()

        if allowed_type_urls:
            logger.debug("Received type_url present on allowed list", type_url=type_url)

        notification = build_notification(message)

        logger.info("Sending slack notification", message=data, type_url=type_url)
        try:
            await self.delivery.deliver(
                self.config.slack.webhook_url,
                notification,
                cancel_event=self.shutdown_event,
            )
        except PermanentDeliveryError as e:
            logger.error(
                "Sending slack message fail",
                type_url=type_url,
                subscription=push_request.subscription,
                attempts=e.attempts,
                code=e.code,
                error=e.message,
                last_error=str(e.last_error) if e.last_error else None,
                attempt_errors=[attempt.error for attempt in e.history],
            )
            return web.Response(status=500, text="Failed to send Slack notification\n")

        return web.Response()


def _bad_request() -> web.Response:
    return web.Response(status=400, text="Bad Request\n")
