"""
Pytest configuration and fixtures for GKE Events Notifier tests.
"""

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional

import pytest
from aiohttp import web

from gke_events_notifier.config.settings import Config, FilterConfig, ServerConfig, SlackConfig


class FakeSlack:
    """
    Stand-in for a Slack incoming webhook.

    Replies with the queued (status, body) pairs in order, repeating the last
    one, and records every request body it receives. A bytes body is sent
    as is.
    """

    def __init__(self, responses: Optional[List[tuple]] = None, delay: float = 0.0):
        self.responses = responses or [(200, "ok")]
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.headers: List[Dict[str, str]] = []
        self.received = asyncio.Event()
        self.release = asyncio.Event()

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/hook", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        self.calls.append(await request.json())
        self.headers.append(dict(request.headers))
        self.received.set()
        if self.delay:
            try:
                await asyncio.wait_for(self.release.wait(), timeout=self.delay)
            except asyncio.TimeoutError:
                pass
        index = min(len(self.calls), len(self.responses)) - 1
        status, body = self.responses[index]
        if isinstance(body, bytes):
            return web.Response(status=status, body=body)
        return web.Response(status=status, text=body)


def make_push_body(
    data: Optional[str] = "hello",
    type_url: str = "type.googleapis.com/google.container.v1beta1.UpgradeEvent",
    **attributes: str,
) -> bytes:
    """Build a Pub/Sub push request body."""
    message: Dict[str, Any] = {
        "attributes": {"type_url": type_url, **attributes},
        "messageId": "2070443601311540",
    }
    if data is not None:
        message["data"] = base64.b64encode(data.encode()).decode()
    return json.dumps(
        {"message": message, "subscription": "projects/myproject/subscriptions/gke-events"}
    ).encode()


@pytest.fixture(name="make_push_body")
def make_push_body_fixture():
    """Factory for push request bodies."""
    return make_push_body


@pytest.fixture
def push_body():
    """A valid push request body for an upgrade event."""
    return make_push_body(
        cluster_name="prod-cluster",
        cluster_location="europe-west1",
        project_id="123456789",
    )


@pytest.fixture
def test_config():
    """Create a test configuration."""
    return Config(
        version="0.16.0-test",
        server=ServerConfig(host="127.0.0.1", port=0, verbose=True),
        slack=SlackConfig(
            webhook_url="http://127.0.0.1:1/hook",
            timeout_seconds=5.0,
            max_attempts=3,
            base_delay_seconds=1.0,
        ),
        filters=FilterConfig(),
    )


@pytest.fixture
def slack_factory():
    """Factory for fake Slack webhooks; call it inside a running event loop."""
    return FakeSlack
