"""
Unit tests for the Pub/Sub push request handler.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from gke_events_notifier.config.settings import Config, FilterConfig, ServerConfig, SlackConfig
from gke_events_notifier.handler import PubSubHandler
from gke_events_notifier.server import NotifierServer
from gke_events_notifier.slack.delivery import SlackDelivery

SCENARIO_BODY = b'{"message":{"data":"aGVsbG8=","attributes":{"type_url":"x"}}}'


def _config(
    webhook_url: str, allowed_type_urls: str = "", base_delay_seconds: float = 1.0
) -> Config:
    return Config(
        server=ServerConfig(host="127.0.0.1", port=0),
        slack=SlackConfig(webhook_url=webhook_url, base_delay_seconds=base_delay_seconds),
        filters=FilterConfig(allowed_type_urls=allowed_type_urls),
    )


class TestPubSubHandlerScenarios:
    """End-to-end request handling against a fake Slack webhook."""

    @pytest.mark.asyncio
    async def test_delivered_without_allow_list(self, slack_factory):
        fake = slack_factory()
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")))
            server = NotifierServer(config)
            try:
                async with TestClient(TestServer(server.create_app())) as client:
                    response = await client.post("/", data=SCENARIO_BODY)
                    assert response.status == 200
            finally:
                await server.delivery.close()

        assert len(fake.calls) == 1
        sent = fake.calls[0]
        assert sent["text"] == "hello"
        fields = sent["attachments"][0]["fields"]
        assert fields[-1] == {"short": True, "title": "event type", "value": "x"}

    @pytest.mark.asyncio
    async def test_filtered_out_by_allow_list(self, slack_factory):
        fake = slack_factory()
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")), "y,z")
            server = NotifierServer(config)
            try:
                async with TestClient(TestServer(server.create_app())) as client:
                    response = await client.post("/", data=SCENARIO_BODY)
                    assert response.status == 200
            finally:
                await server.delivery.close()

        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_allowed_by_allow_list(self, slack_factory, push_body):
        fake = slack_factory()
        allowed = " type.googleapis.com/google.container.v1beta1.UpgradeEvent , y"
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")), allowed)
            server = NotifierServer(config)
            try:
                async with TestClient(TestServer(server.create_app())) as client:
                    response = await client.post("/", data=push_body)
                    assert response.status == 200
            finally:
                await server.delivery.close()

        assert len(fake.calls) == 1
        assert [f["value"] for f in fake.calls[0]["attachments"][0]["fields"]] == [
            "prod-cluster",
            "europe-west1",
            "123456789",
            "UpgradeEvent",
        ]

    @pytest.mark.asyncio
    async def test_delivery_exhausted(self, slack_factory):
        fake = slack_factory(responses=[(500, "error")])
        wait_backoff = AsyncMock(return_value=False)
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")))
            server = NotifierServer(config)
            try:
                with patch.object(server.delivery, "_wait_backoff", wait_backoff):
                    async with TestClient(TestServer(server.create_app())) as client:
                        response = await client.post("/", data=SCENARIO_BODY)
                        assert response.status == 500
                        assert await response.text() == "Failed to send Slack notification\n"
            finally:
                await server.delivery.close()

        assert len(fake.calls) == 3
        delays = [c.args[0] for c in wait_backoff.await_args_list]
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_malformed_body(self, slack_factory):
        fake = slack_factory()
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")))
            server = NotifierServer(config)
            try:
                async with TestClient(TestServer(server.create_app())) as client:
                    response = await client.post("/", data=b"this is not json")
                    assert response.status == 400
                    assert await response.text() == "Bad Request\n"
            finally:
                await server.delivery.close()

        assert fake.calls == []


class TestPubSubHandlerNoOps:
    """Requests that are acknowledged without contacting Slack."""

    @pytest.fixture
    def delivery(self):
        delivery = MagicMock(spec=SlackDelivery)
        delivery.deliver = AsyncMock()
        return delivery

    @pytest.fixture
    def handler(self, test_config, delivery):
        return PubSubHandler(test_config, delivery)

    @staticmethod
    def _request(body=None, read_error=None):
        request = MagicMock()
        request.read = AsyncMock(return_value=body, side_effect=read_error)
        return request

    @pytest.mark.asyncio
    async def test_empty_data(self, handler, delivery, make_push_body):
        response = await handler.handle(self._request(make_push_body(data="")))

        assert response.status == 200
        delivery.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_data(self, handler, delivery, make_push_body):
        response = await handler.handle(self._request(make_push_body(data=None)))

        assert response.status == 200
        delivery.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_type_url(self, handler, delivery, make_push_body):
        response = await handler.handle(self._request(make_push_body(type_url="")))

        assert response.status == 200
        delivery.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_read_error(self, handler, delivery):
        response = await handler.handle(
            self._request(read_error=ConnectionResetError("connection reset"))
        )

        assert response.status == 400
        delivery.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_message_object(self, handler, delivery):
        response = await handler.handle(self._request(b'{"subscription":"s"}'))

        assert response.status == 400
        delivery.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivers_with_shutdown_event(self, test_config, delivery, push_body):
        shutdown_event = asyncio.Event()
        handler = PubSubHandler(test_config, delivery, shutdown_event)

        response = await handler.handle(self._request(push_body))

        assert response.status == 200
        delivery.deliver.assert_awaited_once()
        url, notification = delivery.deliver.await_args.args
        assert url == test_config.slack.webhook_url
        assert notification.text == "hello"
        assert delivery.deliver.await_args.kwargs["cancel_event"] is shutdown_event


class TestPubSubHandlerCancellation:
    """Shutdown while a request is backing off."""

    @pytest.mark.asyncio
    async def test_shutdown_aborts_backoff(self, slack_factory):
        fake = slack_factory(responses=[(500, "error")])
        async with TestServer(fake.create_app()) as slack_server:
            config = _config(str(slack_server.make_url("/hook")), base_delay_seconds=30.0)
            shutdown_event = asyncio.Event()
            delivery = SlackDelivery(
                max_attempts=config.slack.max_attempts,
                base_delay_seconds=config.slack.base_delay_seconds,
            )
            handler = PubSubHandler(config, delivery, shutdown_event)
            request = MagicMock()
            request.read = AsyncMock(return_value=SCENARIO_BODY)
            try:
                task = asyncio.ensure_future(handler.handle(request))
                await asyncio.wait_for(fake.received.wait(), timeout=5.0)
                shutdown_event.set()
                response = await asyncio.wait_for(task, timeout=5.0)
            finally:
                await delivery.close()

        assert response.status == 500
        assert len(fake.calls) == 1


class TestPubSubHandlerLargeBodies:
    """Push bodies above aiohttp's default 1 MiB request limit."""

    @pytest.mark.asyncio
    async def test_large_envelope_is_delivered(self, test_config, make_push_body):
        delivery = MagicMock(spec=SlackDelivery)
        delivery.deliver = AsyncMock()
        server = NotifierServer(test_config, delivery=delivery)
        body = make_push_body(data="x" * 900_000)
        assert len(body) > 1024 * 1024

        async with TestClient(TestServer(server.create_app())) as client:
            response = await client.post("/", data=body)

            assert response.status == 200

        delivery.deliver.assert_awaited_once()
        notification = delivery.deliver.await_args.args[1]
        assert len(notification.text) == 900_000

    @pytest.mark.asyncio
    async def test_body_over_limit_is_rejected(self, make_push_body):
        config = Config(
            server=ServerConfig(host="127.0.0.1", port=0, max_body_bytes=1024),
            slack=SlackConfig(webhook_url="http://127.0.0.1:1/hook"),
        )
        delivery = MagicMock(spec=SlackDelivery)
        delivery.deliver = AsyncMock()
        server = NotifierServer(config, delivery=delivery)

        async with TestClient(TestServer(server.create_app())) as client:
            response = await client.post("/", data=make_push_body(data="x" * 4096))

            assert response.status == 400

        delivery.deliver.assert_not_awaited()
