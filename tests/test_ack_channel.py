"""Tests for the acknowledgment interrupt channel."""

import asyncio
import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from oncall.config import settings
from oncall.services.ack_channel import (
    AckMessage,
    AckSubscriber,
    decode_ack,
    encode_ack,
    publish_ack,
)


class FakePubSub:
    """Minimal stand-in for a redis.asyncio PubSub."""

    def __init__(self, messages: list[dict], error: Exception | None = None):
        self._messages = messages
        self._error = error
        self.subscribed: list[str] = []
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.subscribed.append(channel)

    async def listen(self):
        for message in self._messages:
            yield message
        if self._error is not None:
            raise self._error
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class TestCodec:
    """Tests for encode_ack / decode_ack."""

    def test_decodes_json_payload(self):
        alert_id = uuid.uuid4()

        ack = decode_ack(encode_ack("acme", alert_id))

        assert ack == AckMessage(alert_id=alert_id, tenant="acme")

    def test_decodes_bare_alert_id(self):
        alert_id = uuid.uuid4()

        assert decode_ack(str(alert_id)) == AckMessage(alert_id=alert_id)

    def test_decodes_bytes(self):
        alert_id = uuid.uuid4()

        ack = decode_ack(json.dumps({"alert_id": str(alert_id)}).encode())

        assert ack.alert_id == alert_id
        assert ack.tenant is None

    @pytest.mark.parametrize("payload", ["", "not-a-uuid", '{"tenant": "acme"}', "[1, 2]"])
    def test_rejects_malformed(self, payload):
        assert decode_ack(payload) is None


class TestPublishAck:
    """Tests for publish_ack."""

    @pytest.mark.asyncio
    async def test_publishes_on_ack_channel(self):
        client = MagicMock()
        client.publish = AsyncMock(return_value=1)
        alert_id = uuid.uuid4()

        assert await publish_ack(client, "acme", alert_id) is True

        channel, payload = client.publish.call_args.args
        assert channel == settings.ack_channel
        assert json.loads(payload) == {"tenant": "acme", "alert_id": str(alert_id)}

    @pytest.mark.asyncio
    async def test_redis_failure_returns_false(self):
        client = MagicMock()
        client.publish = AsyncMock(side_effect=RedisConnectionError("refused"))

        assert await publish_ack(client, "acme", uuid.uuid4()) is False


class TestAckSubscriber:
    """Tests for the acknowledgment subscriber."""

    def test_ignores_subscribe_confirmations(self):
        subscriber = AckSubscriber(MagicMock())

        assert subscriber.handle_message({"type": "subscribe", "data": 1}) is None

    def test_ignores_malformed_messages(self):
        on_ack = MagicMock()
        subscriber = AckSubscriber(MagicMock(), on_ack=on_ack)

        assert subscriber.handle_message({"type": "message", "data": "garbage"}) is None
        on_ack.assert_not_called()

    def test_invokes_callback(self):
        on_ack = MagicMock()
        subscriber = AckSubscriber(MagicMock(), on_ack=on_ack)
        alert_id = uuid.uuid4()

        ack = subscriber.handle_message(
            {"type": "message", "data": encode_ack("acme", alert_id)}
        )

        assert ack.alert_id == alert_id
        on_ack.assert_called_once_with(ack)

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self):
        alert_id = uuid.uuid4()
        pubsub = FakePubSub(
            [
                {"type": "subscribe", "data": 1},
                {"type": "message", "data": encode_ack("acme", alert_id)},
            ]
        )
        client = MagicMock()
        client.pubsub = MagicMock(return_value=pubsub)
        received: list[AckMessage] = []
        subscriber = AckSubscriber(client, channel="acks", on_ack=received.append)

        subscriber.start()
        for _ in range(20):
            if received:
                break
            await asyncio.sleep(0)
        assert subscriber.running is True

        await subscriber.stop()

        assert [ack.alert_id for ack in received] == [alert_id]
        assert pubsub.subscribed == ["acks"]
        assert pubsub.closed is True
        assert subscriber.running is False

    @pytest.mark.asyncio
    async def test_reconnects_after_redis_error(self):
        first = FakePubSub([], error=RedisConnectionError("connection reset"))
        alert_id = uuid.uuid4()
        second = FakePubSub([{"type": "message", "data": str(alert_id)}])
        client = MagicMock()
        client.pubsub = MagicMock(side_effect=[first, second])
        received: list[AckMessage] = []
        subscriber = AckSubscriber(client, reconnect_delay=0, on_ack=received.append)

        subscriber.start()
        for _ in range(50):
            if received:
                break
            await asyncio.sleep(0)
        await subscriber.stop()

        assert first.closed is True
        assert [ack.alert_id for ack in received] == [alert_id]

    @pytest.mark.asyncio
    async def test_callback_error_keeps_listening(self):
        first_id, second_id = uuid.uuid4(), uuid.uuid4()
        pubsub = FakePubSub(
            [
                {"type": "message", "data": str(first_id)},
                {"type": "message", "data": str(second_id)},
            ]
        )
        client = MagicMock()
        client.pubsub = MagicMock(return_value=pubsub)
        received: list[AckMessage] = []

        def on_ack(ack: AckMessage) -> None:
            received.append(ack)
            if ack.alert_id == first_id:
                raise RuntimeError("callback exploded")

        subscriber = AckSubscriber(client, on_ack=on_ack)

        subscriber.start()
        for _ in range(20):
            if len(received) == 2:
                break
            await asyncio.sleep(0)
        assert subscriber.running is True

        await subscriber.stop()

        assert [ack.alert_id for ack in received] == [first_id, second_id]
        assert client.pubsub.call_count == 1

    @pytest.mark.asyncio
    async def test_reconnects_after_unexpected_error(self):
        first = FakePubSub([], error=RuntimeError("decoder bug"))
        alert_id = uuid.uuid4()
        second = FakePubSub([{"type": "message", "data": str(alert_id)}])
        client = MagicMock()
        client.pubsub = MagicMock(side_effect=[first, second])
        received: list[AckMessage] = []
        subscriber = AckSubscriber(client, reconnect_delay=0, on_ack=received.append)

        subscriber.start()
        for _ in range(50):
            if received:
                break
            await asyncio.sleep(0)
        await subscriber.stop()

        assert [ack.alert_id for ack in received] == [alert_id]

    @pytest.mark.asyncio
    async def test_stop_after_task_failed(self):
        subscriber = AckSubscriber(MagicMock())
        subscriber.run = AsyncMock(side_effect=RuntimeError("crashed"))

        task = subscriber.start()
        await asyncio.sleep(0)
        assert task.done()

        await subscriber.stop()

        assert subscriber.running is False
