"""Alert acknowledgment interrupt channel.

The acknowledgment code path publishes ``{"tenant": ..., "alert_id": ...}``
on a Redis pub/sub channel. The escalation worker subscribes on its own task
and records each acknowledgment. This is advisory only: nothing is
cancelled here. An acknowledged alert drops out of escalation because every
tick re-reads ``status == 'firing'`` from the store.
"""

import asyncio
import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as aioredis

from oncall.config import settings
from oncall.core.metrics import ALERT_ACKS_RECEIVED_TOTAL
from oncall.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AckMessage:
    """An acknowledgment interrupt."""

    alert_id: uuid.UUID
    tenant: str | None = None


def encode_ack(tenant: str, alert_id: uuid.UUID) -> str:
    return json.dumps({"tenant": tenant, "alert_id": str(alert_id)})


def decode_ack(payload: str | bytes) -> AckMessage | None:
    """Parse an acknowledgment payload.

    Accepts the JSON form as well as a bare alert ID string. Returns None for
    anything unparseable.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        data = payload

    try:
        if isinstance(data, dict):
            return AckMessage(
                alert_id=uuid.UUID(str(data["alert_id"])),
                tenant=data.get("tenant"),
            )
        return AckMessage(alert_id=uuid.UUID(str(data).strip()))
    except (KeyError, ValueError):
        return None


def get_redis() -> aioredis.Redis:
    """Create a Redis client for pub/sub."""
    return aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=2,
    )


async def publish_ack(
    client: aioredis.Redis,
    tenant: str,
    alert_id: uuid.UUID,
) -> bool:
    """Publish an acknowledgment interrupt (fire-and-forget).

    Returns:
        True if the message was handed to Redis, False if Redis was
        unavailable. Failure is logged and otherwise ignored; escalation
        stops regardless on the next tick.
    """
    try:
        await client.publish(settings.ack_channel, encode_ack(tenant, alert_id))
    except aioredis.RedisError as e:
        logger.error(
            "Failed to publish alert acknowledgment",
            alert_id=str(alert_id),
            tenant=tenant,
            error=str(e),
        )
        return False
    return True


class AckSubscriber:
    """Long-lived subscriber for acknowledgment interrupts.

    Runs on its own task so a burst of acknowledgments never waits behind a
    slow escalation tick. Reconnects after Redis errors.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        channel: str | None = None,
        reconnect_delay: float | None = None,
        on_ack: Callable[[AckMessage], None] | None = None,
    ):
        self._client = client
        self.channel = channel or settings.ack_channel
        self._reconnect_delay = (
            reconnect_delay
            if reconnect_delay is not None
            else settings.ack_reconnect_delay_seconds
        )
        self._on_ack = on_ack
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def handle_message(self, message: dict) -> AckMessage | None:
        """Process one pub/sub message; non-data messages are ignored."""
        if message.get("type") != "message":
            return None

        ack = decode_ack(message.get("data", ""))
        if ack is None:
            logger.warning(
                "Ignoring malformed acknowledgment payload",
                payload=str(message.get("data"))[:200],
            )
            return None

        ALERT_ACKS_RECEIVED_TOTAL.inc()
        logger.info(
            "Received alert acknowledgment",
            alert_id=str(ack.alert_id),
            ack_tenant=ack.tenant,
        )
        if self._on_ack is not None:
            try:
                self._on_ack(ack)
            except Exception as e:
                logger.error(
                    "Acknowledgment callback failed",
                    alert_id=str(ack.alert_id),
                    error=str(e),
                )
        return ack

    async def _listen_once(self) -> None:
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            logger.info("Subscribed to acknowledgment channel", channel=self.channel)
            async for message in pubsub.listen():
                self.handle_message(message)
        finally:
            await pubsub.aclose()

    async def run(self) -> None:
        """Listen until cancelled."""
        while True:
            try:
                await self._listen_once()
            except aioredis.RedisError as e:
                logger.warning(
                    "Acknowledgment subscriber lost connection",
                    channel=self.channel,
                    error=str(e),
                    retry_in_seconds=self._reconnect_delay,
                )
            except Exception as e:
                logger.error(
                    "Acknowledgment subscriber failed",
                    channel=self.channel,
                    error=str(e),
                    retry_in_seconds=self._reconnect_delay,
                )
            await asyncio.sleep(self._reconnect_delay)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run(), name="ack-subscriber")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(
                "Acknowledgment subscriber exited with error",
                channel=self.channel,
                error=str(e),
            )
        self._task = None
        logger.info("Acknowledgment subscriber stopped", channel=self.channel)
