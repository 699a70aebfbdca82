"""
MQTT transport for jukebox status events.

Each subscription listens on one topic derived from the application key:

    {prefix}/{key}/now_playing_updates/update_now_playing

and hands every JSON message to its listener's on_event().  The MQTT
connection lives on the service's asyncio loop; subscribe() and
disconnect() may be called from any thread (the SubscriptionManager calls
them from its worker thread).

Usage:
    transport = MqttTransport(loop)
    sub = transport.subscribe("app-key", listener)
    ...
    sub.disconnect()
"""

import asyncio
import concurrent.futures
import json
import logging
import os
import re

import aiomqtt

from .config import cfg

logger = logging.getLogger(__name__)

CHANNEL = "now_playing_updates"
EVENT = "update_now_playing"


def _key_segment(key: str) -> str:
    """Make an application key safe as an MQTT topic segment (/, #, + are illegal)."""
    return re.sub(r"[/#+]", "_", key.strip()) or "default"


def topic_for(key: str, prefix: str = "play") -> str:
    return f"{prefix}/{_key_segment(key)}/{CHANNEL}/{EVENT}"


def decode_payload(raw) -> object | None:
    """Decode an MQTT payload as JSON; None when it is not valid JSON."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode()
        except UnicodeDecodeError:
            return None
    if not isinstance(raw, str):
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


class MqttSubscription:
    """Handle for one running channel task."""

    def __init__(self, topic: str, future: concurrent.futures.Future):
        self.topic = topic
        self._future = future

    def disconnect(self):
        self._future.cancel()


class MqttTransport:
    """Subscribes to jukebox status topics on an MQTT broker."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self.broker = cfg("transport", "mqtt_broker", default="localhost")
        self.port = int(cfg("transport", "mqtt_port", default=1883))
        self.prefix = cfg("transport", "topic_prefix", default="play")
        self.user = os.getenv("MQTT_USER", "")
        self.password = os.getenv("MQTT_PASSWORD", "")

    def subscribe(self, credential: str, listener) -> MqttSubscription:
        topic = topic_for(credential, self.prefix)
        future = asyncio.run_coroutine_threadsafe(
            self._channel_loop(topic, listener), self._loop)
        return MqttSubscription(topic, future)

    async def _channel_loop(self, topic: str, listener):
        """Connect, subscribe and deliver messages, reconnecting with exponential backoff."""
        backoff = 1  # seconds
        max_backoff = 30

        while True:
            try:
                async with aiomqtt.Client(
                    hostname=self.broker,
                    port=self.port,
                    username=self.user or None,
                    password=self.password or None,
                ) as client:
                    backoff = 1  # reset on successful connect
                    await client.subscribe(topic)
                    logger.info("MQTT subscribed to %s on %s:%d", topic, self.broker, self.port)

                    async for message in client.messages:
                        if not message.topic.matches(topic):
                            continue
                        data = decode_payload(message.payload)
                        if data is None:
                            logger.warning("MQTT invalid JSON on %s", topic)
                            continue
                        try:
                            listener.on_event(data)
                        except Exception:
                            logger.exception("Status event handler error")

            except asyncio.CancelledError:
                logger.info("MQTT unsubscribed from %s", topic)
                raise
            except Exception as e:
                logger.warning("MQTT connection lost (%s), reconnecting in %ds", e, backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, max_backoff)
