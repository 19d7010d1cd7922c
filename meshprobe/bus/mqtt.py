# meshprobe/bus/mqtt.py
import logging
import ssl
from contextlib import AsyncExitStack, asynccontextmanager
from urllib.parse import unquote, urlsplit

import aiomqtt

from meshprobe.bus.base import Bus

logger = logging.getLogger(__name__)

TLS_SCHEMES = ("mqtts", "ssl", "wss")
WS_SCHEMES = ("ws", "wss")


class BusConnectError(Exception):
    """The broker could not be reached or refused the connection."""


def connect_kwargs(url: str, connect_timeout_s: float = 5.0) -> dict:
    """Translate a broker URL into aiomqtt.Client keyword arguments."""
    parts = urlsplit(url)
    tls = parts.scheme in TLS_SCHEMES
    kwargs = {
        "hostname": parts.hostname,
        "port": parts.port or (8883 if tls else 1883),
        "timeout": connect_timeout_s,
    }
    if parts.username:
        kwargs["username"] = unquote(parts.username)
    if parts.password:
        kwargs["password"] = unquote(parts.password)
    if parts.scheme in WS_SCHEMES:
        kwargs["transport"] = "websockets"
        if parts.path and parts.path != "/":
            kwargs["websocket_path"] = parts.path
    if tls:
        kwargs["tls_context"] = ssl.create_default_context()
    return kwargs


def _as_bytes(payload) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return str(payload).encode()


class MqttBus(Bus):
    def __init__(self, client: aiomqtt.Client):
        super().__init__()
        self.client = client

    async def subscribe(self, pattern: str) -> None:
        logger.info("Subscribing to %s", pattern)
        await self.client.subscribe(pattern)

    async def publish(self, topic: str, payload: str) -> None:
        await self.client.publish(topic, payload=payload)

    async def pump(self) -> None:
        """
        Feed every inbound message to the attached listeners.
        Only returns by raising, when the connection is lost.
        """
        async for message in self.client.messages:
            self.dispatch(str(message.topic), _as_bytes(message.payload))
        raise aiomqtt.MqttError("message stream closed")


@asynccontextmanager
async def open_mqtt_bus(url: str, connect_timeout_s: float = 5.0):
    kwargs = connect_kwargs(url, connect_timeout_s)
    async with AsyncExitStack() as stack:
        try:
            client = await stack.enter_async_context(aiomqtt.Client(**kwargs))
        except (aiomqtt.MqttError, OSError) as e:
            raise BusConnectError(f"cannot connect to {kwargs['hostname']}:{kwargs['port']}: {e}") from e
        logger.info("Connected to MQTT broker %s:%s", kwargs["hostname"], kwargs["port"])
        yield MqttBus(client)
