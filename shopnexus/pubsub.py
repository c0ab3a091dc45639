"""In-memory publish/subscribe client with pluggable message encoding."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

log = logging.getLogger(__name__)

Decoder = Callable[[bytes], Any]
Encoder = Callable[[Any], bytes]
Handler = Callable[["MessageDecoder"], Any]


def _json_encode(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


def _json_decode(data: bytes) -> Any:
    return json.loads(data)


class ClientClosedError(RuntimeError):
    """Raised when a closed client is used."""

    def __init__(self) -> None:
        super().__init__("client is closed")


class MessageDecoder:
    """A received payload together with the decoder that understands it."""

    __slots__ = ("_raw", "_decoder")

    def __init__(self, raw: bytes, decoder: Decoder) -> None:
        self._raw = raw
        self._decoder = decoder

    def decode(self) -> Any:
        """Decode the payload into a value."""
        return self._decoder(self._raw)

    def raw(self) -> bytes:
        """Return the payload bytes as received."""
        return self._raw


@dataclass
class PubSubConfig:
    group: str = ""
    timeout: float = 0.0
    brokers: list[str] = field(default_factory=list)
    decoder: Decoder = _json_decode
    encoder: Encoder = _json_encode


class Subscription:
    """A handler registered on a topic; cancel() detaches it."""

    def __init__(self, client: MemoryClient, topic: str, handler: Handler) -> None:
        self.topic = topic
        self.handler = handler
        self._client = client
        self._done = threading.Event()

    @property
    def active(self) -> bool:
        return not self._done.is_set()

    def cancel(self) -> None:
        if self._done.is_set():
            return
        self._done.set()
        self._client._remove(self)

    def _close(self) -> None:
        self._done.set()


class MemoryClient:
    """Delivers published values to every subscriber of a topic within the process."""

    def __init__(self, config: PubSubConfig | None = None) -> None:
        self.config = config if config is not None else PubSubConfig()
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()

    async def publish(self, topic: str, value: Any) -> None:
        """Encode value and hand it to each active subscriber without waiting for them."""
        with self._lock:
            if self._closed:
                raise ClientClosedError()
            subscriptions = list(self._subscriptions.get(topic, ()))
        if not subscriptions:
            return

        message = MessageDecoder(self.config.encoder(value), self.config.decoder)
        for subscription in subscriptions:
            if not subscription.active:
                continue
            task = asyncio.create_task(self._deliver(subscription, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(self, subscription: Subscription, message: MessageDecoder) -> None:
        try:
            call = self._invoke(subscription.handler, message)
            if self.config.timeout > 0:
                await asyncio.wait_for(call, self.config.timeout)
            else:
                await call
        except asyncio.TimeoutError:
            log.debug("handler on %r timed out", subscription.topic)
        except Exception:
            log.debug("handler on %r failed", subscription.topic, exc_info=True)

    @staticmethod
    async def _invoke(handler: Handler, message: MessageDecoder) -> Any:
        if asyncio.iscoroutinefunction(handler):
            return await handler(message)
        return await asyncio.to_thread(handler, message)

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        """Register handler for messages on topic."""
        with self._lock:
            if self._closed:
                raise ClientClosedError()
            subscription = Subscription(self, topic, handler)
            self._subscriptions.setdefault(topic, []).append(subscription)
            return subscription

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, ()))

    def _remove(self, target: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(target.topic)
            if subscriptions is None:
                return
            if target in subscriptions:
                subscriptions.remove(target)
            if not subscriptions:
                del self._subscriptions[target.topic]

    def close(self) -> None:
        """Close the client and every subscription; later calls do nothing."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for subscriptions in self._subscriptions.values():
                for subscription in subscriptions:
                    subscription._close()
            self._subscriptions = {}