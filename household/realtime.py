"""
Realtime broker abstraction for family channels and presence.

Supports an in-process fallback for tests/local runs and a Redis-backed
implementation (pub/sub plus a presence hash) for production.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def family_channel(family_group: str) -> str:
    return f"messages-{family_group}"


def call_channel(user_id: str, other_user_id: str) -> str:
    first, second = sorted([user_id, other_user_id])
    return f"direct-video-chat-{first}-{second}"


class Subscription(Protocol):
    async def get(self, timeout: float | None = None) -> Optional[dict]:
        ...

    async def close(self) -> None:
        ...


class Broker(Protocol):
    """Minimal pub/sub interface plus per-group presence tracking."""

    def publish(self, channel: str, payload: dict) -> None:
        ...

    async def subscribe(self, channel: str) -> Subscription:
        ...

    def join(self, group: str, member_id: str) -> None:
        ...

    def leave(self, group: str, member_id: str) -> None:
        ...

    def members(self, group: str) -> list[str]:
        ...


@dataclass
class InMemorySubscription:
    broker: "InMemoryBroker"
    channel: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def deliver(self, payload: dict) -> None:
        # Publishers may run in worker threads; hand off to the subscriber's loop.
        self.loop.call_soon_threadsafe(self.queue.put_nowait, payload)

    async def get(self, timeout: float | None = None) -> Optional[dict]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        self.broker._unsubscribe(self)


class InMemoryBroker:
    """Process-local fan-out for testing/dev."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[InMemorySubscription]] = defaultdict(list)
        self._presence: dict[str, Counter] = defaultdict(Counter)
        self.published: list[tuple[str, dict]] = []

    def publish(self, channel: str, payload: dict) -> None:
        with self._lock:
            self.published.append((channel, payload))
            targets = list(self._subscriptions.get(channel, ()))
        for subscription in targets:
            subscription.deliver(payload)

    async def subscribe(self, channel: str) -> InMemorySubscription:
        subscription = InMemorySubscription(
            broker=self, channel=channel, loop=asyncio.get_running_loop()
        )
        with self._lock:
            self._subscriptions[channel].append(subscription)
        return subscription

    def _unsubscribe(self, subscription: InMemorySubscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.channel, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def join(self, group: str, member_id: str) -> None:
        with self._lock:
            self._presence[group][member_id] += 1

    def leave(self, group: str, member_id: str) -> None:
        with self._lock:
            counts = self._presence.get(group)
            if counts is None:
                return
            counts[member_id] -= 1
            if counts[member_id] <= 0:
                del counts[member_id]
            if not counts:
                del self._presence[group]

    def members(self, group: str) -> list[str]:
        with self._lock:
            return sorted(self._presence.get(group, {}))

    def reset(self) -> None:
        with self._lock:
            self._subscriptions.clear()
            self._presence.clear()
            self.published.clear()


class RedisSubscription:
    def __init__(self, client: aioredis.Redis, pubsub):
        self._client = client
        self._pubsub = pubsub

    async def get(self, timeout: float | None = None) -> Optional[dict]:
        message = await self._pubsub.get_message(
            ignore_subscribe_messages=True, timeout=timeout
        )
        if message is None:
            return None
        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Dropping non-JSON payload on %s", message.get("channel"))
            return None

    async def close(self) -> None:
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()
        await self._client.aclose()


@dataclass
class RedisBroker:
    """Redis-backed broker using PUBLISH/SUBSCRIBE and a presence hash per group."""

    url: str
    presence_prefix: str = "household:presence"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _presence_key(self, group: str) -> str:
        return f"{self.presence_prefix}:{group}"

    def publish(self, channel: str, payload: dict) -> None:
        try:
            self.client.publish(channel, json.dumps(payload, default=str))
        except redis.exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect once and retry.
            self.client = redis.Redis.from_url(self.url)
            self.client.publish(channel, json.dumps(payload, default=str))

    async def subscribe(self, channel: str) -> RedisSubscription:
        client = aioredis.Redis.from_url(self.url)
        pubsub = client.pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(client, pubsub)

    def join(self, group: str, member_id: str) -> None:
        self.client.hincrby(self._presence_key(group), member_id, 1)

    def leave(self, group: str, member_id: str) -> None:
        key = self._presence_key(group)
        remaining = self.client.hincrby(key, member_id, -1)
        if remaining <= 0:
            self.client.hdel(key, member_id)

    def members(self, group: str) -> list[str]:
        raw = self.client.hgetall(self._presence_key(group))
        members = []
        for member_id, count in raw.items():
            if int(count) > 0:
                members.append(
                    member_id.decode("utf-8") if isinstance(member_id, bytes) else member_id
                )
        return sorted(members)
