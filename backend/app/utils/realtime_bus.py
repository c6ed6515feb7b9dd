import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import redis.asyncio as redis

from app.core.config import settings


logger = logging.getLogger(__name__)


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def set_presence(self, user_id: str, connection_id: str, ttl_seconds: int = 60) -> None:
        return

    async def clear_presence(self, user_id: str, connection_id: str) -> None:
        return


class RedisSubscription:

    def __init__(self, pubsub, channel: str, on_message: Callable[[str], Awaitable[None]]) -> None:
        self._pubsub = pubsub
        self._channel = channel
        self._on_message = on_message
        self._running = True

    async def run(self) -> None:
        while self._running:
            try:
                msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except redis.RedisError:
                logger.warning("Redis subscription %s failed, retrying", self._channel, exc_info=True)
                await asyncio.sleep(0.5)
                continue
            if msg and msg.get("type") == "message":
                data = msg.get("data")
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                await self._on_message(data)

    async def cancel(self) -> None:
        self._running = False
        try:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        except redis.RedisError:
            logger.debug("Unsubscribe from %s failed", self._channel, exc_info=True)


class RedisChannel:
    """Delivery channel that reaches a user through their ``user:{id}`` pub/sub topic."""

    def __init__(self, bus: "RedisBus", user_id: str) -> None:
        self._bus = bus
        self.user_id = user_id

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        await self._bus.publish(f"user:{self.user_id}", json.dumps({"type": event, **payload}, default=str))


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]) -> RedisSubscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(pubsub, channel, on_message)

    # presence:{user_id} is a sorted set of connection ids scored by expiry time,
    # so each socket on each instance comes and goes independently
    async def set_presence(self, user_id: str, connection_id: str, ttl_seconds: int = 60) -> None:
        key = f"presence:{user_id}"
        now = time.time()
        await self._redis.zremrangebyscore(key, "-inf", now)
        await self._redis.zadd(key, {connection_id: now + ttl_seconds})
        await self._redis.expire(key, int(ttl_seconds))

    async def clear_presence(self, user_id: str, connection_id: str) -> None:
        await self._redis.zrem(f"presence:{user_id}", connection_id)

    async def lookup(self, user_id: str) -> Optional[RedisChannel]:
        live = await self._redis.zcount(f"presence:{user_id}", time.time(), "+inf")
        if live:
            return RedisChannel(self, user_id)
        return None


async def stop_background_tasks(tasks: Iterable[asyncio.Task]) -> None:
    """Cancel socket-scoped tasks and collect their outcome."""
    tasks = list(tasks)
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.warning("Background task ended with %r", result)


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if settings.REDIS_URL:
        _bus = RedisBus(settings.REDIS_URL)
        logger.info("Realtime bus: redis")
    else:
        _bus = NoopBus()
        logger.info("Realtime bus: in-process only")
    return _bus
