"""
Redis relay for the change feed
Fans committed changes out to every API process so a subscriber connected to one
worker sees writes made through another
"""

import asyncio
import json
import logging
import os
from typing import Optional

import redis
import redis.asyncio as aioredis

from ..config import REALTIME_REDIS_CHANNEL, REDIS_URL
from .broker import ChangeBroker
from .events import PROCESS_ORIGIN, ChangeEvent

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def _connection_kwargs() -> dict:
    return {
        "decode_responses": True,
        "socket_connect_timeout": 15,
        "socket_timeout": 30,
        "retry_on_timeout": True,
        "health_check_interval": 30,
    }


def get_redis_client() -> redis.Redis:
    """Get or create the publishing Redis client"""
    global redis_client

    if redis_client is None:
        if REDIS_URL:
            redis_client = redis.from_url(REDIS_URL, **_connection_kwargs())
        else:
            redis_client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                **_connection_kwargs(),
            )
        redis_client.ping()
        logger.info("✅ Redis connected for realtime relay")
    return redis_client


class RedisRelay:
    """Publishes local changes to Redis and replays remote ones into the local broker"""

    def __init__(self, broker: ChangeBroker, channel: str = REALTIME_REDIS_CHANNEL):
        self.broker = broker
        self.channel = channel
        self._task: Optional[asyncio.Task] = None

    def publish(self, event: ChangeEvent) -> None:
        if event.origin != PROCESS_ORIGIN:
            return
        get_redis_client().publish(self.channel, json.dumps(event.to_dict()))

    async def _listen(self) -> None:
        client = aioredis.from_url(REDIS_URL) if REDIS_URL else aioredis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD"),
            ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
        )
        pubsub = client.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info(f"📡 Realtime relay listening on {self.channel}")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                event = ChangeEvent.from_dict(json.loads(data))
                if event.origin == PROCESS_ORIGIN:
                    continue
                self.broker.dispatch(event)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
            await client.aclose()

    def start(self) -> None:
        self.broker.add_sink(self.publish)
        self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        self.broker.remove_sink(self.publish)
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("📴 Realtime relay stopped")
