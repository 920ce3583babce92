from __future__ import annotations

import json
import logging
import os
from contextlib import suppress
from datetime import datetime
from typing import Any, AsyncIterator
from uuid import UUID

import redis.asyncio as redis

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
_redis = None


async def get_redis():
    global _redis
    if _redis is None:
        if os.getenv("TESTING") == "1":
            from fakeredis import aioredis
            _redis = aioredis.FakeRedis()
        else:
            _redis = redis.from_url(REDIS_URL)
    return _redis


def _json_default(value: Any) -> Any:
    # purpose: convert datetime and UUID objects for event payloads
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _serialize_event(event: dict[str, Any]) -> str:
    return json.dumps(event, default=_json_default)


def comments_channel(asset_id: UUID | str) -> str:
    return f"comments:{asset_id}"


def notifications_channel(user_id: UUID | str) -> str:
    return f"notifications:{user_id}"


async def publish(channel: str, event: dict[str, Any]) -> bool:
    """Publish after commit. Delivery is at-most-once; failures are logged and dropped."""

    try:
        r = await get_redis()
        await r.publish(channel, _serialize_event(event))
    except Exception:
        logger.warning("Publish to %s failed", channel, exc_info=True)
        return False
    return True


async def publish_comment_event(asset_id: UUID | str, event: dict[str, Any]) -> bool:
    return await publish(comments_channel(asset_id), event)


async def publish_notification_event(user_id: UUID | str, event: dict[str, Any]) -> bool:
    return await publish(notifications_channel(user_id), event)


async def iter_channel_events(channel: str) -> AsyncIterator[str]:
    """Yield pub/sub messages for ``channel`` as a stream."""

    r = await get_redis()
    pubsub = r.pubsub()
    await pubsub.subscribe(channel)
    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            data = message.get("data")
            if isinstance(data, bytes):
                yield data.decode()
            else:
                yield str(data)
    finally:
        with suppress(Exception):
            await pubsub.unsubscribe(channel)
        with suppress(AttributeError):
            await pubsub.close()
