"""
Event bus for the API, backed by Redis.
"""
import json
from typing import Final

import redis.asyncio as redis

from forge.events import ExecutionResultEvent

CHANNEL_SESSION_PREFIX: Final[str] = "session:"
STANDALONE_ROOM: Final[str] = "standalone"


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @staticmethod
    def session_channel(room: str) -> str:
        return f"{CHANNEL_SESSION_PREFIX}{room}"

    async def publish_result(self, room: str, event: ExecutionResultEvent) -> None:
        if room == STANDALONE_ROOM:
            return
        await self.redis_client.publish(self.session_channel(room), json.dumps(event))
