"""Redis-backed event stream for flash and decode events."""

from __future__ import annotations

import json
import time
from typing import Any

import redis

import config


class RedisStore:

    def __init__(self, url: str | None = None) -> None:
        self._url = url or config.REDIS_URL
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(self._url, decode_responses=True)
        return self._client

    def ping(self) -> bool:
        try:
            return self.client.ping()
        except (redis.ConnectionError, redis.TimeoutError):
            return False

    def push_event(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        entry = {
            "ts": str(time.time()),
            "type": event_type,
            "data": json.dumps(data or {}),
        }
        self.client.xadd(
            config.REDIS_EVENT_STREAM,
            entry,
            maxlen=config.REDIS_EVENT_MAXLEN,
            approximate=True,
        )

    def get_recent_events(self, seconds: float = 60.0) -> list[dict[str, Any]]:
        cutoff_ms = int((time.time() - seconds) * 1000)
        entries = self.client.xrange(
            config.REDIS_EVENT_STREAM,
            min=f"{cutoff_ms}-0",
            max="+",
        )
        return [
            {
                "ts": float(data["ts"]),
                "type": data["type"],
                "data": json.loads(data["data"]),
            }
            for _id, data in entries
        ]


redis_store = RedisStore()
