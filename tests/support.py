"""Test doubles and sample User-Agent strings shared across the test suite."""

from collections import defaultdict

import redis.asyncio as redis

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MOBILE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
CRAWLER_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class InMemoryRedis:
    """The handful of Redis commands the service issues, backed by dicts."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.streams: dict[str, list[dict[str, str]]] = defaultdict(list)
        self.writes: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value, ex: int | None = None, nx: bool = False) -> bool | None:
        if nx and key in self.data:
            return None
        self.data[key] = str(value)
        self.writes.append(("set", key))
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            self.writes.append(("delete", key))
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True

    async def xadd(self, name: str, fields: dict[str, str]) -> str:
        self.streams[name].append(fields)
        return f"{len(self.streams[name])}-0"

    def clear(self) -> None:
        self.data.clear()


class UnavailableRedis:
    """A Redis client whose server is down."""

    async def _refuse(self, *args, **kwargs):
        raise redis.ConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    get = set = delete = ping = xadd = _refuse
