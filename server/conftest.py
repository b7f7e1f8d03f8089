"""
Shared pytest fixtures.

FakeRedis is an in-memory stand-in for a `redis.asyncio` client created
with decode_responses=True. It implements only the commands the stores
use; pipelines buffer commands and apply them on execute(), like the real
client.
"""

import pytest


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self._commands.append((name, args, kwargs))
            return self
        return queue

    async def execute(self):
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands = []
        return results


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.expiry: dict[str, int] = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = str(value)
        if ex is not None:
            self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.data or key in self.sets)

    async def sadd(self, key, *values):
        members = self.sets.setdefault(key, set())
        before = len(members)
        members.update(str(v) for v in values)
        return len(members) - before

    async def srem(self, key, *values):
        members = self.sets.get(key, set())
        removed = 0
        for v in values:
            if str(v) in members:
                members.discard(str(v))
                removed += 1
        if key in self.sets and not members:
            del self.sets[key]
        return removed

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def sismember(self, key, value):
        return int(str(value) in self.sets.get(key, set()))

    async def scard(self, key):
        return len(self.sets.get(key, set()))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        pass


@pytest.fixture
def fake_redis():
    """In-memory async Redis client."""
    return FakeRedis()
