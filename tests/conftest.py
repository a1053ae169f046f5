from __future__ import annotations

from pathlib import Path
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest
import redis

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipebox import create_app
from recipebox.redis_storage import RedisRecipeStorage


class InMemoryRedis:
    """Thread-safe stand-in for the parts of ``redis.Redis`` the storage uses.

    Values are kept as strings, as with ``decode_responses=True``. Commands
    named in ``fail_commands`` raise :class:`redis.ConnectionError`, and
    ``before_exec`` runs just before a transaction is applied, which lets a
    test slip in a concurrent write.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: Dict[str, int] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._lists: Dict[str, List[str]] = {}
        self._versions: Dict[str, int] = {}
        self.fail_commands: set[str] = set()
        self.before_exec: Optional[Callable[[], None]] = None
        self.commands: List[str] = []

    def _record(self, name: str) -> None:
        self.commands.append(name)
        if name in self.fail_commands:
            raise redis.ConnectionError(f"Error while running {name.upper()}: connection refused")

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def version(self, key: str) -> int:
        return self._versions.get(key, 0)

    def incr(self, name: str, amount: int = 1) -> int:
        with self._lock:
            self._record("incr")
            self._counters[name] = self._counters.get(name, 0) + amount
            self._touch(name)
            return self._counters[name]

    def exists(self, *names: str) -> int:
        with self._lock:
            self._record("exists")
            return sum(
                1 for name in names if name in self._counters or name in self._hashes or name in self._lists
            )

    def hset(self, name: str, mapping: Dict[str, Any]) -> int:
        with self._lock:
            self._record("hset")
            fields = self._hashes.setdefault(name, {})
            added = len(set(mapping) - set(fields))
            fields.update({field: str(value) for field, value in mapping.items()})
            self._touch(name)
            return added

    def hgetall(self, name: str) -> Dict[str, str]:
        with self._lock:
            self._record("hgetall")
            return dict(self._hashes.get(name, {}))

    def hmget(self, name: str, keys: Any, *args: str) -> List[Optional[str]]:
        with self._lock:
            self._record("hmget")
            fields = list(keys) if isinstance(keys, (list, tuple)) else [keys]
            fields.extend(args)
            stored = self._hashes.get(name, {})
            return [stored.get(field) for field in fields]

    def rpush(self, name: str, *values: Any) -> int:
        if not values:
            raise redis.ResponseError("wrong number of arguments for 'rpush' command")
        with self._lock:
            self._record("rpush")
            items = self._lists.setdefault(name, [])
            items.extend(str(value) for value in values)
            self._touch(name)
            return len(items)

    def lrange(self, name: str, start: int, end: int) -> List[str]:
        with self._lock:
            self._record("lrange")
            items = self._lists.get(name, [])
            size = len(items)
            if start < 0:
                start = max(size + start, 0)
            if end < 0:
                end = size + end
            if start >= size or start > end:
                return []
            return list(items[start : end + 1])

    def pipeline(self, transaction: bool = True) -> "InMemoryPipeline":
        return InMemoryPipeline(self, transaction)


class InMemoryPipeline:
    """Mimics ``redis.client.Pipeline`` including WATCH/MULTI/EXEC."""

    _COMMANDS = ("incr", "exists", "hset", "hgetall", "hmget", "rpush", "lrange")

    def __init__(self, client: InMemoryRedis, transaction: bool) -> None:
        self._client = client
        self._transaction = transaction
        self.reset()

    def __enter__(self) -> "InMemoryPipeline":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.reset()

    def reset(self) -> None:
        self._stack: List[tuple] = []
        self._watched: Dict[str, int] = {}
        self._watching = False
        self._explicit = False

    def watch(self, *names: str) -> None:
        with self._client._lock:
            self._watched.update({name: self._client.version(name) for name in names})
        self._watching = True

    def multi(self) -> None:
        if self._explicit:
            raise redis.RedisError("Cannot issue nested calls to MULTI")
        if self._stack:
            raise redis.RedisError("Commands without an initial WATCH have already been issued")
        self._explicit = True

    def __getattr__(self, name: str) -> Any:
        if name not in self._COMMANDS:
            raise AttributeError(name)

        def command(*args: Any, **kwargs: Any) -> Any:
            if self._watching and not self._explicit:
                return getattr(self._client, name)(*args, **kwargs)
            self._stack.append((name, args, kwargs))
            return self

        return command

    def execute(self) -> List[Any]:
        stack, watched = self._stack, self._watched
        try:
            if self._transaction and self._client.before_exec is not None:
                self._client.before_exec()
            with self._client._lock:
                if any(self._client.version(name) != seen for name, seen in watched.items()):
                    raise redis.WatchError("Watched variable changed.")
                if self._transaction:
                    failing = [name for name, _, _ in stack if name in self._client.fail_commands]
                    if failing:
                        raise redis.ConnectionError(f"Error while running {failing[0].upper()}: connection refused")
                return [getattr(self._client, name)(*args, **kwargs) for name, args, kwargs in stack]
        finally:
            self.reset()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def storage(fake_redis: InMemoryRedis) -> RedisRecipeStorage:
    return RedisRecipeStorage(fake_redis)


@pytest.fixture
def client(storage: RedisRecipeStorage):
    app = create_app(storage=storage)
    app.config.update(TESTING=True)
    return app.test_client()
