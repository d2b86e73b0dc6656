"""State management modules."""

from vango_dispatch.state.redis_store import RedisStore
from vango_dispatch.state.store import InMemoryStore, Store

__all__ = ["Store", "InMemoryStore", "RedisStore"]
