"""Core package initialization."""
from bumpdispatch.core.config import settings
from bumpdispatch.core.database import Base, get_db, init_db
from bumpdispatch.core.redis import get_redis, close_redis
from bumpdispatch.core.locks import PassLock

__all__ = ["settings", "Base", "get_db", "init_db", "get_redis", "close_redis", "PassLock"]
