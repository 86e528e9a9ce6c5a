from sqlalchemy import create_engine, event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator, Dict, Optional, Tuple
import threading
import time
import redis
from .config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    # PostgreSQL connection pool settings
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
    }


def configure_sqlite_locking(target_engine):
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two sessions can both read
    an empty slot before either inserts. Taking the write lock up front makes
    check-then-insert sequences serialize the same way row locks do on
    PostgreSQL.
    """
    @event.listens_for(target_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_engine(settings.get_database_url, **_engine_options(settings.get_database_url))

if engine.dialect.name == "sqlite":
    configure_sqlite_locking(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class MemoryStore:
    """Process-local stand-in for the subset of the Redis API used by the rate limiter.

    Keys expire lazily on access. All operations hold a single lock so the store
    can be shared between threadpool workers.
    """

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    def incr(self, key):
        with self._lock:
            current = self._live(key)
            expires_at = self._data[key][1] if current is not None else None
            new_value = int(current or 0) + 1
            self._data[key] = (str(new_value), expires_at)
            return new_value

    def expire(self, key, seconds):
        with self._lock:
            if self._live(key) is None:
                return False
            self._data[key] = (self._data[key][0], time.monotonic() + int(seconds))
            return True

    def ttl(self, key):
        with self._lock:
            if self._live(key) is None:
                return -2
            expires_at = self._data[key][1]
            if expires_at is None:
                return -1
            return max(0, int(expires_at - time.monotonic()))

    def flushall(self):
        with self._lock:
            self._data.clear()
            return True


if settings.TESTING or not settings.REDIS_URL:
    redis_client = MemoryStore()
else:
    # Real Redis client for production
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Initialize database tables."""
    from .. import models  # noqa: F401  registers mappers on Base.metadata

    Base.metadata.create_all(bind=engine)
