"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error handling)
        └── HealthMonitor (Health checks)

Every command error surfaces as a ``CacheBackendError`` subclass so the
shared-store wrapper can detect an outage and switch to the in-memory
fallback store.
"""

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from reflectai.core.config.constants import Stage
from reflectai.core.exceptions import CacheConnectionError, CacheKeyError
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    A pre-built client can be supplied (tests pass an in-memory stub); in that
    case no pool is created and ``connect`` only verifies it with PING.
    """

    def __init__(self, settings, client: Any | None = None):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client = client
        self._is_connected = False

    async def connect(self):
        """
        Establish connection to Redis with connection pooling.

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        redis_settings = self._settings.redis
        try:
            if self._client is None:
                self._pool = ConnectionPool(
                    host=redis_settings.REDIS_HOST,
                    port=redis_settings.REDIS_PORT,
                    db=redis_settings.REDIS_DB,
                    password=redis_settings.REDIS_PASSWORD,
                    max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                    socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                    decode_responses=True,
                )
                self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage=Stage.SHARED_STORE,
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
            return self._client

        except (ConnectionError, TimeoutError, OSError) as e:
            logger.error("Failed to connect to Redis", stage=Stage.SHARED_STORE, error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": redis_settings.REDIS_HOST, "port": redis_settings.REDIS_PORT},
            )

    async def disconnect(self) -> None:
        """Close Redis connection and pool."""
        if self._client is not None and self._pool is not None:
            await self._client.aclose()
            await self._pool.disconnect()
            self._client = None
            self._pool = None

        self._is_connected = False
        logger.info("Redis disconnected", stage=Stage.SHARED_STORE)

    async def ping(self) -> bool:
        """Check Redis connection health."""
        if self._client is None:
            return False
        try:
            await self._client.ping()
            return True
        except (RedisError, OSError):
            return False

    def get_client(self):
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError / OSError
    - Log error with context (stage, key)
    - Raise CacheConnectionError for connectivity failures, CacheKeyError otherwise
    """

    def __init__(self, redis_client):
        self._redis = redis_client

    def _wrap(self, op: str, error: Exception, **context):
        logger.error(f"Redis {op} failed", stage=Stage.SHARED_STORE, error=str(error), **context)
        error_class = (
            CacheConnectionError
            if isinstance(error, (ConnectionError, TimeoutError, OSError))
            else CacheKeyError
        )
        return error_class.from_exception(error, message=f"Redis {op} failed: {error}", **context)

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as e:
            raise self._wrap("GET", e, key=key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value; ``ttl`` in seconds, no expiry when None or <= 0."""
        try:
            result = await self._redis.set(key, value, ex=ttl if ttl and ttl > 0 else None)
            return result is not None
        except (RedisError, OSError) as e:
            raise self._wrap("SET", e, key=key)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except (RedisError, OSError) as e:
            raise self._wrap("DELETE", e, keys=list(keys))

    async def expire(self, key: str, ttl: int) -> bool:
        try:
            return bool(await self._redis.expire(key, ttl))
        except (RedisError, OSError) as e:
            raise self._wrap("EXPIRE", e, key=key)

    async def ttl(self, key: str) -> int:
        try:
            return await self._redis.ttl(key)
        except (RedisError, OSError) as e:
            raise self._wrap("TTL", e, key=key)

    async def incr(self, key: str) -> int:
        """Increment a counter (rate limiting)."""
        try:
            return await self._redis.incr(key)
        except (RedisError, OSError) as e:
            raise self._wrap("INCR", e, key=key)

    async def keys(self, pattern: str) -> list[str]:
        """Resolve a glob pattern with SCAN (non-blocking for the server)."""
        try:
            return [key async for key in self._redis.scan_iter(match=pattern)]
        except (RedisError, OSError) as e:
            raise self._wrap("SCAN", e, pattern=pattern)


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """Monitors Redis health and ping latency."""

    def __init__(self, connection_manager: ConnectionManager, settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        health = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if client is None:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except (RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client with connection pooling and health checks.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("cache:key", "value", ttl=3600)
        value = await client.get("cache:key")

        await client.disconnect()
    """

    def __init__(self, settings, client: Any | None = None):
        self._settings = settings
        self._conn_mgr = ConnectionManager(settings, client=client)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, settings)

    async def connect(self) -> None:
        """
        Raises:
            CacheConnectionError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    def _require_executor(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError("Redis client is not connected")
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._require_executor().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self._require_executor().set(key, value, ttl=ttl)

    async def delete(self, *keys: str) -> int:
        return await self._require_executor().delete(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        return await self._require_executor().expire(key, ttl)

    async def ttl(self, key: str) -> int:
        return await self._require_executor().ttl(key)

    async def incr(self, key: str) -> int:
        return await self._require_executor().incr(key)

    async def keys(self, pattern: str) -> list[str]:
        return await self._require_executor().keys(pattern)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
