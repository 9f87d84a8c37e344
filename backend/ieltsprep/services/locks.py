"""
IELTS Prep - Distributed Locks
Redis-backed mutual exclusion for critical operations.

Used to make free-response evaluation idempotent per (user, module): two
concurrent submissions of the same Writing/Speaking section must not both
pay for transcription and grading.

Acquisition is a single `SET key token NX PX ttl`. Release and extend are
Lua scripts that compare the stored token with the caller's before acting,
so a holder whose lock expired and was re-acquired by another request can
never delete or prolong the new owner's lock.

Single-instance fallback: when Redis cannot be reached, acquire hands out a
no-op handle and the caller proceeds unprotected. This keeps a single-process
deployment working without Redis, at the cost of mutual exclusion across
processes. The degradation is logged at WARNING on every occurrence.
"""
import asyncio
import logging
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ieltsprep.core.config import settings

logger = logging.getLogger(__name__)

NO_OP_TOKEN = "no-op"

RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("pexpire", KEYS[1], ARGV[2])
else
    return 0
end
"""

_UNREACHABLE_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class LockNotAcquired(Exception):
    """Raised by `DistributedLockService.lock` when the resource stays busy."""

    def __init__(self, resource_key: str):
        self.resource_key = resource_key
        super().__init__(f"Failed to acquire lock for resource: {resource_key}")


@dataclass
class LockHandle:
    """Proof of ownership of a lock. Required for release and extend."""
    key: str
    token: str
    expires_at: float  # epoch milliseconds
    _service: Optional["DistributedLockService"] = field(default=None, repr=False, compare=False)

    @property
    def is_no_op(self) -> bool:
        return self.token == NO_OP_TOKEN

    async def release(self) -> bool:
        if self._service is None:
            return True
        return await self._service.release(self)

    async def extend(self, additional_ms: int) -> bool:
        if self._service is None:
            return True
        return await self._service.extend(self, additional_ms)


def _now_ms() -> float:
    return time.time() * 1000


def evaluation_lock_key(user_id: Any, module: str) -> str:
    """Scoped per user and module so sections and users never contend."""
    return f"evaluation:{user_id}:{module}"


class DistributedLockService:
    """
    Acquire/release/extend mutual-exclusion tokens over Redis.

    Args:
        redis_client: Pre-built async Redis client. Created lazily from
            settings when omitted.
        prefix: Key namespace for all locks.
        default_ttl_ms: TTL used when acquire() is not given one.
        default_retry_attempts: Extra attempts after the first one.
        retry_delay_ms: Base delay; retry n waits retry_delay_ms * 2 ** n.
    """

    def __init__(
        self,
        redis_client: Any = None,
        prefix: Optional[str] = None,
        default_ttl_ms: Optional[int] = None,
        default_retry_attempts: Optional[int] = None,
        retry_delay_ms: Optional[int] = None,
    ):
        self._redis = redis_client
        self._owns_client = redis_client is None
        self.prefix = settings.LOCK_PREFIX if prefix is None else prefix
        self.default_ttl_ms = default_ttl_ms or settings.LOCK_DEFAULT_TTL_MS
        self.default_retry_attempts = (
            settings.LOCK_DEFAULT_RETRY_ATTEMPTS
            if default_retry_attempts is None
            else default_retry_attempts
        )
        self.retry_delay_ms = (
            settings.LOCK_RETRY_DELAY_MS if retry_delay_ms is None else retry_delay_ms
        )

    async def _get_redis(self):
        """Get Redis connection (lazy initialization). None when unreachable."""
        if self._redis is not None:
            return self._redis
        try:
            import redis.asyncio as aioredis
            client = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
            )
            await client.ping()
        except Exception as e:
            # Not cached: the next acquire tries to reconnect
            logger.warning(f"[Lock] Redis unreachable ({e}); falling back to no-op locks")
            return None
        self._redis = client
        return self._redis

    def _key(self, resource_key: str) -> str:
        return f"{self.prefix}{resource_key}"

    def _no_op_handle(self, resource_key: str) -> LockHandle:
        logger.warning(
            f"[Lock] Using no-op lock for {resource_key}: mutual exclusion is NOT enforced"
        )
        return LockHandle(
            key=self._key(resource_key),
            token=NO_OP_TOKEN,
            expires_at=_now_ms() + self.default_ttl_ms,
        )

    async def acquire(
        self,
        resource_key: str,
        ttl_ms: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_delay_ms: Optional[int] = None,
    ) -> Optional[LockHandle]:
        """
        Acquire a lock on `resource_key`.

        Returns a handle, or None if the lock is still held by someone else
        after all retries. None means "try again later".
        """
        ttl_ms = ttl_ms or self.default_ttl_ms
        attempts = self.default_retry_attempts if retry_attempts is None else retry_attempts
        delay_ms = self.retry_delay_ms if retry_delay_ms is None else retry_delay_ms

        redis = await self._get_redis()
        if redis is None:
            return self._no_op_handle(resource_key)

        key = self._key(resource_key)
        token = secrets.token_hex(16)

        for attempt in range(attempts + 1):
            try:
                acquired = await redis.set(key, token, nx=True, px=ttl_ms)
            except _UNREACHABLE_ERRORS as e:
                logger.warning(f"[Lock] Redis error while acquiring {key}: {e}")
                if self._owns_client:
                    self._redis = None
                return self._no_op_handle(resource_key)

            if acquired:
                logger.debug(f"[Lock] Acquired {key}")
                return LockHandle(
                    key=key,
                    token=token,
                    expires_at=_now_ms() + ttl_ms,
                    _service=self,
                )

            if attempt < attempts:
                await asyncio.sleep(delay_ms * 2 ** attempt / 1000)

        logger.info(f"[Lock] {key} is busy after {attempts + 1} attempt(s)")
        return None

    async def release(self, handle: LockHandle) -> bool:
        """Release the lock if `handle` still owns it."""
        if handle.is_no_op:
            return True

        redis = await self._get_redis()
        if redis is None:
            return False

        try:
            result = await redis.eval(RELEASE_SCRIPT, 1, handle.key, handle.token)
        except RedisError as e:
            logger.error(f"[Lock] Failed to release lock {handle.key}: {e}")
            return False

        if int(result) != 1:
            logger.warning(f"[Lock] {handle.key} was no longer owned at release")
            return False
        return True

    async def extend(self, handle: LockHandle, additional_ms: int) -> bool:
        """Reset the TTL of a lock `handle` still owns to `additional_ms`."""
        if handle.is_no_op:
            return True

        redis = await self._get_redis()
        if redis is None:
            return False

        try:
            result = await redis.eval(EXTEND_SCRIPT, 1, handle.key, handle.token, str(additional_ms))
        except RedisError as e:
            logger.error(f"[Lock] Failed to extend lock {handle.key}: {e}")
            return False

        if int(result) != 1:
            return False
        handle.expires_at = _now_ms() + additional_ms
        return True

    @asynccontextmanager
    async def lock(
        self,
        resource_key: str,
        ttl_ms: Optional[int] = None,
        retry_attempts: Optional[int] = None,
    ) -> AsyncIterator[LockHandle]:
        """
        Hold a lock for the duration of the block.

        Usage:
            async with lock_service.lock("evaluation:42:WRITING") as handle:
                ...

        Raises:
            LockNotAcquired: if the resource stays busy
        """
        handle = await self.acquire(resource_key, ttl_ms=ttl_ms, retry_attempts=retry_attempts)
        if handle is None:
            raise LockNotAcquired(resource_key)
        try:
            yield handle
        finally:
            await handle.release()

    def evaluation_lock(self, user_id: Any, module: str, ttl_ms: Optional[int] = None):
        """
        Lock guarding one user's evaluation of one module. Never retries.

        The TTL covers a single grading step; holders extend it between steps.
        """
        return self.lock(
            evaluation_lock_key(user_id, module),
            ttl_ms=ttl_ms or settings.EVALUATION_STEP_TTL_MS,
            retry_attempts=0,
        )

    async def close(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None


# Default service instance
_default_service: Optional[DistributedLockService] = None


def get_lock_service() -> DistributedLockService:
    """Get the default lock service instance."""
    global _default_service
    if _default_service is None:
        _default_service = DistributedLockService()
    return _default_service
