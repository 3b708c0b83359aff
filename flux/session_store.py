import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import anyio
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.cluster import RedisCluster
from redis.exceptions import LockError, RedisError

from flux.config import Config
from flux.errors import SessionStoreError
from flux.models import SessionState

logger = logging.getLogger("flux.session_store")

SEEN_TTL = 3600
SEEN_PRUNE_THRESHOLD = 10000
LOCK_TIMEOUT = 120
LOCK_BLOCKING_TIMEOUT = 150
# Outbound sends, the concurrent lookups and the AI call in one advice run
TIMED_CALLS_PER_MESSAGE = 8


def apply_fields(state: SessionState, fields: Dict[str, Any]) -> SessionState:
    """Field-wise overwrite of ``state`` with ``fields``, validated as a whole."""
    unknown = set(fields) - set(SessionState.model_fields)
    if unknown:
        raise SessionStoreError(f"Unknown session fields: {sorted(unknown)}")

    data = state.model_dump()
    data.update(fields)
    try:
        return SessionState.model_validate(data)
    except ValidationError as exc:
        raise SessionStoreError(f"Invalid session update: {exc}") from exc


def _decode(user_id, raw) -> SessionState:
    if not raw:
        return SessionState()
    try:
        return SessionState.model_validate_json(raw)
    except ValidationError:
        # The next merge overwrites the unreadable payload
        logger.warning(
            "[SESSION] corrupt session for %s, starting fresh | payload=%r", user_id, raw, exc_info=True
        )
        return SessionState()


def lock_timeout_for(call_timeout, progress_delays):
    """Seconds a per-sender lock must survive for the slowest handling unit."""
    if not call_timeout:
        return LOCK_TIMEOUT
    budget = TIMED_CALLS_PER_MESSAGE * call_timeout + sum(progress_delays or ())
    return max(LOCK_TIMEOUT, int(budget) + 30)


class SessionStore:
    """get / merge over a per-sender state bag.

    Backends implement ``_load``, ``_save``, ``lock`` and ``mark_seen``.
    Callers hold ``lock(user_id)`` around any get-then-merge sequence.
    """

    async def get(self, user_id) -> SessionState:
        return _decode(user_id, await self._load(user_id))

    async def merge(self, user_id, fields: Dict[str, Any]) -> SessionState:
        session = apply_fields(await self.get(user_id), fields)
        await self._save(user_id, session.model_dump_json())

        logger.info(
            "[SESSION] MERGE | user=%s | fields=%s | state=%s | crops=%s | registered=%s",
            user_id,
            ",".join(sorted(fields)),
            session.conversation_state.value,
            session.collected_crops,
            session.farmer_profile is not None,
        )
        return session

    async def _load(self, user_id) -> Optional[str]:
        raise NotImplementedError

    async def _save(self, user_id, payload: str) -> None:
        raise NotImplementedError

    def lock(self, user_id):
        raise NotImplementedError

    async def mark_seen(self, message_id: str, ttl_s: int = SEEN_TTL) -> bool:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-lifetime store; one anyio lock per sender, dropped when idle."""

    def __init__(self):
        self._sessions: Dict[str, str] = {}
        self._seen: Dict[str, float] = {}
        self._locks: Dict[str, anyio.Lock] = {}
        self._holders: Dict[str, int] = {}

    async def _load(self, user_id):
        return self._sessions.get(user_id)

    async def _save(self, user_id, payload):
        self._sessions[user_id] = payload

    @asynccontextmanager
    async def lock(self, user_id):
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = anyio.Lock()
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if not self._holders[user_id]:
                del self._holders[user_id]
                del self._locks[user_id]

    async def mark_seen(self, message_id, ttl_s=SEEN_TTL):
        if not message_id:
            return True
        now = anyio.current_time()
        expires_at = self._seen.get(message_id)
        if expires_at is not None and expires_at > now:
            return False
        if len(self._seen) >= SEEN_PRUNE_THRESHOLD:
            self._seen = {mid: exp for mid, exp in self._seen.items() if exp > now}
        self._seen[message_id] = now + ttl_s
        return True


class RedisSessionStore(SessionStore):
    def __init__(self, client, ttl_seconds: Optional[int] = None, lock_timeout: int = LOCK_TIMEOUT):
        self._client = client
        self._lock_timeout = lock_timeout
        self._lock_blocking_timeout = lock_timeout + LOCK_BLOCKING_TIMEOUT - LOCK_TIMEOUT
        self._ttl = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None

    @staticmethod
    def _key(user_id):
        return f"session:{user_id}"

    async def _load(self, user_id):
        try:
            return await self._client.get(self._key(user_id))
        except RedisError as exc:
            raise SessionStoreError(f"Redis get failed for {user_id}: {exc}") from exc

    async def _save(self, user_id, payload):
        try:
            if self._ttl:
                await self._client.setex(self._key(user_id), self._ttl, payload)
            else:
                await self._client.set(self._key(user_id), payload)
        except RedisError as exc:
            raise SessionStoreError(f"Redis set failed for {user_id}: {exc}") from exc

    @asynccontextmanager
    async def lock(self, user_id):
        lock = self._client.lock(
            f"lock:session:{user_id}",
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            raise SessionStoreError(f"Redis lock failed for {user_id}: {exc}") from exc
        if not acquired:
            raise SessionStoreError(f"Timed out waiting for session lock of {user_id}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired under a very slow handler; the next holder already owns it
                logger.warning("[SESSION] lock for %s expired before release", user_id)

    async def mark_seen(self, message_id, ttl_s=SEEN_TTL):
        """
        Returns True if this message_id is seen for the first time.
        Returns False if we've already processed it recently.
        """
        if not message_id:
            return True  # can't dedupe

        key = f"seen:wa:msg:{message_id}"
        try:
            # SET NX EX = atomic idempotency lock
            ok = await self._client.set(key, "1", nx=True, ex=int(ttl_s))
            return bool(ok)
        except RedisError:
            # If Redis is down, don't break the bot; process normally
            logger.warning("[SESSION] dedupe unavailable for message %s", message_id)
            return True


def create_redis_client():
    if Config.use_local_redis:
        logger.info("[REDIS] Using LOCAL single-node Redis")
        return Redis(
            host=Config.redis_host,
            port=Config.redis_port,
            password=Config.redis_password or None,
            ssl=Config.redis_ssl,
            decode_responses=True,
        )

    logger.info("[REDIS] Using CLUSTER Redis (Azure Managed)")
    return RedisCluster(
        host=Config.redis_host,
        port=Config.redis_port,
        password=Config.redis_password or None,
        ssl=Config.redis_ssl,
        decode_responses=True,
    )


def create_session_store() -> SessionStore:
    if Config.session_backend == "memory":
        logger.info("[SESSION] Using in-memory session store")
        return InMemorySessionStore()
    if Config.session_backend != "redis":
        raise ValueError(f"Unknown SESSION_BACKEND {Config.session_backend!r}")
    return RedisSessionStore(
        create_redis_client(),
        ttl_seconds=Config.session_ttl_seconds,
        lock_timeout=lock_timeout_for(Config.collaborator_timeout_seconds, Config.progress_delays),
    )

