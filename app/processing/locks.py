"""Per-video exclusivity for processing jobs.

At most one job may own a video's processing fields at a time. Redis locks
cover the multi-worker deployment; the in-process backend covers tests and
single-process runs.
"""
import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Protocol
from uuid import UUID

import redis
from redis.exceptions import LockError

from app.core.config import settings
from app.processing.errors import JobAlreadyRunning

logger = logging.getLogger(__name__)

LOCK_PREFIX = "video-processing"


class JobLocks(Protocol):
    """Protocol for lock backends. ``hold`` raises JobAlreadyRunning if taken."""

    def hold(self, video_id: UUID | str) -> AsyncContextManager[None]:
        ...


class LocalJobLocks:
    """Locks held in this process only."""

    def __init__(self):
        self._active: set[str] = set()
        self._guard = threading.Lock()

    @asynccontextmanager
    async def hold(self, video_id: UUID | str) -> AsyncIterator[None]:
        key = str(video_id)
        with self._guard:
            if key in self._active:
                raise JobAlreadyRunning(video_id)
            self._active.add(key)
        try:
            yield
        finally:
            with self._guard:
                self._active.discard(key)


class RedisJobLocks:
    """Locks shared by every worker through Redis. Expire after ``ttl`` seconds.

    redis-py calls block, so they run in a worker thread.
    """

    def __init__(self, client=None, ttl: int | None = None):
        if client is None:
            client = redis.Redis.from_url(settings.REDIS_URL)
        self.client = client
        self.ttl = ttl or settings.PROCESSING_LOCK_TTL_SECONDS

    def _key(self, video_id: UUID | str) -> str:
        return f"{LOCK_PREFIX}:{video_id}"

    @asynccontextmanager
    async def hold(self, video_id: UUID | str) -> AsyncIterator[None]:
        lock = self.client.lock(self._key(video_id), timeout=self.ttl)
        if not await asyncio.to_thread(lock.acquire, blocking=False):
            raise JobAlreadyRunning(video_id)
        try:
            yield
        finally:
            try:
                await asyncio.to_thread(lock.release)
            except LockError:
                # TTL elapsed while the job was still running
                logger.warning("Processing lock for %s expired before release", video_id)


_locks: JobLocks | None = None


def get_job_locks() -> JobLocks:
    global _locks
    if _locks is None:
        if settings.PROCESSING_LOCK_BACKEND == "local":
            _locks = LocalJobLocks()
        else:
            _locks = RedisJobLocks()
    return _locks
