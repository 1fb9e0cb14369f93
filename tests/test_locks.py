import uuid
from unittest.mock import Mock

import pytest
from redis.exceptions import LockNotOwnedError

from app.processing.errors import JobAlreadyRunning
from app.processing.locks import LocalJobLocks, RedisJobLocks


async def test_local_lock_is_exclusive_per_video():
    locks = LocalJobLocks()
    first, second = uuid.uuid4(), uuid.uuid4()

    async with locks.hold(first):
        with pytest.raises(JobAlreadyRunning):
            async with locks.hold(first):
                pass
        async with locks.hold(second):
            pass

    async with locks.hold(first):
        pass


async def test_local_lock_released_on_error():
    locks = LocalJobLocks()
    video_id = uuid.uuid4()
    with pytest.raises(RuntimeError):
        async with locks.hold(video_id):
            raise RuntimeError("encoder crashed")

    async with locks.hold(video_id):
        pass


async def test_redis_lock_acquires_without_blocking():
    client = Mock()
    lock = client.lock.return_value
    lock.acquire.return_value = True
    locks = RedisJobLocks(client=client, ttl=60)
    video_id = uuid.uuid4()

    async with locks.hold(video_id):
        lock.release.assert_not_called()

    client.lock.assert_called_once_with(f"video-processing:{video_id}", timeout=60)
    lock.acquire.assert_called_once_with(blocking=False)
    lock.release.assert_called_once()


async def test_redis_lock_contention():
    client = Mock()
    client.lock.return_value.acquire.return_value = False
    locks = RedisJobLocks(client=client, ttl=60)

    with pytest.raises(JobAlreadyRunning):
        async with locks.hold("abc"):
            pass
    client.lock.return_value.release.assert_not_called()


async def test_redis_lock_expired_before_release():
    client = Mock()
    lock = client.lock.return_value
    lock.acquire.return_value = True
    lock.release.side_effect = LockNotOwnedError("expired")
    locks = RedisJobLocks(client=client, ttl=60)

    async with locks.hold("abc"):
        pass
    lock.release.assert_called_once()
