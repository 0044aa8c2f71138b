# services/resumable_stream.py
"""Background production of SSE streams, optionally resumable through Redis.

The producer always runs as its own task, so a client that disconnects does not
cancel the model call or the persistence that happens at the end of it. With
Redis, every frame is also appended to a Redis stream so another request can
replay it and follow the rest live.
"""
import asyncio
from typing import AsyncIterator, Callable, Optional

import redis.asyncio as redis
from loguru import logger

from core.config import STREAM_TTL_SECONDS
from services.redis import get_redis


KEY_PREFIX = "resumable-stream"
IDLE_TIMEOUT_SECONDS = 60

_background_tasks: set[asyncio.Task] = set()
_END = object()


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def run_in_background(frames: AsyncIterator[str]) -> AsyncIterator[str]:
    """Drain ``frames`` in a background task and hand them out through a queue."""
    queue: asyncio.Queue = asyncio.Queue()

    async def pump():
        try:
            async for frame in frames:
                queue.put_nowait(frame)
        except Exception as exc:
            logger.exception("Stream producer failed: {}", exc)
        finally:
            queue.put_nowait(_END)

    _spawn(pump())

    async def reader():
        while True:
            frame = await queue.get()
            if frame is _END:
                return
            yield frame

    return reader()


class ResumableStreamContext:
    def __init__(self, client: redis.Redis, ttl_seconds: int = STREAM_TTL_SECONDS):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(stream_id: str) -> str:
        return f"{KEY_PREFIX}:{stream_id}"

    async def resumable_stream(
        self, stream_id: str, make_stream: Callable[[], AsyncIterator[str]]
    ) -> AsyncIterator[str]:
        key = self._key(stream_id)

        async def record():
            try:
                async for frame in make_stream():
                    await self.redis.xadd(key, {"data": frame})
            except Exception as exc:
                logger.exception("Resumable stream {} failed: {}", stream_id, exc)
            finally:
                await self.redis.xadd(key, {"done": "1"})
                await self.redis.expire(key, self.ttl_seconds)

        _spawn(record())
        return self._follow(key)

    async def resume_existing_stream(self, stream_id: str) -> Optional[AsyncIterator[str]]:
        """Replay + follow a stream; ``None`` if it already finished.

        Raises ``LookupError`` when nothing was ever recorded under ``stream_id``.
        """
        key = self._key(stream_id)
        if not await self.redis.exists(key):
            raise LookupError(stream_id)

        last = await self.redis.xrevrange(key, count=1)
        if last and "done" in last[0][1]:
            return None

        return self._follow(key)

    async def _follow(self, key: str, last_id: str = "0") -> AsyncIterator[str]:
        idle = 0.0
        while idle < IDLE_TIMEOUT_SECONDS:
            response = await self.redis.xread({key: last_id}, block=1000, count=100)
            if not response:
                idle += 1.0
                continue

            idle = 0.0
            for _, entries in response:
                for entry_id, fields in entries:
                    last_id = entry_id
                    if "done" in fields:
                        return
                    yield fields["data"]

        logger.warning("Gave up following idle stream {}", key)


_context: Optional[ResumableStreamContext] = None
_disabled_logged = False


def get_stream_context() -> Optional[ResumableStreamContext]:
    global _context, _disabled_logged

    if _context is None:
        client = get_redis()
        if client is None:
            if not _disabled_logged:
                logger.info(" > Resumable streams are disabled due to missing REDIS_URL")
                _disabled_logged = True
            return None
        _context = ResumableStreamContext(client)

    return _context
