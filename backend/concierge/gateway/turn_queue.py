"""
Per-session run-to-completion queue.

Jobs submitted for the same session run one at a time in submission order;
jobs for different sessions run concurrently. Each session gets a worker task
that drains its queue and exits once the queue is empty.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Tuple

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


class SessionTurnQueue:
    """Serializes jobs per session id."""

    def __init__(self):
        self._pending: Dict[str, Deque[Tuple[Job, asyncio.Future]]] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._closed = False

    def submit(self, session_id: str, job: Job) -> asyncio.Future:
        """
        Queue ``job`` behind any earlier jobs for the same session.
        Returns a future resolved with the job's result.
        """
        if self._closed:
            raise RuntimeError("Turn queue is closed")
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.setdefault(session_id, deque()).append((job, future))
        if session_id not in self._workers:
            self._workers[session_id] = loop.create_task(self._drain(session_id))
        return future

    def pending(self, session_id: str) -> int:
        return len(self._pending.get(session_id, ()))

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._workers

    async def _drain(self, session_id: str) -> None:
        queue = self._pending[session_id]
        try:
            while queue:
                job, future = queue.popleft()
                if future.cancelled():
                    continue
                try:
                    result = await job()
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as e:
                    logger.error(
                        f"Queued job failed for session {session_id}: {str(e)}",
                        exc_info=True,
                        extra={"extra_fields": {"session_id": session_id}}
                    )
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            self._workers.pop(session_id, None)
            if queue:
                # Cancelled mid-drain: whatever is left will never run
                for _, future in queue:
                    future.cancel()
                queue.clear()
            self._pending.pop(session_id, None)

    async def close(self) -> None:
        """Cancel all workers and pending jobs."""
        self._closed = True
        workers = list(self._workers.values())
        for task in workers:
            task.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        logger.info(f"Turn queue closed ({len(workers)} active session(s) cancelled)")
