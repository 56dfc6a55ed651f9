"""Live run streams and run status polling."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from .async_client import AsyncThreadSyncClient
from .exceptions import RemoteCreateError, RunInProgressError, ThreadSyncError
from .log import get_logger
from .sse import StreamEvent
from .threads import Run
from .types import RunStatusCallback

if TYPE_CHECKING:
    from .runs import RunSynchronizer

logger = get_logger(__name__)

_CONTENT_CREATED = frozenset({"textCreated", "messageCreated", "thread.message.created"})
_CONTENT_DELTA = frozenset({"messageDelta", "thread.message.delta"})
_CONTENT_COMPLETED = frozenset({"messageCompleted", "thread.message.completed"})
_RUN_COMPLETED = frozenset({"runCompleted", "thread.run.completed"})
_RUN_FAILED = frozenset({"runFailed", "thread.run.failed"})
_RUN_REQUIRES_ACTION = frozenset({"runRequiresAction", "thread.run.requires_action"})


class StreamSession:
    """State of one streamed run on one thread.

    Events are applied as they arrive. A consumer can follow partial output
    with ``async for event in session.events()``; it receives the events
    that arrive after it subscribed. Nothing is buffered without a consumer,
    so a finished session only keeps its accumulated state.
    """

    def __init__(self, thread_id: str, assistant_id: str) -> None:
        self.thread_id = thread_id
        self.assistant_id = assistant_id
        self.run_id: Optional[str] = None
        self.message_id: Optional[str] = None
        self.content = ""
        self.error: Optional[str] = None
        self.required_action: Optional[Dict[str, Any]] = None
        self.completed = False
        self.cancelled = False
        self._task: Optional[asyncio.Task[None]] = None
        self._subscribers: List[asyncio.Queue[Optional[StreamEvent]]] = []
        self._run_id_ready = asyncio.Event()
        self._closed = asyncio.Event()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._closed.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def apply(self, event: StreamEvent) -> None:
        run_id = event.run_id()
        if run_id and self.run_id is None:
            self.run_id = run_id
            self._run_id_ready.set()
            logger.info("stream_run_started", thread_id=self.thread_id, run_id=run_id)

        kind = event.type
        if kind is None:
            text = event.content_text()
            if text is not None:
                self.content = text
            elif isinstance(event.data.get("delta"), dict):
                self.content += event.delta_text() or ""
        elif kind in _CONTENT_CREATED:
            if kind != "textCreated" and isinstance(event.data.get("id"), str):
                self.message_id = event.data["id"]
            text = event.content_text()
            if text is not None:
                self.content = text
        elif kind in _CONTENT_DELTA:
            self.content += event.delta_text() or ""
        elif kind in _CONTENT_COMPLETED:
            text = event.content_text()
            if text:
                self.content = text
        elif kind in _RUN_COMPLETED:
            self.completed = True
        elif kind in _RUN_FAILED:
            last_error = event.data.get("last_error")
            if isinstance(last_error, dict):
                last_error = last_error.get("message")
            self.error = last_error or "Run failed"
        elif kind in _RUN_REQUIRES_ACTION:
            self.required_action = event.data.get("required_action")

        for queue in self._subscribers:
            queue.put_nowait(event)

    def fail(self, message: str) -> None:
        self.error = message

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            for queue in self._subscribers:
                queue.put_nowait(None)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events received from now on until the stream closes."""
        if self.closed:
            return
        queue: asyncio.Queue[Optional[StreamEvent]] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._subscribers.remove(queue)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _wait_for_run_id(self, timeout: float) -> None:
        waiters = {
            asyncio.ensure_future(self._run_id_ready.wait()),
            asyncio.ensure_future(self._closed.wait()),
        }
        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def _stop(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class StreamingSessionController:
    """Owns at most one active stream per thread."""

    def __init__(self, client: AsyncThreadSyncClient, *, handshake_timeout: float = 30.0) -> None:
        self._client = client
        self._handshake_timeout = handshake_timeout
        self._sessions: Dict[str, StreamSession] = {}

    def session(self, thread_id: str) -> Optional[StreamSession]:
        return self._sessions.get(thread_id)

    def current_run_id(self, thread_id: str) -> Optional[str]:
        session = self._sessions.get(thread_id)
        return session.run_id if session else None

    def is_active(self, thread_id: str) -> bool:
        session = self._sessions.get(thread_id)
        return session is not None and session.active

    async def start_stream(
        self,
        thread_id: str,
        assistant_id: str,
        additional_instructions: Optional[str] = None,
    ) -> None:
        """Open a stream and return once it has reported its run id.

        When no run id arrives (connection failure, stream ended, handshake
        timeout) ``current_run_id`` stays ``None`` and the session's
        ``error`` says why.
        """
        if self.is_active(thread_id):
            raise RunInProgressError(thread_id)

        session = StreamSession(thread_id, assistant_id)
        self._sessions[thread_id] = session

        if not thread_id or not assistant_id:
            missing = "thread_id" if not thread_id else "assistant_id"
            session.fail(f"Missing required parameter: {missing}")
            session.close()
            logger.error("stream_not_started", thread_id=thread_id, missing=missing)
            return

        payload = {
            "assistant_id": assistant_id,
            "thread_id": thread_id,
            "additional_instructions": additional_instructions,
        }
        logger.info("stream_starting", thread_id=thread_id, assistant_id=assistant_id)
        session._task = asyncio.create_task(self._consume(session, payload))
        await session._wait_for_run_id(self._handshake_timeout)

        if session.run_id is None:
            if session.active:
                session.fail("Timed out waiting for the stream to report a run id")
                await session._stop()
            elif session.error is None:
                session.fail("Stream ended before reporting a run id")
            logger.error("stream_handshake_failed", thread_id=thread_id, error=session.error)

    async def _consume(self, session: StreamSession, payload: Dict[str, Any]) -> None:
        endpoint = f"/threads/{session.thread_id}/run/stream"
        try:
            async with self._client.stream_events(endpoint, json=payload) as events:
                async for event in events:
                    session.apply(event)
            logger.info("stream_finished", thread_id=session.thread_id, run_id=session.run_id)
        except asyncio.CancelledError:
            session.cancelled = True
            raise
        except ThreadSyncError as exc:
            session.fail(exc.message)
            logger.error("stream_failed", thread_id=session.thread_id, error=exc.message)
        finally:
            session.close()

    async def cancel_stream(self, thread_id: str, run_id: Optional[str] = None) -> bool:
        """Stop the thread's stream and ask the remote to cancel its run.

        Best effort: returns ``False`` when nothing was streaming or the
        remote refused the cancellation.
        """
        session = self._sessions.get(thread_id)
        if session is None or not session.active:
            return False

        await session._stop()
        logger.info("stream_cancelled", thread_id=thread_id)

        target = run_id or session.run_id
        if not target:
            return True
        try:
            await self._client.request(
                "POST",
                f"/threads/{thread_id}/run/{target}/cancel",
                error_cls=RemoteCreateError,
                fallback_message="Error cancelling run",
            )
        except ThreadSyncError as exc:
            logger.warning("run_cancel_failed", thread_id=thread_id, run_id=target, error=exc.message)
            return False
        return True

    def reset_stream(self, thread_id: str) -> None:
        """Forget the thread's session without any network call."""
        session = self._sessions.pop(thread_id, None)
        if session is not None and session._task is not None and not session._task.done():
            session._task.cancel()

    async def aclose(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session._stop()


class AsyncRunStatusStream:
    """Async iterator that polls a run until it reaches a terminal status."""

    def __init__(
        self,
        synchronizer: RunSynchronizer,
        thread_id: str,
        run_id: str,
        *,
        poll_interval: float = 2.0,
        max_attempts: int = 150,
        on_status: Optional[RunStatusCallback] = None,
    ) -> None:
        self._synchronizer = synchronizer
        self.thread_id = thread_id
        self.run_id = run_id
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._on_status = on_status

    def __aiter__(self) -> AsyncIterator[Run]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Run]:
        for _ in range(self._max_attempts):
            run = await self._synchronizer.get_run(self.thread_id, self.run_id)
            if self._on_status:
                self._on_status(run)
            yield run
            if run.is_terminal:
                return
            await asyncio.sleep(self._poll_interval)

        raise ThreadSyncError("Run did not reach a terminal status within the expected time")
