"""Application context wiring the client and services together."""

from __future__ import annotations

from types import TracebackType
from typing import Optional

import httpx

from .async_client import AsyncThreadSyncClient
from .config import ThreadSyncSettings, get_settings
from .log import configure_logging, get_logger
from .repository import ThreadRepository
from .runs import RunSynchronizer
from .streams import StreamingSessionController
from .types import ResponseHook

logger = get_logger(__name__)


class ThreadSyncContext:
    """Everything needed to sync threads and runs for one user.

    Build it once at startup and pass it (or its members) to whatever needs
    it; close it at shutdown. Logging is configured from the settings unless
    ``configure_logs`` is false, for hosts that set up structlog themselves::

        async with ThreadSyncContext(user_id="user_123") as ctx:
            thread = await ctx.threads.create_thread()
            run = await ctx.runs.create_run(thread.id, "asst_abc", {"stream": True})
    """

    def __init__(
        self,
        settings: Optional[ThreadSyncSettings] = None,
        *,
        user_id: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        response_hook: Optional[ResponseHook] = None,
        configure_logs: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_id = user_id
        if configure_logs:
            configure_logging(
                environment=self.settings.environment,
                log_level=self.settings.log_level,
                log_format=self.settings.log_format,
            )
        self.client = AsyncThreadSyncClient(
            self.settings.api_key or "",
            base_url=self.settings.base_url,
            timeout=self.settings.timeout,
            transport=transport,
            response_hook=response_hook,
            mock_mode=self.settings.mock_mode,
        )
        self.streams = StreamingSessionController(
            self.client, handshake_timeout=self.settings.stream_handshake_timeout
        )
        self.threads = ThreadRepository(
            self.client,
            user_id=user_id,
            max_concurrency=self.settings.max_concurrent_fetches,
        )
        self.runs = RunSynchronizer(
            self.client,
            self.streams,
            self.threads,
            user_id=user_id,
            poll_interval=self.settings.poll_interval,
            max_poll_attempts=self.settings.max_poll_attempts,
        )
        self._closed = False

    async def __aenter__(self) -> "ThreadSyncContext":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.streams.aclose()
        await self.client.close()
        logger.debug("context_closed", user_id=self.user_id)
