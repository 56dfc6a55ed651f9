"""Thread lookups and creation against the remote API."""

import asyncio
from typing import List, Optional, Tuple

from .async_client import AsyncThreadSyncClient
from .coerce import normalize_timestamp
from .exceptions import PartialSyncWarning, RemoteCreateError, RemoteFetchError, ThreadSyncError
from .log import get_logger
from .models import RemoteThread, ThreadCreateResponse, ThreadListResponse, decode_run_payload
from .projection import project_run
from .threads import CreateThreadOptions, Run, Thread, UserThreadData
from .utils import validate_payload

logger = get_logger(__name__)


def project_thread(raw: RemoteThread, fallback_user_id: str) -> Optional[Thread]:
    thread_id = raw.remote_id
    if not thread_id:
        return None
    status = raw.status or "active"
    return Thread(
        id=thread_id,
        user_id=raw.user_id or fallback_user_id,
        assistant_id=raw.assistant_id,
        status=status,
        is_active=raw.is_active if raw.is_active is not None else status == "active",
        created_at=normalize_timestamp(raw.created_at),
        updated_at=normalize_timestamp(raw.updated_at),
        title=raw.title,
        metadata=raw.metadata or {},
        tool_resources=raw.tool_resources,
        last_message_at=normalize_timestamp(raw.last_message_at),
        last_run_status=raw.last_run_status,
    )


class ThreadRepository:
    """Fetches and creates threads and normalizes their runs."""

    def __init__(
        self,
        client: AsyncThreadSyncClient,
        *,
        user_id: str = "",
        max_concurrency: int = 8,
    ) -> None:
        self._client = client
        self._user_id = user_id
        self._max_concurrency = max_concurrency

    async def create_thread(self, options: Optional[CreateThreadOptions] = None) -> Thread:
        """Create a new conversation thread."""
        payload = options.model_dump(exclude_none=True) if options else None
        data = await self._client.request(
            "POST",
            "/threads",
            json=payload,
            error_cls=RemoteCreateError,
            fallback_message="Failed to create thread",
        )
        response = validate_payload(ThreadCreateResponse, data, RemoteCreateError, "thread")
        remote = response.thread or RemoteThread()
        thread_id = response.thread_id or remote.remote_id
        if not thread_id:
            raise RemoteCreateError("Thread creation response did not include a thread id")

        created_at = normalize_timestamp(remote.created_at)
        thread = Thread(
            id=thread_id,
            user_id=self._user_id,
            status="active",
            is_active=True,
            created_at=created_at,
            updated_at=created_at,
            title=remote.title,
            metadata=remote.metadata or {},
        )
        logger.info("thread_created", thread_id=thread_id)
        return thread

    async def list_threads(self, user_id: Optional[str] = None) -> List[Thread]:
        """List the threads of a user."""
        user_id = user_id if user_id is not None else self._user_id
        data = await self._client.request(
            "GET",
            "/threads",
            params={"user_id": user_id} if user_id else None,
            fallback_message="Failed to fetch user thread data",
        )
        response = validate_payload(ThreadListResponse, data, RemoteFetchError, "thread list")
        threads = []
        for raw in response.data:
            thread = project_thread(raw, user_id)
            if thread is None:
                logger.warning("thread_without_id_skipped", user_id=user_id)
                continue
            threads.append(thread)
        return threads

    async def get_thread_runs_by_thread_id(
        self,
        thread_id: str,
        *,
        user_id: str = "",
        assistant_id: Optional[str] = None,
    ) -> List[Run]:
        """Fetch and normalize every run of one thread."""
        data = await self._client.request(
            "GET",
            f"/threads/{thread_id}/run",
            fallback_message="Failed to fetch thread runs",
        )
        return [
            project_run(raw, thread_id, user_id, assistant_id)
            for raw in decode_run_payload(data)
        ]

    async def get_user_thread_data(self, user_id: Optional[str] = None) -> UserThreadData:
        """Fetch a user's threads and all of their runs.

        A thread whose runs cannot be fetched contributes no runs and a
        ``PartialSyncWarning``; the call as a whole still succeeds.
        """
        user_id = user_id if user_id is not None else self._user_id
        threads = await self.list_threads(user_id)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch(thread: Thread) -> Tuple[List[Run], Optional[PartialSyncWarning]]:
            async with semaphore:
                try:
                    runs = await self.get_thread_runs_by_thread_id(
                        thread.id, user_id=user_id, assistant_id=thread.assistant_id
                    )
                except ThreadSyncError as exc:
                    warning = PartialSyncWarning(thread.id, exc.message)
                    logger.warning(
                        "thread_runs_fetch_failed",
                        thread_id=thread.id,
                        user_id=user_id,
                        error=exc.message,
                    )
                    return [], warning
            return runs, None

        results = await asyncio.gather(*(fetch(thread) for thread in threads))

        data = UserThreadData(threads=threads)
        for runs, warning in results:
            data.runs.extend(runs)
            if warning is not None:
                data.warnings.append(warning)
        logger.info(
            "user_thread_data_synced",
            user_id=user_id,
            threads=len(threads),
            runs=len(data.runs),
            failed_threads=len(data.warnings),
        )
        return data
