"""Run origination and observation."""

from typing import Any, Dict, List, Mapping, Optional, Set, Union

from .async_client import AsyncThreadSyncClient
from .exceptions import RemoteCreateError, RemoteFetchError, RunInProgressError, StreamHandshakeError
from .log import get_logger
from .models import RunSingleResponse
from .projection import project_run, provisional_run
from .repository import ThreadRepository
from .streams import AsyncRunStatusStream, StreamingSessionController
from .threads import Run, RunSettings
from .types import RunStatusCallback
from .utils import validate_payload

logger = get_logger(__name__)

SettingsInput = Union[RunSettings, Mapping[str, Any], None]


class RunSynchronizer:
    """Creates runs, either blocking or streamed, and follows their status."""

    def __init__(
        self,
        client: AsyncThreadSyncClient,
        streams: StreamingSessionController,
        repository: ThreadRepository,
        *,
        user_id: str = "",
        poll_interval: float = 2.0,
        max_poll_attempts: int = 150,
    ) -> None:
        self._client = client
        self._streams = streams
        self._repository = repository
        self._user_id = user_id
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._originating: Set[str] = set()

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        settings: SettingsInput = None,
        messages: Optional[List[Dict[str, Any]]] = None,
    ) -> Run:
        """Start a new run on a thread.

        With ``settings.stream`` the run is opened as a live stream and a
        provisional ``in_progress`` record is returned; otherwise the run is
        created with a blocking request.
        """
        if not isinstance(settings, RunSettings):
            settings = RunSettings.model_validate(dict(settings or {}))

        if thread_id in self._originating or self._streams.is_active(thread_id):
            raise RunInProgressError(thread_id)

        self._originating.add(thread_id)
        try:
            self._streams.reset_stream(thread_id)
            if settings.stream:
                return await self._create_streamed_run(thread_id, assistant_id, settings)
            return await self._create_blocking_run(thread_id, assistant_id, settings, messages)
        finally:
            self._originating.discard(thread_id)

    async def _create_streamed_run(
        self, thread_id: str, assistant_id: str, settings: RunSettings
    ) -> Run:
        await self._streams.start_stream(thread_id, assistant_id, settings.additional_instructions)
        run_id = self._streams.current_run_id(thread_id)
        if not run_id:
            session = self._streams.session(thread_id)
            reason = session.error if session and session.error else None
            message = "Failed to obtain run ID from streaming process"
            raise StreamHandshakeError(f"{message}: {reason}" if reason else message)

        logger.info("run_streaming", thread_id=thread_id, run_id=run_id)
        return provisional_run(run_id, thread_id, assistant_id, settings, self._user_id)

    async def _create_blocking_run(
        self,
        thread_id: str,
        assistant_id: str,
        settings: RunSettings,
        messages: Optional[List[Dict[str, Any]]],
    ) -> Run:
        payload = {
            "assistant_id": assistant_id,
            "settings": settings.model_dump(exclude_none=True),
            "messages": messages or [],
        }
        data = await self._client.request(
            "POST",
            f"/threads/{thread_id}/run",
            json=payload,
            error_cls=RemoteCreateError,
            fallback_message="Failed to create run",
        )
        response = validate_payload(RunSingleResponse, data, RemoteCreateError, "run")
        run = project_run(response.run, thread_id, self._user_id, assistant_id)
        logger.info("run_created", thread_id=thread_id, run_id=run.id, status=run.status.value)
        return run

    async def list_runs(self, thread_id: str) -> List[Run]:
        return await self._repository.get_thread_runs_by_thread_id(thread_id, user_id=self._user_id)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        for run in await self.list_runs(thread_id):
            if run.id == run_id:
                return run
        raise RemoteFetchError(f"Run {run_id} not found in thread {thread_id}", status_code=404)

    def stream_run_status(
        self,
        thread_id: str,
        run_id: str,
        *,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_status: Optional[RunStatusCallback] = None,
    ) -> AsyncRunStatusStream:
        return AsyncRunStatusStream(
            self,
            thread_id,
            run_id,
            poll_interval=self._poll_interval if poll_interval is None else poll_interval,
            max_attempts=self._max_poll_attempts if max_attempts is None else max_attempts,
            on_status=on_status,
        )

    async def wait_for_run(
        self,
        thread_id: str,
        run_id: str,
        *,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_status: Optional[RunStatusCallback] = None,
    ) -> Run:
        """Poll until the run reaches a terminal status and return it."""
        run = None
        async for run in self.stream_run_status(
            thread_id,
            run_id,
            poll_interval=poll_interval,
            max_attempts=max_attempts,
            on_status=on_status,
        ):
            pass
        return run

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        data = await self._client.request(
            "POST",
            f"/threads/{thread_id}/run/{run_id}/cancel",
            error_cls=RemoteCreateError,
            fallback_message="Error cancelling run",
        )
        response = validate_payload(RunSingleResponse, data, RemoteCreateError, "run")
        logger.info("run_cancel_requested", thread_id=thread_id, run_id=run_id)
        return project_run(response.run, thread_id, self._user_id)

    async def submit_tool_outputs(
        self,
        thread_id: str,
        run_id: str,
        tool_outputs: List[Dict[str, Any]],
    ) -> Run:
        """Answer a run's ``requires_action`` tool calls."""
        data = await self._client.request(
            "POST",
            f"/threads/{thread_id}/run/{run_id}/submit-tool-outputs",
            json={"tool_outputs": tool_outputs, "stream": False},
            error_cls=RemoteCreateError,
            fallback_message="Error submitting tool outputs",
        )
        response = validate_payload(RunSingleResponse, data, RemoteCreateError, "run")
        return project_run(response.run, thread_id, self._user_id)
