from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any, AsyncIterator, Dict, List, Optional, Type

import httpx

from .config import DEFAULT_BASE_URL
from .exceptions import RemoteFetchError, StreamHandshakeError, ThreadSyncError
from .log import get_logger
from .sse import StreamEvent, iter_sse_events
from .types import ResponseHook
from .utils import extract_error_message

logger = get_logger(__name__)

MOCK_REPLY = "This is a mock assistant reply generated without contacting the remote API."


def _headers(api_key: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["x-api-key"] = api_key
    return headers


class AsyncThreadSyncClient:
    """Asynchronous HTTP client for the remote thread/run API."""

    def __init__(
        self,
        api_key: str = "",
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        response_hook: Optional[ResponseHook] = None,
        mock_mode: bool = False,
    ) -> None:
        self._mock_mode = mock_mode
        self._mock_threads: Dict[str, Dict[str, Any]] = {}
        self._mock_runs: Dict[str, List[Dict[str, Any]]] = {}

        if not mock_mode and not api_key.strip():
            raise ThreadSyncError("API key must be a non-empty string")

        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = (
            httpx.AsyncClient(timeout=timeout, transport=transport) if not mock_mode else None
        )
        self._response_hook = response_hook

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    async def __aenter__(self) -> "AsyncThreadSyncClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        error_cls: Type[ThreadSyncError] = RemoteFetchError,
        fallback_message: str = "Request failed",
    ) -> Any:
        """Send one JSON request and return the decoded body.

        Any failure is raised as ``error_cls`` with the remote message when
        the server supplied one.
        """
        if self._mock_mode:
            return self._mock_response(method, endpoint, json, error_cls)

        url = f"{self._base_url}{endpoint}"
        logger.debug("remote_request", method=method, endpoint=endpoint)
        try:
            response = await self._client.request(
                method=method,
                url=url,
                json=json,
                params=params,
                headers=_headers(self._api_key),
                timeout=self._timeout,
            )
            if self._response_hook:
                self._response_hook(response)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise error_cls("Request timeout") from exc
        except httpx.HTTPStatusError as exc:
            message = extract_error_message(exc.response) or fallback_message
            raise error_cls(message, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise error_cls(f"Network error: {exc}") from exc
        except ValueError as exc:
            raise error_cls(f"{fallback_message}: response was not valid JSON") from exc

    @asynccontextmanager
    async def stream_events(
        self,
        endpoint: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[AsyncIterator[StreamEvent]]:
        """Open a POST Server-Sent Events stream and yield its decoded events.

        Failures before the stream opens raise ``StreamHandshakeError``;
        failures while reading raise ``ThreadSyncError``.
        """
        if self._mock_mode:
            yield self._mock_stream(endpoint, json or {})
            return

        url = f"{self._base_url}{endpoint}"
        headers = {**_headers(self._api_key), "Accept": "text/event-stream"}
        opened = False
        try:
            async with self._client.stream(
                "POST",
                url,
                json=json,
                headers=headers,
                timeout=httpx.Timeout(self._timeout, read=None),
            ) as response:
                if self._response_hook:
                    self._response_hook(response)
                if response.is_error:
                    await response.aread()
                    message = extract_error_message(response) or "Failed to start stream"
                    raise StreamHandshakeError(message, status_code=response.status_code)
                opened = True
                yield iter_sse_events(response.aiter_lines())
        except httpx.TimeoutException as exc:
            if opened:
                raise ThreadSyncError("Stream interrupted: timeout") from exc
            raise StreamHandshakeError("Request timeout") from exc
        except httpx.HTTPError as exc:
            if opened:
                raise ThreadSyncError(f"Stream interrupted: {exc}") from exc
            raise StreamHandshakeError(f"Network error: {exc}") from exc

    def _mock_response(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]],
        error_cls: Type[ThreadSyncError],
    ) -> Any:
        """Generate mock responses for development without a remote API."""
        parts = endpoint.split("?")[0].strip("/").split("/")
        body = json or {}

        if parts == ["threads"]:
            if method == "POST":
                return self._mock_create_thread(body)
            return {"data": list(self._mock_threads.values())}

        if len(parts) == 3 and parts[0] == "threads" and parts[2] == "run":
            thread_id = parts[1]
            if method == "POST":
                run = self._mock_new_run(thread_id, body.get("assistant_id"), body.get("settings") or {})
                return {"run": dict(run)}
            runs = self._mock_runs.get(thread_id, [])
            for run in runs:
                self._mock_advance(run)
            return {"data": [dict(run) for run in runs]}

        if len(parts) == 5 and parts[0] == "threads" and parts[2] == "run":
            thread_id, run_id, action = parts[1], parts[3], parts[4]
            run = next((r for r in self._mock_runs.get(thread_id, []) if r["id"] == run_id), None)
            if run is None:
                raise error_cls("Run not found", status_code=404)
            if action == "cancel":
                run.update(status="cancelled", cancelled_at=int(time.time()))
            elif action == "submit-tool-outputs":
                run.update(status="in_progress", required_action=None)
            return {"run": dict(run)}

        return {"status": "ok"}

    def _mock_create_thread(self, body: Dict[str, Any]) -> Dict[str, Any]:
        thread_id = f"thread_mock{uuid.uuid4().hex[:12]}"
        created_at = int(time.time())
        thread = {
            "id": thread_id,
            "object": "thread",
            "created_at": created_at,
            "metadata": body.get("metadata") or {},
            "title": body.get("title"),
        }
        self._mock_threads[thread_id] = {
            "id": thread_id,
            "thread_id": thread_id,
            "status": "active",
            "is_active": True,
            "created_at": created_at,
            "updated_at": created_at,
            "title": body.get("title"),
            "metadata": thread["metadata"],
        }
        return {"threadId": thread_id, "thread": thread}

    def _mock_new_run(
        self,
        thread_id: str,
        assistant_id: Optional[str],
        settings: Dict[str, Any],
        status: str = "queued",
    ) -> Dict[str, Any]:
        run = {
            "id": f"run_mock{uuid.uuid4().hex[:12]}",
            "object": "thread.run",
            "thread_id": thread_id,
            "assistant_id": assistant_id,
            "status": status,
            "created_at": int(time.time()),
            "model": settings.get("model") or "mock-model",
            "instructions": settings.get("instructions"),
            "tools": settings.get("tools") or [],
            "metadata": settings.get("metadata") or {},
            "temperature": settings.get("temperature"),
            "top_p": settings.get("top_p"),
        }
        self._mock_runs.setdefault(thread_id, []).append(run)
        return run

    @staticmethod
    def _mock_advance(run: Dict[str, Any]) -> None:
        now = int(time.time())
        if run["status"] == "queued":
            run.update(status="in_progress", started_at=now)
        elif run["status"] == "in_progress":
            run.update(
                status="completed",
                completed_at=now,
                usage={"prompt_tokens": 12, "completion_tokens": 18, "total_tokens": 30},
            )

    async def _mock_stream(
        self, endpoint: str, body: Dict[str, Any]
    ) -> AsyncIterator[StreamEvent]:
        thread_id = endpoint.strip("/").split("/")[1]
        run = self._mock_new_run(thread_id, body.get("assistant_id"), {}, status="in_progress")
        yield StreamEvent(type="thread.run.created", data=dict(run))
        yield StreamEvent(type="textCreated", data={"content": [{"text": {"value": ""}}]})
        for word in MOCK_REPLY.split(" "):
            await asyncio.sleep(0)
            yield StreamEvent(
                type="messageDelta",
                data={"delta": {"content": [{"text": {"value": word + " "}}]}},
            )
        yield StreamEvent(type="messageCompleted", data={"content": [{"text": {"value": MOCK_REPLY}}]})
        run.update(status="completed", completed_at=int(time.time()))
        yield StreamEvent(type="thread.run.completed", data=dict(run))
