"""Run synchronizer: blocking and streamed creation, polling, cancellation."""

import asyncio
import json

import httpx
import pytest

from tests.helpers import HangingStream, sse_body, sse_chunk
from threadsync import (
    RemoteCreateError,
    RemoteFetchError,
    RunInProgressError,
    RunSettings,
    RunStatus,
    StreamHandshakeError,
    ThreadSyncError,
)


class TestBlockingCreate:
    @pytest.mark.asyncio
    async def test_create_run(self, make_context, raw_run):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/threads/thread_1/run"
            bodies.append(json.loads(request.read()))
            return httpx.Response(200, json={"run": dict(raw_run, status="queued")})

        async with make_context(handler) as ctx:
            run = await ctx.runs.create_run(
                "thread_1",
                "asst_1",
                {"model": "gpt-4o", "temperature": 0.3},
                [{"role": "user", "content": "Summarize the intake"}],
            )

        assert bodies[0]["assistant_id"] == "asst_1"
        assert bodies[0]["settings"] == {"stream": False, "model": "gpt-4o", "temperature": 0.3}
        assert bodies[0]["messages"] == [{"role": "user", "content": "Summarize the intake"}]
        assert run.id == "run_abc"
        assert run.thread_id == "thread_1"
        assert run.user_id == "user_1"
        assert run.status is RunStatus.QUEUED
        assert run.prompt_tokens == 42

    @pytest.mark.asyncio
    async def test_remote_error_carries_server_message(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "Thread already has an active run"})

        async with make_context(handler) as ctx:
            with pytest.raises(RemoteCreateError) as exc_info:
                await ctx.runs.create_run("thread_1", "asst_1")

        assert str(exc_info.value) == "Thread already has an active run"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_error(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with make_context(handler) as ctx:
            with pytest.raises(RemoteCreateError, match="Network error"):
                await ctx.runs.create_run("thread_1", "asst_1")

    @pytest.mark.asyncio
    async def test_blocking_create_resets_previous_stream(self, make_context, raw_run):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/stream"):
                return httpx.Response(
                    200,
                    content=sse_body([{"type": "thread.run.created", "data": {"id": "run_old"}}]),
                )
            return httpx.Response(200, json={"run": raw_run})

        async with make_context(handler) as ctx:
            await ctx.runs.create_run("thread_1", "asst_1", RunSettings(stream=True))
            await ctx.streams.session("thread_1").wait_closed()
            assert ctx.streams.current_run_id("thread_1") == "run_old"

            await ctx.runs.create_run("thread_1", "asst_1")
            assert ctx.streams.current_run_id("thread_1") is None


class TestStreamedCreate:
    @pytest.mark.asyncio
    async def test_streamed_run_is_provisional(self, make_context):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/threads/thread_1/run/stream"
            bodies.append(json.loads(request.read()))
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=sse_body(
                    [
                        {"type": "thread.run.created", "data": {"id": "run_live", "status": "queued"}},
                        {"type": "textCreated", "data": {"content": [{"text": {"value": "Hel"}}]}},
                        {"type": "messageDelta", "data": {"delta": {"content": [{"text": {"value": "lo"}}]}}},
                        {"type": "thread.run.completed", "data": {"id": "run_live"}},
                    ]
                ),
            )

        settings = RunSettings(stream=True, additional_instructions="Use bullet points", model="gpt-4o")
        async with make_context(handler) as ctx:
            run = await ctx.runs.create_run("thread_1", "asst_1", settings)
            session = ctx.streams.session("thread_1")
            await session.wait_closed()

        assert bodies == [
            {
                "assistant_id": "asst_1",
                "thread_id": "thread_1",
                "additional_instructions": "Use bullet points",
            }
        ]
        assert run.id == run.run_id == "run_live"
        assert run.status is RunStatus.IN_PROGRESS
        assert run.started_at is not None
        assert run.model == "gpt-4o"
        assert run.user_id == "user_1"
        assert session.content == "Hello"
        assert session.completed

    @pytest.mark.asyncio
    async def test_handshake_failure(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "Stream unavailable"})

        async with make_context(handler) as ctx:
            with pytest.raises(StreamHandshakeError, match="Stream unavailable"):
                await ctx.runs.create_run("thread_1", "asst_1", {"stream": True})
            assert ctx.streams.current_run_id("thread_1") is None

    @pytest.mark.asyncio
    async def test_stream_without_run_id(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=sse_body([{"type": "textCreated", "data": {"content": "orphan"}}]),
            )

        async with make_context(handler) as ctx:
            with pytest.raises(StreamHandshakeError, match="Failed to obtain run ID"):
                await ctx.runs.create_run("thread_1", "asst_1", {"stream": True})

    @pytest.mark.asyncio
    async def test_second_run_rejected_while_streaming(self, make_context):
        stream = HangingStream([sse_chunk({"type": "thread.run.created", "data": {"id": "run_1"}})])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=stream)

        async with make_context(handler) as ctx:
            await ctx.runs.create_run("thread_1", "asst_1", {"stream": True})
            assert ctx.streams.is_active("thread_1")

            with pytest.raises(RunInProgressError):
                await ctx.runs.create_run("thread_1", "asst_1", {"stream": True})
            with pytest.raises(RunInProgressError):
                await ctx.runs.create_run("thread_1", "asst_1")

            stream.release.set()
            await ctx.streams.session("thread_1").wait_closed()
            assert not ctx.streams.is_active("thread_1")

    @pytest.mark.asyncio
    async def test_concurrent_blocking_creates_are_guarded(self, make_context, raw_run):
        gate = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            return httpx.Response(200, json={"run": raw_run})

        async with make_context(handler) as ctx:
            first = asyncio.create_task(ctx.runs.create_run("thread_1", "asst_1"))
            await asyncio.sleep(0)
            with pytest.raises(RunInProgressError):
                await ctx.runs.create_run("thread_1", "asst_1")
            gate.set()
            run = await first

        assert run.id == "run_abc"


class TestObservation:
    @pytest.mark.asyncio
    async def test_wait_for_run_polls_until_terminal(self, make_context):
        statuses = iter(["queued", "in_progress", "completed"])
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"id": "run_1", "status": next(statuses)}]})

        async with make_context(handler) as ctx:
            run = await ctx.runs.wait_for_run("thread_1", "run_1", on_status=lambda r: seen.append(r.status))

        assert run.status is RunStatus.COMPLETED
        assert seen == [RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_wait_for_run_gives_up(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"run": {"id": "run_1", "status": "in_progress"}})

        async with make_context(handler) as ctx:
            with pytest.raises(ThreadSyncError, match="terminal status"):
                await ctx.runs.wait_for_run("thread_1", "run_1", max_attempts=3)

    @pytest.mark.asyncio
    async def test_get_run_missing(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"id": "run_other"}]})

        async with make_context(handler) as ctx:
            with pytest.raises(RemoteFetchError) as exc_info:
                await ctx.runs.get_run("thread_1", "run_1")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_run(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/threads/thread_1/run/run_1/cancel"
            return httpx.Response(
                200, json={"run": {"id": "run_1", "status": "cancelled", "cancelled_at": 1700000000}}
            )

        async with make_context(handler) as ctx:
            run = await ctx.runs.cancel_run("thread_1", "run_1")

        assert run.status is RunStatus.CANCELLED
        assert run.cancelled_at == "2023-11-14T22:13:20.000Z"

    @pytest.mark.asyncio
    async def test_submit_tool_outputs(self, make_context):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/threads/thread_1/run/run_1/submit-tool-outputs"
            bodies.append(json.loads(request.read()))
            return httpx.Response(200, json={"run": {"id": "run_1", "status": "in_progress"}})

        outputs = [{"tool_call_id": "call_1", "output": '{"form_key": "intake"}'}]
        async with make_context(handler) as ctx:
            run = await ctx.runs.submit_tool_outputs("thread_1", "run_1", outputs)

        assert bodies == [{"tool_outputs": outputs, "stream": False}]
        assert run.status is RunStatus.IN_PROGRESS
