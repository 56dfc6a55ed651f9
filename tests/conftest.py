"""Shared fixtures."""

from typing import Any, Callable, Dict

import httpx
import pytest
import structlog

from threadsync import ThreadSyncContext, ThreadSyncSettings

BASE_URL = "https://api.test"


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> ThreadSyncSettings:
    return ThreadSyncSettings(
        _env_file=None,
        api_key="test-key",
        base_url=BASE_URL,
        poll_interval=0,
        max_poll_attempts=5,
        stream_handshake_timeout=1.0,
        environment="test",
    )


@pytest.fixture
def make_context(settings: ThreadSyncSettings) -> Callable[..., ThreadSyncContext]:
    """Build a context whose HTTP calls go to ``handler``."""

    def factory(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> ThreadSyncContext:
        kwargs.setdefault("user_id", "user_1")
        return ThreadSyncContext(settings, transport=httpx.MockTransport(handler), **kwargs)

    return factory


@pytest.fixture
def raw_run() -> Dict[str, Any]:
    return {
        "id": "run_abc",
        "object": "thread.run",
        "assistant_id": "asst_1",
        "status": "completed",
        "created_at": 1700000000,
        "started_at": 1700000001,
        "completed_at": "1700000005",
        "last_error": None,
        "model": "gpt-4o",
        "instructions": "Be concise.",
        "tools": [{"type": "file_search"}],
        "metadata": {"source": "test"},
        "usage": {"prompt_tokens": "42", "completion_tokens": 8, "total_tokens": "50"},
        "temperature": "0.7",
        "top_p": 1,
        "max_prompt_tokens": "2000",
        "max_completion_tokens": None,
        "truncation_strategy": {"type": "auto"},
        "response_format": "auto",
        "tool_choice": "auto",
        "parallel_tool_calls": True,
    }
