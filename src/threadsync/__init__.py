"""Async client that keeps assistant chat threads and runs in sync with a remote API."""

from importlib.metadata import version

from .async_client import AsyncThreadSyncClient
from .coerce import normalize_timestamp, to_float, to_int
from .config import ThreadSyncSettings, get_settings
from .context import ThreadSyncContext
from .exceptions import (
    PartialSyncWarning,
    RemoteCreateError,
    RemoteFetchError,
    RunInProgressError,
    StreamHandshakeError,
    ThreadSyncError,
)
from .log import configure_logging, get_logger
from .models import (
    RemoteRun,
    RemoteThread,
    RunListResponse,
    RunSingleResponse,
    decode_run_payload,
)
from .projection import project_run, provisional_run
from .repository import ThreadRepository
from .runs import RunSynchronizer
from .sse import StreamEvent, iter_sse_events
from .streams import (
    AsyncRunStatusStream,
    StreamingSessionController,
    StreamSession,
)
from .threads import (
    CreateThreadOptions,
    Run,
    RunSettings,
    RunStatus,
    Thread,
    ThreadMessage,
    UserThreadData,
)

__version__ = version("threadsync")

__all__ = [
    "AsyncThreadSyncClient",
    "ThreadSyncContext",
    "ThreadSyncSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Errors
    "ThreadSyncError",
    "RemoteCreateError",
    "RemoteFetchError",
    "StreamHandshakeError",
    "RunInProgressError",
    "PartialSyncWarning",
    # Records
    "Thread",
    "ThreadMessage",
    "Run",
    "RunStatus",
    "RunSettings",
    "CreateThreadOptions",
    "UserThreadData",
    # Wire shapes
    "RemoteRun",
    "RemoteThread",
    "RunListResponse",
    "RunSingleResponse",
    "decode_run_payload",
    # Services
    "ThreadRepository",
    "RunSynchronizer",
    "StreamingSessionController",
    "StreamSession",
    "AsyncRunStatusStream",
    "StreamEvent",
    "iter_sse_events",
    # Normalization
    "normalize_timestamp",
    "to_int",
    "to_float",
    "project_run",
    "provisional_run",
    "__version__",
]
