"""Exception types raised by the threadsync client."""

from typing import Optional


class ThreadSyncError(Exception):
    """Base error for all threadsync failures."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class RemoteCreateError(ThreadSyncError):
    """A creation request (thread, run, cancel, tool outputs) failed."""


class RemoteFetchError(ThreadSyncError):
    """A read request failed or returned a payload we could not decode."""


class StreamHandshakeError(ThreadSyncError):
    """Streaming was requested but the remote never produced a run id."""


class RunInProgressError(ThreadSyncError):
    """A run is already being originated or streamed for the thread."""

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"A run is already in progress for thread {thread_id}")
        self.thread_id = thread_id


class PartialSyncWarning(UserWarning):
    """One thread's runs could not be fetched during a bulk sync."""

    def __init__(self, thread_id: str, reason: str) -> None:
        super().__init__(f"Could not fetch runs for thread {thread_id}: {reason}")
        self.thread_id = thread_id
        self.reason = reason

    @property
    def message(self) -> str:
        return str(self)
