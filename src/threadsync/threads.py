"""Thread and run records kept on the client side."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import PartialSyncWarning


class RunStatus(str, Enum):
    """Run lifecycle states reported by the remote API."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RunStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
    }
)


class ThreadMessage(BaseModel):
    """Represents a message within a thread."""

    id: str
    thread_id: str
    role: str  # "user" or "assistant"
    content: str
    created_at: Optional[str] = None


class Thread(BaseModel):
    """A conversation session with a remote assistant."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str = ""
    assistant_id: Optional[str] = None
    status: str = "active"
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    title: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    tool_resources: Optional[Dict[str, Any]] = None
    messages: List[ThreadMessage] = Field(default_factory=list)
    last_message_at: Optional[str] = None
    last_run_status: Optional[str] = None

    @property
    def thread_id(self) -> str:
        return self.id

    def mark_inactive(self) -> "Thread":
        """Return a copy flagged inactive. Threads are never deleted locally."""
        return self.model_copy(update={"status": "inactive", "is_active": False})


class Run(BaseModel):
    """One execution of an assistant against a thread."""

    id: str
    run_id: str
    thread_id: str
    assistant_id: Optional[str] = None
    user_id: str = ""
    status: RunStatus = RunStatus.UNKNOWN
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    failed_at: Optional[str] = None
    expires_at: Optional[str] = None
    last_error: Optional[str] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    additional_instructions: Optional[str] = None
    tools: Optional[List[Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    required_action: Optional[Dict[str, Any]] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_prompt_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    truncation_strategy: Optional[Dict[str, Any]] = None
    response_format: Any = None
    tool_choice: Any = None
    parallel_tool_calls: Optional[bool] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class CreateThreadOptions(BaseModel):
    """Options for creating a thread."""

    title: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class RunSettings(BaseModel):
    """Settings sent along when creating a run. Unknown keys are forwarded."""

    model_config = ConfigDict(extra="allow")

    stream: bool = False
    model: Optional[str] = None
    instructions: Optional[str] = None
    additional_instructions: Optional[str] = None
    tools: Optional[List[Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_prompt_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    truncation_strategy: Optional[Dict[str, Any]] = None
    response_format: Any = None
    tool_choice: Any = None
    parallel_tool_calls: Optional[bool] = None


class UserThreadData(BaseModel):
    """Threads of one user together with all of their runs."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    threads: List[Thread] = Field(default_factory=list)
    runs: List[Run] = Field(default_factory=list)
    warnings: List[PartialSyncWarning] = Field(default_factory=list)
