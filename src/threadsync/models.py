"""Wire shapes returned by the remote thread/run API."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import RemoteFetchError
from .log import get_logger

logger = get_logger(__name__)


class RemoteModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class RemoteLastError(RemoteModel):
    code: Optional[str] = None
    message: Optional[str] = None


class RemoteUsage(RemoteModel):
    prompt_tokens: Any = None
    completion_tokens: Any = None
    total_tokens: Any = None


class RemoteRun(RemoteModel):
    """A run as the remote API reports it. Fields stay loosely typed."""

    id: Optional[str] = None
    thread_id: Optional[str] = None
    assistant_id: Optional[str] = None
    status: Optional[str] = None
    created_at: Any = None
    updated_at: Any = None
    started_at: Any = None
    completed_at: Any = None
    cancelled_at: Any = None
    failed_at: Any = None
    expires_at: Any = None
    last_error: Optional[RemoteLastError] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    additional_instructions: Optional[str] = None
    tools: Optional[List[Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    required_action: Optional[Dict[str, Any]] = None
    usage: Optional[RemoteUsage] = None
    temperature: Any = None
    top_p: Any = None
    max_prompt_tokens: Any = None
    max_completion_tokens: Any = None
    truncation_strategy: Optional[Dict[str, Any]] = None
    response_format: Any = None
    tool_choice: Any = None
    parallel_tool_calls: Optional[bool] = None

    @field_validator("last_error", mode="before")
    @classmethod
    def _wrap_plain_error(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"message": value}
        return value


class RemoteThread(RemoteModel):
    """A thread row as listed by ``GET /threads``."""

    id: Optional[str] = None
    thread_id: Optional[str] = None
    user_id: Optional[str] = None
    assistant_id: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None
    title: Optional[str] = None
    created_at: Any = None
    updated_at: Any = None
    last_message_at: Any = None
    last_run_status: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    tool_resources: Optional[Dict[str, Any]] = None

    @property
    def remote_id(self) -> Optional[str]:
        return self.thread_id or self.id


class ThreadListResponse(RemoteModel):
    data: List[RemoteThread] = Field(default_factory=list)


class ThreadCreateResponse(RemoteModel):
    thread_id: Optional[str] = Field(None, alias="threadId")
    thread: Optional[RemoteThread] = None


class RunListResponse(RemoteModel):
    data: List[RemoteRun]


class RunSingleResponse(RemoteModel):
    run: RemoteRun


RunResponse = Union[RunListResponse, RunSingleResponse]


def decode_run_response(payload: Any) -> Optional[RunResponse]:
    """Decode a run payload into its list or single variant.

    Returns ``None`` when the payload matches neither shape.
    """
    try:
        if isinstance(payload, dict):
            if isinstance(payload.get("data"), list):
                return RunListResponse.model_validate(payload)
            if payload.get("run"):
                return RunSingleResponse.model_validate(payload)
    except ValidationError as exc:
        raise RemoteFetchError(f"Malformed run payload: {exc.error_count()} invalid field(s)") from exc
    return None


def decode_run_payload(payload: Any) -> List[RemoteRun]:
    """Normalize either run payload shape into a list of runs."""
    response = decode_run_response(payload)
    if isinstance(response, RunListResponse):
        return list(response.data)
    if isinstance(response, RunSingleResponse):
        return [response.run]
    logger.warning("run_payload_unrecognized", keys=sorted(payload) if isinstance(payload, dict) else None)
    return []
