"""Projection of remote run payloads into local ``Run`` records."""

import time
from typing import Optional

from .coerce import normalize_timestamp, to_float, to_int, utc_now_iso
from .models import RemoteRun
from .threads import Run, RunSettings, RunStatus


def synthesize_run_id() -> str:
    return f"run_{int(time.time() * 1000)}"


def project_run(
    raw: RemoteRun,
    thread_id: str,
    fallback_user_id: str,
    fallback_assistant_id: Optional[str] = None,
) -> Run:
    """Map one remote run onto a ``Run``. Pure apart from reading the clock."""
    run_id = raw.id or synthesize_run_id()
    usage = raw.usage

    return Run(
        id=run_id,
        run_id=run_id,
        thread_id=thread_id,
        assistant_id=raw.assistant_id or fallback_assistant_id,
        user_id=fallback_user_id,
        status=RunStatus.parse(raw.status),
        created_at=normalize_timestamp(raw.created_at),
        updated_at=normalize_timestamp(raw.updated_at) or utc_now_iso(),
        started_at=normalize_timestamp(raw.started_at),
        completed_at=normalize_timestamp(raw.completed_at),
        cancelled_at=normalize_timestamp(raw.cancelled_at),
        failed_at=normalize_timestamp(raw.failed_at),
        expires_at=normalize_timestamp(raw.expires_at),
        last_error=raw.last_error.message if raw.last_error else None,
        model=raw.model,
        instructions=raw.instructions,
        additional_instructions=raw.additional_instructions or None,
        tools=raw.tools,
        metadata=raw.metadata,
        required_action=raw.required_action,
        prompt_tokens=to_int(usage.prompt_tokens) if usage else None,
        completion_tokens=to_int(usage.completion_tokens) if usage else None,
        total_tokens=to_int(usage.total_tokens) if usage else None,
        temperature=to_float(raw.temperature),
        top_p=to_float(raw.top_p),
        max_prompt_tokens=to_int(raw.max_prompt_tokens),
        max_completion_tokens=to_int(raw.max_completion_tokens),
        truncation_strategy=raw.truncation_strategy or None,
        response_format=raw.response_format,
        tool_choice=raw.tool_choice,
        parallel_tool_calls=raw.parallel_tool_calls,
    )


def provisional_run(
    run_id: str,
    thread_id: str,
    assistant_id: str,
    settings: RunSettings,
    user_id: str = "",
) -> Run:
    """Build the record for a run whose output is still streaming."""
    now = utc_now_iso()
    return Run(
        id=run_id,
        run_id=run_id,
        thread_id=thread_id,
        assistant_id=assistant_id,
        user_id=user_id,
        status=RunStatus.IN_PROGRESS,
        created_at=now,
        updated_at=now,
        started_at=now,
        model=settings.model,
        instructions=settings.instructions,
        additional_instructions=settings.additional_instructions,
        tools=settings.tools,
        metadata=settings.metadata,
        temperature=settings.temperature,
        top_p=settings.top_p,
        max_prompt_tokens=settings.max_prompt_tokens,
        max_completion_tokens=settings.max_completion_tokens,
        truncation_strategy=settings.truncation_strategy,
        response_format=settings.response_format,
        tool_choice=settings.tool_choice,
        parallel_tool_calls=settings.parallel_tool_calls,
    )
