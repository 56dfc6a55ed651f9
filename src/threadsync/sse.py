"""Server-Sent Events decoding for run streams."""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, Field

from .log import get_logger

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


class StreamEvent(BaseModel):
    """One event from a run stream, e.g. ``thread.message.delta``."""

    type: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_run_event(self) -> bool:
        kind = self.type or ""
        if kind.startswith("thread.run.step"):
            return False
        return kind.startswith("thread.run.") or (kind.startswith("run") and kind[3:4].isupper())

    def run_id(self) -> Optional[str]:
        """The run id this event reveals, if any."""
        if self.is_run_event and isinstance(self.data.get("id"), str):
            return self.data["id"]
        run_id = self.data.get("run_id")
        return run_id if isinstance(run_id, str) and run_id else None

    def content_text(self) -> Optional[str]:
        return _content_value(self.data.get("content"))

    def delta_text(self) -> Optional[str]:
        delta = self.data.get("delta")
        if isinstance(delta, dict):
            value = _content_value(delta.get("content"))
            if value is not None:
                return value
        value = self.content_text()
        if value is not None:
            return value
        return find_text_value(self.data)


def _content_value(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, dict) and isinstance(text.get("value"), str):
                    return text["value"]
    return None


def find_text_value(obj: Any) -> Optional[str]:
    """Search nested event data for the first text value."""
    if isinstance(obj, list):
        for item in obj:
            found = find_text_value(item)
            if found:
                return found
        return None
    if not isinstance(obj, dict):
        return None

    text = obj.get("text")
    if isinstance(text, dict) and isinstance(text.get("value"), str):
        return text["value"]
    if isinstance(obj.get("value"), str):
        return obj["value"]
    content = _content_value(obj.get("content"))
    if content:
        return content

    for value in obj.values():
        if isinstance(value, (dict, list)):
            found = find_text_value(value)
            if found:
                return found
    return None


def _decode(data_lines: List[str], event_name: Optional[str]) -> Optional[StreamEvent]:
    payload = "\n".join(data_lines)
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("stream_event_undecodable", payload=payload[:200])
        return None
    if not isinstance(decoded, dict):
        logger.warning("stream_event_unexpected", payload=payload[:200])
        return None

    # Wrapped form: {"type": ..., "data": {...}}; raw form: "event:" line plus the object.
    if event_name is None or ("type" in decoded and "data" in decoded):
        data = decoded.get("data")
        return StreamEvent(type=decoded.get("type"), data=data if isinstance(data, dict) else {})
    return StreamEvent(type=event_name, data=decoded)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Group SSE ``data:`` lines into events until the stream ends or sends ``[DONE]``."""
    data_lines: List[str] = []
    event_name: Optional[str] = None
    async for raw_line in lines:
        line = raw_line.strip()
        if not line:
            if data_lines:
                event = _decode(data_lines, event_name)
                if event is not None:
                    yield event
            data_lines = []
            event_name = None
            continue
        if line.startswith("event:"):
            event_name = line[6:].strip() or None
            continue
        if not line.startswith("data:"):
            continue
        value = line[5:].strip()
        if value == DONE_SENTINEL:
            break
        data_lines.append(value)

    if data_lines:
        event = _decode(data_lines, event_name)
        if event is not None:
            yield event
