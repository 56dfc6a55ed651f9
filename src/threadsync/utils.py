from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .exceptions import ThreadSyncError

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """Pull a human-readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or response.reason_phrase or None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        for key in ("message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or None


def validate_payload(
    model: Type[ModelT],
    data: Any,
    error_cls: Type[ThreadSyncError],
    what: str,
) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise error_cls(f"Malformed {what} payload: {exc.error_count()} invalid field(s)") from exc
