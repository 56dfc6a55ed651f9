import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx


def sse_chunk(event: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(event)}\n\n".encode()


def sse_body(events: List[Dict[str, Any]], done: bool = True) -> bytes:
    body = b"".join(sse_chunk(event) for event in events)
    if done:
        body += b"data: [DONE]\n\n"
    return body


class HangingStream(httpx.AsyncByteStream):
    """SSE body that sends its first chunks and then waits until released.

    Once released it sends ``tail`` and ends.
    """

    def __init__(self, chunks: List[bytes], tail: Optional[List[bytes]] = None) -> None:
        self.chunks = chunks
        self.tail = tail or []
        self.release = asyncio.Event()
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        await self.release.wait()
        for chunk in self.tail:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True
