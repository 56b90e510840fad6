"""Server-Sent Events framing for the chat stream."""

import json
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Tuple

SSE_MEDIA_TYPE = "text/event-stream"

EVENT_FRAGMENT = "fragment"
EVENT_DONE = "done"
EVENT_ERROR = "error"


def encode_event(event: str, data: Dict[str, Any]) -> str:
    """Frame one event. Data is compact JSON, so it always fits on one line."""
    payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n"


def _parse_block(lines: Iterable[str]) -> Optional[Tuple[str, Dict[str, Any]]]:
    event = "message"
    data_lines = []
    for line in lines:
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)
    # Blocks without data (comments, keep-alives) are not events
    if not data_lines:
        return None
    return event, json.loads("\n".join(data_lines))


async def iter_events(lines: AsyncIterator[str]) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
    """Decode (event, data) pairs from an async iterator of text lines."""
    block = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if line:
            block.append(line)
            continue
        parsed = _parse_block(block)
        block = []
        if parsed is not None:
            yield parsed
    parsed = _parse_block(block)
    if parsed is not None:
        yield parsed
