import json
from typing import Optional

from pydantic import ValidationError

from .errors import TransportError
from .schemas import GenerationEvent, parse_event

SSE_DATA_PREFIX = "data:"
# Fields the relay never sends but intermediaries may add.
SSE_IGNORED_FIELDS = ("event:", "id:", "retry:")


def encode_sse(event: GenerationEvent) -> str:
    """
    Encode one event as a server-sent event frame.

    Args:
        event: The stream event to send.

    Returns:
        str: ``data: <json>`` followed by the blank line that ends the frame.
    """
    return f"{SSE_DATA_PREFIX} {json.dumps(event.to_wire(), separators=(',', ':'))}\n\n"


def decode_sse_line(line: str) -> Optional[GenerationEvent]:
    """
    Decode a single line read from the relay stream.

    Blank lines, comment lines (``: keep-alive``) and the ``event:``, ``id:``
    and ``retry:`` fields decode to ``None``. Any other line that is not a
    ``data:`` line carrying a known event raises :class:`TransportError`.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith(":") or stripped.startswith(SSE_IGNORED_FIELDS):
        return None
    if not stripped.startswith(SSE_DATA_PREFIX):
        raise TransportError(f"Unexpected line in event stream: {stripped[:80]!r}")

    raw = stripped[len(SSE_DATA_PREFIX):].strip()
    try:
        return parse_event(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise TransportError(f"Unreadable event in stream: {raw[:80]!r}") from exc
