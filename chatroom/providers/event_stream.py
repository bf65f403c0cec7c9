"""Line-buffered decoding of chat-completion event streams (``data: {...}`` lines)."""

import json

from chatroom.providers.base import MalformedEvent

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class EventStreamDecoder:
    """Split incoming text into complete ``data:`` payloads.

    Network reads can end anywhere, so only text up to the last ``\\n`` is
    processed; the trailing partial line waits in the buffer for the next
    ``feed``. Blank lines, comment lines and the ``[DONE]`` sentinel produce
    no payload.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> list[str]:
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        payloads: list[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.strip() or not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):]
            if data == DONE_SENTINEL:
                continue
            payloads.append(data)
        return payloads


def parse_delta(provider_name: str, payload: str) -> str | None:
    """Return the content delta carried by one event payload, if any.

    Raises:
        MalformedEvent: If the payload is not valid JSON.
    """
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedEvent(provider_name, f"Unparseable event: {payload[:80]!r}") from exc

    if not isinstance(event, dict):
        return None
    choices = event.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if isinstance(content, str) and content:
        return content
    return None
