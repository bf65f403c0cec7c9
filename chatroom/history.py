"""Rolling conversation log and the bounded message context derived from it for each turn."""

import dataclasses
import logging

from chatroom.models import Message, Role
from config.config_loader import ParticipantConfig

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 2000
CONTEXT_WINDOW = 200
SYSTEM_SENDER = "System"

TERMINATION_HINT = (
    "When you feel the conversation has reached a natural conclusion, include [END] in your "
    "response. The conversation will close when both participants have signaled completion."
)


class History:
    """Ordered log of finalized messages with a sliding retention window.

    The full log (up to ``MAX_HISTORY_ITEMS``) is kept for export; only the
    last ``CONTEXT_WINDOW`` entries are sent with a request.
    """

    def __init__(self, max_items: int = MAX_HISTORY_ITEMS, context_window: int = CONTEXT_WINDOW) -> None:
        self._max_items = max_items
        self._context_window = context_window
        self._messages: list[Message] = []
        self._next_position = 0

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._next_position = 0

    def append(self, message: Message) -> Message:
        """Add ``message`` at the tail, stamping its sequence position. Returns the stored message."""
        stored = dataclasses.replace(message, position=self._next_position)
        self._next_position += 1
        self._messages.append(stored)
        overflow = len(self._messages) - self._max_items
        if overflow > 0:
            del self._messages[:overflow]
            logger.debug("History trimmed by %d entries", overflow)
        return stored

    def context_for(
        self,
        participant: ParticipantConfig,
        display_name: str,
        *,
        mutual_termination: bool = False,
    ) -> list[dict[str, str]]:
        """Build the request messages for the participant named ``display_name``."""
        messages: list[dict[str, str]] = []

        system_prompt = participant.system_prompt.strip()
        if system_prompt and mutual_termination:
            messages.append({"role": "system", "content": f"{system_prompt}\n\n{TERMINATION_HINT}"})
        elif system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        elif mutual_termination:
            messages.append({"role": "system", "content": TERMINATION_HINT})

        instructions = participant.instructions.strip()
        if instructions:
            messages.append({"role": "developer", "content": instructions})

        for msg in self._messages[-self._context_window:]:
            if msg.role is Role.SYSTEM or msg.sender == SYSTEM_SENDER:
                continue
            messages.append({
                "role": "assistant" if msg.sender == display_name else "user",
                "content": msg.content,
            })

        return messages
