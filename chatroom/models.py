"""Plain data types for the conversation engine: slots, messages, cancel tokens, state."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Slot(str, Enum):
    A = "bot1"
    B = "bot2"

    def other(self) -> "Slot":
        return Slot.B if self is Slot.A else Slot.A

    @property
    def number(self) -> int:
        return 1 if self is Slot.A else 2


class Role(str, Enum):
    BOT_A = "bot1"
    BOT_B = "bot2"
    HUMAN = "human"
    SYSTEM = "system"

    @classmethod
    def for_slot(cls, slot: Slot) -> "Role":
        return cls.BOT_A if slot is Slot.A else cls.BOT_B


class Phase(str, Enum):
    IDLE = "idle"
    READY = "ready"                  # active, next turn scheduled
    BOT_TURN_IN_FLIGHT = "bot_turn_in_flight"
    AWAITING_HUMAN_INPUT = "awaiting_human_input"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Message:
    sender: str
    content: str
    role: Role
    position: int = -1               # assigned by History.append
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class PartialMessage:
    """A bot message while it is still streaming."""

    sender: str
    role: Role
    content: str = ""

    def append(self, fragment: str) -> None:
        self.content += fragment

    def finalize(self) -> Message:
        return Message(sender=self.sender, content=self.content, role=self.role)


class CancelToken:
    """Cancellation flag handed to a transport call.

    Checked once per read; ``wait()`` lets a transport race a blocked read
    against cancellation.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ConversationState:
    active: bool = False
    paused: bool = False
    phase: Phase = Phase.IDLE
    current_turn: Slot = Slot.A
    exchange_count: int = 0
    max_exchanges: int | None = 10   # None means unlimited
    pending_resume_input: str | None = None
    last_topic: str = ""
    waiting_for_human_input: bool = False
    consecutive_end_signal_count: int = 0
    end_signals: dict[Slot, bool] = field(default_factory=lambda: {Slot.A: False, Slot.B: False})
    # Fixed two-entry table: slot -> token of the in-flight stream, or None
    cancel_handles: dict[Slot, CancelToken | None] = field(default_factory=lambda: {Slot.A: None, Slot.B: None})
