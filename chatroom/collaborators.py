"""Interfaces the engine talks to: a presenter for live output and a store for messages/settings."""

from abc import ABC, abstractmethod
from typing import Any

from chatroom.models import Message, Slot


class Presenter(ABC):
    """Receives conversation output. Called synchronously from the orchestrator."""

    @abstractmethod
    def on_turn_started(self, slot: Slot, display_name: str) -> None: ...

    @abstractmethod
    def on_fragment(self, slot: Slot, text: str) -> None:
        """One streamed delta, in arrival order."""
        ...

    @abstractmethod
    def on_turn_finalized(self, slot: Slot, full_text: str) -> None: ...

    @abstractmethod
    def on_human_input_requested(self, slot: Slot, display_name: str) -> None: ...

    @abstractmethod
    def on_system_message(self, text: str) -> None: ...

    @abstractmethod
    def on_status(self, text: str) -> None: ...

    @abstractmethod
    def on_error(self, message: str) -> None: ...


class MessageStore(ABC):
    """Persists finalized messages and key/value settings."""

    @abstractmethod
    def persist_message(self, message: Message) -> None: ...

    @abstractmethod
    def read_setting(self, key: str) -> Any:
        """Return the stored value, or None when the key was never written."""
        ...

    @abstractmethod
    def write_setting(self, key: str, value: Any) -> None: ...
