"""Shared pytest fixtures and test doubles."""

import asyncio
from typing import Any

import pytest

from chatroom.collaborators import MessageStore, Presenter
from chatroom.models import Message, Slot
from chatroom.providers.base import Aborted, CompletionTransport
from config.config_loader import (
    ApiConfig,
    AppConfig,
    CatalogEntry,
    ConversationConfig,
    ParticipantConfig,
)


class ScriptedTransport(CompletionTransport):
    """Test double transport: each call streams the next scripted list of fragments.

    With ``gate`` set, every stream stops before its second fragment until the
    gate opens; ``reached_gate`` fires when a stream is parked there.
    """

    def __init__(self, scripts: list[list[str]] | None = None, default: list[str] | None = None) -> None:
        self.scripts = list(scripts or [])
        self.default = default or ["Hello", " there"]
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.reached_gate = asyncio.Event()

    def name(self) -> str:
        return "scripted"

    async def stream(self, messages, participant, cancel):
        self.calls.append({"messages": messages, "participant": participant})
        if self.error is not None:
            raise self.error
        fragments = self.scripts.pop(0) if self.scripts else self.default
        for index, fragment in enumerate(fragments):
            if index == 1 and self.gate is not None:
                self.reached_gate.set()
                await self.gate.wait()
            if cancel.cancelled:
                raise Aborted(self.name())
            yield fragment


class RecordingPresenter(Presenter):
    """Test double presenter that records every callback."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.turns: list[dict[str, Any]] = []

    def on_turn_started(self, slot: Slot, display_name: str) -> None:
        self.events.append(("started", slot, display_name))
        self.turns.append({"slot": slot, "fragments": [], "final": None})

    def on_fragment(self, slot: Slot, text: str) -> None:
        self.events.append(("fragment", slot, text))
        self.turns[-1]["fragments"].append(text)

    def on_turn_finalized(self, slot: Slot, full_text: str) -> None:
        self.events.append(("finalized", slot, full_text))
        if self.turns and self.turns[-1]["slot"] is slot and self.turns[-1]["final"] is None:
            self.turns[-1]["final"] = full_text

    def on_human_input_requested(self, slot: Slot, display_name: str) -> None:
        self.events.append(("human_requested", slot, display_name))

    def on_system_message(self, text: str) -> None:
        self.events.append(("system", text))

    def on_status(self, text: str) -> None:
        self.events.append(("status", text))

    def on_error(self, message: str) -> None:
        self.events.append(("error", message))

    def of_kind(self, kind: str) -> list[tuple]:
        return [e for e in self.events if e[0] == kind]

    @property
    def statuses(self) -> list[str]:
        return [e[1] for e in self.of_kind("status")]

    @property
    def errors(self) -> list[str]:
        return [e[1] for e in self.of_kind("error")]

    @property
    def system_messages(self) -> list[str]:
        return [e[1] for e in self.of_kind("system")]

    @property
    def fragments(self) -> list[str]:
        return [e[2] for e in self.of_kind("fragment")]


class MemoryStore(MessageStore):
    """Test double store keeping everything in memory."""

    def __init__(self) -> None:
        self.messages: list[Message] = []
        self.settings: dict[str, Any] = {}

    def persist_message(self, message: Message) -> None:
        self.messages.append(message)

    def read_setting(self, key: str) -> Any:
        return self.settings.get(key)

    def write_setting(self, key: str, value: Any) -> None:
        self.settings[key] = value


@pytest.fixture
def participant_a() -> ParticipantConfig:
    return ParticipantConfig(
        name="",
        model="test/model-a",
        max_tokens=2000,
        temperature=0.7,
        top_p=0.9,
        system_prompt="Be brief.",
    )


@pytest.fixture
def participant_b() -> ParticipantConfig:
    return ParticipantConfig(name="Skeptic", model="test/model-b", max_tokens=1000)


@pytest.fixture
def sample_catalog_entries() -> list[CatalogEntry]:
    return [
        CatalogEntry(id="test/model-a", name="Model A", context_length=8000, max_completion_tokens=500),
        CatalogEntry(id="test/model-b", name="Model B", context_length=4000),
    ]


@pytest.fixture
def sample_app_config(participant_a, participant_b, sample_catalog_entries) -> AppConfig:
    return AppConfig(
        api=ApiConfig(
            endpoint="https://example.test/v1/chat/completions",
            api_key_env="TEST_API_KEY",
            connect_timeout_sec=5,
            api_key="sk-test",
        ),
        conversation=ConversationConfig(
            max_exchanges=4,
            allow_mutual_termination=False,
            turn_delay_sec=0,
            human_turn_delay_sec=0,
            resume_delay_sec=0,
        ),
        participants={Slot.A: participant_a, Slot.B: participant_b},
        catalog=sample_catalog_entries,
    )


@pytest.fixture
def scripted_transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()
