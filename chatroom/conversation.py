"""Conversation orchestration: resolves one turn at a time and schedules the next."""

import asyncio
import logging
from typing import Any

from chatroom.catalog import ModelCatalog
from chatroom.collaborators import MessageStore, Presenter
from chatroom.history import SYSTEM_SENDER, History
from chatroom.models import CancelToken, ConversationState, Message, PartialMessage, Phase, Role, Slot
from chatroom.participants import display_name, resolve_for_turn
from chatroom.providers.base import Aborted, CompletionTransport
from chatroom.scheduler import DEFAULT_TOPIC, ConversationStateError, TurnScheduler
from chatroom.termination import TerminationDetector
from config.config_loader import AppConfig, ConfigurationError, ParticipantConfig

logger = logging.getLogger(__name__)

USER_SENDER = "User"
OPERATOR_SENDER = "You"

MUTUAL_TERMINATION_SETTING = "allow_mutual_termination"


def web_search_setting(slot: Slot) -> str:
    return f"{slot.value}_web_search"


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class Orchestrator:
    """Drives a two-slot conversation.

    ``start`` resolves the first turn inline; every later turn runs in a task
    scheduled after the previous one finished, so at most one turn is ever
    being resolved. ``stop`` is the only call that interrupts a stream in
    flight; ``pause`` only keeps the next turn from being scheduled.

    Methods that schedule turns (``submit_human_input``, ``resume``) must be
    called from inside the running event loop.
    """

    def __init__(
        self,
        config: AppConfig,
        transport: CompletionTransport,
        presenter: Presenter,
        store: MessageStore,
        catalog: ModelCatalog | None = None,
        detector: TerminationDetector | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._presenter = presenter
        self._store = store
        self._catalog = catalog or ModelCatalog(config.catalog)
        self._detector = detector or TerminationDetector()
        self.history = History()
        self.scheduler = TurnScheduler()
        self._scheduled: asyncio.Task | None = None
        # Bumped per conversation; turns scheduled by an earlier conversation see a stale value and bail.
        self._generation = 0

    @property
    def state(self) -> ConversationState:
        return self.scheduler.state

    @property
    def phase(self) -> Phase:
        return self.scheduler.state.phase

    def display_name(self, slot: Slot) -> str:
        return display_name(slot, self._config.participants[slot], self._catalog)

    def _setting(self, key: str, default: bool) -> bool:
        value = self._store.read_setting(key)
        return default if value is None else _as_flag(value)

    @property
    def mutual_termination_enabled(self) -> bool:
        return self._setting(MUTUAL_TERMINATION_SETTING, self._config.conversation.allow_mutual_termination)

    # --- control surface -------------------------------------------------

    async def start(self, topic: str | None) -> None:
        """Begin a new conversation with ``topic`` as the opening user message."""
        cleaned = (topic or "").strip() or DEFAULT_TOPIC
        self.scheduler.reset(cleaned, self._config.conversation.max_exchanges)
        self._generation += 1
        self._scheduled = None
        self.history.clear()
        self._record(Message(sender=USER_SENDER, content=cleaned, role=Role.HUMAN))
        logger.info("Conversation started (max exchanges: %s)", self.state.max_exchanges or "unlimited")
        self._presenter.on_status("Starting conversation...")
        await self.advance(cleaned)

    def pause(self) -> None:
        if self.scheduler.pause():
            self._presenter.on_status("Paused")

    def resume(self) -> None:
        topic = self.scheduler.resume()
        if topic is None:
            return
        self._presenter.on_status("Resuming...")
        if self.scheduler.in_flight or self.state.waiting_for_human_input or self._turn_scheduled():
            # The running turn schedules its successor when it finishes.
            return
        self._schedule(topic, self._config.conversation.resume_delay_sec)

    async def toggle(self, topic: str | None = None) -> None:
        """Play/pause: start when idle, resume when paused, pause otherwise."""
        if not self.state.active:
            await self.start(topic)
        elif self.state.paused:
            self.resume()
        else:
            self.pause()

    def stop(self) -> None:
        """Abort any stream in flight and end the conversation. Safe to call repeatedly."""
        if self.scheduler.stop():
            self._presenter.on_status("Stopped")

    def submit_human_input(self, text: str) -> Message:
        """Complete the pending human turn with ``text``, kept verbatim."""
        state = self.state
        if not (state.active and state.waiting_for_human_input):
            raise ConversationStateError("No human turn is pending")
        slot = state.current_turn
        message = self._record(Message(sender=self.display_name(slot), content=text, role=Role.for_slot(slot)))
        self._presenter.on_turn_finalized(slot, text)
        self.scheduler.complete_turn()
        logger.info("Human turn %d for %s recorded", state.exchange_count, slot.value)
        self._presenter.on_status("Ready")
        self._schedule(text, self._config.conversation.human_turn_delay_sec)
        return message

    def interject(self, text: str) -> Message:
        """Add an operator message to a running conversation without taking a slot's turn."""
        state = self.state
        if not state.active:
            raise ConversationStateError("No conversation is running")
        if state.waiting_for_human_input:
            raise ConversationStateError("A human turn is pending; submit it instead")
        message = self._record(Message(sender=OPERATOR_SENDER, content=text, role=Role.HUMAN))
        state.last_topic = text
        if state.paused:
            self.scheduler.queue_resume_input(text)
        return message

    async def send(self, text: str) -> None:
        """Route chat input: answer a pending human turn, start a conversation, or interject."""
        if not text.strip():
            return
        if self.state.active and self.state.waiting_for_human_input:
            self.submit_human_input(text)
        elif not self.state.active:
            await self.start(text)
        else:
            self.interject(text)

    async def wait_until_settled(self) -> None:
        """Wait until no turn is scheduled (conversation ended, paused, or awaiting a human)."""
        while self._scheduled is not None and not self._scheduled.done():
            await self._scheduled

    # --- turn resolution -------------------------------------------------

    async def advance(self, topic: str) -> None:
        """Resolve exactly one turn for the current slot."""
        state = self.state
        if not state.active:
            return
        if self.scheduler.in_flight or state.waiting_for_human_input:
            logger.debug("Turn already in progress; ignoring advance")
            return
        state.last_topic = topic

        if state.paused:
            self.scheduler.queue_resume_input(topic)
            self._presenter.on_status("Paused")
            return

        if self.scheduler.exchanges_exhausted():
            self._complete("Conversation completed. Maximum exchanges reached.")
            return

        slot = state.current_turn
        participant = self._config.participants[slot]
        name = self.display_name(slot)

        if participant.is_human:
            self.scheduler.await_human()
            self._presenter.on_status(f"Waiting for {name} to respond...")
            self._system_notice(f"{name} (Human): Please type your response in the chat input below.")
            self._presenter.on_human_input_requested(slot, name)
            return

        await self._resolve_bot_turn(slot, participant, name, topic)

    async def _resolve_bot_turn(self, slot: Slot, participant: ParticipantConfig, name: str, topic: str) -> None:
        generation = self._generation
        token: CancelToken | None = None
        partial = PartialMessage(sender=name, role=Role.for_slot(slot))
        self._presenter.on_status(f"{name} is thinking...")

        def relay(fragment: str) -> None:
            partial.append(fragment)
            self._presenter.on_fragment(slot, fragment)

        try:
            if not participant.model.strip():
                raise ConfigurationError(f"No model selected for {name}")
            request_participant = resolve_for_turn(
                participant,
                self._catalog,
                web_search=self._setting(web_search_setting(slot), participant.web_search),
            )
            messages = self.history.context_for(
                participant,
                name,
                mutual_termination=self.mutual_termination_enabled,
            )
            token = self.scheduler.register(slot)
            self._presenter.on_turn_started(slot, name)
            await self._transport.complete(messages, request_participant, token, on_fragment=relay)
            if token.cancelled:
                raise Aborted(self._transport.name())
        except Aborted:
            self._release(slot, token)
            if generation != self._generation:
                return
            logger.info("%s turn aborted", slot.value)
            self._presenter.on_status("Request canceled")
            self.scheduler.stop()
            return
        except Exception as exc:
            self._release(slot, token)
            if generation != self._generation:
                return
            self._fail(slot, exc)
            return

        self._release(slot, token)
        try:
            self._finish_bot_turn(slot, partial.finalize(), topic)
        except Exception as exc:
            self._fail(slot, exc)

    def _finish_bot_turn(self, slot: Slot, message: Message, topic: str) -> None:
        self._presenter.on_turn_finalized(slot, message.content)
        self._record(message)

        detected = self._detector.detects(message.content, self.mutual_termination_enabled)
        terminated = self._detector.advance(self.state, slot, detected)

        self.scheduler.complete_turn()
        logger.info(
            "Turn %d by %s finished (%d chars)",
            self.state.exchange_count,
            slot.value,
            len(message.content),
        )

        if terminated:
            self._complete("Conversation ended by mutual agreement.")
            return

        self._presenter.on_status("Ready")
        self._schedule(topic, self._config.conversation.turn_delay_sec)

    # --- helpers ---------------------------------------------------------

    def _record(self, message: Message) -> Message:
        stored = self.history.append(message)
        self._store.persist_message(stored)
        return stored

    def _system_notice(self, text: str) -> None:
        self.history.append(Message(sender=SYSTEM_SENDER, content=text, role=Role.SYSTEM))
        self._presenter.on_system_message(text)

    def _fail(self, slot: Slot, exc: Exception) -> None:
        logger.error("%s turn failed: %s", slot.value, exc)
        self._presenter.on_error(f"Error: {exc}")
        self._presenter.on_status("Error occurred")
        self.scheduler.stop()

    def _complete(self, notice: str) -> None:
        self.scheduler.stop(Phase.COMPLETED)
        self._system_notice(notice)
        self._presenter.on_status("Conversation completed")

    def _release(self, slot: Slot, token: CancelToken | None) -> None:
        # stop() may already have cleared the table, and a new conversation may own the slot now.
        if token is not None and self.state.cancel_handles[slot] is token:
            self.scheduler.release(slot)

    def _turn_scheduled(self) -> bool:
        return self._scheduled is not None and not self._scheduled.done()

    def _schedule(self, topic: str, delay: float) -> None:
        if not self.state.active:
            return
        if self.state.paused:
            self.scheduler.queue_resume_input(topic)
            self._presenter.on_status("Paused")
            return
        self._scheduled = asyncio.create_task(self._advance_later(topic, delay, self._generation))

    async def _advance_later(self, topic: str, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        if generation != self._generation:
            return
        await self.advance(topic)
