"""Turn state machine: whose turn it is, run/pause/stop flags, exchange counting, cancel handles."""

import logging

from chatroom.models import CancelToken, ConversationState, Phase, Slot

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "Start conversation"


class ConversationStateError(Exception):
    """Raised when an operation is not valid in the current conversation phase."""


class TurnScheduler:
    """Owns the ConversationState of one conversation and every transition on it.

    Turns are serialized by construction: there is one ``current_turn`` and at
    most one registered cancel token per slot.
    """

    def __init__(self) -> None:
        self.state = ConversationState()

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def in_flight(self) -> bool:
        return any(token is not None for token in self.state.cancel_handles.values())

    def reset(self, topic: str, max_exchanges: int | None) -> None:
        if self.state.active:
            raise ConversationStateError("A conversation is already running; stop it first")
        self.state = ConversationState(
            active=True,
            phase=Phase.READY,
            max_exchanges=max_exchanges,
            last_topic=topic,
        )

    def exchanges_exhausted(self) -> bool:
        limit = self.state.max_exchanges
        return limit is not None and self.state.exchange_count >= limit

    def _settled_phase(self) -> Phase:
        if self.state.paused:
            return Phase.PAUSED
        if self.state.waiting_for_human_input:
            return Phase.AWAITING_HUMAN_INPUT
        if self.in_flight:
            return Phase.BOT_TURN_IN_FLIGHT
        return Phase.READY

    def register(self, slot: Slot) -> CancelToken:
        if self.state.cancel_handles[slot] is not None:
            raise ConversationStateError(f"{slot.value} already has a stream in flight")
        token = CancelToken()
        self.state.cancel_handles[slot] = token
        self.state.phase = self._settled_phase()
        return token

    def release(self, slot: Slot) -> None:
        self.state.cancel_handles[slot] = None
        if self.state.active:
            self.state.phase = self._settled_phase()

    def await_human(self) -> None:
        self.state.waiting_for_human_input = True
        self.state.phase = self._settled_phase()

    def complete_turn(self) -> Slot:
        """Count the finished turn and hand over to the other slot. Returns the next slot."""
        self.state.exchange_count += 1
        self.state.waiting_for_human_input = False
        self.state.current_turn = self.state.current_turn.other()
        self.state.phase = self._settled_phase()
        return self.state.current_turn

    def queue_resume_input(self, topic: str) -> None:
        self.state.pending_resume_input = topic

    def pause(self) -> bool:
        if not self.state.active:
            return False
        self.state.paused = True
        self.state.phase = Phase.PAUSED
        return True

    def resume(self) -> str | None:
        """Clear the pause flag. Returns the input the next turn should use, or None if not paused."""
        if not self.state.active or not self.state.paused:
            return None
        self.state.paused = False
        self.state.phase = self._settled_phase()
        topic = self.state.pending_resume_input or self.state.last_topic or DEFAULT_TOPIC
        self.state.pending_resume_input = None
        return topic

    def stop(self, phase: Phase = Phase.STOPPED) -> bool:
        """Cancel every in-flight stream and leave the active states.

        Returns False when there was nothing to stop, so repeated calls are no-ops.
        """
        if not self.state.active and not self.in_flight:
            return False
        aborted = 0
        for slot, token in self.state.cancel_handles.items():
            if token is not None:
                token.cancel()
                aborted += 1
            self.state.cancel_handles[slot] = None
        self.state.active = False
        self.state.paused = False
        self.state.waiting_for_human_input = False
        self.state.phase = phase
        logger.debug("Conversation %s (%d stream(s) aborted)", phase.value, aborted)
        return True
