"""End-marker detection and the consecutive-signal counter behind mutual termination."""

import logging
import re

from chatroom.models import ConversationState, Slot

logger = logging.getLogger(__name__)

CONSECUTIVE_END_THRESHOLD = 4

_END_MARKER = re.compile(
    r"\[(END|DONE|COMPLETE|FINISHED|CONVERSATION\s*(ENDS?|COMPLETE|FINISHED)|SIGNAL\s*ENDS?|CLOSING|TERMINATE|EXIT)\]",
    re.IGNORECASE,
)


class TerminationDetector:
    """Decides when both sides have implicitly agreed to stop.

    Any signaling turn bumps one shared counter, whichever slot produced it;
    a turn without a marker resets it. Per-slot flags are recorded on the
    state for inspection only, the threshold check never reads them.
    """

    def __init__(self, threshold: int = CONSECUTIVE_END_THRESHOLD) -> None:
        self.threshold = threshold

    def detects(self, text: str, enabled: bool) -> bool:
        if not enabled:
            return False
        return _END_MARKER.search(text) is not None

    def advance(self, state: ConversationState, slot: Slot, detected: bool) -> bool:
        """Update the streak for one finished turn. Returns True once the threshold is reached."""
        if detected:
            state.consecutive_end_signal_count += 1
            state.end_signals[slot] = True
            logger.info(
                "%s signaled end (%d/%d consecutive)",
                slot.value,
                state.consecutive_end_signal_count,
                self.threshold,
            )
            return state.consecutive_end_signal_count >= self.threshold

        if state.consecutive_end_signal_count > 0:
            logger.info("End signal streak broken at %d", state.consecutive_end_signal_count)
        self.reset(state)
        return False

    @staticmethod
    def reset(state: ConversationState) -> None:
        state.consecutive_end_signal_count = 0
        state.end_signals = {s: False for s in Slot}
