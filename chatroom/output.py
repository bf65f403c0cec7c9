"""Rich console presenter and markdown transcript export."""

import logging
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import frontmatter
from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from chatroom.collaborators import Presenter
from chatroom.models import Message, Slot

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_SLOT_STYLES = {Slot.A: "bold cyan", Slot.B: "bold magenta"}


class ConsolePresenter(Presenter):
    """Prints streamed turns to a rich Console as they arrive."""

    def __init__(self, out: Console | None = None) -> None:
        self._console = out or console
        self.status = "Ready"

    def on_turn_started(self, slot: Slot, display_name: str) -> None:
        self._console.print(Rule(Text(display_name, style=_SLOT_STYLES[slot]), align="left"))

    def on_fragment(self, slot: Slot, text: str) -> None:
        self._console.print(text, end="", markup=False, highlight=False)

    def on_turn_finalized(self, slot: Slot, full_text: str) -> None:
        self._console.print()

    def on_human_input_requested(self, slot: Slot, display_name: str) -> None:
        self._console.print(Rule(Text(f"{display_name} (Human)", style=_SLOT_STYLES[slot]), align="left"))

    def on_system_message(self, text: str) -> None:
        self._console.print(Text(text, style="yellow"))

    def on_status(self, text: str) -> None:
        self.status = text
        logger.debug("Status: %s", text)

    def on_error(self, message: str) -> None:
        self._console.print(Text(message, style="bold red"))


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def format_transcript(messages: Iterable[Message]) -> str:
    """Plain-text transcript: "<sender>, <HH:MM>" then the content, blank line between messages."""
    blocks = [f"{m.sender}, {m.timestamp.strftime('%H:%M')}\n{m.content}" for m in messages]
    return "\n\n".join(blocks)


def save_transcript(
    messages: Iterable[Message],
    output_dir: Path,
    topic: str,
    participants: dict[str, str] | None = None,
) -> Path:
    """Save the conversation as a markdown file with YAML front matter.

    Returns:
        Path to the saved file.
    """
    messages = list(messages)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(topic) or 'conversation'}.md"

    post = frontmatter.Post(
        format_transcript(messages),
        topic=topic,
        date=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        messages=len(messages),
        participants=participants or {},
    )
    filepath.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
