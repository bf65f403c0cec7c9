"""Tests for chatroom/output.py."""

from datetime import datetime
from pathlib import Path

import frontmatter
import pytest
from rich.console import Console

from chatroom.models import Message, Role, Slot
from chatroom.output import ConsolePresenter, _slug, format_transcript, save_transcript


def test_slug_basic():
    assert _slug("Is mathematics discovered or invented?") == "is-mathematics-discovered-or-invented"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def sample_messages() -> list[Message]:
    return [
        Message(sender="User", content="Cats or dogs?", role=Role.HUMAN, position=0,
                timestamp=datetime(2024, 5, 1, 9, 5)),
        Message(sender="Bot 1: Model A", content="Cats.\nClearly.", role=Role.BOT_A, position=1,
                timestamp=datetime(2024, 5, 1, 9, 6)),
        Message(sender="Skeptic", content="Dogs.", role=Role.BOT_B, position=2,
                timestamp=datetime(2024, 5, 1, 14, 30)),
    ]


def test_format_transcript(sample_messages):
    assert format_transcript(sample_messages) == (
        "User, 09:05\nCats or dogs?\n\n"
        "Bot 1: Model A, 09:06\nCats.\nClearly.\n\n"
        "Skeptic, 14:30\nDogs."
    )


def test_format_transcript_empty():
    assert format_transcript([]) == ""


def test_save_transcript_creates_file(tmp_path: Path, sample_messages):
    saved = save_transcript(sample_messages, tmp_path / "nested" / "out", topic="Cats or dogs?")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_cats-or-dogs.md")


def test_save_transcript_front_matter(tmp_path: Path, sample_messages):
    participants = {"bot1": "Bot 1: Model A", "bot2": "Skeptic"}
    saved = save_transcript(sample_messages, tmp_path, topic="Cats or dogs?", participants=participants)

    post = frontmatter.load(saved)
    assert post["topic"] == "Cats or dogs?"
    assert post["messages"] == 3
    assert post["participants"] == participants
    assert "Skeptic, 14:30\nDogs." in post.content


def test_save_transcript_unsluggable_topic(tmp_path: Path, sample_messages):
    saved = save_transcript(sample_messages, tmp_path, topic="???")
    assert saved.name.endswith("_conversation.md")


def _presenter() -> tuple[ConsolePresenter, Console]:
    out = Console(record=True, width=80, force_terminal=False)
    return ConsolePresenter(out), out


def test_presenter_streams_fragments_verbatim():
    presenter, out = _presenter()
    presenter.on_turn_started(Slot.A, "Bot 1: Model A")
    presenter.on_fragment(Slot.A, "[bold]not markup[/bold] ")
    presenter.on_fragment(Slot.A, "done")
    presenter.on_turn_finalized(Slot.A, "[bold]not markup[/bold] done")

    text = out.export_text()
    assert "Bot 1: Model A" in text
    assert "[bold]not markup[/bold] done" in text


def test_presenter_tracks_status_and_prints_errors():
    presenter, out = _presenter()
    presenter.on_status("Bot 1 is thinking...")
    presenter.on_error("Error: [openrouter] API Error: 401 - No auth")

    assert presenter.status == "Bot 1 is thinking..."
    assert "Error: [openrouter] API Error: 401 - No auth" in out.export_text()


def test_presenter_human_prompt_and_notices():
    presenter, out = _presenter()
    presenter.on_human_input_requested(Slot.B, "Bot 2: Human")
    presenter.on_system_message("Conversation completed. Maximum exchanges reached.")

    text = out.export_text()
    assert "Bot 2: Human (Human)" in text
    assert "Maximum exchanges reached." in text
