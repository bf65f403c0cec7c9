"""Tests for chatroom/storage.py."""

import json
from datetime import datetime
from pathlib import Path

from chatroom.models import Message, Role
from chatroom.storage import FileStore


def _records(data_dir: Path) -> list[dict]:
    path = data_dir / "messages.jsonl"
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_settings_round_trip_across_instances(tmp_path: Path):
    store = FileStore(tmp_path / "data")
    assert store.read_setting("allow_mutual_termination") is None

    store.write_setting("allow_mutual_termination", True)
    store.write_setting("bot2_web_search", False)

    reopened = FileStore(tmp_path / "data")
    assert reopened.read_setting("allow_mutual_termination") is True
    assert reopened.read_setting("bot2_web_search") is False


def test_malformed_settings_file_is_ignored(tmp_path: Path):
    (tmp_path / "settings.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    assert FileStore(tmp_path).read_setting("anything") is None


def test_persist_appends_json_lines(tmp_path: Path):
    store = FileStore(tmp_path)
    store.persist_message(Message(sender="User", content="Bonjour ça va?", role=Role.HUMAN, position=0,
                                  timestamp=datetime(2024, 5, 1, 9, 5)))
    store.persist_message(Message(sender="Bot 1: Model A", content="Oui.\n", role=Role.BOT_A, position=1))

    records = _records(tmp_path)
    assert [r["content"] for r in records] == ["Bonjour ça va?", "Oui.\n"]
    assert records[0] == {
        "conversation_id": "current",
        "position": 0,
        "sender": "User",
        "role": "human",
        "content": "Bonjour ça va?",
        "timestamp": "2024-05-01T09:05:00",
    }
    assert records[1]["role"] == "bot1"


def test_clear_messages(tmp_path: Path):
    store = FileStore(tmp_path)
    assert _records(tmp_path) == []
    store.persist_message(Message(sender="User", content="Hi", role=Role.HUMAN))
    store.clear_messages()
    assert _records(tmp_path) == []
    store.clear_messages()
