"""File-backed MessageStore: settings in a YAML file, messages appended as JSON lines."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from chatroom.collaborators import MessageStore
from chatroom.models import Message

logger = logging.getLogger(__name__)

CONVERSATION_ID = "current"


class FileStore(MessageStore):
    def __init__(self, data_dir: Path) -> None:
        self._settings_path = data_dir / "settings.yaml"
        self._messages_path = data_dir / "messages.jsonl"
        data_dir.mkdir(parents=True, exist_ok=True)
        self._settings = self._load_settings()

    def _load_settings(self) -> dict[str, Any]:
        if not self._settings_path.exists():
            return {}
        with self._settings_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed settings file: %s", self._settings_path)
            return {}
        return raw

    def read_setting(self, key: str) -> Any:
        return self._settings.get(key)

    def write_setting(self, key: str, value: Any) -> None:
        self._settings[key] = value
        with self._settings_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(self._settings, f, sort_keys=True)

    def persist_message(self, message: Message) -> None:
        record = {
            "conversation_id": CONVERSATION_ID,
            "position": message.position,
            "sender": message.sender,
            "role": message.role.value,
            "content": message.content,
            "timestamp": message.timestamp.isoformat(),
        }
        with self._messages_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def clear_messages(self) -> None:
        self._messages_path.unlink(missing_ok=True)
        logger.info("Cleared stored messages")
