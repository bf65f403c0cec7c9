"""Load settings.yaml into typed dataclasses. Reads the API key from the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from chatroom.models import Slot

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

HUMAN_MODEL = "human"
UNLIMITED = "unlimited"


class ConfigurationError(Exception):
    """Raised when settings make a turn impossible (no credential, no model, bad values)."""


@dataclass
class ApiConfig:
    endpoint: str
    api_key_env: str
    connect_timeout_sec: float
    app_title: str = "Chatroom"
    referer: str = ""
    api_key: str = ""


@dataclass
class ParticipantConfig:
    name: str = ""
    model: str = HUMAN_MODEL
    max_tokens: int = 16000
    temperature: float = 1.0
    top_p: float = 1.0
    system_prompt: str = ""
    instructions: str = ""
    web_search: bool = False

    @property
    def is_human(self) -> bool:
        return self.model == HUMAN_MODEL


@dataclass
class ConversationConfig:
    max_exchanges: int | None = 10  # None means unlimited
    allow_mutual_termination: bool = False
    turn_delay_sec: float = 1.0
    human_turn_delay_sec: float = 0.5
    resume_delay_sec: float = 0.1


@dataclass
class CatalogEntry:
    id: str
    name: str
    context_length: int | None = None
    max_completion_tokens: int | None = None


@dataclass
class AppConfig:
    api: ApiConfig
    conversation: ConversationConfig
    participants: dict[Slot, ParticipantConfig]
    catalog: list[CatalogEntry] = field(default_factory=list)


def parse_max_exchanges(value: object) -> int | None:
    """Parse a max-exchanges setting: a positive integer or "unlimited" (-> None)."""
    if value is None or (isinstance(value, str) and value.strip().lower() == UNLIMITED):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"max_exchanges must be an integer or '{UNLIMITED}', got {value!r}") from exc
    if parsed < 1:
        raise ConfigurationError(f"max_exchanges must be at least 1, got {parsed}")
    return parsed


def _participant_from_raw(raw: dict) -> ParticipantConfig:
    return ParticipantConfig(
        name=str(raw.get("name") or ""),
        model=str(raw.get("model") or HUMAN_MODEL),
        max_tokens=int(raw.get("max_tokens", 16000)),
        temperature=float(raw.get("temperature", 1.0)),
        top_p=float(raw.get("top_p", 1.0)),
        system_prompt=str(raw.get("system_prompt") or ""),
        instructions=str(raw.get("instructions") or ""),
        web_search=bool(raw.get("web_search", False)),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ConfigurationError
    on invalid values. A missing API key is only logged: human-only
    conversations never need one, and the transport refuses to send without it.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    api_raw = raw["api"]
    api = ApiConfig(
        endpoint=str(api_raw["endpoint"]),
        api_key_env=str(api_raw["api_key_env"]),
        connect_timeout_sec=float(api_raw.get("connect_timeout_sec", 30)),
        app_title=str(api_raw.get("app_title", "Chatroom")),
        referer=str(api_raw.get("referer", "")),
    )
    api.api_key = os.environ.get(api.api_key_env, "").strip()
    if api.api_key:
        logger.info("API key found in %s", api.api_key_env)
    else:
        logger.info("No API key set (%s): only human participants can take turns", api.api_key_env)

    conv_raw = raw.get("conversation") or {}
    conversation = ConversationConfig(
        max_exchanges=parse_max_exchanges(conv_raw.get("max_exchanges", 10)),
        allow_mutual_termination=bool(conv_raw.get("allow_mutual_termination", False)),
        turn_delay_sec=float(conv_raw.get("turn_delay_sec", 1.0)),
        human_turn_delay_sec=float(conv_raw.get("human_turn_delay_sec", 0.5)),
        resume_delay_sec=float(conv_raw.get("resume_delay_sec", 0.1)),
    )

    participants_raw = raw.get("participants") or {}
    participants = {
        slot: _participant_from_raw(participants_raw.get(slot.value) or {})
        for slot in Slot
    }

    catalog = [
        CatalogEntry(
            id=str(entry["id"]),
            name=str(entry.get("name") or entry["id"]),
            context_length=entry.get("context_length"),
            max_completion_tokens=entry.get("max_completion_tokens"),
        )
        for entry in raw.get("catalog") or []
    ]

    return AppConfig(
        api=api,
        conversation=conversation,
        participants=participants,
        catalog=catalog,
    )
