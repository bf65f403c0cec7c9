"""Per-slot participant helpers: display names and request parameters."""

import dataclasses

from chatroom.catalog import ModelCatalog
from chatroom.models import Slot
from config.config_loader import ParticipantConfig

WEB_SEARCH_SUFFIX = ":online"


def display_name(slot: Slot, participant: ParticipantConfig, catalog: ModelCatalog) -> str:
    """Name a slot the way it appears in the transcript.

    A non-blank override wins; otherwise "Bot N: Human" for a human slot and
    "Bot N: <catalog name>" for a model (the raw id when the catalog lacks it).
    """
    custom = participant.name.strip()
    if custom:
        return custom
    if participant.is_human:
        return f"Bot {slot.number}: Human"
    return f"Bot {slot.number}: {catalog.display_name(participant.model)}"


def request_model(participant: ParticipantConfig) -> str:
    """Model id sent to the provider, suffixed when web-search augmentation is on."""
    if participant.web_search:
        return f"{participant.model}{WEB_SEARCH_SUFFIX}"
    return participant.model


def resolve_for_turn(
    participant: ParticipantConfig,
    catalog: ModelCatalog,
    web_search: bool,
) -> ParticipantConfig:
    """Copy of ``participant`` with the web-search toggle applied and max_tokens bounded by the model."""
    limit = catalog.max_output_tokens(participant.model)
    return dataclasses.replace(
        participant,
        web_search=web_search,
        max_tokens=max(1, min(participant.max_tokens, limit)),
    )
