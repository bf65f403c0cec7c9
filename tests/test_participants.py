"""Tests for chatroom/participants.py and chatroom/catalog.py."""

import pytest

from chatroom.catalog import DEFAULT_MAX_TOKENS, ModelCatalog
from chatroom.models import Slot
from chatroom.participants import display_name, request_model, resolve_for_turn
from config.config_loader import ParticipantConfig


@pytest.fixture
def catalog(sample_catalog_entries) -> ModelCatalog:
    return ModelCatalog(sample_catalog_entries)


def test_catalog_lookup(catalog):
    assert "test/model-a" in catalog
    assert "unknown/model" not in catalog
    assert catalog.ids() == ["test/model-a", "test/model-b"]
    assert catalog.display_name("test/model-a") == "Model A"
    assert catalog.display_name("unknown/model") == "unknown/model"


def test_catalog_max_output_tokens(catalog):
    assert catalog.max_output_tokens("test/model-a") == 500
    assert catalog.max_output_tokens("test/model-b") == 4000
    assert catalog.max_output_tokens("unknown/model") == DEFAULT_MAX_TOKENS


def test_display_name_prefers_override(catalog, participant_b):
    assert display_name(Slot.B, participant_b, catalog) == "Skeptic"


def test_display_name_from_catalog(catalog, participant_a):
    assert display_name(Slot.A, participant_a, catalog) == "Bot 1: Model A"
    unknown = ParticipantConfig(model="vendor/new-model")
    assert display_name(Slot.B, unknown, catalog) == "Bot 2: vendor/new-model"


def test_display_name_human(catalog):
    assert display_name(Slot.B, ParticipantConfig(name="   "), catalog) == "Bot 2: Human"


def test_request_model_web_search_suffix(participant_a):
    assert request_model(participant_a) == "test/model-a"
    participant_a.web_search = True
    assert request_model(participant_a) == "test/model-a:online"


def test_resolve_for_turn_clamps_and_copies(catalog, participant_a):
    resolved = resolve_for_turn(participant_a, catalog, web_search=True)
    assert resolved.max_tokens == 500
    assert resolved.web_search is True
    # The configured participant is untouched
    assert participant_a.max_tokens == 2000
    assert participant_a.web_search is False


def test_resolve_for_turn_keeps_smaller_request(catalog, participant_b):
    resolved = resolve_for_turn(participant_b, catalog, web_search=False)
    assert resolved.max_tokens == 1000
