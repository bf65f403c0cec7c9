"""Model catalog: an opaque lookup table of model metadata keyed by model id."""

from config.config_loader import CatalogEntry

DEFAULT_MAX_TOKENS = 16384


class ModelCatalog:
    def __init__(self, entries: list[CatalogEntry] | None = None) -> None:
        self._entries = {entry.id: entry for entry in entries or []}

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._entries

    def ids(self) -> list[str]:
        return list(self._entries)

    def display_name(self, model_id: str) -> str:
        entry = self._entries.get(model_id)
        return entry.name if entry else model_id

    def max_output_tokens(self, model_id: str) -> int:
        """Largest completion the model accepts; falls back to its context length, then a default."""
        entry = self._entries.get(model_id)
        if entry is None:
            return DEFAULT_MAX_TOKENS
        return entry.max_completion_tokens or entry.context_length or DEFAULT_MAX_TOKENS
