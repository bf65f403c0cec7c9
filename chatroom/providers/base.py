"""Abstract base for streaming chat-completion transports, plus the transport error taxonomy."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

from chatroom.models import CancelToken
from config.config_loader import ParticipantConfig


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        self.message = message
        super().__init__(f"[{provider_name}] {message}")


class Aborted(ProviderError):
    """The stream was cancelled through its CancelToken. Never an application error."""

    def __init__(self, provider_name: str) -> None:
        super().__init__(provider_name, "Aborted")


class HttpError(ProviderError):
    """The provider answered the request with a non-2xx status."""

    def __init__(self, provider_name: str, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(provider_name, f"API Error: {status_code} - {message}")


class MalformedEvent(ProviderError):
    """A single streamed event could not be decoded. Recovered by skipping the event."""


class CompletionTransport(ABC):
    """Abstract base for all chat-completion transports."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openrouter')."""
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, str]],
        participant: ParticipantConfig,
        cancel: CancelToken,
    ) -> AsyncIterator[str]:
        """Open one request and yield incremental text fragments.

        Args:
            messages: Ordered role-tagged messages ({"role", "content"}).
            participant: Model id and sampling parameters for this turn.
            cancel: Checked before every read; when set the stream stops.

        The iterator is finite and not restartable.

        Raises:
            Aborted: When ``cancel`` was set.
            HttpError: When the initial response is not successful.
            ConfigurationError: When the request cannot be built (e.g. no credential).
        """
        ...

    async def complete(
        self,
        messages: list[dict[str, str]],
        participant: ParticipantConfig,
        cancel: CancelToken,
        on_fragment: Callable[[str], None] | None = None,
    ) -> str:
        """Consume ``stream`` and return the full accumulated text.

        Every fragment is handed to ``on_fragment`` in arrival order before
        the next one is read.
        """
        parts: list[str] = []
        async for fragment in self.stream(messages, participant, cancel):
            parts.append(fragment)
            if on_fragment:
                on_fragment(fragment)
        return "".join(parts)
