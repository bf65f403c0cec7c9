"""OpenRouter (OpenAI-compatible) streaming transport using httpx."""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator

import httpx

from chatroom.models import CancelToken
from chatroom.participants import request_model
from chatroom.providers.base import (
    Aborted,
    CompletionTransport,
    HttpError,
    MalformedEvent,
    ProviderError,
)
from chatroom.providers.event_stream import EventStreamDecoder, parse_delta
from config.config_loader import ApiConfig, ConfigurationError, ParticipantConfig

logger = logging.getLogger(__name__)

_PROVIDER_NAME = "openrouter"


def _error_message(body: bytes) -> str:
    """Best-effort extraction of the provider's error message from a response body."""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return "Unknown error"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return "Unknown error"


class OpenRouterTransport(CompletionTransport):
    """Streams chat completions from an OpenAI-compatible endpoint."""

    def __init__(self, config: ApiConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        # Streaming reads are unbounded; only request establishment is timed (see stream()).
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(None))

    def name(self) -> str:
        return _PROVIDER_NAME

    def _build_request(
        self,
        messages: list[dict[str, str]],
        participant: ParticipantConfig,
    ) -> httpx.Request:
        if not self._config.api_key:
            raise ConfigurationError(f"Missing API key: set {self._config.api_key_env}")
        payload = {
            "model": request_model(participant),
            "messages": messages,
            "stream": True,
            "max_tokens": participant.max_tokens,
            "temperature": participant.temperature,
            "top_p": participant.top_p,
        }
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "X-Title": self._config.app_title,
        }
        if self._config.referer:
            headers["HTTP-Referer"] = self._config.referer
        return self._client.build_request("POST", self._config.endpoint, json=payload, headers=headers)

    async def stream(
        self,
        messages: list[dict[str, str]],
        participant: ParticipantConfig,
        cancel: CancelToken,
    ) -> AsyncIterator[str]:
        request = self._build_request(messages, participant)
        if cancel.cancelled:
            raise Aborted(_PROVIDER_NAME)

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.send(request, stream=True),
                timeout=self._config.connect_timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(
                _PROVIDER_NAME, f"Request timed out after {self._config.connect_timeout_sec}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(_PROVIDER_NAME, f"Request failed: {exc}") from exc

        try:
            if not response.is_success:
                body = await response.aread()
                raise HttpError(_PROVIDER_NAME, response.status_code, _error_message(body))

            decoder = EventStreamDecoder()
            fragments = 0
            chunks = response.aiter_text()
            while True:
                if cancel.cancelled:
                    raise Aborted(_PROVIDER_NAME)
                chunk = await self._read(chunks, cancel)
                if chunk is None:
                    break
                for payload in decoder.feed(chunk):
                    try:
                        delta = parse_delta(_PROVIDER_NAME, payload)
                    except MalformedEvent as exc:
                        logger.warning("Skipping streamed event: %s", exc)
                        continue
                    if delta:
                        fragments += 1
                        yield delta

            if decoder.pending.strip():
                logger.debug("Discarding unterminated line at end of stream: %r", decoder.pending[:80])
            logger.info(
                "%s stream for %s finished: %.2fs, %d fragments",
                _PROVIDER_NAME,
                participant.model,
                time.monotonic() - start,
                fragments,
            )
        finally:
            await response.aclose()

    @staticmethod
    async def _read(chunks: AsyncIterator[str], cancel: CancelToken) -> str | None:
        """Next body chunk (None once the body is exhausted).

        Raises:
            Aborted: As soon as ``cancel`` fires, even while the read is blocked.
        """
        read = asyncio.ensure_future(anext(chunks, None))
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not read.done():
                read.cancel()
                await asyncio.wait({read})
        if read.cancelled():
            raise Aborted(_PROVIDER_NAME)
        return read.result()

    async def aclose(self) -> None:
        await self._client.aclose()
