"""Streaming HTTP client that normalizes LLM vendor protocols into text increments."""

from __future__ import annotations

import codecs
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Sequence

import httpx

from app.config.settings import ProvidersConfig, settings
from app.domain.models import ProviderId
from app.telemetry import observe_provider_stream

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
ANTHROPIC_VERSION = "2023-06-01"

Message = Mapping[str, str]
ChunkCallback = Callable[[str], None]


class ProviderError(RuntimeError):
    """Base class for failures talking to an LLM vendor."""


class ProviderConfigurationError(ProviderError):
    """Raised when no credential is configured for the requested vendor."""


class ProviderHttpError(ProviderError):
    """Raised when the vendor answers with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        super().__init__(f"LLM API error: {status_code} from {provider} - {body}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class ProviderStreamUnavailable(ProviderError):
    """Raised when the response body cannot be read as a stream."""


class ProviderTimeoutError(ProviderError):
    """Raised when connecting or waiting for the next network read takes too long."""


def _bearer_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _anthropic_headers(api_key: str) -> dict[str, str]:
    return {
        "x-api-key": api_key,
        "Content-Type": "application/json",
        "anthropic-version": ANTHROPIC_VERSION,
    }


def _chat_body(model: str, messages: list[dict[str, str]], max_tokens: int | None) -> dict[str, Any]:
    return {"model": model, "messages": messages, "stream": True}


def _anthropic_body(
    model: str, messages: list[dict[str, str]], max_tokens: int | None
) -> dict[str, Any]:
    body = _chat_body(model, messages, max_tokens)
    body["max_tokens"] = max_tokens
    return body


def _chat_delta(event: Any) -> str | None:
    if not isinstance(event, dict):
        return None
    choices = event.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    content = (choices[0].get("delta") or {}).get("content")
    return content if isinstance(content, str) else None


def _anthropic_delta(event: Any) -> str | None:
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    text = (event.get("delta") or {}).get("text")
    return text if isinstance(text, str) else None


@dataclass(frozen=True)
class ProviderSpec:
    """Everything that differs between two vendors' streaming endpoints."""

    provider: ProviderId
    settings_prefix: str
    endpoint_path: str
    build_headers: Callable[[str], dict[str, str]]
    build_body: Callable[[str, list[dict[str, str]], Optional[int]], dict[str, Any]]
    extract: Callable[[Any], Optional[str]]
    uses_max_tokens: bool = False


PROVIDER_SPECS: dict[ProviderId, ProviderSpec] = {
    ProviderId.OPENAI: ProviderSpec(
        ProviderId.OPENAI, "openai", "/chat/completions", _bearer_headers, _chat_body, _chat_delta
    ),
    ProviderId.ANTHROPIC: ProviderSpec(
        ProviderId.ANTHROPIC,
        "anthropic",
        "/v1/messages",
        _anthropic_headers,
        _anthropic_body,
        _anthropic_delta,
        uses_max_tokens=True,
    ),
    ProviderId.DEEPSEEK: ProviderSpec(
        ProviderId.DEEPSEEK, "deepseek", "/chat/completions", _bearer_headers, _chat_body, _chat_delta
    ),
    ProviderId.PERPLEXITY: ProviderSpec(
        ProviderId.PERPLEXITY,
        "perplexity",
        "/chat/completions",
        _bearer_headers,
        _chat_body,
        _chat_delta,
    ),
}


def _data_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other line."""

    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None
    payload = line[5:].strip()
    return payload or None


class SseLineBuffer:
    """Reassemble ``data:`` lines that may be split across network chunks."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return [payload for payload in map(_data_payload, lines) if payload is not None]

    def flush(self) -> list[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        payload = _data_payload(tail)
        return [payload] if payload is not None else []


class ProviderClient:
    """Open one streaming completion per call and yield its text increments."""

    def __init__(
        self,
        config: ProvidersConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or settings.providers
        self._timeout = httpx.Timeout(
            self._config.read_timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )
        self._client = http_client
        self._owns_client = http_client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _resolve(self, spec: ProviderSpec) -> tuple[str, str, str]:
        secret = getattr(self._config, f"{spec.settings_prefix}_api_key")
        api_key = secret.get_secret_value() if secret is not None else ""
        if not api_key:
            raise ProviderConfigurationError(
                f"API key not configured for {spec.provider.value}"
            )
        base_url = getattr(self._config, f"{spec.settings_prefix}_base_url")
        model = getattr(self._config, f"{spec.settings_prefix}_model")
        return api_key, base_url.rstrip("/"), model

    def _max_tokens(self, spec: ProviderSpec) -> int | None:
        if not spec.uses_max_tokens:
            return None
        return getattr(self._config, f"{spec.settings_prefix}_max_tokens")

    @staticmethod
    def _extract(spec: ProviderSpec, payload: str) -> str | None:
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(
                "Skipping malformed stream line from %s: %.200s",
                spec.provider.value,
                payload,
            )
            return None
        return spec.extract(event)

    def _drain(self, spec: ProviderSpec, payloads: list[str]) -> tuple[list[str], bool]:
        """Extract texts from ``payloads``; the flag is True once ``[DONE]`` is seen."""

        texts: list[str] = []
        for payload in payloads:
            if payload == DONE_SENTINEL:
                return texts, True
            text = self._extract(spec, payload)
            if text:
                texts.append(text)
        return texts, False

    async def stream(
        self,
        provider: ProviderId | str,
        messages: Sequence[Message],
        on_chunk: ChunkCallback | None = None,
    ) -> AsyncIterator[str]:
        """Yield the non-empty text increments of one streaming completion.

        Every increment is also handed to ``on_chunk`` before it is yielded.
        Nothing is retried: HTTP, transport and timeout failures surface as
        :class:`ProviderError` subclasses.
        """

        spec = PROVIDER_SPECS[ProviderId(provider)]
        api_key, base_url, model = self._resolve(spec)
        url = f"{base_url}{spec.endpoint_path}"
        body = spec.build_body(model, [dict(m) for m in messages], self._max_tokens(spec))

        started_at = time.perf_counter()
        outcome = "aborted"
        try:
            async with self._http().stream(
                "POST",
                url,
                headers=spec.build_headers(api_key),
                json=body,
                timeout=self._timeout,
            ) as response:
                if not response.is_success:
                    error_body = (await response.aread()).decode("utf-8", "replace")
                    raise ProviderHttpError(spec.provider.value, response.status_code, error_body)

                buffer = SseLineBuffer()
                async for chunk in response.aiter_bytes():
                    texts, finished = self._drain(spec, buffer.feed(chunk))
                    for text in texts:
                        if on_chunk is not None:
                            on_chunk(text)
                        yield text
                    if finished:
                        break
                else:
                    # Body ended without a sentinel; a last line may lack its newline.
                    texts, _ = self._drain(spec, buffer.flush())
                    for text in texts:
                        if on_chunk is not None:
                            on_chunk(text)
                        yield text
            outcome = "ok"
        except ProviderError:
            outcome = "error"
            raise
        except httpx.TimeoutException as exc:
            outcome = "timeout"
            raise ProviderTimeoutError(
                f"Timed out waiting for {spec.provider.value}: {exc!r}"
            ) from exc
        except (httpx.TransportError, httpx.StreamError) as exc:
            outcome = "error"
            raise ProviderStreamUnavailable(
                f"Failed to read response stream from {spec.provider.value}: {exc!r}"
            ) from exc
        finally:
            observe_provider_stream(
                spec.provider.value, outcome, time.perf_counter() - started_at
            )


__all__ = [
    "PROVIDER_SPECS",
    "ProviderClient",
    "ProviderConfigurationError",
    "ProviderError",
    "ProviderHttpError",
    "ProviderSpec",
    "ProviderStreamUnavailable",
    "ProviderTimeoutError",
    "SseLineBuffer",
]
