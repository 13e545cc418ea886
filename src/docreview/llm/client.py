"""OpenAI-compatible model gateway.

This wraps the `openai` Python SDK and provides the two calls the analysis stages need: a buffered
chat completion with retry/backoff, and a streaming chat completion that hands every delta to a
callback. The gateway holds no per-request state and can be shared by concurrent runs.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator, Literal, Mapping, Sequence

import httpx
from openai import OpenAI

from docreview.config import Provider, Settings
from docreview.errors import MalformedUpstreamResponse, UnclassifiedUpstream, UpstreamError, classify_error
from docreview.logging import get_logger
from docreview.models.report import Usage

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]
DeltaCallback = Callable[[str, str], None]

_PROVIDER_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
}
_PROVIDER_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "deepseek": "deepseek-chat",
}


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str


@dataclass(frozen=True)
class Completion:
    """Text returned by a model call plus token accounting when the backend reports it."""

    text: str
    usage: Usage | None = None


@dataclass(frozen=True)
class Backend:
    """Resolved connection parameters for one model backend."""

    provider: Provider
    api_key: str
    base_url: str
    model: str

    @property
    def temperature(self) -> float:
        # deepseek is run with a higher creativity setting, other families near-deterministic
        return 0.7 if self.provider == "deepseek" else 0.2

    @classmethod
    def resolve(
        cls,
        provider: str,
        api_key: str | None,
        *,
        base_url: str | None = None,
        model: str | None = None,
    ) -> "Backend":
        """Build a backend from a provider name and optional overrides.

        Raises:
            ValueError: Missing key, unsupported provider or incomplete custom backend.
        """

        if not api_key:
            raise ValueError("Missing API key. Set DOCREVIEW_API_KEY or pass one with the request.")

        if provider == "custom":
            if not base_url:
                raise ValueError("A custom provider requires a base URL")
            if not model:
                raise ValueError("A custom provider requires a model name")
            url = base_url.rstrip("/")
            if url.endswith("/chat/completions"):
                url = url[: -len("/chat/completions")]
            return cls(provider="custom", api_key=api_key, base_url=url, model=model)

        if provider not in _PROVIDER_URLS:
            raise ValueError(f"Unsupported provider: {provider}")

        return cls(
            provider=provider,  # type: ignore[arg-type]
            api_key=api_key,
            base_url=(base_url or _PROVIDER_URLS[provider]).rstrip("/"),
            model=model or _PROVIDER_MODELS[provider],
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Backend":
        return cls.resolve(
            settings.provider,
            settings.api_key,
            base_url=settings.base_url,
            model=settings.model,
        )


def truncate_history(messages: Sequence[ChatMessage], limit: int) -> list[ChatMessage]:
    """Keep ``[first, *last_two]`` when the combined content exceeds ``limit`` characters.

    The first message is always the system prompt, so the truncated history stays well formed.
    """

    total = sum(len(m.content) for m in messages)
    if total <= limit or len(messages) <= 3:
        return list(messages)
    logger.warning(
        "History too long, truncating",
        extra={"total_chars": total, "limit": limit, "messages": len(messages)},
    )
    return [messages[0], *messages[-2:]]


class ModelGateway:
    """Chat-completion gateway with retry, error classification and streaming support."""

    def __init__(
        self,
        backend: Backend,
        settings: Settings,
        *,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backend = backend
        self._settings = settings
        self._http_client = http_client
        self._sleep = sleep
        # retries are owned here, never by the SDK
        self._client = OpenAI(
            api_key=backend.api_key,
            base_url=backend.base_url,
            max_retries=0,
            http_client=http_client,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ModelGateway":
        return cls(Backend.from_settings(settings), settings, **kwargs)

    @property
    def backend(self) -> Backend:
        return self._backend

    def with_backend(self, backend: Backend) -> "ModelGateway":
        """Return a gateway sharing settings and transport but targeting another backend."""

        return ModelGateway(backend, self._settings, http_client=self._http_client, sleep=self._sleep)

    def with_overrides(
        self,
        *,
        provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
    ) -> "ModelGateway":
        """Apply per-request backend overrides, keeping this gateway when none are given."""

        if not any((provider, api_key, base_url, model)):
            return self
        if provider and provider != self._backend.provider:
            backend = Backend.resolve(
                provider, api_key or self._backend.api_key, base_url=base_url, model=model
            )
        else:
            backend = replace(
                self._backend,
                api_key=api_key or self._backend.api_key,
                base_url=(base_url or self._backend.base_url).rstrip("/"),
                model=model or self._backend.model,
            )
        return self.with_backend(backend)

    def call(self, messages: Sequence[ChatMessage], max_tokens: int = 4000) -> Completion:
        """Buffered chat completion.

        Transient failures are retried with exponential backoff; authentication failures are
        raised immediately.

        Args:
            messages: Conversation history, system prompt first.
            max_tokens: Requested output budget, clamped to the configured ceiling.

        Returns:
            The completion text and usage.

        Raises:
            UpstreamError: Classified failure of the last attempt.
        """

        payload = self._payload(messages)
        max_attempts = self._settings.max_attempts
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            attempt_started = time.monotonic()
            try:
                completion = self._create_once(payload, self._clamp(max_tokens))
            except Exception as e:
                err = classify_error(e)
                if err is not e:
                    err.__cause__ = e
            else:
                logger.info(
                    "Model call ok",
                    extra={
                        "model": self._backend.model,
                        "attempt": attempt,
                        "messages": len(payload),
                        "response_chars": len(completion.text),
                        "latency_ms": int((time.monotonic() - attempt_started) * 1000),
                    },
                )
                return completion

            if not err.retryable or attempt >= max_attempts:
                logger.error(
                    "Model call failed",
                    extra={
                        "model": self._backend.model,
                        "attempt": attempt,
                        "error_type": type(err).__name__,
                        "error": str(err),
                        "elapsed_ms": int((time.monotonic() - started) * 1000),
                    },
                )
                raise err

            sleep_s = min(
                self._settings.retry_max_backoff_s,
                self._settings.retry_backoff_s * (2 ** (attempt - 1)),
            )
            logger.warning(
                "Model call retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error_type": type(err).__name__,
                    "status_code": err.status_code,
                    "sleep_s": sleep_s,
                    "elapsed_ms": int((time.monotonic() - started) * 1000),
                },
            )
            self._sleep(sleep_s)

    def call_streaming(
        self,
        messages: Sequence[ChatMessage],
        max_tokens: int = 4000,
        on_delta: DeltaCallback | None = None,
    ) -> Completion:
        """Streaming chat completion.

        ``on_delta(delta, accumulated)`` is called once per non-empty delta, in arrival order,
        before this method returns. Frames that are not valid JSON are logged and skipped.
        Streaming calls are never retried: part of the output may already have been delivered.

        Raises:
            UpstreamError: Classified failure, raised as soon as it happens.
        """

        payload = self._payload(messages)
        started = time.monotonic()
        text = ""
        deltas = 0
        usage: Usage | None = None

        for chunk in self._stream_chunks(payload, self._clamp(max_tokens)):
            if chunk.get("usage"):
                usage = _to_usage(chunk["usage"])
            choices = chunk.get("choices")
            if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
                continue
            raw_delta = choices[0].get("delta")
            delta = raw_delta.get("content") if isinstance(raw_delta, dict) else None
            if not isinstance(delta, str) or not delta:
                continue
            text += delta
            deltas += 1
            if on_delta is not None:
                on_delta(delta, text)

        logger.info(
            "Model stream complete",
            extra={
                "model": self._backend.model,
                "deltas": deltas,
                "response_chars": len(text),
                "latency_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return Completion(text=text, usage=usage)

    def _stream_chunks(self, payload: list[dict[str, str]], max_tokens: int) -> Iterator[dict[str, Any]]:
        """Yield decoded ``data:`` payloads of a streamed completion until ``[DONE]``."""

        skipped = 0
        try:
            with self._client.chat.completions.with_streaming_response.create(
                model=self._backend.model,
                messages=payload,  # type: ignore[arg-type]
                max_tokens=max_tokens,
                temperature=self._backend.temperature,
                stream=True,
                timeout=self._settings.stream_timeout_s,
            ) as response:
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        skipped += 1
                        logger.warning(
                            "Skipping undecodable stream frame",
                            extra={"skipped": skipped, "preview": data[:80]},
                        )
                        continue
                    if not isinstance(chunk, dict):
                        continue
                    if chunk.get("error"):
                        raise UnclassifiedUpstream(str(chunk["error"]))
                    yield chunk
        except UpstreamError:
            raise
        except Exception as e:
            logger.error("Model stream failed", extra={"error_type": type(e).__name__, "skipped": skipped})
            raise classify_error(e) from e

    def ping(self) -> bool:
        """Send a tiny request to check that the backend answers."""

        try:
            self._create_once([{"role": "user", "content": "Hello"}], 5)
        except Exception as e:
            logger.warning("Connection test failed: %s", classify_error(e))
            return False
        return True

    @staticmethod
    def format_messages(messages: Iterable[Mapping[str, Any]]) -> list[ChatMessage]:
        """Convert plain dict messages to ChatMessage."""

        out: list[ChatMessage] = []
        for m in messages:
            out.append(ChatMessage(role=m["role"], content=m["content"]))
        return out

    def _payload(self, messages: Sequence[ChatMessage]) -> list[dict[str, str]]:
        if not messages:
            raise ValueError("messages must not be empty")
        kept = truncate_history(messages, self._settings.history_char_limit)
        return [{"role": m.role, "content": m.content} for m in kept]

    def _clamp(self, max_tokens: int) -> int:
        return max(1, min(max_tokens, self._settings.max_output_tokens))

    def _create_once(self, payload: list[dict[str, str]], max_tokens: int) -> Completion:
        resp = self._client.chat.completions.create(
            model=self._backend.model,
            messages=payload,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=self._backend.temperature,
            timeout=self._settings.request_timeout_s,
        )
        if not getattr(resp, "choices", None):
            raise MalformedUpstreamResponse("response has no choices")
        content = getattr(getattr(resp.choices[0], "message", None), "content", None)
        if content is None:
            raise MalformedUpstreamResponse("response has no message content")
        return Completion(text=content, usage=_to_usage(getattr(resp, "usage", None)))


def _to_usage(raw: Any) -> Usage | None:
    if raw is None:
        return None

    def field(name: str) -> int:
        value = raw.get(name) if isinstance(raw, Mapping) else getattr(raw, name, None)
        return int(value or 0)

    prompt = field("prompt_tokens")
    completion = field("completion_tokens")
    total = field("total_tokens") or prompt + completion
    return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
