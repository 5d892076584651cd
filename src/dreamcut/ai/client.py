"""Reasoning provider contract and concrete providers for DreamCut Analyzer.

Every model call in the pipeline goes through a ``ReasoningProvider``: a
uniform ``generate(prompt, options) -> text`` capability. Providers make
exactly one attempt per call. Retry and fallback policy belongs to the
caller (see ``dreamcut.ai.chain``).

The module provides:
- A typed exception hierarchy every provider failure is mapped onto
- ``GeminiProvider`` (google-genai SDK)
- ``OpenAICompatibleProvider`` (chat-completions over httpx, for hosted open models)
- ``StaticProvider`` (canned responses for deterministic runs)
- ``ProviderRegistry`` and ``build_registry`` to assemble providers from config

Example:
    >>> from dreamcut.ai.client import StaticProvider, GenerationOptions
    >>> provider = StaticProvider("stub", '{"ok": true}')
    >>> provider.generate("anything", GenerationOptions())
    '{"ok": true}'

Security Rules:
- NEVER log API keys
- NEVER log full prompts or responses above DEBUG
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from dreamcut.config import AIConfig, AppConfig, ProviderBackend
from dreamcut.utils.logging import RedactingFilter

logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Exception Hierarchy
# =============================================================================


class AIClientError(Exception):
    """Base exception for all provider errors.

    Attributes:
        message: Human-readable error description (safe to log).
        retriable: Whether the same provider may succeed on a retry.
        details: Additional error context.
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class AIUnavailableError(AIClientError):
    """Provider cannot be used at all (no key, offline, SDK missing)."""

    def __init__(
        self,
        reason: Literal["no_api_key", "offline", "service_down", "disabled"],
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.reason = reason

        default_messages = {
            "no_api_key": "No API key configured for provider",
            "offline": "Cannot reach provider (network offline)",
            "service_down": "Provider service is temporarily unavailable",
            "disabled": "Provider is disabled in configuration",
        }

        msg = message or default_messages.get(reason, f"Provider unavailable: {reason}")
        super().__init__(msg, retriable=False, original_error=original_error)


class AIAuthenticationError(AIClientError):
    """API key was rejected."""

    def __init__(
        self,
        message: str = "Provider rejected the API key",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIRateLimitError(AIClientError):
    """Rate limit hit; retriable after a delay.

    Attributes:
        retry_after_seconds: Server-suggested wait, when provided.
    """

    def __init__(
        self,
        retry_after_seconds: float | None = None,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or "Provider rate limit exceeded"
        if retry_after_seconds:
            msg += f" (retry after {retry_after_seconds:.0f}s)"
        super().__init__(msg, retriable=True, original_error=original_error)
        self.retry_after_seconds = retry_after_seconds


class AIQuotaExceededError(AIClientError):
    """Quota or billing limit reached. Not retriable."""

    def __init__(
        self,
        message: str = "Provider quota exceeded",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIServerError(AIClientError):
    """Provider-side 5xx failure. Retriable."""

    def __init__(
        self,
        status_code: int | None = None,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Provider server error{f' ({status_code})' if status_code else ''}"
        super().__init__(msg, retriable=True, original_error=original_error)
        self.status_code = status_code


class AIBadRequestError(AIClientError):
    """Request was malformed or rejected as invalid."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AITimeoutError(AIClientError):
    """Call did not finish within its bounded timeout.

    Attributes:
        timeout_seconds: The timeout that was exceeded.
    """

    def __init__(
        self,
        timeout_seconds: float,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Request timed out after {timeout_seconds} seconds"
        super().__init__(msg, retriable=True, original_error=original_error)
        self.timeout_seconds = timeout_seconds


class TokenLimitExceededError(AIClientError):
    """Prompt or requested output exceeds the model's token limit."""

    def __init__(
        self,
        message: str = "Token limit exceeded",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class ModelNotAvailableError(AIClientError):
    """The configured model does not exist for this provider."""

    def __init__(self, model: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Model not available: {model}", retriable=False, original_error=original_error)
        self.model = model


class ContentBlockedError(AIClientError):
    """Provider refused to answer for safety reasons."""

    def __init__(
        self,
        message: str = "Response blocked by provider safety filters",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class MalformedResponseError(AIClientError):
    """Provider answered but the text is empty or not in the expected shape."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


# =============================================================================
# Exception Mapping
# =============================================================================


def error_for_status(
    status_code: int,
    message: str,
    model: str,
    retry_after_seconds: float | None = None,
    original_error: Exception | None = None,
) -> AIClientError:
    """Map an HTTP status code to the exception hierarchy."""
    lowered = message.lower()
    if status_code in (401, 403):
        return AIAuthenticationError(original_error=original_error)
    if status_code == 404:
        return ModelNotAvailableError(model, original_error=original_error)
    if status_code == 408:
        return AITimeoutError(0, message=f"Provider timed out: {message}", original_error=original_error)
    if status_code == 429:
        if "quota" in lowered or "billing" in lowered:
            return AIQuotaExceededError(original_error=original_error)
        return AIRateLimitError(retry_after_seconds, original_error=original_error)
    if status_code >= 500:
        return AIServerError(status_code, original_error=original_error)
    if "token" in lowered and ("limit" in lowered or "exceed" in lowered or "length" in lowered):
        return TokenLimitExceededError(original_error=original_error)
    return AIBadRequestError(f"Provider rejected request ({status_code}): {message}", original_error)


def map_provider_exception(
    error: Exception, model: str, timeout_seconds: float
) -> AIClientError:
    """Map SDK and transport exceptions to our exception hierarchy.

    Args:
        error: The original exception.
        model: Model name, used for "model not found" errors.
        timeout_seconds: Timeout to report on timeout errors.

    Returns:
        Mapped AIClientError subclass.
    """
    if isinstance(error, AIClientError):
        return error

    if isinstance(error, genai_errors.APIError):
        return error_for_status(
            error.code or 0, str(error.message or error), model, original_error=error
        )

    if isinstance(error, httpx.TimeoutException):
        return AITimeoutError(timeout_seconds, original_error=error)

    if isinstance(error, (httpx.ConnectError, httpx.NetworkError)):
        return AIUnavailableError("offline", original_error=error)

    error_str = str(error).lower()

    if "blocked" in error_str or "safety" in error_str:
        return ContentBlockedError(original_error=error)

    if "401" in error_str or "403" in error_str or "unauthorized" in error_str:
        return AIAuthenticationError(original_error=error)

    if "429" in error_str or "rate limit" in error_str:
        return AIRateLimitError(original_error=error)

    if "quota" in error_str or "billing" in error_str:
        return AIQuotaExceededError(original_error=error)

    if "timeout" in error_str or "deadline" in error_str:
        return AITimeoutError(timeout_seconds, original_error=error)

    if "500" in error_str or "502" in error_str or "503" in error_str:
        return AIServerError(original_error=error)

    if "model" in error_str and "not found" in error_str:
        return ModelNotAvailableError(model, original_error=error)

    return AIClientError(str(error) or type(error).__name__, retriable=False, original_error=error)


# =============================================================================
# Provider Contract
# =============================================================================


@dataclass
class GenerationOptions:
    """Generation parameters passed to every provider call."""

    max_output_tokens: int = 2048
    temperature: float = 0.4
    top_p: float = 0.9
    stop_sequences: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, ai_config: AIConfig) -> "GenerationOptions":
        return cls(
            max_output_tokens=ai_config.max_output_tokens,
            temperature=ai_config.temperature,
            top_p=ai_config.top_p,
        )


class ReasoningProvider(ABC):
    """Uniform prompt-in, text-out capability over one hosted model.

    Subclasses implement ``_generate``. ``generate`` makes a single attempt
    and guarantees that every failure surfaces as an ``AIClientError``.
    """

    def __init__(self, name: str, model: str, timeout_seconds: float = 60.0) -> None:
        self.name = name
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._logger = logging.getLogger(f"{__name__}.{type(self).__name__}")
        self._logger.addFilter(RedactingFilter())

    def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """Run one generation.

        Args:
            prompt: Fully formatted prompt text.
            options: Generation parameters.

        Returns:
            Raw response text (non-empty).

        Raises:
            AIClientError: Any failure, mapped onto the hierarchy.
        """
        options = options or GenerationOptions()
        self._logger.debug(f"{self.name}: generating ({len(prompt)} chars)")
        try:
            text = self._generate(prompt, options)
        except AIClientError:
            raise
        except Exception as e:
            raise map_provider_exception(e, self.model, self.timeout_seconds) from e

        if not text or not text.strip():
            raise MalformedResponseError(f"{self.name} returned an empty response")
        self._logger.debug(f"{self.name}: received {len(text)} chars")
        return text

    @abstractmethod
    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        """Backend-specific single call."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"


# =============================================================================
# Concrete Providers
# =============================================================================


class GeminiProvider(ReasoningProvider):
    """Google Gemini through the google-genai SDK."""

    def __init__(
        self,
        name: str,
        model: str,
        api_key: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(name, model, timeout_seconds)
        self._api_key = api_key
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=genai_types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
        return self._client

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        config = genai_types.GenerateContentConfig(
            temperature=options.temperature,
            top_p=options.top_p,
            max_output_tokens=options.max_output_tokens,
            stop_sequences=options.stop_sequences or None,
        )
        response = self._get_client().models.generate_content(
            model=self.model,
            contents=prompt,
            config=config,
        )
        text = response.text
        if not text:
            feedback = getattr(response, "prompt_feedback", None)
            if feedback is not None and getattr(feedback, "block_reason", None):
                raise ContentBlockedError(f"Gemini blocked the prompt: {feedback.block_reason}")
        return text or ""


class OpenAICompatibleProvider(ReasoningProvider):
    """Chat-completions endpoint (Together, DeepSeek, vLLM and friends) over httpx."""

    def __init__(
        self,
        name: str,
        model: str,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(name, model, timeout_seconds)
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.max_output_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
        }
        if options.stop_sequences:
            payload["stop"] = list(options.stop_sequences)

        with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = client.post(
                f"{self.base_url}/chat/completions", headers=self._headers(), json=payload
            )

        if response.status_code >= 400:
            raise error_for_status(
                response.status_code,
                response.text[:200],
                self.model,
                retry_after_seconds=_retry_after(response),
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(
                f"{self.name} returned an unexpected payload shape", original_error=e
            ) from e


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class StaticProvider(ReasoningProvider):
    """Returns canned text; used for offline runs and deterministic tests.

    ``responses`` is either one string returned for every prompt, or an
    ordered list of ``(marker, text)`` routes: the first route whose marker
    occurs in the prompt wins, otherwise ``default`` is returned.

    Example:
        >>> provider = StaticProvider(
        ...     "stub",
        ...     [("Request type: query_analysis", QUERY_JSON)],
        ...     default="A bright product shot.",
        ... )
    """

    def __init__(
        self,
        name: str,
        responses: str | Sequence[tuple[str, str]],
        default: str | None = None,
        model: str = "static",
    ) -> None:
        super().__init__(name, model, timeout_seconds=0)
        if isinstance(responses, str):
            self._routes: list[tuple[str, str]] = []
            self._default: str | None = responses
        else:
            self._routes = list(responses)
            self._default = default
        self.calls: list[str] = []

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        self.calls.append(prompt)
        for marker, text in self._routes:
            if marker in prompt:
                return text
        if self._default is None:
            raise AIBadRequestError(f"{self.name} has no canned response for this prompt")
        return self._default


class UnconfiguredProvider(ReasoningProvider):
    """Placeholder for a catalog entry whose credentials are missing.

    Always raises ``AIUnavailableError`` so a fallback chain falls through.
    """

    def __init__(self, name: str, model: str, api_key_env: str | None) -> None:
        super().__init__(name, model)
        self.api_key_env = api_key_env

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        raise AIUnavailableError(
            "no_api_key", f"Provider '{self.name}' needs ${self.api_key_env} to be set"
        )


# =============================================================================
# Registry
# =============================================================================


class ProviderRegistry:
    """Name to provider lookup, built once per pipeline run."""

    def __init__(self, providers: Iterable[ReasoningProvider] = ()) -> None:
        self._providers: dict[str, ReasoningProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ReasoningProvider, replace: bool = False) -> None:
        if provider.name in self._providers and not replace:
            raise ValueError(f"Provider '{provider.name}' is already registered")
        self._providers[provider.name] = provider

    def get(self, name: str) -> ReasoningProvider:
        if name not in self._providers:
            available = ", ".join(sorted(self._providers)) or "none"
            raise KeyError(f"Provider '{name}' not found. Available providers: {available}")
        return self._providers[name]

    def resolve(self, names: Iterable[str]) -> list[ReasoningProvider]:
        """Look up an ordered list of names, skipping unknown ones."""
        resolved = []
        for name in names:
            if name in self._providers:
                resolved.append(self._providers[name])
            else:
                logger.warning(f"Provider '{name}' is not registered; skipping")
        return resolved

    def names(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


_ENV_REFERENCE = re.compile(r"^\$\{(\w+)\}$")


def _read_api_key(api_key_env: str | None) -> str | None:
    if not api_key_env:
        return None
    match = _ENV_REFERENCE.match(api_key_env)
    name = match.group(1) if match else api_key_env
    value = os.environ.get(name, "").strip()
    return value or None


def build_registry(config: AppConfig, offline: bool = False) -> ProviderRegistry:
    """Create providers for every catalog entry.

    Entries whose API key is missing become ``UnconfiguredProvider`` so that
    stage orders still resolve and the chain simply falls through them.

    Args:
        config: Application configuration holding the provider catalog.
        offline: Replace every entry with the deterministic offline provider.

    Returns:
        Populated ProviderRegistry.
    """
    registry = ProviderRegistry()
    timeout = config.ai.timeout_seconds

    for spec in config.providers:
        provider: ReasoningProvider
        if offline:
            from dreamcut.ai.offline import OfflineProvider

            provider = OfflineProvider(spec.name)
        elif spec.backend == ProviderBackend.STATIC:
            provider = StaticProvider(spec.name, spec.response or "", model=spec.model or "static")
        else:
            api_key = _read_api_key(spec.api_key_env)
            if api_key is None:
                logger.info(f"No API key for provider '{spec.name}'; it will be skipped")
                provider = UnconfiguredProvider(spec.name, spec.model, spec.api_key_env)
            elif spec.backend == ProviderBackend.GEMINI:
                provider = GeminiProvider(spec.name, spec.model, api_key, timeout)
            else:
                if not spec.base_url:
                    raise ValueError(f"Provider '{spec.name}' needs a base_url")
                provider = OpenAICompatibleProvider(
                    spec.name, spec.model, spec.base_url, api_key, timeout
                )
        registry.register(provider)

    return registry
