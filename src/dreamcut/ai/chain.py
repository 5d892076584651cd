"""Ordered provider fallback with bounded timeouts.

A ``FallbackChain`` holds an ordered list of providers for one stage (or one
media kind) and runs a prompt against them until one succeeds. This is the
caller-side policy: providers make a single attempt each, and the chain
decides what happens next.

Rules:
- ``auto`` preference keeps the configured order (most capable first).
- A named preference is tried first, followed by the rest in configured order.
- Each provider is attempted at most once per run (plus optional retries on
  retriable errors, off by default).
- A timed-out call is treated exactly like any other provider error.
- When every provider fails, ``AllProvidersFailedError`` names the last
  provider tried and its cause, and carries the full attempt log.

Example:
    >>> chain = FallbackChain(registry.resolve(["llama31_405b", "qwen25_72b"]), timeout_seconds=30)
    >>> result = asyncio.run(chain.run_json(prompt))
    >>> result.provider, result.data["intent"]
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from dreamcut.ai.client import (
    AIClientError,
    AIRateLimitError,
    AITimeoutError,
    GenerationOptions,
    ReasoningProvider,
)
from dreamcut.ai.parsing import parse_json_object
from dreamcut.config import AUTO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderAttempt:
    """One provider call made by a chain run."""

    provider: str
    succeeded: bool
    elapsed_ms: int
    error_type: str | None = None
    error_message: str | None = None


@dataclass
class ChainResult:
    """Outcome of a successful chain run.

    Attributes:
        text: Raw response text from the provider that succeeded.
        provider: Name of that provider.
        attempts: Every attempt made, in order, including failures.
        elapsed_ms: Total time spent across attempts.
        data: Whatever the run's parser returned, if one was given.
    """

    text: str
    provider: str
    attempts: list[ProviderAttempt] = field(default_factory=list)
    elapsed_ms: int = 0
    data: Any = None

    @property
    def fallback_used(self) -> bool:
        return len({attempt.provider for attempt in self.attempts}) > 1

    @property
    def providers_attempted(self) -> list[str]:
        seen: list[str] = []
        for attempt in self.attempts:
            if attempt.provider not in seen:
                seen.append(attempt.provider)
        return seen


class AllProvidersFailedError(AIClientError):
    """Every provider in a chain failed.

    Attributes:
        attempts: Ordered attempt log.
        last_provider: Name of the last provider tried (None if none were configured).
        cause: The last provider's error.
    """

    def __init__(self, attempts: list[ProviderAttempt], cause: Exception | None) -> None:
        self.attempts = attempts
        self.last_provider = attempts[-1].provider if attempts else None
        self.cause = cause
        if self.last_provider is None:
            message = "No reasoning providers available"
        else:
            message = (
                f"All providers failed; last attempted '{self.last_provider}': "
                f"{type(cause).__name__}: {cause}"
            )
        super().__init__(message, retriable=False, original_error=cause)


class FallbackChain:
    """Run a prompt against an ordered list of providers until one succeeds."""

    MAX_RETRY_DELAY = 30.0

    def __init__(
        self,
        providers: Sequence[ReasoningProvider],
        timeout_seconds: float = 60.0,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
        timer: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.providers = list(providers)
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._timer = timer
        self._sleep = sleep
        self._logger = logging.getLogger(f"{__name__}.FallbackChain")

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    def ordered(self, preference: str = AUTO) -> list[ReasoningProvider]:
        """Return providers in the order a run will try them."""
        if preference == AUTO:
            return list(self.providers)
        preferred = [p for p in self.providers if p.name == preference]
        if not preferred:
            self._logger.warning(f"Preferred provider '{preference}' not in chain; using auto order")
            return list(self.providers)
        return preferred + [p for p in self.providers if p.name != preference]

    async def run(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        preference: str = AUTO,
        allow_fallback: bool = True,
        parser: Callable[[str, str], Any] | None = None,
    ) -> ChainResult:
        """Try providers in order until one returns usable text.

        Args:
            prompt: Fully formatted prompt.
            options: Generation parameters.
            preference: "auto" or the name of a provider to try first.
            allow_fallback: If False, only the first provider is tried.
            parser: Optional ``parser(text, provider_name)``; an AIClientError it raises
                counts as that provider failing and the chain moves on.

        Returns:
            ChainResult for the first provider that succeeded.

        Raises:
            AllProvidersFailedError: When no provider succeeded.
        """
        options = options or GenerationOptions()
        order = self.ordered(preference)
        if not allow_fallback:
            order = order[:1]

        attempts: list[ProviderAttempt] = []
        last_error: Exception | None = None
        run_start = self._timer()

        for provider in order:
            start = self._timer()
            try:
                text = await self._call_with_retry(provider, prompt, options)
                data = parser(text, provider.name) if parser is not None else None
            except AIClientError as e:
                last_error = e
                attempts.append(
                    ProviderAttempt(
                        provider=provider.name,
                        succeeded=False,
                        elapsed_ms=self._elapsed_ms(start),
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                )
                self._logger.warning(
                    f"Provider '{provider.name}' failed: {type(e).__name__}: {e}"
                )
                continue

            attempts.append(
                ProviderAttempt(
                    provider=provider.name, succeeded=True, elapsed_ms=self._elapsed_ms(start)
                )
            )
            if len(attempts) > 1:
                self._logger.info(f"Fell back to provider '{provider.name}'")
            return ChainResult(
                text=text,
                provider=provider.name,
                attempts=attempts,
                elapsed_ms=self._elapsed_ms(run_start),
                data=data,
            )

        raise AllProvidersFailedError(attempts, last_error)

    async def run_json(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        preference: str = AUTO,
        allow_fallback: bool = True,
    ) -> ChainResult:
        """Like ``run`` but requires a JSON object in the response."""
        return await self.run(
            prompt,
            options,
            preference=preference,
            allow_fallback=allow_fallback,
            parser=lambda text, _provider: parse_json_object(text),
        )

    async def _call_with_retry(
        self, provider: ReasoningProvider, prompt: str, options: GenerationOptions
    ) -> str:
        """Call one provider, retrying only retriable errors.

        Uses exponential backoff with jitter between retries.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await self._call_once(provider, prompt, options)
            except AIClientError as e:
                if not e.retriable or attempt >= self.max_retries:
                    raise

                delay = min(self.retry_base_delay * (2**attempt), self.MAX_RETRY_DELAY)
                total_delay = delay + random.uniform(0, 1)
                if isinstance(e, AIRateLimitError) and e.retry_after_seconds:
                    total_delay = max(total_delay, e.retry_after_seconds)

                self._logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for '{provider.name}' "
                    f"after {total_delay:.1f}s: {type(e).__name__}"
                )
                await self._sleep(total_delay)

        raise AIClientError(f"Retry loop exited without result for '{provider.name}'")

    async def _call_once(
        self, provider: ReasoningProvider, prompt: str, options: GenerationOptions
    ) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(provider.generate, prompt, options),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AITimeoutError(self.timeout_seconds, original_error=e) from e

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._timer() - start) * 1000))
