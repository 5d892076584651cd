"""Reasoning providers and the four pipeline stages.

client.py is the only module that talks to provider SDKs or HTTP APIs;
every stage reaches a provider through a ``FallbackChain``.

Exports:
    - ReasoningProvider and its concrete providers, plus the registry
    - FallbackChain: ordered provider fallback with bounded timeouts
    - QueryAnalyzer, AssetAnalyzer, CombinationSynthesizer, OutputAssembler
    - Provider exception hierarchy for typed error handling
"""

from dreamcut.ai.client import (
    # Providers
    GenerationOptions,
    GeminiProvider,
    OpenAICompatibleProvider,
    ProviderRegistry,
    ReasoningProvider,
    StaticProvider,
    build_registry,
    # Exceptions
    AIAuthenticationError,
    AIBadRequestError,
    AIClientError,
    AIQuotaExceededError,
    AIRateLimitError,
    AIServerError,
    AITimeoutError,
    AIUnavailableError,
    ContentBlockedError,
    MalformedResponseError,
    ModelNotAvailableError,
)
from dreamcut.ai.chain import AllProvidersFailedError, ChainResult, FallbackChain
from dreamcut.ai.query_analyzer import QueryAnalysisError, QueryAnalysisOutcome, QueryAnalyzer
from dreamcut.ai.asset_analyzer import AssetAnalyzer, AssetStageError
from dreamcut.ai.synthesizer import CombinationSynthesizer
from dreamcut.ai.assembler import OutputAssembler
from dreamcut.ai.profiles import CreativeProfile, detect_profile

__all__ = [
    # Providers
    "GenerationOptions",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "ProviderRegistry",
    "ReasoningProvider",
    "StaticProvider",
    "build_registry",
    # Chain
    "AllProvidersFailedError",
    "ChainResult",
    "FallbackChain",
    # Stages
    "QueryAnalyzer",
    "QueryAnalysisOutcome",
    "QueryAnalysisError",
    "AssetAnalyzer",
    "AssetStageError",
    "CombinationSynthesizer",
    "OutputAssembler",
    # Profiles
    "CreativeProfile",
    "detect_profile",
    # Exceptions
    "AIClientError",
    "AIUnavailableError",
    "AIAuthenticationError",
    "AIRateLimitError",
    "AIQuotaExceededError",
    "AIServerError",
    "AIBadRequestError",
    "AITimeoutError",
    "ModelNotAvailableError",
    "ContentBlockedError",
    "MalformedResponseError",
]
