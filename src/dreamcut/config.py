"""Central Configuration System for DreamCut Analyzer.

This module is the single source of truth for application configuration.
Stages never read it directly: the pipeline (or the CLI) loads an
``AppConfig`` once and hands each stage its own section.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- A named provider catalog with per-stage fallback orders
- Stage toggles (grammar correction, creative reframing, gap depth, AI synthesis)
- Scoring constants exposed as tunable configuration

Example:
    >>> from dreamcut.config import get_config
    >>>
    >>> cfg = get_config()
    >>> print(cfg.query.model_preference)  # "auto" by default
    >>> print(cfg.providers_for(cfg.query.provider_order))

Config File Format (YAML):
    ```yaml
    ai:
      temperature: 0.4
      max_output_tokens: 2048
      timeout_seconds: 60
      max_retries: 0

    providers:
      - name: llama31_405b
        backend: openai_compatible
        model: meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo
        base_url: https://api.together.xyz/v1
        api_key_env: TOGETHER_API_KEY

    query:
      model_preference: auto
      enable_grammar_correction: true
      enable_creative_reframing: true

    assets:
      max_concurrent: 5
      image_providers: [gemini_flash, gemini_pro]

    synthesis:
      enable_ai_synthesis: true
      gap_analysis_depth: comprehensive

    scoring:
      partial_confidence_threshold: 0.5

    logging:
      level: INFO
    ```
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

AUTO = "auto"


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Exception raised for YAML config file issues.

    Raised when:
    - Config file exists but cannot be read
    - Config file contains malformed YAML
    """

    pass


# =============================================================================
# Enums
# =============================================================================


class ProviderBackend(str, Enum):
    """How a named provider talks to its model."""

    GEMINI = "gemini"
    OPENAI_COMPATIBLE = "openai_compatible"
    STATIC = "static"


class GapAnalysisDepth(str, Enum):
    """How thorough the synthesizer's gap analysis is.

    - BASIC: content gaps only
    - DETAILED: adds style and technical gaps
    - COMPREHENSIVE: adds asset quality gaps and missing-element enumeration
    """

    BASIC = "basic"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class OptimizationFocus(str, Enum):
    """Which optimization dimension recommendations favour."""

    BALANCED = "balanced"
    SPEED = "speed"
    QUALITY = "quality"
    COST = "cost"


# =============================================================================
# Configuration Models
# =============================================================================


class AIConfig(BaseModel):
    """Generation parameters shared by every reasoning provider call.

    Attributes:
        temperature: Sampling temperature (0.0=deterministic, 2.0=creative).
        top_p: Nucleus sampling cutoff.
        max_output_tokens: Maximum tokens in a provider response.
        timeout_seconds: Bounded timeout applied to every provider call.
        max_retries: Retries per provider on retriable errors before falling through.
        retry_base_delay: Base delay for exponential backoff between retries.
    """

    temperature: float = Field(
        default=0.4, ge=0.0, le=2.0, description="Sampling temperature (0=deterministic, 2=creative)."
    )
    top_p: float = Field(default=0.9, ge=0.0, le=1.0, description="Nucleus sampling cutoff.")
    max_output_tokens: int = Field(
        default=2048, ge=64, le=32000, description="Maximum tokens in model response."
    )
    timeout_seconds: float = Field(
        default=60.0, gt=0.0, le=600.0, description="Per-call timeout in seconds."
    )
    max_retries: int = Field(
        default=0, ge=0, le=10, description="Retries per provider on transient failures."
    )
    retry_base_delay: float = Field(
        default=1.0, ge=0.0, le=10.0, description="Base delay for exponential backoff (seconds)."
    )


class ProviderSpec(BaseModel):
    """One entry of the named provider catalog."""

    name: str
    backend: ProviderBackend = ProviderBackend.OPENAI_COMPATIBLE
    model: str = ""
    base_url: str | None = None
    api_key_env: str | None = None
    response: str | None = Field(
        default=None, description="Canned response text for the static backend."
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or v == AUTO:
            raise ValueError(f"Provider name must be non-empty and not '{AUTO}'")
        return v


TOGETHER_BASE_URL = "https://api.together.xyz/v1"


def _default_providers() -> list[ProviderSpec]:
    hosted = [
        ("llama31_405b", "meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo"),
        ("llama31_70b", "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"),
        ("qwen25_72b", "Qwen/Qwen2.5-72B-Instruct-Turbo"),
        ("gemma2_27b", "google/gemma-2-27b-it"),
        ("mistral_7b", "mistralai/Mistral-7B-Instruct-v0.3"),
    ]
    specs = [
        ProviderSpec(
            name=name,
            backend=ProviderBackend.OPENAI_COMPATIBLE,
            model=model,
            base_url=TOGETHER_BASE_URL,
            api_key_env="TOGETHER_API_KEY",
        )
        for name, model in hosted
    ]
    specs.append(
        ProviderSpec(
            name="gemini_flash",
            backend=ProviderBackend.GEMINI,
            model="gemini-2.0-flash",
            api_key_env="GEMINI_API_KEY",
        )
    )
    specs.append(
        ProviderSpec(
            name="gemini_pro",
            backend=ProviderBackend.GEMINI,
            model="gemini-1.5-pro",
            api_key_env="GEMINI_API_KEY",
        )
    )
    return specs


class QueryConfig(BaseModel):
    """Stage 1 (query analysis) settings.

    Attributes:
        model_preference: "auto" or a provider name tried first.
        provider_order: Fixed fallback order, most capable first.
        enable_grammar_correction: Repair trivial capitalization and duplicate words.
        enable_creative_reframing: Ask the provider for a reframed creative direction.
        enable_detailed_modifiers: Ask for the extended modifier set.
        fallback_on_failure: Try the remaining providers after the first fails.
        timeout_seconds: Per-call timeout for this stage.
    """

    model_config = {"protected_namespaces": ()}

    model_preference: str = AUTO
    provider_order: list[str] = Field(
        default_factory=lambda: [
            "llama31_405b",
            "llama31_70b",
            "qwen25_72b",
            "gemma2_27b",
            "mistral_7b",
        ]
    )
    enable_grammar_correction: bool = True
    enable_creative_reframing: bool = True
    enable_detailed_modifiers: bool = True
    fallback_on_failure: bool = True
    timeout_seconds: float = Field(default=60.0, gt=0.0, le=600.0)


class AssetsConfig(BaseModel):
    """Stage 2 (asset analysis) settings.

    Attributes:
        image_providers: Fallback order for image analysis.
        video_providers: Fallback order for video analysis.
        audio_providers: Fallback order for audio analysis.
        text_providers: Fallback order for text analysis.
        per_asset_timeout_seconds: Per-call timeout inside one asset analysis.
        stage_timeout_seconds: Caller-level timeout for the whole stage (fatal).
        max_concurrent: Upper bound on simultaneously running asset analyses.
        primary_candidate_quality: Quality score at or above which an asset is a primary candidate.
        primary_candidate_min_description: Minimum description length for a primary candidate.
    """

    image_providers: list[str] = Field(default_factory=lambda: ["gemini_flash", "gemini_pro"])
    video_providers: list[str] = Field(default_factory=lambda: ["gemini_pro", "gemini_flash"])
    audio_providers: list[str] = Field(default_factory=lambda: ["gemini_flash"])
    text_providers: list[str] = Field(
        default_factory=lambda: ["llama31_70b", "qwen25_72b", "gemini_flash"]
    )
    per_asset_timeout_seconds: float = Field(default=120.0, gt=0.0, le=900.0)
    stage_timeout_seconds: float = Field(default=600.0, gt=0.0, le=3600.0)
    max_concurrent: int = Field(default=5, ge=1, le=64)
    primary_candidate_quality: float = Field(default=6.0, ge=0.0, le=10.0)
    primary_candidate_min_description: int = Field(default=20, ge=0)

    def providers_for_kind(self, kind: str) -> list[str]:
        """Return the provider order configured for a media kind."""
        return list(getattr(self, f"{kind}_providers", []))


class SynthesisConfig(BaseModel):
    """Stage 3 (combination synthesis) settings."""

    model_config = {"protected_namespaces": ()}

    enable_ai_synthesis: bool = True
    model_preference: str = AUTO
    provider_order: list[str] = Field(
        default_factory=lambda: ["llama31_70b", "qwen25_72b", "gemini_flash"]
    )
    gap_analysis_depth: GapAnalysisDepth = GapAnalysisDepth.COMPREHENSIVE
    enable_contradiction_resolution: bool = True
    optimization_focus: OptimizationFocus = OptimizationFocus.BALANCED
    timeout_seconds: float = Field(default=45.0, gt=0.0, le=600.0)


class ScoringConfig(BaseModel):
    """Blend constants used when deriving confidences and scores.

    None of these are correctness invariants; they tune how confidences and
    scores are blended. Thresholds compare with the strict operator noted
    in each description.
    """

    primary_alignment_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Alignment strictly above this can be primary."
    )
    reference_alignment_threshold: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Alignment strictly above this can be reference."
    )
    supporting_alignment_threshold: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Alignment strictly above this can be supporting."
    )
    corroboration_boost: float = Field(
        default=0.1, ge=0.0, le=0.5, description="Confidence added when assets corroborate intent."
    )
    low_quality_threshold: float = Field(
        default=6.0, ge=0.0, le=10.0, description="Asset quality below this raises a quality gap."
    )
    completeness_critical_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    completeness_high_penalty: float = Field(default=0.15, ge=0.0, le=1.0)
    completeness_missing_penalty: float = Field(default=0.2, ge=0.0, le=1.0)
    completeness_floor: float = Field(default=0.1, ge=0.0, le=1.0)
    quality_weight_query: float = Field(default=3.0, ge=0.0)
    quality_weight_assets: float = Field(default=3.0, ge=0.0)
    quality_weight_synthesis: float = Field(default=2.0, ge=0.0)
    quality_weight_completeness: float = Field(default=2.0, ge=0.0)
    partial_confidence_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Overall confidence strictly below this is partial."
    )

    @model_validator(mode="after")
    def check_threshold_order(self) -> "ScoringConfig":
        if not (
            self.supporting_alignment_threshold
            <= self.reference_alignment_threshold
            <= self.primary_alignment_threshold
        ):
            raise ValueError("Alignment thresholds must satisfy supporting <= reference <= primary")
        weights = (
            self.quality_weight_query
            + self.quality_weight_assets
            + self.quality_weight_synthesis
            + self.quality_weight_completeness
        )
        if weights <= 0:
            raise ValueError("At least one quality weight must be positive")
        return self


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: str = Field(default="WARNING", description="Log level for the dreamcut logger.")
    log_file: Path | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Combines all configuration sections and supports loading from environment
    variables with the DREAMCUT_ prefix.

    Configuration priority (highest wins):
    1. Environment variables (DREAMCUT_*, nested with "__")
    2. Config file (YAML)
    3. In-code defaults

    Attributes:
        ai: Generation parameters shared by all provider calls.
        providers: Named provider catalog.
        query: Query analysis stage settings.
        assets: Asset analysis stage settings.
        synthesis: Combination synthesis stage settings.
        scoring: Blend constants for confidences and quality scores.
        logging: Logging output settings.
        debug: Enable debug mode.

    Example:
        >>> import os
        >>> os.environ["DREAMCUT_QUERY__MODEL_PREFERENCE"] = "qwen25_72b"
        >>> AppConfig().query.model_preference
        'qwen25_72b'
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    providers: list[ProviderSpec] = Field(default_factory=_default_providers)
    query: QueryConfig = Field(default_factory=QueryConfig)
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")

    model_config = {
        "env_prefix": "DREAMCUT_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; the environment overrides them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @model_validator(mode="after")
    def check_provider_names(self) -> "AppConfig":
        seen: set[str] = set()
        for spec in self.providers:
            if spec.name in seen:
                raise ValueError(f"Duplicate provider name: {spec.name}")
            seen.add(spec.name)
        return self

    def provider_names(self) -> list[str]:
        """Names of every configured provider, in catalog order."""
        return [spec.name for spec in self.providers]

    def get_provider_spec(self, name: str) -> ProviderSpec | None:
        """Look up a catalog entry by name."""
        for spec in self.providers:
            if spec.name == name:
                return spec
        return None

    def providers_for(self, order: list[str]) -> list[str]:
        """Filter a stage order down to providers that exist in the catalog.

        Unknown names are logged and skipped.
        """
        known = set(self.provider_names())
        resolved = []
        for name in order:
            if name in known:
                resolved.append(name)
            else:
                logger.warning(f"Provider '{name}' is not in the catalog; skipping")
        return resolved


# =============================================================================
# Module-Level Functions
# =============================================================================


ENUM_FIELDS: dict[tuple[str, str], type[Enum]] = {
    ("synthesis", "gap_analysis_depth"): GapAnalysisDepth,
    ("synthesis", "optimization_focus"): OptimizationFocus,
}


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Cannot read config file {config_file}: {e}") from e

    if not content.strip():
        return {}

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        return {}

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        return {}
    return loaded


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only (not an error).
    If the config file is malformed, logs a warning and uses defaults.
    Invalid enum values are dropped with a warning.

    Args:
        path: Optional path to config file. If None, searches default locations.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If the config file exists but cannot be read.

    Example:
        >>> config = load_config()
        >>> config = load_config(Path("./dreamcut.yaml"))
    """
    search_paths = [
        path,
        Path("./dreamcut.yaml"),
        Path("./dreamcut.yml"),
        Path.home() / ".dreamcut" / "config.yaml",
    ]

    config_file: Path | None = None
    for search_path in search_paths:
        if search_path is not None and search_path.exists():
            config_file = search_path
            break

    config_data: dict[str, Any] = {}
    if config_file is not None:
        config_data = _read_config_file(config_file)
        logger.debug(f"Loaded config file {config_file}")

    for (section, key), enum_cls in ENUM_FIELDS.items():
        section_data = config_data.get(section)
        if isinstance(section_data, dict) and isinstance(section_data.get(key), str):
            try:
                section_data[key] = enum_cls(section_data[key].lower())
            except ValueError:
                logger.warning(f"Invalid {section}.{key} value: {section_data[key]}. Using default.")
                del section_data[key]

    try:
        return AppConfig(**config_data)
    except ValueError as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return AppConfig()


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton.

    Only the CLI and the ``run_pipeline`` convenience helper call this;
    stages receive their configuration section explicitly.
    """
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache for testing."""
    get_config.cache_clear()
