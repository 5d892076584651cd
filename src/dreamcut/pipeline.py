"""Four-stage analysis pipeline.

Runs the stages strictly in order, each on the validated output of the one
before it:

1. Query analysis      (fatal when every provider fails)
2. Asset analysis      (per-asset failures are recorded, stage timeout is fatal)
3. Combination synthesis
4. Output assembly

Callers receive either a validated ``FinalAnalysisOutput`` wrapped in a
``PipelineResult`` or a single ``PipelineError`` naming the failing stage.

Example:
    >>> from dreamcut.pipeline import AnalysisPipeline
    >>> pipeline = AnalysisPipeline(config)
    >>> result = pipeline.run_sync(
    ...     "turn this into a highlight reel",
    ...     [{"id": "clip", "source": "match.mp4", "kind": "video"}],
    ... )
    >>> print(result.output.analysis_metadata.completion_status)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from dreamcut.ai.asset_analyzer import AssetAnalysisOptions, AssetAnalyzer, AssetStageError
from dreamcut.ai.assembler import OutputAssembler
from dreamcut.ai.chain import FallbackChain
from dreamcut.ai.client import GenerationOptions, ProviderRegistry, build_registry
from dreamcut.ai.query_analyzer import QueryAnalysisError, QueryAnalysisOptions, QueryAnalyzer
from dreamcut.ai.synthesizer import CombinationSynthesizer, SynthesisOptions
from dreamcut.config import AppConfig, get_config
from dreamcut.core.models import InputValidationError, MediaKind, OutputType, validate_inputs
from dreamcut.core.report import FinalAnalysisOutput
from dreamcut.core.validation import SchemaValidationError
from dreamcut.utils.logging import LogContext

logger = logging.getLogger(__name__)

STAGES = ("input", "query_analysis", "asset_analysis", "synthesis", "assembly")

# Progress percentage reported when each stage starts.
STAGE_PROGRESS = {
    "query_analysis": 0.0,
    "asset_analysis": 25.0,
    "synthesis": 60.0,
    "assembly": 85.0,
}


# =============================================================================
# Results and Errors
# =============================================================================


class PipelineError(Exception):
    """Fatal pipeline failure.

    Attributes:
        message: Human-readable description.
        stage: One of "input", "query_analysis", "asset_analysis",
            "synthesis" or "assembly".
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, stage: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Structured form of the error, suitable for JSON output."""
        data: dict[str, Any] = {
            "error": self.message,
            "stage": self.stage,
            "cause_type": type(self.cause).__name__ if self.cause is not None else None,
        }
        cause = self.cause
        if isinstance(cause, SchemaValidationError):
            data["validation"] = cause.to_dict()
        elif isinstance(cause, QueryAnalysisError):
            data["last_provider"] = cause.last_provider
            if cause.cause is not None:
                data["root_cause"] = f"{type(cause.cause).__name__}: {cause.cause}"
        elif isinstance(cause, InputValidationError):
            data["field"] = cause.field
        return data

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


@dataclass
class PipelineProgress:
    """Progress update passed to a run's callback.

    Example:
        >>> def on_progress(progress: PipelineProgress):
        ...     print(progress.to_status_line())
    """

    stage: str
    percent: float
    message: str = ""
    elapsed_seconds: float = 0.0

    def to_status_line(self) -> str:
        return f"[{self.percent:3.0f}%] {self.stage}: {self.message} ({self.elapsed_seconds:.1f}s)"


@dataclass
class PipelineResult:
    """A completed run.

    Attributes:
        output: The validated final document.
        stage_timings: Elapsed milliseconds per stage.
        warnings: Warning messages carried in the document's notes.
    """

    output: FinalAnalysisOutput
    stage_timings: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_summary(self) -> dict[str, Any]:
        """Compact overview of the run."""
        metadata = self.output.analysis_metadata
        understanding = self.output.global_understanding
        return {
            "analysis_id": metadata.analysis_id,
            "completion_status": metadata.completion_status.value,
            "confidence": metadata.analyzer_confidence,
            "quality_score": metadata.quality_score,
            "primary_output": self.output.query_summary.parsed_intent.primary_output.value,
            "project_title": understanding.project_overview.title,
            "total_assets": self.output.assets_analysis.total_assets,
            "critical_gaps": metadata.critical_gap_count,
            "warnings": len(self.warnings),
            "stage_timings_ms": dict(self.stage_timings),
        }

    def to_json(self, indent: int = 2) -> str:
        """The final document as JSON with sorted keys."""
        return json.dumps(
            self.output.model_dump(mode="json"), indent=indent, sort_keys=True, ensure_ascii=False
        )


# =============================================================================
# Pipeline
# =============================================================================


class AnalysisPipeline:
    """Orchestrates the four stages for one request at a time.

    The pipeline holds no per-request state, so one instance can serve many
    runs. Clock, id factory and timer are injectable; with a static provider
    and fixed values for all three, repeated runs give byte-identical output.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        registry: ProviderRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config or AppConfig()
        self.registry = registry if registry is not None else build_registry(self.config)
        self._clock = clock
        self._id_factory = id_factory
        self._timer = timer
        self._generation = GenerationOptions.from_config(self.config.ai)
        self._logger = logging.getLogger(f"{__name__}.AnalysisPipeline")

    # -------------------------------------------------------------------------
    # Stage construction
    # -------------------------------------------------------------------------

    def chain_for(self, order: list[str], timeout_seconds: float) -> FallbackChain:
        """Build a fallback chain over the registered providers named in ``order``."""
        return FallbackChain(
            self.registry.resolve(order),
            timeout_seconds=timeout_seconds,
            max_retries=self.config.ai.max_retries,
            retry_base_delay=self.config.ai.retry_base_delay,
            timer=self._timer,
        )

    def build_query_analyzer(self, selected_output_type: OutputType | None = None) -> QueryAnalyzer:
        query_config = self.config.query
        return QueryAnalyzer(
            self.chain_for(query_config.provider_order, query_config.timeout_seconds),
            QueryAnalysisOptions.from_config(query_config, selected_output_type),
            self._generation,
            clock=self._clock,
            timer=self._timer,
        )

    def build_asset_analyzer(self) -> AssetAnalyzer:
        assets_config = self.config.assets
        chains = {
            kind: self.chain_for(
                assets_config.providers_for_kind(kind.value),
                assets_config.per_asset_timeout_seconds,
            )
            for kind in MediaKind
        }
        return AssetAnalyzer(
            chains,
            AssetAnalysisOptions.from_config(
                assets_config,
                low_quality_threshold=self.config.scoring.low_quality_threshold,
                scoring=self.config.scoring,
            ),
            self._generation,
            timer=self._timer,
        )

    def build_synthesizer(self) -> CombinationSynthesizer:
        synthesis_config = self.config.synthesis
        chain = None
        if synthesis_config.enable_ai_synthesis:
            chain = self.chain_for(synthesis_config.provider_order, synthesis_config.timeout_seconds)
        return CombinationSynthesizer(
            chain,
            SynthesisOptions.from_config(synthesis_config),
            self.config.scoring,
            self._generation,
            id_factory=self._id_factory,
            timer=self._timer,
        )

    def build_assembler(self) -> OutputAssembler:
        return OutputAssembler(
            self.config.scoring,
            self.config.synthesis.gap_analysis_depth,
            clock=self._clock,
            id_factory=self._id_factory,
            timer=self._timer,
        )

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    async def run(
        self,
        query: str,
        assets: Sequence[Any] | None = None,
        progress_callback: Callable[[PipelineProgress], None] | None = None,
        selected_output_type: OutputType | None = None,
    ) -> PipelineResult:
        """Run all four stages.

        Args:
            query: Free-form request text.
            assets: Asset descriptors (mappings or MediaAsset instances).
            progress_callback: Called when each stage starts and when the run ends.
            selected_output_type: Medium chosen by the caller; overrides the inferred intent.

        Returns:
            PipelineResult holding the validated final document.

        Raises:
            PipelineError: On invalid input or any fatal stage failure.
        """
        run_start = self._timer()

        def report(stage: str, percent: float, message: str) -> None:
            if progress_callback is None:
                return
            progress_callback(
                PipelineProgress(
                    stage=stage,
                    percent=percent,
                    message=message,
                    elapsed_seconds=max(0.0, self._timer() - run_start),
                )
            )

        try:
            text, media_assets = validate_inputs(query, assets)
        except InputValidationError as e:
            raise PipelineError(str(e), "input", e) from e

        timings: dict[str, int] = {}

        report("query_analysis", STAGE_PROGRESS["query_analysis"], "Analyzing request")
        start = self._timer()
        try:
            with LogContext("Query analysis", logger=self._logger):
                outcome = await self.build_query_analyzer(selected_output_type).analyze(text)
        except QueryAnalysisError as e:
            raise PipelineError(f"Query analysis failed: {e}", "query_analysis", e) from e
        except SchemaValidationError as e:
            raise PipelineError(str(e), e.stage, e) from e
        timings["query_analysis"] = self._elapsed_ms(start)

        report(
            "asset_analysis",
            STAGE_PROGRESS["asset_analysis"],
            f"Analyzing {len(media_assets)} asset(s)",
        )
        start = self._timer()
        try:
            with LogContext("Asset analysis", logger=self._logger):
                asset_result = await self.build_asset_analyzer().analyze(
                    media_assets, outcome.analysis
                )
        except AssetStageError as e:
            raise PipelineError(f"Asset analysis failed: {e}", "asset_analysis", e) from e
        except SchemaValidationError as e:
            raise PipelineError(str(e), e.stage, e) from e
        timings["asset_analysis"] = self._elapsed_ms(start)

        report("synthesis", STAGE_PROGRESS["synthesis"], "Synthesizing project understanding")
        start = self._timer()
        try:
            with LogContext("Combination synthesis", logger=self._logger):
                project = await self.build_synthesizer().synthesize(outcome.analysis, asset_result)
        except SchemaValidationError as e:
            raise PipelineError(str(e), e.stage, e) from e
        timings["synthesis"] = self._elapsed_ms(start)

        report("assembly", STAGE_PROGRESS["assembly"], "Assembling final document")
        try:
            with LogContext("Output assembly", logger=self._logger):
                output = self.build_assembler().assemble(outcome, asset_result, project, timings)
        except SchemaValidationError as e:
            raise PipelineError(str(e), e.stage, e) from e

        timings["assembly"] = next(
            usage.processing_time_ms
            for usage in output.processing_insights.model_usage_summary
            if usage.stage == "assembly"
        )
        warnings = [
            note.message
            for note in output.processing_insights.warnings_and_notes
            if note.note_type == "warning"
        ]
        report(
            "complete",
            100.0,
            f"{output.analysis_metadata.completion_status.value} "
            f"(quality {output.analysis_metadata.quality_score}/10)",
        )
        return PipelineResult(output=output, stage_timings=timings, warnings=warnings)

    def run_sync(
        self,
        query: str,
        assets: Sequence[Any] | None = None,
        progress_callback: Callable[[PipelineProgress], None] | None = None,
        selected_output_type: OutputType | None = None,
    ) -> PipelineResult:
        """Blocking wrapper around ``run``."""
        return asyncio.run(self.run(query, assets, progress_callback, selected_output_type))

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._timer() - start) * 1000))


def run_pipeline(
    query: str,
    assets: Sequence[Any] | None = None,
    config: AppConfig | None = None,
    registry: ProviderRegistry | None = None,
    progress_callback: Callable[[PipelineProgress], None] | None = None,
    selected_output_type: OutputType | None = None,
) -> PipelineResult:
    """Convenience function to run the pipeline once.

    Uses the cached application configuration when none is given.

    Example:
        >>> result = run_pipeline("make a 30s product teaser, 16:9, energetic mood")
        >>> result.to_summary()["primary_output"]
        'video'
    """
    pipeline = AnalysisPipeline(config or get_config(), registry)
    return pipeline.run_sync(query, assets, progress_callback, selected_output_type)
