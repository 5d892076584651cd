"""Core schemas and the validation boundary for DreamCut Analyzer."""

from dreamcut.core.models import (
    AnalysisStatus,
    AssetAnalysis,
    AssetAnalysisResult,
    AssetAnalysisSummary,
    ImpactLevel,
    InputValidationError,
    MediaAsset,
    MediaKind,
    OutputType,
    ProjectRole,
    QueryAnalysis,
    validate_inputs,
)
from dreamcut.core.project import AssetUtilizationPlan, UnifiedProjectUnderstanding
from dreamcut.core.report import CompletionStatus, FinalAnalysisOutput
from dreamcut.core.validation import SchemaValidationError, validate_stage

__all__ = [
    "AnalysisStatus",
    "AssetAnalysis",
    "AssetAnalysisResult",
    "AssetAnalysisSummary",
    "AssetUtilizationPlan",
    "CompletionStatus",
    "FinalAnalysisOutput",
    "ImpactLevel",
    "InputValidationError",
    "MediaAsset",
    "MediaKind",
    "OutputType",
    "ProjectRole",
    "QueryAnalysis",
    "SchemaValidationError",
    "UnifiedProjectUnderstanding",
    "validate_inputs",
    "validate_stage",
]
