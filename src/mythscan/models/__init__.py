"""Data models for MythScan."""

from mythscan.models.contract import SourceUnit, CompilerRelease, CompiledArtifact
from mythscan.models.analysis import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisStatus,
    CachePolicy,
    CanonicalIssue,
    RawIssue,
    Severity,
)
from mythscan.models.report import AnalysisReport

__all__ = [
    "SourceUnit",
    "CompilerRelease",
    "CompiledArtifact",
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisStatus",
    "CachePolicy",
    "CanonicalIssue",
    "RawIssue",
    "Severity",
    "AnalysisReport",
]
