"""Analysis request, result and issue models."""

from typing import Dict, List, Optional, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mythscan.config.settings import AnalysisMode
from mythscan.models.contract import CompiledArtifact


class CachePolicy(str, Enum):
    """Whether MythX may answer from its result cache."""

    ALLOW = "allow"
    BYPASS = "bypass"


class Severity(str, Enum):
    """Issue severity levels reported by MythX."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Severity":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class AnalysisStatus(str, Enum):
    """Lifecycle of a submitted analysis job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.SUCCEEDED, AnalysisStatus.FAILED, AnalysisStatus.TIMED_OUT)


# MythX job status strings
SERVICE_STATUSES = {
    "queued": AnalysisStatus.QUEUED,
    "in progress": AnalysisStatus.RUNNING,
    "running": AnalysisStatus.RUNNING,
    "finished": AnalysisStatus.SUCCEEDED,
    "error": AnalysisStatus.FAILED,
}


class AnalysisRequest(BaseModel):
    """Everything submitted to the analysis service for one run."""

    model_config = ConfigDict(frozen=True)

    artifact: CompiledArtifact
    source_list: List[str]
    sources: Dict[str, str] = Field(default_factory=dict, description="Logical path -> content")
    main_source: str
    mode: AnalysisMode = AnalysisMode.QUICK
    tool_name: str
    cache_policy: CachePolicy = CachePolicy.ALLOW

    def to_payload(self) -> Dict[str, Any]:
        """Request document in the MythX `POST /v1/analyses` shape."""
        return {
            "clientToolName": self.tool_name,
            "noCacheLookup": self.cache_policy == CachePolicy.BYPASS,
            "data": {
                "contractName": self.artifact.contract_name,
                "bytecode": self.artifact.bytecode,
                "sourceMap": self.artifact.source_map,
                "deployedBytecode": self.artifact.deployed_bytecode,
                "deployedSourceMap": self.artifact.deployed_source_map,
                "sourceList": list(self.source_list),
                "sources": {path: {"content": content} for path, content in self.sources.items()},
                "mainSource": self.main_source,
                "analysisMode": self.mode.value,
            },
        }


class RawIssue(BaseModel):
    """A finding as returned by the service."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity = Severity.UNKNOWN
    location_ref: Optional[str] = Field(default=None, description="Opaque source map pointer")
    message: str = ""
    title: str = ""

    @classmethod
    def from_mythx(cls, issue: Dict[str, Any]) -> "RawIssue":
        """Build from one entry of a MythX `issues` array."""
        description = issue.get("description") or {}
        if isinstance(description, dict):
            head = (description.get("head") or "").strip()
            tail = (description.get("tail") or "").strip()
            message = f"{head} {tail}".strip()
        else:
            message = str(description)

        location_ref = None
        for location in issue.get("locations") or []:
            if isinstance(location, dict) and location.get("sourceMap"):
                location_ref = str(location["sourceMap"])
                break

        return cls(
            rule_id=issue.get("swcID") or issue.get("swcId") or "",
            severity=Severity.parse(issue.get("severity")),
            location_ref=location_ref,
            message=message,
            title=issue.get("swcTitle") or "",
        )


class AnalysisResult(BaseModel):
    """State of a submitted job; `status` advances while the client polls."""

    uuid: Optional[str] = None
    status: AnalysisStatus = AnalysisStatus.QUEUED
    issues: List[RawIssue] = Field(default_factory=list)
    error: Optional[str] = None
    raw_response: Any = None


class CanonicalIssue(BaseModel):
    """A deduplicated finding resolved to a concrete source position."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    file_path: str
    line: int = Field(ge=0, description="1-based; 0 when the location could not be resolved")
    column: int = Field(ge=0, description="0-based")
    message: str
    title: str = ""

    @property
    def key(self):
        return (self.rule_id, self.file_path, self.line, self.column)

    @property
    def is_located(self) -> bool:
        return self.line > 0
