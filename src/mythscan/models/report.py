"""Analysis report data models."""

from typing import Dict, List, Optional
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from mythscan.models.analysis import AnalysisStatus, CanonicalIssue, Severity


class AnalysisReport(BaseModel):
    """Outcome of one pipeline run."""

    id: UUID = Field(default_factory=uuid4)
    entry_file: str
    contract_name: str
    compiler_version: str
    analysis_uuid: Optional[str] = None
    status: AnalysisStatus = AnalysisStatus.SUCCEEDED
    issues: List[CanonicalIssue] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def duration(self) -> Optional[timedelta]:
        """Calculate total analysis duration."""
        if self.completed_at:
            return self.completed_at - self.started_at
        return None

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def count_by_severity(self) -> Dict[Severity, int]:
        counts: Dict[Severity, int] = {}
        for issue in self.issues:
            counts[issue.severity] = counts.get(issue.severity, 0) + 1
        return counts
