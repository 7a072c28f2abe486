"""Issue normalization and report rendering."""

from mythscan.report.formatters import format_issues
from mythscan.report.normalizer import IssueNormalizer

__all__ = ["IssueNormalizer", "format_issues"]
