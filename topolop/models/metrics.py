"""Per-file metrics aggregated from all tools."""

from typing import Any

from pydantic import Field

from ..constants import HOTSPOT_MAX, SEVERITY_WEIGHTS, TOOL_COVERAGE_BONUS
from .base import CamelModel
from .enums import AnalysisType, Severity
from .issue import Issue


def _empty_severity_distribution() -> dict[str, int]:
    return {severity.value: 0 for severity in Severity}


def _empty_type_distribution() -> dict[str, int]:
    return {analysis_type.value: 0 for analysis_type in AnalysisType}


def hotspot_score(severity_distribution: dict[str, int], tool_count: int) -> float:
    """Severity-weighted issue count plus a corroboration bonus, capped at 100."""
    weighted = sum(
        count * SEVERITY_WEIGHTS[severity] for severity, count in severity_distribution.items()
    )
    return float(min(HOTSPOT_MAX, weighted + TOOL_COVERAGE_BONUS * tool_count))


class FileMetrics(CamelModel):
    """Aggregate view of every issue reported against one canonical path.

    Only the ingestion path mutates these records; they are frozen (copied)
    when the report is emitted.
    """

    canonical_path: str
    entity_id: str
    issue_count: int = 0
    severity_distribution: dict[str, int] = Field(default_factory=_empty_severity_distribution)
    analysis_type_distribution: dict[str, int] = Field(default_factory=_empty_type_distribution)
    tool_coverage: list[str] = Field(default_factory=list)
    hotspot_score: float = 0.0
    last_updated: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    def add_issue(self, issue: Issue, timestamp: str) -> None:
        self.issue_count += 1
        self.severity_distribution[issue.severity.value] += 1
        self.analysis_type_distribution[issue.analysis_type.value] += 1
        if issue.tool_name not in self.tool_coverage:
            self.tool_coverage.append(issue.tool_name)
            self.tool_coverage.sort()
        self.last_updated = timestamp
        self._update_hotspot_score()

    def replace_issue(self, old: Issue, new: Issue, timestamp: str) -> None:
        """Swap one counted issue for another from the same tool."""
        self.severity_distribution[old.severity.value] -= 1
        self.analysis_type_distribution[old.analysis_type.value] -= 1
        self.severity_distribution[new.severity.value] += 1
        self.analysis_type_distribution[new.analysis_type.value] += 1
        self.last_updated = timestamp
        self._update_hotspot_score()

    def _update_hotspot_score(self) -> None:
        self.hotspot_score = hotspot_score(self.severity_distribution, len(self.tool_coverage))

    def count_at_least(self, severity: Severity) -> int:
        return sum(
            self.severity_distribution[s.value] for s in Severity if s.at_least(severity)
        )
