"""Correlation groups and the unified report."""

from pydantic import Field

from ..constants import SCHEMA_VERSION
from .adapter import AdapterRecord
from .base import FrozenModel
from .entity import Entity
from .enums import CorrelationStrength, Severity
from .issue import AnyIssue
from .metrics import FileMetrics


class CorrelationGroup(FrozenModel):
    """Issues from two or more tools judged to describe the same phenomenon.

    Attributes:
        id: Derived from the canonical path and the sorted member ids
        key: Canonical path plus the shared pattern set (or line span when
            the group is purely colocated)
        canonical_path: File all members belong to
        members: Member issue ids, sorted
        tools: Distinct tools among the members, sorted
        strength: Strongest link inside the group
        patterns: Union of the cross-tool patterns shared by linked members
    """

    id: str
    key: str
    canonical_path: str
    members: tuple[str, ...]
    tools: tuple[str, ...]
    strength: CorrelationStrength
    patterns: tuple[str, ...] = ()


class UnifiedReport(FrozenModel):
    """Entities, issues, per-file metrics and correlations for one run."""

    schema_version: str = SCHEMA_VERSION
    run_id: str
    started_at: str
    finished_at: str
    project_root: str
    entities: list[Entity] = Field(default_factory=list)
    issues: list[AnyIssue] = Field(default_factory=list)
    metrics: dict[str, FileMetrics] = Field(default_factory=dict)
    correlations: list[CorrelationGroup] = Field(default_factory=list)
    adapters: dict[str, AdapterRecord] = Field(default_factory=dict)

    def issues_at_least(self, threshold: Severity) -> list:
        return [issue for issue in self.issues if issue.severity.at_least(threshold)]

    def entity(self, entity_id: str) -> Entity | None:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None
