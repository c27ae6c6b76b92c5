"""Unified issue representation.

Every adapter's output ends up as one of the closed set of issue variants
below. The variant is chosen from the analysis type; each variant has a
fixed schema plus an open ``metadata`` map for adapter-specific extras.
Issues are frozen once constructed.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import Field, field_validator, model_validator

from ..constants import DEFAULT_LINE_THRESHOLD
from .base import FrozenModel
from .enums import AnalysisType, Severity


class Issue(FrozenModel):
    """Fields shared by every issue variant.

    Issues reference their entity by id; the report owns the entities.
    ``canonical_path`` is carried alongside so location checks never need
    the entity table.
    """

    ANALYSIS_TYPES: ClassVar[frozenset[AnalysisType]] = frozenset()

    id: str
    entity_id: str
    canonical_path: str
    severity: Severity
    analysis_type: AnalysisType
    title: str
    description: str = ""
    rule_id: str
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    tool_name: str
    cross_tool_patterns: tuple[str, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @field_validator("cross_tool_patterns", mode="before")
    @classmethod
    def _sorted_patterns(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(sorted({str(p) for p in value if p}))

    @model_validator(mode="after")
    def _analysis_type_matches_variant(self) -> Issue:
        if self.ANALYSIS_TYPES and self.analysis_type not in self.ANALYSIS_TYPES:
            raise ValueError(
                f"{type(self).__name__} cannot carry analysis type {self.analysis_type.value}"
            )
        return self

    def is_nearby(self, other: Issue, line_threshold: int = DEFAULT_LINE_THRESHOLD) -> bool:
        """True iff both issues are in the same file within line_threshold lines."""
        if self.canonical_path != other.canonical_path:
            return False
        if self.line is None or other.line is None:
            return False
        return abs(self.line - other.line) <= line_threshold

    def location_fingerprint(self) -> str:
        return f"{self.canonical_path}:{self.line or 0}:{self.column or 0}"

    def dedup_key(self) -> tuple[str, str, int, int, str]:
        """Identity used to collapse repeats from one tool."""
        return (
            self.tool_name,
            self.canonical_path,
            self.line or 0,
            self.column or 0,
            self.rule_id,
        )

    def shared_patterns(self, other: Issue) -> set[str]:
        return set(self.cross_tool_patterns) & set(other.cross_tool_patterns)


class CodeIssue(Issue):
    """Static analysis finding on source code."""

    ANALYSIS_TYPES: ClassVar[frozenset[AnalysisType]] = frozenset({
        AnalysisType.QUALITY,
        AnalysisType.SECURITY,
        AnalysisType.PERFORMANCE,
        AnalysisType.STYLE,
        AnalysisType.COMPLEXITY,
        AnalysisType.SEMANTIC,
        AnalysisType.AI_POWERED,
    })

    variant: Literal["code"] = "code"


class PerformanceMetrics(FrozenModel):
    response_time_ms: float | None = None
    error_rate: float | None = None
    throughput: float | None = None
    apdex: float | None = None
    memory_mb: float | None = None
    cpu_percent: float | None = None
    trace_id: str | None = None
    last_seen: str | None = None


class PerformanceIssue(Issue):
    """Runtime or delivery performance signal (APM, bundles, Lighthouse)."""

    ANALYSIS_TYPES: ClassVar[frozenset[AnalysisType]] = frozenset({
        AnalysisType.APM_PERFORMANCE,
        AnalysisType.BUNDLE_OPTIMIZATION,
        AnalysisType.LIGHTHOUSE_AUDIT,
    })

    variant: Literal["performance"] = "performance"
    performance_metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)


class DependencyInfo(FrozenModel):
    package_name: str
    version: str | None = None
    ecosystem: str | None = None
    dependency_type: Literal["direct", "transitive", "dev", "peer"] = "direct"
    advisory_ids: tuple[str, ...] = ()
    fixed_versions: tuple[str, ...] = ()
    licenses: tuple[str, ...] = ()


class DependencyIssue(Issue):
    """Supply-chain finding: vulnerable, unlicensed or unused dependency."""

    ANALYSIS_TYPES: ClassVar[frozenset[AnalysisType]] = frozenset({
        AnalysisType.DEPENDENCY_SECURITY,
        AnalysisType.DEPENDENCY_LICENSING,
        AnalysisType.DEPENDENCY_USAGE,
    })

    variant: Literal["dependency"] = "dependency"
    dependency_info: DependencyInfo


class ArchitectureInfo(FrozenModel):
    component_type: Literal["module", "class", "function", "interface", "package"] = "module"
    coupling: int | None = None
    cycle_members: tuple[str, ...] = ()


class ArchitectureIssue(Issue):
    """Design-level finding such as a dependency cycle or god module."""

    ANALYSIS_TYPES: ClassVar[frozenset[AnalysisType]] = frozenset({
        AnalysisType.ARCHITECTURE_DESIGN,
        AnalysisType.ARCHITECTURE_DEBT,
    })

    variant: Literal["architecture"] = "architecture"
    architecture_info: ArchitectureInfo = Field(default_factory=ArchitectureInfo)


AnyIssue = Annotated[
    Union[CodeIssue, PerformanceIssue, DependencyIssue, ArchitectureIssue],
    Field(discriminator="variant"),
]

ISSUE_VARIANTS: tuple[type[Issue], ...] = (
    CodeIssue,
    PerformanceIssue,
    DependencyIssue,
    ArchitectureIssue,
)


def variant_for(analysis_type: AnalysisType) -> type[Issue]:
    """Return the issue class that carries the given analysis type."""
    for variant in ISSUE_VARIANTS:
        if analysis_type in variant.ANALYSIS_TYPES:
            return variant
    raise ValueError(f"No issue variant for analysis type {analysis_type!r}")
