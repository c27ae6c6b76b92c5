"""Closed enumerations of the unified data model."""

from enum import Enum


class Severity(str, Enum):
    """Normalized severity levels shared by every tool."""

    CRITICAL = "critical"  # Blocker/critical security issues
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Ordering where CRITICAL is highest (4) and INFO lowest (0)."""
        return _SEVERITY_RANK[self]

    def at_least(self, other: "Severity") -> bool:
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class AnalysisType(str, Enum):
    """Kind of signal an issue carries; used for filtering and clustering."""

    # Core analysis types
    QUALITY = "quality"
    SECURITY = "security"
    PERFORMANCE = "performance"
    STYLE = "style"
    COMPLEXITY = "complexity"
    SEMANTIC = "semantic"
    AI_POWERED = "ai_powered"

    # Workflow integration types
    APM_PERFORMANCE = "apm_performance"
    DEPENDENCY_SECURITY = "dependency_security"
    DEPENDENCY_LICENSING = "dependency_licensing"
    DEPENDENCY_USAGE = "dependency_usage"
    ARCHITECTURE_DESIGN = "architecture_design"
    ARCHITECTURE_DEBT = "architecture_debt"
    BUNDLE_OPTIMIZATION = "bundle_optimization"
    LIGHTHOUSE_AUDIT = "lighthouse_audit"


class EntityType(str, Enum):
    FILE = "file"
    DEPENDENCY = "dependency"
    APPLICATION = "application"
    PROJECT = "project"
    SYSTEM = "system"

    @property
    def specificity(self) -> int:
        """Registry precedence: project > application > file > dependency > system."""
        return _ENTITY_SPECIFICITY[self]


_ENTITY_SPECIFICITY = {
    EntityType.PROJECT: 4,
    EntityType.APPLICATION: 3,
    EntityType.FILE: 2,
    EntityType.DEPENDENCY: 1,
    EntityType.SYSTEM: 0,
}


class CorrelationStrength(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class AdapterOutcome(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"
