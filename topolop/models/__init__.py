"""Unified data model shared by adapters, correlation and visualization."""

from .adapter import AdapterDescriptor, AdapterRecord, ProbeResult, Rejection
from .entity import Entity, entity_id_for
from .enums import (
    AdapterOutcome,
    AnalysisType,
    CorrelationStrength,
    EntityType,
    Severity,
)
from .issue import (
    AnyIssue,
    ArchitectureInfo,
    ArchitectureIssue,
    CodeIssue,
    DependencyInfo,
    DependencyIssue,
    Issue,
    PerformanceIssue,
    PerformanceMetrics,
    variant_for,
)
from .metrics import FileMetrics, hotspot_score
from .report import CorrelationGroup, UnifiedReport

__all__ = [
    # Enums
    "Severity",
    "AnalysisType",
    "EntityType",
    "CorrelationStrength",
    "AdapterOutcome",
    # Entities and issues
    "Entity",
    "entity_id_for",
    "Issue",
    "AnyIssue",
    "CodeIssue",
    "PerformanceIssue",
    "PerformanceMetrics",
    "DependencyIssue",
    "DependencyInfo",
    "ArchitectureIssue",
    "ArchitectureInfo",
    "variant_for",
    # Metrics and report
    "FileMetrics",
    "hotspot_score",
    "CorrelationGroup",
    "UnifiedReport",
    # Adapters
    "AdapterDescriptor",
    "AdapterRecord",
    "ProbeResult",
    "Rejection",
]
