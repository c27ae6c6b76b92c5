"""Unified issue constructor.

Adapters hand over loosely typed IssueDraft objects; IssueBuilder checks
every invariant up front and returns a frozen issue of the right variant,
or raises InvalidIssueError listing each violated field.
"""

import hashlib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..constants import KEY_HEX_LENGTH
from ..models.entity import Entity
from ..models.enums import AnalysisType, Severity
from ..models.issue import (
    ArchitectureInfo,
    ArchitectureIssue,
    DependencyInfo,
    DependencyIssue,
    Issue,
    PerformanceIssue,
    PerformanceMetrics,
    variant_for,
)
from .exceptions import InvalidIssueError
from .severity import SeverityMapper


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IssueDraft:
    """Adapter-side issue before validation."""

    entity: Entity | None
    title: str
    rule_id: str
    severity: Severity | str | None
    analysis_type: AnalysisType | str
    tool_name: str = ""
    description: str = ""
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    id: str | None = None
    entity_error: str | None = None
    cross_tool_patterns: set[str] = field(default_factory=set)
    metadata: dict[str, Any] = field(default_factory=dict)
    performance_metrics: PerformanceMetrics | dict[str, Any] | None = None
    dependency_info: DependencyInfo | dict[str, Any] | None = None
    architecture_info: ArchitectureInfo | dict[str, Any] | None = None


def derive_issue_id(tool_name: str, rule_id: str, fingerprint: str) -> str:
    digest = hashlib.sha256(f"{tool_name}|{rule_id}|{fingerprint}".encode()).hexdigest()
    return digest[:KEY_HEX_LENGTH]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class IssueBuilder:
    """Validates drafts and freezes them into issues."""

    def __init__(
        self,
        severity_mapper: SeverityMapper,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.severity_mapper = severity_mapper
        self.clock = clock

    def _check_location(self, draft: IssueDraft, reasons: list[tuple[str, str]], metadata: dict[str, Any]) -> tuple[int | None, int | None, int | None, int | None]:
        line, column = draft.line, draft.column
        end_line, end_column = draft.end_line, draft.end_column

        for name, value in (("line", line), ("column", column), ("end_line", end_line), ("end_column", end_column)):
            if value is not None and not _is_int(value):
                reasons.append((name, f"must be an integer, got {type(value).__name__}"))
        if reasons:
            return None, None, None, None

        if line is None:
            if column is not None:
                reasons.append(("column", "column given without line"))
            if end_line is not None:
                reasons.append(("end_line", "end_line given without line"))
            return None, None, None, None

        if column is None:
            column = 1
            metadata["columnInferred"] = True

        if line < 1:
            reasons.append(("line", "must be >= 1"))
        if column < 1:
            reasons.append(("column", "must be >= 1"))
        if end_line is not None and end_line < line:
            reasons.append(("end_line", "must be >= line"))
        if end_column is not None and end_column < 1:
            reasons.append(("end_column", "must be >= 1"))
        if end_column is not None and end_line is None:
            end_line = line
        if end_line == line and end_column is not None and end_column < column:
            reasons.append(("end_column", "must be >= column on a single-line range"))

        return line, column, end_line, end_column

    def build(self, draft: IssueDraft) -> Issue:
        """Validate a draft and return the frozen issue.

        Raises:
            InvalidIssueError: With one (field, message) pair per violation
        """
        reasons: list[tuple[str, str]] = []
        metadata = dict(draft.metadata)

        entity = draft.entity
        if entity is None:
            reasons.append(("entity", draft.entity_error or "missing"))
        elif not entity.canonical_path:
            reasons.append(("entity.canonical_path", "missing"))

        if not draft.tool_name:
            reasons.append(("tool_name", "must be non-empty"))
        if not draft.rule_id or not str(draft.rule_id).strip():
            reasons.append(("rule_id", "must be non-empty"))
        if not draft.title or not str(draft.title).strip():
            reasons.append(("title", "must be non-empty"))

        try:
            analysis_type = AnalysisType(draft.analysis_type)
        except ValueError:
            analysis_type = None
            reasons.append(("analysis_type", f"unknown analysis type {draft.analysis_type!r}"))

        mapping = self.severity_mapper.resolve(draft.tool_name, draft.severity)
        if not mapping.recognized:
            metadata["severityUnmapped"] = True
            metadata["toolSeverity"] = None if draft.severity is None else str(draft.severity)

        line, column, end_line, end_column = self._check_location(draft, reasons, metadata)

        variant = variant_for(analysis_type) if analysis_type is not None else None
        if variant is DependencyIssue and draft.dependency_info is None:
            reasons.append(("dependency_info", "required for dependency analysis types"))

        if reasons or entity is None or analysis_type is None or variant is None:
            raise InvalidIssueError(reasons)

        fingerprint = f"{entity.canonical_path}:{line or 0}:{column or 0}"
        issue_id = draft.id.strip() if draft.id and draft.id.strip() else derive_issue_id(
            draft.tool_name, str(draft.rule_id), fingerprint
        )

        fields: dict[str, Any] = {
            "id": issue_id,
            "entity_id": entity.id,
            "canonical_path": entity.canonical_path,
            "severity": mapping.severity,
            "analysis_type": analysis_type,
            "title": str(draft.title).strip(),
            "description": draft.description or "",
            "rule_id": str(draft.rule_id).strip(),
            "line": line,
            "column": column,
            "end_line": end_line,
            "end_column": end_column,
            "tool_name": draft.tool_name,
            "cross_tool_patterns": draft.cross_tool_patterns,
            "metadata": metadata,
            "created_at": self.clock().isoformat(),
        }
        if variant is PerformanceIssue and draft.performance_metrics is not None:
            fields["performance_metrics"] = draft.performance_metrics
        elif variant is DependencyIssue:
            fields["dependency_info"] = draft.dependency_info
        elif variant is ArchitectureIssue and draft.architecture_info is not None:
            fields["architecture_info"] = draft.architecture_info

        try:
            return variant.model_validate(fields)
        except PydanticValidationError as e:
            raise InvalidIssueError([
                (".".join(str(part) for part in error["loc"]) or "issue", error["msg"])
                for error in e.errors()
            ]) from e
