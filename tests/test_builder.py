import pytest
from pydantic import ValidationError

from conftest import FIXED_TIME, make_draft
from topolop.core.builder import IssueDraft, derive_issue_id
from topolop.core.exceptions import InvalidIssueError
from topolop.models.enums import AnalysisType, Severity
from topolop.models.issue import CodeIssue, DependencyInfo, DependencyIssue, PerformanceIssue


def reason_fields(error: InvalidIssueError) -> set[str]:
    return {field for field, _ in error.reasons}


class TestIssueBuilder:
    def test_builds_code_issue(self, run):
        draft = make_draft(
            run, "bandit", "./src/app.py", "B602",
            severity="HIGH", line=10, column=5, cross_tool_patterns={"shell_injection", "command_execution"},
        )
        issue = run.builder.build(draft)

        assert isinstance(issue, CodeIssue)
        assert issue.canonical_path == "src/app.py"
        assert issue.entity_id == "entity:src/app.py"
        assert issue.severity == Severity.HIGH
        assert issue.analysis_type == AnalysisType.SECURITY
        assert issue.cross_tool_patterns == ("command_execution", "shell_injection")
        assert issue.created_at == FIXED_TIME.isoformat()
        assert issue.id == derive_issue_id("bandit", "B602", "src/app.py:10:5")

    def test_issue_is_frozen(self, run):
        issue = run.builder.build(make_draft(run, "bandit", "a.py", "B101", line=1))
        with pytest.raises(ValidationError):
            issue.severity = Severity.LOW

    def test_derived_id_is_stable(self, run):
        first = run.builder.build(make_draft(run, "mypy", "a.py", "arg-type", line=3, column=2))
        second = run.builder.build(make_draft(run, "mypy", "a.py", "arg-type", line=3, column=2))
        assert first.id == second.id
        assert len(first.id) == 16

    def test_explicit_id_is_kept(self, run):
        issue = run.builder.build(make_draft(run, "semgrep", "a.py", "r1", id="custom-1"))
        assert issue.id == "custom-1"

    def test_missing_column_is_inferred(self, run):
        issue = run.builder.build(make_draft(run, "mypy", "a.py", "misc", line=4))
        assert issue.column == 1
        assert issue.metadata["columnInferred"] is True

    def test_no_location_is_allowed(self, run):
        issue = run.builder.build(make_draft(run, "npm-audit", "package.json", "pkg:1", analysis_type="security"))
        assert issue.line is None
        assert issue.column is None
        assert "columnInferred" not in issue.metadata

    def test_unknown_severity_is_flagged(self, run):
        issue = run.builder.build(make_draft(run, "bandit", "a.py", "B101", severity="BOGUS", line=1))
        assert issue.severity == Severity.MEDIUM
        assert issue.metadata["severityUnmapped"] is True
        assert issue.metadata["toolSeverity"] == "BOGUS"

    @pytest.mark.parametrize(
        "fields,expected",
        [
            ({"line": 0}, "line"),
            ({"line": 5, "column": 0}, "column"),
            ({"column": 3}, "column"),
            ({"end_line": 4}, "end_line"),
            ({"line": 5, "end_line": 4}, "end_line"),
            ({"line": 5, "column": 10, "end_line": 5, "end_column": 2}, "end_column"),
            ({"line": "12"}, "line"),
            ({"line": True}, "line"),
        ],
    )
    def test_location_rules(self, run, fields, expected):
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(make_draft(run, "semgrep", "a.py", "r1", **fields))
        assert expected in reason_fields(exc_info.value)

    def test_multi_line_range_allows_smaller_end_column(self, run):
        issue = run.builder.build(
            make_draft(run, "semgrep", "a.py", "r1", line=5, column=10, end_line=7, end_column=2)
        )
        assert issue.end_line == 7
        assert issue.end_column == 2

    def test_every_violation_is_reported(self, run):
        context = run.for_adapter("semgrep")
        draft = context.draft("a.py", title=" ", rule_id="", severity="high", analysis_type="nonsense")
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(draft)
        assert {"title", "rule_id", "analysis_type"} <= reason_fields(exc_info.value)

    def test_invalid_path_becomes_rejection_reason(self, run):
        draft = make_draft(run, "bandit", "", "B101", line=1)
        assert draft.entity is None
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(draft)
        assert "entity" in reason_fields(exc_info.value)
        assert "empty identifier" in str(exc_info.value)

    def test_draft_without_entity_is_rejected(self, run):
        draft = IssueDraft(entity=None, tool_name="bandit", title="t", rule_id="r", severity="high", analysis_type="security")
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(draft)
        assert exc_info.value.reasons == [("entity", "missing")]

    def test_missing_tool_name(self, run):
        entity = run.registry.get_or_create("a.py")
        draft = IssueDraft(entity=entity, title="t", rule_id="r", severity="high", analysis_type="security")
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(draft)
        assert "tool_name" in reason_fields(exc_info.value)

    def test_dependency_variant_requires_info(self, run):
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(make_draft(run, "osv", "requirements.txt", "x", analysis_type="dependency_security"))
        assert "dependency_info" in reason_fields(exc_info.value)

    def test_dependency_variant(self, run):
        issue = run.builder.build(make_draft(
            run, "osv", "requirements.txt", "requests:GHSA-1",
            analysis_type=AnalysisType.DEPENDENCY_SECURITY,
            dependency_info=DependencyInfo(package_name="requests", version="2.6.0", ecosystem="PyPI"),
        ))
        assert isinstance(issue, DependencyIssue)
        assert issue.variant == "dependency"
        assert issue.dependency_info.package_name == "requests"

    def test_performance_variant_from_dict(self, run):
        issue = run.builder.build(make_draft(
            run, "datadog", "services/api", "datadog-response-time",
            analysis_type="apm_performance",
            performance_metrics={"response_time_ms": 4200.0},
        ))
        assert isinstance(issue, PerformanceIssue)
        assert issue.performance_metrics.response_time_ms == 4200.0

    def test_bad_nested_payload_is_invalid_issue(self, run):
        with pytest.raises(InvalidIssueError) as exc_info:
            run.builder.build(make_draft(
                run, "osv", "requirements.txt", "x",
                analysis_type="dependency_security",
                dependency_info={"version": "1.0"},
            ))
        assert any("dependency_info" in field for field in reason_fields(exc_info.value))
