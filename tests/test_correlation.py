import pytest

from conftest import FakeAdapter, fixed_clock, ingest
from topolop.config import TopolopConfig
from topolop.core.context import RunContext
from topolop.core.exceptions import InvalidIssueError
from topolop.correlation import CorrelationEngine, IngestStatus, location_key
from topolop.correlation.keys import group_id
from topolop.models.enums import AdapterOutcome, CorrelationStrength, Severity
from topolop.pipeline import analyze_project, exit_code_for


def check_report_invariants(report):
    for issue in report.issues:
        assert issue.canonical_path in report.metrics
    for metrics in report.metrics.values():
        assert metrics.issue_count == sum(metrics.severity_distribution.values())
        assert metrics.issue_count == sum(metrics.analysis_type_distribution.values())
        assert 0 <= metrics.hotspot_score <= 100
    for group in report.correlations:
        assert len(group.members) >= 2
        assert len(group.tools) >= 2


class TestIngestion:
    def test_duplicate_from_same_tool_collapses(self, run):
        ingest(run, "A", "src/a.c", "A1", line=10, column=2)
        ingest(run, "A", "src/a.c", "A1", line=10, column=2)

        issues = run.engine.issues()
        assert len(issues) == 1
        assert issues[0].metadata["duplicateCount"] == 2
        assert run.engine.file_metrics()["src/a.c"].issue_count == 1

    def test_duplicate_keeps_smallest_id(self, run):
        engine = run.engine
        first = run.builder.build(run.for_adapter("A").draft("a.c", title="t", rule_id="R", severity="high",
                                                             analysis_type="security", line=3, id="zzz"))
        second = run.builder.build(run.for_adapter("A").draft("a.c", title="t", rule_id="R", severity="low",
                                                              analysis_type="security", line=3, id="aaa"))
        assert engine.ingest(first) is IngestStatus.ACCEPTED
        assert engine.ingest(second) is IngestStatus.DUPLICATE

        survivor = engine.issues()[0]
        assert survivor.id == "aaa"
        assert survivor.metadata["duplicateCount"] == 2
        metrics = engine.file_metrics()["a.c"]
        assert metrics.issue_count == 1
        assert metrics.severity_distribution["low"] == 1
        assert metrics.severity_distribution["high"] == 0

    def test_same_rule_from_different_tools_is_not_a_duplicate(self, run):
        ingest(run, "A", "src/a.c", "R1", line=10)
        ingest(run, "B", "src/a.c", "R1", line=10)
        assert len(run.engine) == 2

    def test_reused_id_is_rejected(self, run):
        ingest(run, "A", "a.c", "R1", line=1, id="same")
        with pytest.raises(InvalidIssueError):
            ingest(run, "A", "a.c", "R2", line=9, id="same")

    def test_correlation_key_is_recorded(self, run):
        ingest(run, "A", "src/a.c", "R1", line=10)
        issue = run.engine.issues()[0]
        assert issue.metadata["correlationKey"] == location_key(issue)
        assert len(issue.metadata["correlationKey"]) == 16

    def test_hotspot_is_monotone(self, run):
        scores = []
        for line in range(1, 20):
            ingest(run, "A", "a.c", f"R{line}", line=line, severity="critical")
            scores.append(run.engine.file_metrics()["a.c"].hotspot_score)
        assert scores == sorted(scores)
        assert scores[-1] == 100

    def test_metrics_independent_of_order(self, clock):
        findings = [
            ("A", "a.c", "R1", {"line": 1, "severity": "high"}),
            ("B", "a.c", "R2", {"line": 50, "severity": "low"}),
            ("A", "b.c", "R3", {"severity": "medium", "analysis_type": "quality"}),
        ]

        def metrics_for(order):
            run = RunContext.create(TopolopConfig(project_root="/p"), clock=clock)
            for tool, path, rule, fields in order:
                ingest(run, tool, path, rule, **fields)
            return {path: m.model_dump(exclude={"last_updated"}) for path, m in run.engine.file_metrics().items()}

        assert metrics_for(findings) == metrics_for(list(reversed(findings)))


class TestCorrelation:
    def test_colocated_same_type_is_high(self, run):
        ingest(run, "A", "a.c", "A1", line=10)
        ingest(run, "B", "a.c", "B1", line=14)
        [group] = run.engine.correlations()
        assert group.strength == CorrelationStrength.HIGH
        assert group.patterns == ()
        assert group.key == "a.c|L10-14"

    def test_colocated_different_type_is_medium(self, run):
        ingest(run, "A", "a.c", "A1", line=10)
        ingest(run, "B", "a.c", "B1", line=12, analysis_type="quality")
        [group] = run.engine.correlations()
        assert group.strength == CorrelationStrength.MEDIUM

    def test_single_shared_pattern_far_apart_is_low(self, run):
        ingest(run, "A", "a.c", "A1", line=10, cross_tool_patterns={"memory_safety"})
        ingest(run, "B", "a.c", "B1", line=200, cross_tool_patterns={"memory_safety", "dead_code"})
        [group] = run.engine.correlations()
        assert group.strength == CorrelationStrength.LOW
        assert group.patterns == ("memory_safety",)
        assert group.key == "a.c|memory_safety"

    def test_no_link_across_files_or_within_tool(self, run):
        ingest(run, "A", "a.c", "A1", line=10)
        ingest(run, "A", "a.c", "A2", line=11)
        ingest(run, "B", "b.c", "B1", line=10)
        assert run.engine.correlations() == []

    def test_missing_line_still_links_by_pattern(self, run):
        ingest(run, "A", "a.c", "A1", line=10, cross_tool_patterns={"dead_code"})
        ingest(run, "B", "a.c", "B1", cross_tool_patterns={"dead_code"})
        ingest(run, "C", "a.c", "C1")
        [group] = run.engine.correlations()
        assert group.tools == ("A", "B")

    def test_transitive_links_form_one_group(self, run):
        ingest(run, "A", "a.c", "A1", line=10)
        ingest(run, "B", "a.c", "B1", line=14)
        ingest(run, "C", "a.c", "C1", line=18)
        [group] = run.engine.correlations()
        assert group.tools == ("A", "B", "C")
        assert group.id == group_id("a.c", list(group.members))

    def test_same_type_knob(self, clock):
        run = RunContext.create(
            TopolopConfig(project_root="/p", pattern_overlap_requires_same_type=True), clock=clock
        )
        ingest(run, "A", "a.c", "A1", line=10, cross_tool_patterns={"memory_safety"})
        ingest(run, "B", "a.c", "B1", line=300, analysis_type="semantic", cross_tool_patterns={"memory_safety"})
        assert run.engine.correlations() == []

    def test_line_threshold_is_configurable(self):
        engine = CorrelationEngine(line_threshold=0, clock=fixed_clock)
        run = RunContext.create(TopolopConfig(project_root="/p"), clock=fixed_clock)
        a = run.builder.build(run.for_adapter("A").draft("a.c", title="t", rule_id="A1", severity="high",
                                                         analysis_type="security", line=10))
        b = run.builder.build(run.for_adapter("B").draft("a.c", title="t", rule_id="B1", severity="high",
                                                         analysis_type="security", line=11))
        assert engine.link(a, b) is None


@pytest.mark.asyncio
class TestEndToEnd:
    async def run_adapters(self, *adapters, **config):
        config.setdefault("project_root", "/p")
        report = await analyze_project(
            TopolopConfig(**config), adapters=list(adapters), clock=fixed_clock, run_id="e2e"
        )
        check_report_invariants(report)
        return report

    async def test_deterministic_aggregation(self):
        a = FakeAdapter("A", [[{"path": "src/a.c", "line": 10, "severity": "HIGH", "rule": "A1",
                                "patterns": ["memory_safety"]}]])
        b = FakeAdapter("B", [[{"path": "src/a.c", "line": 12, "severity": "MEDIUM", "rule": "B7",
                                "patterns": ["memory_safety"]}]])
        report = await self.run_adapters(a, b)

        assert list(report.metrics) == ["src/a.c"]
        metrics = report.metrics["src/a.c"]
        assert metrics.issue_count == 2
        assert metrics.severity_distribution["high"] == 1
        assert metrics.severity_distribution["medium"] == 1
        assert metrics.tool_coverage == ["A", "B"]
        assert metrics.hotspot_score >= 21
        [group] = report.correlations
        assert group.strength == CorrelationStrength.HIGH
        assert group.patterns == ("memory_safety",)

    async def test_dedup_within_tool(self):
        finding = {"path": "src/a.c", "line": 3, "column": 7, "rule": "A1"}
        report = await self.run_adapters(FakeAdapter("A", [[finding, dict(finding)]]))

        [issue] = report.issues
        assert issue.metadata["duplicateCount"] == 2
        assert report.adapters["A"].duplicate_count == 1
        assert report.adapters["A"].accepted_count == 1

    async def test_unavailable_tool(self):
        a = FakeAdapter("A", [[{"path": "x.py", "line": 1, "rule": "A1", "severity": "critical"}]], available=False)
        b = FakeAdapter("B", [[{"path": "y.py", "line": 1, "rule": "B1", "severity": "low"}]])
        report = await self.run_adapters(a, b)

        assert report.adapters["A"].outcome == AdapterOutcome.SKIPPED
        assert report.adapters["A"].error_kind == "Unavailable"
        assert all(issue.tool_name == "B" for issue in report.issues)
        assert exit_code_for(report, Severity.HIGH) == 0
        assert exit_code_for(report, Severity.LOW) == 1

    async def test_timeout_keeps_partial_output(self):
        chunks = [[{"path": "b.py", "line": n, "rule": f"B{n}"}] for n in (1, 20, 40)]
        report = await self.run_adapters(FakeAdapter("B", chunks, hang=True), timeout_ms=200)

        assert len(report.issues) == 3
        assert report.adapters["B"].outcome == AdapterOutcome.PARTIAL
        assert report.adapters["B"].error_kind == "Timeout"

    async def test_path_normalization(self):
        adapters = [
            FakeAdapter("A", [[{"path": "./src/a.c", "line": 1, "rule": "A1"}]]),
            FakeAdapter("B", [[{"path": "src\\a.c", "line": 30, "rule": "B1"}]]),
            FakeAdapter("C", [[{"path": "/p/src/a.c", "line": 60, "rule": "C1"}]]),
        ]
        report = await self.run_adapters(*adapters)

        assert [e.canonical_path for e in report.entities] == ["src/a.c"]
        assert list(report.metrics) == ["src/a.c"]
        assert report.metrics["src/a.c"].issue_count == 3
        assert {issue.entity_id for issue in report.issues} == {"entity:src/a.c"}

    async def test_two_shared_patterns_correlate_regardless_of_distance(self):
        patterns = ["injection_vulnerability", "command_execution"]
        a = FakeAdapter("A", [[{"path": "app.py", "line": 10, "rule": "X", "patterns": patterns}]])
        b = FakeAdapter("B", [[{"path": "app.py", "line": 400, "rule": "Y", "patterns": patterns}]])
        report = await self.run_adapters(a, b)

        [group] = report.correlations
        assert group.strength == CorrelationStrength.HIGH
        assert group.patterns == ("command_execution", "injection_vulnerability")

    async def test_every_adapter_failing_gives_empty_report(self):
        report = await self.run_adapters(
            FakeAdapter("A", available=False),
            FakeAdapter("B", probe_error=RuntimeError("boom")),
        )
        assert report.issues == []
        assert report.metrics == {}
        assert {r.outcome for r in report.adapters.values()} == {AdapterOutcome.SKIPPED}
        assert exit_code_for(report, Severity.INFO) == 0
