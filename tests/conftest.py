"""Shared fixtures: a fixed clock, run contexts and a scriptable adapter."""

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from topolop.adapters.base import Adapter
from topolop.config import TopolopConfig
from topolop.core.builder import IssueDraft
from topolop.core.context import RunContext
from topolop.models.adapter import AdapterDescriptor, ProbeResult
from topolop.models.enums import AnalysisType
from topolop.models.report import UnifiedReport

FIXED_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_TIME


class FakeAdapter(Adapter):
    """Adapter driven entirely by its constructor arguments.

    Each chunk is a list of finding dicts with keys ``path``, ``rule`` and
    optionally ``line``, ``column``, ``severity``, ``type``, ``patterns``
    and ``title``.
    """

    def __init__(
        self,
        name: str,
        chunks: list[list[dict[str, Any]]] | None = None,
        available: bool = True,
        probe_error: Exception | None = None,
        analyze_error: Exception | None = None,
        hang: bool = False,
        probe_delay: float = 0.0,
    ) -> None:
        super().__init__()
        self.descriptor = AdapterDescriptor(
            name=name,
            display_name=f"Fake {name}",
            analysis_types=(AnalysisType.SECURITY,),
        )
        self.chunks = chunks or []
        self.available = available
        self.probe_error = probe_error
        self.analyze_error = analyze_error
        self.hang = hang
        self.probe_delay = probe_delay

    async def probe(self) -> ProbeResult:
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        if self.probe_error is not None:
            raise self.probe_error
        if not self.available:
            return ProbeResult(available=False, diagnostics=[f"{self.name} not installed"])
        return ProbeResult(available=True, version="1.0")

    async def analyze(self, scope, options, token):
        for chunk in self.chunks:
            yield chunk
        if self.analyze_error is not None:
            raise self.analyze_error
        if self.hang:
            await asyncio.sleep(3600)

    def to_unified_issues(self, raw, context):
        for finding in raw:
            yield context.draft(
                finding["path"],
                title=finding.get("title", f"finding {finding['rule']}"),
                rule_id=finding["rule"],
                severity=finding.get("severity", "high"),
                analysis_type=finding.get("type", "security"),
                line=finding.get("line"),
                column=finding.get("column"),
                cross_tool_patterns=set(finding.get("patterns", ())),
            )


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def config():
    return TopolopConfig(project_root="/p")


@pytest.fixture
def run(config):
    return RunContext.create(config, clock=fixed_clock, run_id="test-run")


def make_draft(run: RunContext, tool: str, path: str, rule: str, **fields: Any) -> IssueDraft:
    """Draft attached to path's entity, as an adapter would produce it."""
    context = run.for_adapter(tool)
    fields.setdefault("title", f"{tool} {rule}")
    fields.setdefault("severity", "high")
    fields.setdefault("analysis_type", "security")
    return context.draft(path, rule_id=rule, **fields)


def ingest(run: RunContext, tool: str, path: str, rule: str, **fields: Any):
    issue = run.builder.build(make_draft(run, tool, path, rule, **fields))
    run.engine.ingest(issue)
    return issue


def report_from(run: RunContext, adapters: dict | None = None) -> UnifiedReport:
    return UnifiedReport(
        run_id=run.run_id,
        started_at=run.clock().isoformat(),
        finished_at=run.clock().isoformat(),
        project_root=run.project_root,
        entities=run.registry.entities(),
        issues=run.engine.issues(),
        metrics=run.engine.file_metrics(),
        correlations=run.engine.correlations(),
        adapters=adapters or {},
    )
