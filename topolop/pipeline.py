"""End-to-end analysis of one project root."""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from .adapters.base import Adapter, AnalysisScope
from .adapters.catalog import AdapterCatalog
from .adapters.harness import AdapterHarness
from .config import TopolopConfig
from .core.cancellation import CancellationToken
from .core.context import RunContext
from .models.enums import AdapterOutcome, Severity
from .models.report import UnifiedReport
from .serialization import write_report

logger = logging.getLogger(__name__)


async def analyze_project(
    config: TopolopConfig,
    adapters: list[Adapter] | None = None,
    token: CancellationToken | None = None,
    clock: Callable[[], datetime] | None = None,
    run_id: str | None = None,
    catalog: AdapterCatalog | None = None,
) -> UnifiedReport:
    """Run the configured adapters over config.project_root.

    Args:
        config: Run configuration
        adapters: Adapter instances to run; resolved from the catalog and
            config.enabled_adapters when omitted
        token: Cancellation token for the whole run
        clock: Time source (injected by tests for reproducible reports)
        run_id: Fixed run id (random when omitted)
        catalog: Adapter catalog used to resolve names

    Returns:
        The frozen report. Adapter failures are recorded in report.adapters
        and never raise.
    """
    run = RunContext.create(config, token=token, clock=clock, run_id=run_id)
    if adapters is None:
        catalog = catalog or AdapterCatalog()
        adapters = catalog.resolve(config.enabled_adapters, config.adapter_options)

    started_at = run.clock().isoformat()
    logger.info(
        f"Analyzing {run.project_root} with {len(adapters)} adapters",
        extra={"event": "run_started", "run_id": run.run_id},
    )

    harness = AdapterHarness(run)
    records = await harness.run_all(adapters, AnalysisScope(root=Path(run.project_root)))

    report = UnifiedReport(
        run_id=run.run_id,
        started_at=started_at,
        finished_at=run.clock().isoformat(),
        project_root=run.project_root,
        entities=run.registry.entities(),
        issues=run.engine.issues(),
        metrics=run.engine.file_metrics(),
        correlations=run.engine.correlations(),
        adapters=records,
    )

    failed = [name for name, record in records.items() if record.outcome != AdapterOutcome.OK]
    logger.info(
        f"Run finished: {len(report.issues)} issues, {len(report.correlations)} correlations"
        + (f", degraded adapters: {', '.join(failed)}" if failed else ""),
        extra={"event": "run_finished", "run_id": run.run_id, "issue_count": len(report.issues)},
    )

    if config.write_report:
        write_report(report, run.project_root)
    return report


def exit_code_for(report: UnifiedReport, threshold: Severity) -> int:
    """0 when no issue reaches threshold, 1 otherwise."""
    return 1 if report.issues_at_least(threshold) else 0
