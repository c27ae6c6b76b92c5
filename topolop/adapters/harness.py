"""Adapter harness.

Runs adapters concurrently, each with its own deadline and cancellation
token, and funnels their raw output through a bounded queue into a single
ingestion loop. Only the ingestion loop touches the entity registry, the
issue builder and the correlation engine.
"""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Any

from ..core.context import AdapterContext, RunContext
from ..core.exceptions import (
    AdapterTimeoutError,
    CancelledError,
    InvalidIssueError,
    ParseError,
    TopolopError,
    UnavailableError,
)
from ..correlation.engine import IngestStatus
from ..models.adapter import AdapterRecord, ProbeResult, Rejection
from ..models.enums import AdapterOutcome
from .base import Adapter, AnalysisScope

logger = logging.getLogger(__name__)

_DONE = object()


@dataclass
class _AdapterRun:
    adapter: Adapter
    context: AdapterContext
    record: AdapterRecord
    conversion_error: ParseError | None = None


class AdapterHarness:
    """Drives adapters through probe, analyze and conversion."""

    def __init__(self, run: RunContext) -> None:
        self.run = run
        self.timeout = run.config.timeout_seconds
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=run.config.queue_size)

    async def run_all(self, adapters: list[Adapter], scope: AnalysisScope) -> dict[str, AdapterRecord]:
        """Run every adapter and ingest their issues.

        Returns:
            One AdapterRecord per adapter, keyed by adapter name
        """
        runs: dict[str, _AdapterRun] = {}
        for adapter in adapters:
            adapter.register_severities(self.run.severity_mapper)
            context = self.run.for_adapter(adapter.name, self.run.config.adapter_options(adapter.name))
            runs[adapter.name] = _AdapterRun(
                adapter=adapter,
                context=context,
                record=AdapterRecord(name=adapter.name, display_name=adapter.descriptor.display_name),
            )

        workers = [
            asyncio.create_task(self._worker(adapter_run, scope), name=f"adapter-{name}")
            for name, adapter_run in runs.items()
        ]

        try:
            await self._ingest_loop(runs, remaining=len(workers))
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        for adapter_run in runs.values():
            self._finalize_record(adapter_run)
        return {name: runs[name].record for name in sorted(runs)}

    async def _worker(self, adapter_run: _AdapterRun, scope: AnalysisScope) -> None:
        record = adapter_run.record
        name = adapter_run.adapter.name
        started = time.monotonic()
        logger.info(f"Starting adapter {name}", extra={"event": "adapter_started", "adapter": name})

        try:
            probe = await self._probe(adapter_run.adapter)
            record.version = probe.version
            record.diagnostics = list(probe.diagnostics)
            if not probe.available:
                record.outcome = AdapterOutcome.SKIPPED
                record.error_kind = probe.error_kind or UnavailableError.kind
                record.message = "; ".join(probe.diagnostics) or f"{name} unavailable"
                return
            await self._analyze_with_deadline(adapter_run, scope)
        finally:
            record.elapsed_ms = round((time.monotonic() - started) * 1000, 3)
            await self._queue.put((name, _DONE))

    async def _probe(self, adapter: Adapter) -> ProbeResult:
        """Probe under the per-adapter deadline; failures make the adapter unavailable."""
        try:
            return await asyncio.wait_for(adapter.probe(), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Probe for {adapter.name} exceeded {self.run.config.timeout_ms} ms",
                extra={"event": "adapter_error", "adapter": adapter.name, "error_kind": AdapterTimeoutError.kind},
            )
            return ProbeResult(
                available=False,
                diagnostics=[f"probe exceeded {self.run.config.timeout_ms} ms deadline"],
                error_kind=AdapterTimeoutError.kind,
            )
        except TopolopError as e:
            logger.warning(f"Probe for {adapter.name} failed: {e}")
            return ProbeResult(available=False, diagnostics=[f"probe failed: {e}"], error_kind=e.kind)
        except Exception as e:
            logger.warning(f"Probe for {adapter.name} failed: {e}")
            return ProbeResult(available=False, diagnostics=[f"probe failed: {e}"])

    async def _analyze_with_deadline(self, adapter_run: _AdapterRun, scope: AnalysisScope) -> None:
        record = adapter_run.record
        token = adapter_run.context.token

        pump = asyncio.create_task(self._pump(adapter_run, scope))
        cancelled = asyncio.create_task(token.wait())
        try:
            done, _ = await asyncio.wait(
                {pump, cancelled}, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()

        if pump in done:
            error = pump.exception()
            if error is not None:
                self._record_failure(record, error)
            return

        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await pump

        if token.cancelled:
            record.outcome = AdapterOutcome.CANCELLED
            record.error_kind = CancelledError.kind
            record.message = token.reason
        else:
            token.cancel("timeout")
            record.outcome = AdapterOutcome.PARTIAL
            record.error_kind = AdapterTimeoutError.kind
            record.message = f"exceeded {self.run.config.timeout_ms} ms deadline"

    async def _pump(self, adapter_run: _AdapterRun, scope: AnalysisScope) -> None:
        adapter = adapter_run.adapter
        context = adapter_run.context
        async for chunk in adapter.analyze(scope, context.options, context.token):
            await self._queue.put((adapter.name, chunk))

    def _record_failure(self, record: AdapterRecord, error: BaseException) -> None:
        if isinstance(error, CancelledError):
            record.outcome = AdapterOutcome.CANCELLED
        else:
            record.outcome = AdapterOutcome.FAILED
        record.error_kind = error.kind if isinstance(error, TopolopError) else "Error"
        record.message = str(error)
        logger.warning(
            f"Adapter {record.name} failed: {error}",
            extra={"event": "adapter_error", "adapter": record.name, "error_kind": record.error_kind},
        )

    async def _ingest_loop(self, runs: dict[str, _AdapterRun], remaining: int) -> None:
        while remaining:
            name, chunk = await self._queue.get()
            if chunk is _DONE:
                remaining -= 1
                continue
            self._ingest_chunk(runs[name], chunk)

    def _ingest_chunk(self, adapter_run: _AdapterRun, chunk: Any) -> None:
        record = adapter_run.record
        try:
            for draft in adapter_run.adapter.to_unified_issues(chunk, adapter_run.context):
                record.raw_count += 1
                try:
                    issue = self.run.builder.build(draft)
                    status = self.run.engine.ingest(issue)
                except InvalidIssueError as e:
                    self._reject(record, draft.title, draft.rule_id, e)
                    continue
                if status is IngestStatus.DUPLICATE:
                    record.duplicate_count += 1
                else:
                    record.accepted_count += 1
        except ParseError as e:
            adapter_run.conversion_error = e
            logger.warning(
                f"Could not parse output of {record.name}: {e}",
                extra={"event": "parse_failure", "adapter": record.name, "error_kind": e.kind},
            )
        except Exception as e:
            logger.exception(
                f"Converting output of {record.name} failed",
                extra={"event": "parse_failure", "adapter": record.name, "error_kind": ParseError.kind},
            )
            adapter_run.conversion_error = ParseError(f"{record.name} output conversion failed: {e}")

    def _reject(self, record: AdapterRecord, title: Any, rule_id: Any, error: InvalidIssueError) -> None:
        record.rejected_count += 1
        record.rejections.append(Rejection(
            title=str(title) if title is not None else None,
            rule_id=str(rule_id) if rule_id is not None else None,
            reasons=error.reasons,
        ))
        logger.info(
            f"Rejected issue from {record.name}: {error}",
            extra={"event": "issue_rejected", "adapter": record.name, "reason": str(error)},
        )

    def _finalize_record(self, adapter_run: _AdapterRun) -> None:
        record = adapter_run.record
        error = adapter_run.conversion_error
        if error is not None and record.outcome == AdapterOutcome.OK:
            record.outcome = AdapterOutcome.PARTIAL if record.accepted_count else AdapterOutcome.FAILED
            record.error_kind = error.kind
            record.message = str(error)

        logger.info(
            f"Adapter {record.name} finished: {record.outcome.value}",
            extra={
                "event": "adapter_finished",
                "adapter": record.name,
                "outcome": record.outcome.value,
                "error_kind": record.error_kind,
                "elapsed_ms": record.elapsed_ms,
                "issue_count": record.accepted_count,
            },
        )
