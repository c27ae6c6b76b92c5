"""DataDog APM adapter.

Turns per-service APM statistics into performance issues attached to
``services/<name>`` application entities.
"""

import logging
import time
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..clients.datadog_client import DataDogClient, ServiceError, ServiceStats
from ..constants import DATADOG_RATE_LIMIT_CALLS, DATADOG_RATE_LIMIT_PERIOD, DEFAULT_MAX_RETRIES
from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import AuthenticationError, ClientError, MissingConfigError, ParseError
from ..core.rate_limiter import RequestBudget
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, EntityType, Severity
from ..models.issue import PerformanceMetrics
from .base import Adapter, AnalysisScope

logger = logging.getLogger(__name__)

SLOW_RESPONSE_MS = 1000
VERY_SLOW_RESPONSE_MS = 3000
ERROR_RATE_PERCENT = 5
HIGH_ERROR_RATE_PERCENT = 10
POOR_APDEX = 0.7
VERY_POOR_APDEX = 0.5
FREQUENT_ERROR_COUNT = 10
VERY_FREQUENT_ERROR_COUNT = 100
LOOKBACK_SECONDS = 3600


@dataclass
class ServiceSnapshot:
    service: ServiceStats
    errors: list[ServiceError] = field(default_factory=list)


class DataDogAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="datadog",
        display_name="DataDog APM",
        analysis_types=(AnalysisType.APM_PERFORMANCE,),
        supported_file_types=(),
        required_tools=(),
        capabilities=("apm", "network"),
    )

    def make_client(self, options: dict[str, Any]) -> DataDogClient:
        return DataDogClient(
            api_key=options.get("api_key"),
            app_key=options.get("app_key"),
            base_url=options.get("base_url"),
            budget=RequestBudget(
                options.get("rate_limit_calls", DATADOG_RATE_LIMIT_CALLS),
                options.get("rate_limit_period", DATADOG_RATE_LIMIT_PERIOD),
            ),
            max_retries=options.get("max_retries", DEFAULT_MAX_RETRIES),
        )

    async def probe(self) -> ProbeResult:
        try:
            client = self.make_client(self.options)
        except MissingConfigError as e:
            return ProbeResult(available=False, diagnostics=[str(e)])

        async with client:
            try:
                valid = await client.validate()
            except ClientError as e:
                return ProbeResult(available=False, diagnostics=[f"{e.kind}: {e}"], error_kind=e.kind)
        if not valid:
            return ProbeResult(
                available=False,
                diagnostics=["DataDog rejected the API key"],
                error_kind=AuthenticationError.kind,
            )
        return ProbeResult(available=True, version="api/v1")

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        wanted = options.get("service")
        end = int(time.time())
        start = end - int(options.get("lookback_seconds", LOOKBACK_SECONDS))

        async with self.make_client(options) as client:
            services = await client.get_services()
            if wanted:
                services = [s for s in services if s.service == wanted]
            for service in services:
                token.raise_if_cancelled()
                errors = await client.get_service_errors(service.service, start, end)
                yield ServiceSnapshot(service, errors)

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        if not isinstance(raw, ServiceSnapshot):
            raise ParseError(f"datadog received unexpected chunk {type(raw).__name__}")

        service = raw.service
        name = service.service
        path = f"services/{name}"
        stats = service.apm_stats

        def draft(**fields: Any) -> IssueDraft:
            return context.draft(
                path,
                entity_type=EntityType.APPLICATION,
                entity_name=name,
                analysis_type=AnalysisType.APM_PERFORMANCE,
                **fields,
            )

        avg_ms = service.avg_duration_ms
        if avg_ms > SLOW_RESPONSE_MS:
            yield draft(
                title="High Response Time Detected",
                description=f'Service "{name}" has high average response time of {round(avg_ms)}ms (target: <{SLOW_RESPONSE_MS}ms)',
                rule_id="datadog-response-time",
                severity=Severity.HIGH if avg_ms > VERY_SLOW_RESPONSE_MS else Severity.MEDIUM,
                cross_tool_patterns={"performance_bottleneck"},
                performance_metrics=PerformanceMetrics(response_time_ms=avg_ms, throughput=stats.hits),
            )

        error_rate = service.error_rate
        if error_rate > ERROR_RATE_PERCENT:
            yield draft(
                title="High Error Rate Detected",
                description=f'Service "{name}" has high error rate of {error_rate:.2f}% (target: <1%)',
                rule_id="datadog-error-rate",
                severity=Severity.HIGH if error_rate > HIGH_ERROR_RATE_PERCENT else Severity.MEDIUM,
                cross_tool_patterns={"runtime_errors"},
                performance_metrics=PerformanceMetrics(error_rate=error_rate, throughput=stats.hits),
            )

        if stats.apdex is not None and stats.apdex < POOR_APDEX:
            yield draft(
                title="Poor User Satisfaction (Apdex Score)",
                description=f'Service "{name}" has poor Apdex score of {stats.apdex:.3f} (target: >0.8)',
                rule_id="datadog-apdex-score",
                severity=Severity.HIGH if stats.apdex < VERY_POOR_APDEX else Severity.MEDIUM,
                cross_tool_patterns={"performance_bottleneck"},
                performance_metrics=PerformanceMetrics(response_time_ms=avg_ms, apdex=stats.apdex),
            )

        for error in raw.errors:
            if error.count <= FREQUENT_ERROR_COUNT:
                continue
            yield draft(
                title=f"Frequent {error.type}",
                description=error.message or f"{error.count} occurrences in the last hour",
                rule_id=f"datadog-error:{error.type}:{error.resource or '*'}",
                severity=Severity.HIGH if error.count > VERY_FREQUENT_ERROR_COUNT else Severity.MEDIUM,
                cross_tool_patterns={"runtime_errors"},
                performance_metrics=PerformanceMetrics(throughput=stats.hits),
                metadata={"occurrences": error.count, "resource": error.resource},
            )
