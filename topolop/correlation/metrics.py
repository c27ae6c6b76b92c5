"""Per-file metrics aggregation."""

from ..models.entity import entity_id_for
from ..models.issue import Issue
from ..models.metrics import FileMetrics


class MetricsAggregator:
    """Builds FileMetrics incrementally from ingested issues.

    Ingestion order does not affect the final counts or scores.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, FileMetrics] = {}

    def __contains__(self, canonical_path: object) -> bool:
        return canonical_path in self._metrics

    def __len__(self) -> int:
        return len(self._metrics)

    def get(self, canonical_path: str) -> FileMetrics | None:
        return self._metrics.get(canonical_path)

    def _record_for(self, issue: Issue) -> FileMetrics:
        record = self._metrics.get(issue.canonical_path)
        if record is None:
            record = FileMetrics(
                canonical_path=issue.canonical_path,
                entity_id=issue.entity_id or entity_id_for(issue.canonical_path),
            )
            self._metrics[issue.canonical_path] = record
        return record

    def add(self, issue: Issue, timestamp: str) -> FileMetrics:
        record = self._record_for(issue)
        record.add_issue(issue, timestamp)
        return record

    def replace(self, old: Issue, new: Issue, timestamp: str) -> FileMetrics:
        record = self._record_for(old)
        record.replace_issue(old, new, timestamp)
        return record

    def snapshot(self) -> dict[str, FileMetrics]:
        """Deep copies keyed and ordered by canonical path."""
        return {
            path: self._metrics[path].model_copy(deep=True)
            for path in sorted(self._metrics)
        }
