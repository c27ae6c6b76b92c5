"""Cross-tool correlation engine.

Ingests validated issues one at a time, deduplicates repeats from a
single tool, keeps per-file metrics current and, once all adapters have
finished, clusters issues from different tools into correlation groups.

Clustering works per canonical path. Two issues from different tools are
linked when they are colocated (within ``line_threshold`` lines) or share
at least one cross-tool pattern. Groups are the connected components of
those links, so membership does not depend on ingestion order.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ..constants import DEFAULT_LINE_THRESHOLD
from ..core.exceptions import InvalidIssueError
from ..models.enums import CorrelationStrength
from ..models.issue import Issue
from ..models.metrics import FileMetrics
from ..models.report import CorrelationGroup
from .keys import group_id, group_key, location_key
from .metrics import MetricsAggregator

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


@dataclass
class Link:
    """Pairwise relation between two issues from different tools."""

    first: str
    second: str
    strength: CorrelationStrength
    shared: set[str] = field(default_factory=set)
    colocated: bool = False


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CorrelationEngine:
    """Owns issues, metrics and correlations for one report build.

    Args:
        line_threshold: Maximum line distance for colocation
        pattern_overlap_requires_same_type: Only link pattern-sharing issues
            whose analysis types match
        clock: Time source for metrics timestamps
    """

    def __init__(
        self,
        line_threshold: int = DEFAULT_LINE_THRESHOLD,
        pattern_overlap_requires_same_type: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.line_threshold = line_threshold
        self.pattern_overlap_requires_same_type = pattern_overlap_requires_same_type
        self.clock = clock
        self.metrics = MetricsAggregator()
        self._issues: dict[str, Issue] = {}
        self._by_dedup_key: dict[tuple[str, str, int, int, str], str] = {}

    def __len__(self) -> int:
        return len(self._issues)

    def get(self, issue_id: str) -> Issue | None:
        return self._issues.get(issue_id)

    def ingest(self, issue: Issue) -> IngestStatus:
        """Apply one validated issue.

        Returns:
            ACCEPTED for a new issue, DUPLICATE when it collapsed into an
            existing issue from the same tool

        Raises:
            InvalidIssueError: If a different issue already uses the same id
        """
        key = issue.dedup_key()
        timestamp = self.clock().isoformat()
        existing_id = self._by_dedup_key.get(key)

        if existing_id is not None:
            self._collapse(self._issues[existing_id], issue, timestamp)
            return IngestStatus.DUPLICATE

        if issue.id in self._issues:
            raise InvalidIssueError([("id", f"duplicate issue id {issue.id}")])

        issue = self._with_key(issue, issue.metadata)
        self._issues[issue.id] = issue
        self._by_dedup_key[key] = issue.id
        self.metrics.add(issue, timestamp)
        return IngestStatus.ACCEPTED

    def _with_key(self, issue: Issue, metadata: dict) -> Issue:
        metadata = {**metadata, "correlationKey": location_key(issue)}
        return issue.model_copy(update={"metadata": metadata})

    def _collapse(self, existing: Issue, incoming: Issue, timestamp: str) -> None:
        """Merge a repeat into the surviving issue (the one with the smaller id)."""
        count = int(existing.metadata.get("duplicateCount", 1)) + 1

        if incoming.id < existing.id and incoming.id not in self._issues:
            survivor = self._with_key(incoming, {**incoming.metadata, "duplicateCount": count})
            del self._issues[existing.id]
            self.metrics.replace(existing, survivor, timestamp)
        else:
            survivor = existing.model_copy(
                update={"metadata": {**existing.metadata, "duplicateCount": count}}
            )

        self._issues[survivor.id] = survivor
        self._by_dedup_key[survivor.dedup_key()] = survivor.id
        logger.debug(
            f"Collapsed duplicate {incoming.id} into {survivor.id} (count {count})",
            extra={"event": "issue_duplicate", "canonical_path": survivor.canonical_path},
        )

    def link(self, a: Issue, b: Issue) -> Link | None:
        """Relate two issues on the same file from different tools, if at all."""
        if a.tool_name == b.tool_name or a.canonical_path != b.canonical_path:
            return None

        colocated = a.is_nearby(b, self.line_threshold)
        same_type = a.analysis_type == b.analysis_type
        shared = a.shared_patterns(b)
        if self.pattern_overlap_requires_same_type and not same_type:
            shared = set()

        if not colocated and not shared:
            return None

        if len(shared) >= 2 or (colocated and same_type):
            strength = CorrelationStrength.HIGH
        elif colocated:
            strength = CorrelationStrength.MEDIUM
        else:
            strength = CorrelationStrength.LOW

        first, second = sorted((a.id, b.id))
        return Link(first, second, strength, shared, colocated)

    def correlations(self) -> list[CorrelationGroup]:
        """Cluster the current issue set into correlation groups, sorted by id."""
        by_path: dict[str, list[Issue]] = {}
        for issue in self._issues.values():
            by_path.setdefault(issue.canonical_path, []).append(issue)

        groups: list[CorrelationGroup] = []
        for path in sorted(by_path):
            groups.extend(self._cluster_file(path, sorted(by_path[path], key=lambda i: i.id)))
        return sorted(groups, key=lambda g: g.id)

    def _cluster_file(self, path: str, issues: list[Issue]) -> list[CorrelationGroup]:
        parent = {issue.id: issue.id for issue in issues}

        def find(node: str) -> str:
            while parent[node] != node:
                parent[node] = parent[parent[node]]
                node = parent[node]
            return node

        links: list[Link] = []
        for i, a in enumerate(issues):
            for b in issues[i + 1:]:
                found = self.link(a, b)
                if found is None:
                    continue
                links.append(found)
                root_a, root_b = find(found.first), find(found.second)
                if root_a != root_b:
                    parent[max(root_a, root_b)] = min(root_a, root_b)

        components: dict[str, list[Link]] = {}
        for found in links:
            components.setdefault(find(found.first), []).append(found)

        groups = []
        for component_links in components.values():
            member_ids = sorted({x for found in component_links for x in (found.first, found.second)})
            members = [self._issues[member_id] for member_id in member_ids]
            patterns = sorted({p for found in component_links for p in found.shared})
            strength = max((found.strength for found in component_links), key=lambda s: s.rank)
            lines = [m.line for m in members if m.line is not None]
            groups.append(CorrelationGroup(
                id=group_id(path, member_ids),
                key=group_key(path, patterns, lines),
                canonical_path=path,
                members=tuple(member_ids),
                tools=tuple(sorted({m.tool_name for m in members})),
                strength=strength,
                patterns=tuple(patterns),
            ))
        return groups

    def issues(self) -> list[Issue]:
        return sorted(self._issues.values(), key=lambda i: i.id)

    def file_metrics(self) -> dict[str, FileMetrics]:
        return self.metrics.snapshot()
