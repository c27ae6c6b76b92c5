"""Maps a unified report onto the city metaphor.

Files become buildings, directories (or inferred purposes) become
districts, and per-file signals become heat-map overlays. The mapper only
computes records; rendering is left to the consumer.
"""

import logging
import posixpath
from collections import Counter
from collections.abc import Iterable

from ..constants import (
    BUILDING_HEIGHT_PER_ISSUE,
    CONDITION_FALLBACK,
    CONDITION_THRESHOLDS,
    DEFAULT_MAX_BUILDING_HEIGHT,
    HOTSPOT_MAX,
    MEDIUM_RISK_MIN_COUNT,
    ROOT_DISTRICT,
    SEVERITY_WEIGHTS,
)
from ..models.enums import AnalysisType, Severity
from ..models.issue import Issue
from ..models.metrics import FileMetrics
from ..models.report import UnifiedReport
from .models import Building, BuildingFlags, CityModel, District, Overlay, OverlayEntry

logger = logging.getLogger(__name__)

# Pattern tag -> building flag
PATTERN_FLAGS = {
    "memory_safety": "hazmat_beacon",
    "credential_exposure": "safe_room",
    "dead_code": "abandoned_section",
    "null_dereference": "emergency_stop",
}

# Checked in order; the first purpose with a matching substring wins
PURPOSE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("testing", ("test", "spec", "__tests__", "fixtures")),
    ("frontend", ("frontend", "components/", "pages/", "ui/", "web/", "client/", ".tsx", ".jsx", ".css", ".html", ".vue")),
    ("backend", ("backend", "server", "api/", "services/", "controllers/", "handlers/")),
    ("infrastructure", ("infra", "deploy", "docker", "terraform", ".github/", "k8s", "helm", "ci/", "scripts/")),
    ("data", ("data/", "db/", "database", "migrations", "schema", "models/", ".sql")),
)
DEFAULT_PURPOSE = "core"

EXTENSION_FILE_TYPES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "rs": "rust",
    "c": "c",
    "h": "c",
    "cc": "cpp",
    "cpp": "cpp",
    "hpp": "cpp",
    "go": "go",
    "java": "java",
}

SEVERITY_ORDER = tuple(sorted(Severity, key=lambda s: s.rank, reverse=True))


def building_height(issue_count: int, max_height: float = DEFAULT_MAX_BUILDING_HEIGHT) -> float:
    return max(1.0, min(max_height, 1.0 + BUILDING_HEIGHT_PER_ISSUE * issue_count))


def health_from_hotspot(hotspot: float) -> float:
    return float(HOTSPOT_MAX) - hotspot


def condition_for(health: float) -> str:
    for threshold, condition in CONDITION_THRESHOLDS:
        if health >= threshold:
            return condition
    return CONDITION_FALLBACK


def risk_indicator(severity_distribution: dict[str, int]) -> str:
    if severity_distribution.get("critical", 0) or severity_distribution.get("high", 0):
        return "high"
    if severity_distribution.get("medium", 0) > MEDIUM_RISK_MIN_COUNT:
        return "medium"
    return "low"


def file_type(canonical_path: str) -> str:
    name = posixpath.basename(canonical_path).lower()
    if "test" in name or "spec" in name:
        return "test"
    if "config" in name:
        return "configuration"
    if "index" in name or "main" in name:
        return "entry-point"
    extension = name.rsplit(".", 1)[-1] if "." in name else ""
    return EXTENSION_FILE_TYPES.get(extension, "source-file")


def recommended_action(issues: Iterable[Issue]) -> str:
    issues = list(issues)
    security = sum(1 for i in issues if i.analysis_type == AnalysisType.SECURITY)
    quality = sum(1 for i in issues if i.analysis_type == AnalysisType.QUALITY)
    if any(i.severity == Severity.CRITICAL for i in issues):
        return "Immediate Security Review Required"
    if security > quality:
        return "Security Audit Recommended"
    if quality > 3:
        return "Code Refactoring Needed"
    return "Code Review Suggested"


def district_for(canonical_path: str, rule: str = "first_segment") -> str:
    if rule == "purpose":
        lowered = canonical_path.lower()
        for purpose, markers in PURPOSE_RULES:
            if any(marker in lowered for marker in markers):
                return purpose
        return DEFAULT_PURPOSE

    stripped = canonical_path.lstrip("/")
    if "/" not in stripped:
        return ROOT_DISTRICT
    return stripped.split("/", 1)[0]


def intensity_bucket(intensity: float) -> str:
    if intensity >= 67:
        return "high"
    if intensity >= 34:
        return "medium"
    return "low"


class CityMapper:
    """Derives the city model from a report.

    Args:
        district_rule: ``first_segment`` or ``purpose``
        max_building_height: Upper bound on building height
    """

    def __init__(self, district_rule: str = "first_segment", max_building_height: float = DEFAULT_MAX_BUILDING_HEIGHT) -> None:
        if district_rule not in ("first_segment", "purpose"):
            raise ValueError(f"Unknown district rule: {district_rule}")
        self.district_rule = district_rule
        self.max_building_height = max_building_height

    def map(self, report: UnifiedReport) -> CityModel:
        issues_by_path: dict[str, list[Issue]] = {}
        for issue in report.issues:
            issues_by_path.setdefault(issue.canonical_path, []).append(issue)

        correlation_counts: Counter[str] = Counter(group.canonical_path for group in report.correlations)

        buildings = [
            self._building(metrics, issues_by_path.get(path, []), correlation_counts[path])
            for path, metrics in sorted(report.metrics.items())
            if metrics.issue_count > 0
        ]
        districts = self._districts(buildings, report.metrics)
        overlays = self._overlays(buildings, report.metrics, correlation_counts)

        city = CityModel(buildings=tuple(buildings), districts=tuple(districts), overlays=tuple(overlays))
        logger.debug(f"Mapped {len(buildings)} buildings into {len(districts)} districts")
        return city

    def _building(self, metrics: FileMetrics, issues: list[Issue], correlation_count: int) -> Building:
        patterns = {p for issue in issues for p in issue.cross_tool_patterns}
        flags = {flag: True for pattern, flag in PATTERN_FLAGS.items() if pattern in patterns}
        flags["safety_inspection"] = metrics.count_at_least(Severity.HIGH) > 0
        health = health_from_hotspot(metrics.hotspot_score)
        path = metrics.canonical_path

        return Building(
            canonical_path=path,
            entity_id=metrics.entity_id,
            name=posixpath.basename(path) or path,
            district=district_for(path, self.district_rule),
            height=building_height(metrics.issue_count, self.max_building_height),
            condition=condition_for(health),
            health=health,
            hotspot_score=metrics.hotspot_score,
            risk_indicator=risk_indicator(metrics.severity_distribution),
            issue_count=metrics.issue_count,
            severity_distribution=dict(metrics.severity_distribution),
            tools_detected=tuple(metrics.tool_coverage),
            file_type=file_type(path),
            recommended_action=recommended_action(issues),
            correlation_count=correlation_count,
            flags=BuildingFlags(**flags),
        )

    def _districts(self, buildings: list[Building], metrics: dict[str, FileMetrics]) -> list[District]:
        members: dict[str, list[Building]] = {}
        for building in buildings:
            members.setdefault(building.district, []).append(building)

        districts = []
        for name in sorted(members):
            group = members[name]
            severity: Counter[str] = Counter()
            types: Counter[str] = Counter()
            for building in group:
                severity.update(metrics[building.canonical_path].severity_distribution)
                types.update(metrics[building.canonical_path].analysis_type_distribution)

            issue_count = sum(b.issue_count for b in group)
            weight = issue_count or len(group)
            health = sum(b.health * (b.issue_count if issue_count else 1) for b in group) / weight

            districts.append(District(
                name=name,
                buildings=tuple(b.canonical_path for b in group),
                issue_count=issue_count,
                severity_distribution={s.value: severity[s.value] for s in Severity},
                analysis_type_distribution={t.value: types[t.value] for t in AnalysisType},
                hotspot_score=sum(b.hotspot_score for b in group),
                health=round(health, 3),
                condition=condition_for(health),
            ))
        return districts

    def _overlays(self, buildings: list[Building], metrics: dict[str, FileMetrics], correlation_counts: Counter[str]) -> list[Overlay]:
        overlays = [self._severity_overlay(buildings, metrics)]

        for analysis_type in AnalysisType:
            counts = {
                b.canonical_path: metrics[b.canonical_path].analysis_type_distribution[analysis_type.value]
                for b in buildings
            }
            overlay = _relative_overlay(f"analysis_type:{analysis_type.value}", "analysis_type", counts)
            if overlay.entries:
                overlays.append(overlay)

        density = {b.canonical_path: correlation_counts[b.canonical_path] for b in buildings}
        overlays.append(_relative_overlay("correlation_density", "correlation_density", density))
        return overlays

    def _severity_overlay(self, buildings: list[Building], metrics: dict[str, FileMetrics]) -> Overlay:
        entries = []
        for building in buildings:
            distribution = metrics[building.canonical_path].severity_distribution
            weighted = sum(count * SEVERITY_WEIGHTS[s] for s, count in distribution.items())
            top = next(s.value for s in SEVERITY_ORDER if distribution.get(s.value, 0))
            entries.append(OverlayEntry(
                canonical_path=building.canonical_path,
                intensity=float(min(HOTSPOT_MAX, weighted)),
                bucket=top,
            ))
        return Overlay(name="severity", kind="severity", entries=tuple(entries))


def _relative_overlay(name: str, kind: str, counts: dict[str, int]) -> Overlay:
    """Scale counts to 0-100 against the largest count; zero counts are omitted."""
    peak = max(counts.values(), default=0)
    entries = []
    if peak:
        for path in sorted(counts):
            if counts[path] <= 0:
                continue
            intensity = round(100.0 * counts[path] / peak, 3)
            entries.append(OverlayEntry(canonical_path=path, intensity=intensity, bucket=intensity_bucket(intensity)))
    return Overlay(name=name, kind=kind, entries=tuple(entries))
