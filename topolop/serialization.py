"""Deterministic JSON form of the unified report."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .constants import REPORT_TOOL_NAME, SCHEMA_VERSION
from .core.exceptions import ParseError, SchemaVersionError
from .models.report import UnifiedReport

logger = logging.getLogger(__name__)

# Run-specific fields removed when comparing two runs
VOLATILE_KEYS = frozenset({
    "runId",
    "startedAt",
    "finishedAt",
    "createdAt",
    "lastUpdated",
    "elapsedMs",
})


def _major(version: str) -> int:
    try:
        return int(str(version).split(".", 1)[0])
    except ValueError:
        raise SchemaVersionError(f"Malformed schemaVersion: {version!r}") from None


def _canonicalize(value: Any, strip_volatile: bool) -> Any:
    if isinstance(value, dict):
        return {
            key: _canonicalize(item, strip_volatile)
            for key, item in value.items()
            if not (strip_volatile and key in VOLATILE_KEYS)
        }
    if isinstance(value, list):
        items = [_canonicalize(item, strip_volatile) for item in value]
        if items and all(isinstance(item, dict) and "id" in item for item in items):
            items.sort(key=lambda item: str(item["id"]))
        return items
    return value


def report_to_dict(report: UnifiedReport, strip_volatile: bool = False) -> dict[str, Any]:
    data = report.model_dump(mode="json", by_alias=True)
    return _canonicalize(data, strip_volatile)


def to_canonical_json(report: UnifiedReport, strip_volatile: bool = False) -> str:
    """Serialize a report with sorted keys and id-sorted arrays.

    Args:
        report: Report to serialize
        strip_volatile: Drop run ids, timestamps and elapsed times so two
            runs over the same input compare byte-for-byte
    """
    return json.dumps(report_to_dict(report, strip_volatile), indent=2, sort_keys=True, ensure_ascii=False)


def load_report(text: str) -> UnifiedReport:
    """Parse a serialized report.

    Raises:
        SchemaVersionError: If the report's major schema version differs
        ParseError: If the document is not a valid report
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Report is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Report must be a JSON object")

    version = data.get("schemaVersion")
    if version is None:
        raise SchemaVersionError("Report has no schemaVersion")
    if _major(version) != _major(SCHEMA_VERSION):
        raise SchemaVersionError(
            f"Unsupported schemaVersion {version} (expected {SCHEMA_VERSION.split('.')[0]}.x)"
        )

    try:
        return UnifiedReport.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid report: {e}") from e


def write_report(report: UnifiedReport, project_root: str | Path, tool: str = REPORT_TOOL_NAME) -> Path:
    """Write <tool>-results.json into the project root and return its path."""
    path = Path(project_root) / f"{tool}-results.json"
    path.write_text(to_canonical_json(report) + "\n", encoding="utf-8")
    logger.info(f"Wrote report to {path}")
    return path
