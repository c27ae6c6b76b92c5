"""Severity normalization.

Each tool registers a table translating its own vocabulary to the fixed
five-level scale. Lookups are case-insensitive. Values missing from a
table fall through to the table's ``default`` entry, then to MEDIUM.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from ..constants import SEVERITY_WEIGHTS
from ..models.enums import Severity

DEFAULT_KEY = "default"

# Tables shared by several tools; adapters register their own as well
GENERIC_SEVERITY_TABLE: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
    "high": Severity.HIGH,
    "major": Severity.HIGH,
    "error": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "warning": Severity.MEDIUM,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "note": Severity.LOW,
    "info": Severity.INFO,
    "informational": Severity.INFO,
}


@dataclass(frozen=True)
class SeverityMapping:
    severity: Severity
    recognized: bool


class SeverityMapper:
    """Pure (tool, tool severity) -> Severity translation."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Severity]] = {}

    def register(self, tool_name: str, table: Mapping[str, Severity | str]) -> None:
        """Register (or replace) a tool's mapping table."""
        self._tables[tool_name] = {
            str(key).lower(): Severity(value) for key, value in table.items()
        }

    def is_registered(self, tool_name: str) -> bool:
        return tool_name in self._tables

    def resolve(self, tool_name: str, tool_severity: object) -> SeverityMapping:
        """Map a tool severity and report whether the table knew it."""
        if isinstance(tool_severity, Severity):
            return SeverityMapping(tool_severity, True)

        table = self._tables.get(tool_name, GENERIC_SEVERITY_TABLE)
        key = str(tool_severity).strip().lower() if tool_severity is not None else ""

        if key in table:
            return SeverityMapping(table[key], True)
        if DEFAULT_KEY in table:
            return SeverityMapping(table[DEFAULT_KEY], False)
        return SeverityMapping(Severity.MEDIUM, False)

    def map(self, tool_name: str, tool_severity: object) -> Severity:
        return self.resolve(tool_name, tool_severity).severity

    @staticmethod
    def weight(severity: Severity) -> int:
        return SEVERITY_WEIGHTS[severity.value]

    @staticmethod
    def weights() -> dict[Severity, int]:
        return {severity: SEVERITY_WEIGHTS[severity.value] for severity in Severity}
