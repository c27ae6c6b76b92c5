"""Adapter contract for external analysis tools."""

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from ..core.cancellation import CancellationToken
from ..core.builder import IssueDraft
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.severity import SeverityMapper
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import Severity


@dataclass(frozen=True)
class AnalysisScope:
    """What to analyze: a project root, optionally narrowed to one artifact."""

    root: Path
    target: Path | None = None

    @property
    def path(self) -> Path:
        return self.target or self.root


class Adapter(ABC):
    """One external tool.

    Subclasses provide a static ``descriptor``, a ``severity_table`` in the
    tool's vocabulary and the three contract operations. ``analyze`` is an
    async generator of raw output chunks; ``to_unified_issues`` turns one
    chunk into issue drafts and runs on the ingestion loop only.
    """

    descriptor: ClassVar[AdapterDescriptor]
    severity_table: ClassVar[dict[str, Severity]] = {}

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})

    @property
    def name(self) -> str:
        return self.descriptor.name

    def register_severities(self, mapper: SeverityMapper) -> None:
        if self.severity_table:
            mapper.register(self.name, self.severity_table)

    @abstractmethod
    async def probe(self) -> ProbeResult:
        """Report whether the tool can run here."""

    @abstractmethod
    def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        """Yield raw output chunks."""

    @abstractmethod
    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        """Convert one raw chunk into issue drafts."""


def load_json(raw: Any, tool_name: str) -> Any:
    """Decode a JSON chunk or raise ParseError."""
    if not isinstance(raw, (str, bytes)):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"{tool_name} produced invalid JSON: {e}") from e


def patterns_from_keywords(text: str, table: Iterable[tuple[tuple[str, ...], tuple[str, ...]]]) -> set[str]:
    """Collect pattern tags whose keywords appear in text (case-insensitive)."""
    lowered = text.lower()
    found: set[str] = set()
    for keywords, tags in table:
        if any(keyword in lowered for keyword in keywords):
            found.update(tags)
    return found
