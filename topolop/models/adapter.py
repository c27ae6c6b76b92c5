"""Adapter descriptors, probe results and per-adapter run records."""

from pydantic import Field

from .base import CamelModel, FrozenModel
from .enums import AdapterOutcome, AnalysisType


class AdapterDescriptor(FrozenModel):
    """Static description of an external-tool adapter."""

    name: str
    display_name: str
    analysis_types: tuple[AnalysisType, ...]
    supported_file_types: tuple[str, ...] = ()
    required_tools: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()


class ProbeResult(FrozenModel):
    """Availability record returned by an adapter's probe()."""

    available: bool
    version: str | None = None
    diagnostics: list[str] = Field(default_factory=list)
    error_kind: str | None = None


class Rejection(FrozenModel):
    """An issue draft that failed validation."""

    title: str | None = None
    rule_id: str | None = None
    reasons: list[tuple[str, str]]


class AdapterRecord(CamelModel):
    """Outcome and statistics for one adapter in one run."""

    name: str
    display_name: str
    outcome: AdapterOutcome = AdapterOutcome.OK
    error_kind: str | None = None
    message: str | None = None
    version: str | None = None
    diagnostics: list[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0
    raw_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    duplicate_count: int = 0
    rejections: list[Rejection] = Field(default_factory=list)
