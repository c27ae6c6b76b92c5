"""Rust Clippy adapter (``cargo clippy --message-format=json``)."""

import json
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from .base import Adapter, AnalysisScope

logger = logging.getLogger(__name__)

# Lint-name keywords per category, checked in order; unmatched lints are style
LINT_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("correctness", ("correctness", "logic", "panic", "unreachable", "wrong")),
    ("performance", ("performance", "slow", "allocation", "clone")),
    ("style", ("style", "naming", "format", "convention")),
    ("complexity", ("complexity", "cognitive", "cyclomatic", "too_many")),
    ("suspicious", ("suspicious", "unusual", "weird", "redundant")),
)

CATEGORY_TYPES = {
    "correctness": AnalysisType.QUALITY,
    "suspicious": AnalysisType.QUALITY,
    "performance": AnalysisType.PERFORMANCE,
    "complexity": AnalysisType.COMPLEXITY,
    "style": AnalysisType.STYLE,
}


def categorize_lint(lint_name: str) -> str:
    for category, keywords in LINT_CATEGORIES:
        if any(keyword in lint_name for keyword in keywords):
            return category
    return "style"


def clippy_patterns(lint_name: str, category: str) -> set[str]:
    patterns: set[str] = set()
    if category == "correctness":
        patterns.add("logic_error")
    if "unwrap" in lint_name or "expect_used" in lint_name or "panic" in lint_name:
        patterns.add("panic_risk")
    if "unsafe" in lint_name or "transmute" in lint_name or "ptr" in lint_name:
        patterns.add("memory_safety")
    if "unreachable" in lint_name or "dead_code" in lint_name or "unused" in lint_name:
        patterns.add("dead_code")
    return patterns


class ClippyAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="clippy",
        display_name="Rust Clippy",
        analysis_types=(
            AnalysisType.QUALITY,
            AnalysisType.PERFORMANCE,
            AnalysisType.COMPLEXITY,
            AnalysisType.STYLE,
        ),
        supported_file_types=(".rs",),
        required_tools=("cargo",),
        capabilities=("linting", "cli"),
    )
    # Keys are "<category>:<level>"
    severity_table = {
        "correctness:error": Severity.HIGH,
        "correctness:warning": Severity.HIGH,
        "performance:error": Severity.HIGH,
        "performance:warning": Severity.MEDIUM,
        "complexity:error": Severity.MEDIUM,
        "complexity:warning": Severity.MEDIUM,
        "style:error": Severity.MEDIUM,
        "style:warning": Severity.LOW,
        "suspicious:error": Severity.MEDIUM,
        "suspicious:warning": Severity.LOW,
        "default": Severity.LOW,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("cargo", ("clippy", "--version"))

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        cmd = ["cargo", "clippy", "--message-format=json", "--quiet", "--", "-W", "clippy::all"]
        output = await run_tool(cmd, cwd=scope.path, token=token, ok_returncodes=(0, 101))
        yield output.stdout

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        for line in str(raw).splitlines():
            line = line.strip()
            if not line.startswith("{"):
                continue
            try:
                envelope = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Skipping malformed clippy line: {line[:80]}")
                continue

            if envelope.get("reason") != "compiler-message":
                continue
            message = envelope.get("message") or {}
            level = message.get("level")
            if level not in ("error", "warning"):
                continue

            spans = message.get("spans") or []
            primary = next((s for s in spans if s.get("is_primary")), spans[0] if spans else None)
            if primary is None:
                continue

            code = (message.get("code") or {}).get("code") or ""
            lint_name = code.removeprefix("clippy::") or "unknown"
            category = categorize_lint(lint_name)

            yield context.draft(
                primary.get("file_name"),
                title=message.get("message", lint_name),
                description=message.get("rendered") or message.get("message", ""),
                rule_id=code or lint_name,
                severity=f"{category}:{level}",
                analysis_type=CATEGORY_TYPES[category],
                line=primary.get("line_start"),
                column=primary.get("column_start"),
                end_line=primary.get("line_end"),
                end_column=primary.get("column_end"),
                cross_tool_patterns=clippy_patterns(lint_name, category),
                metadata={
                    "lintName": lint_name,
                    "level": level,
                    "clippyCategory": category,
                    "suggestion": primary.get("suggested_replacement"),
                },
            )
