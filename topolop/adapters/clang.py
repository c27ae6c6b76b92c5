"""Clang Static Analyzer adapter (``scan-build -plist``).

Plist diagnostics address files through integer indexes into the plist's
``files`` array; those indexes are resolved by the path normalizer.
"""

import logging
import plistlib
import tempfile
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from .base import Adapter, AnalysisScope

logger = logging.getLogger(__name__)

HIGH_SEVERITY_BUGS = ("memory leak", "null pointer", "use-after-free", "buffer overflow", "out-of-bound")
MEDIUM_SEVERITY_BUGS = ("dead store", "dead assignment", "dead initialization", "uninitialized", "logic error")


def classify_bug(bug_type: str, category: str) -> str:
    text = f"{bug_type} {category}".lower()
    if any(marker in text for marker in HIGH_SEVERITY_BUGS):
        return "high"
    if any(marker in text for marker in MEDIUM_SEVERITY_BUGS):
        return "medium"
    return "low"


def clang_patterns(bug_type: str, category: str) -> set[str]:
    text = f"{bug_type} {category}".lower()
    patterns: set[str] = set()
    if any(marker in text for marker in ("memory", "leak", "free", "buffer", "out-of-bound")):
        patterns.add("memory_safety")
    if "null" in text:
        patterns.add("null_dereference")
    if "dead" in text or "unreachable" in text:
        patterns.add("dead_code")
    if "security" in text:
        patterns.add("security_vulnerability")
    return patterns


class ClangAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="clang",
        display_name="Clang Static Analyzer",
        analysis_types=(AnalysisType.SEMANTIC, AnalysisType.SECURITY),
        supported_file_types=(".c", ".h", ".cc", ".cpp", ".hpp"),
        required_tools=("scan-build",),
        capabilities=("memory_analysis", "path_sensitive", "cli"),
    )
    severity_table = {
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("scan-build", ("--help",))

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        build_command = options.get("build_command", ["make"])
        with tempfile.TemporaryDirectory(prefix="topolop-clang-") as output_dir:
            cmd = ["scan-build", "-plist", "-o", output_dir, "--keep-going", *build_command]
            await run_tool(cmd, cwd=scope.path, token=token, ok_returncodes=(0, 1, 2))
            for plist_file in sorted(Path(output_dir).rglob("*.plist")):
                yield plist_file.read_bytes()

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        if isinstance(raw, dict):
            data = raw
        else:
            try:
                data = plistlib.loads(raw if isinstance(raw, bytes) else str(raw).encode("utf-8"))
            except (plistlib.InvalidFileException, ValueError) as e:
                raise ParseError(f"clang produced an unreadable plist: {e}") from e

        files = data.get("files", [])
        for diagnostic in data.get("diagnostics", []):
            location = diagnostic.get("location") or {}
            bug_type = diagnostic.get("type", "Unknown")
            category = diagnostic.get("category", "")
            is_security = "security" in category.lower() or "memory" in category.lower()

            yield context.draft(
                location.get("file", -1),
                file_table=files,
                title=bug_type,
                description=diagnostic.get("description", ""),
                rule_id=diagnostic.get("check_name") or bug_type,
                severity=classify_bug(bug_type, category),
                analysis_type=AnalysisType.SECURITY if is_security else AnalysisType.SEMANTIC,
                line=location.get("line"),
                column=location.get("col"),
                cross_tool_patterns=clang_patterns(bug_type, category),
                metadata={
                    "category": category,
                    "issueHash": diagnostic.get("issue_hash_content_of_line_in_context"),
                },
            )
