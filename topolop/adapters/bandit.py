"""Bandit (Python security linter) adapter."""

import logging
import re
from collections.abc import AsyncIterator, Iterable
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from .base import Adapter, AnalysisScope, load_json

logger = logging.getLogger(__name__)

_TEST_ID_RE = re.compile(r"^B(\d{3})$")

# Inclusive ranges of Bandit test numbers and the patterns they imply
BANDIT_PATTERN_RANGES: tuple[tuple[int, int, tuple[str, ...]], ...] = (
    (105, 107, ("credential_exposure", "hardcoded_secrets")),
    (608, 609, ("injection_vulnerability",)),
    (601, 605, ("command_execution", "shell_injection")),
    (301, 305, ("cryptographic_weakness", "insecure_crypto")),
    (311, 311, ("cryptographic_weakness", "insecure_crypto")),
    (108, 108, ("path_traversal", "file_security")),
    (306, 307, ("path_traversal", "file_security")),
    (313, 320, ("xml_vulnerability", "parsing_issue")),
    (405, 411, ("xml_vulnerability", "parsing_issue")),
)


def bandit_patterns(test_id: str) -> set[str]:
    """Cross-tool patterns for a Bandit test id such as ``B105``."""
    patterns = {"security_vulnerability"}
    match = _TEST_ID_RE.match(test_id or "")
    if not match:
        return patterns
    number = int(match.group(1))
    for low, high, tags in BANDIT_PATTERN_RANGES:
        if low <= number <= high:
            patterns.update(tags)
    return patterns


class BanditAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="bandit",
        display_name="Bandit",
        analysis_types=(AnalysisType.SECURITY,),
        supported_file_types=(".py",),
        required_tools=("bandit",),
        capabilities=("security", "cli"),
    )
    severity_table = {
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "undefined": Severity.INFO,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("bandit")

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        cmd = ["bandit", "-r", "-f", "json", "-q", str(scope.path)]
        for excluded in options.get("exclude", []):
            cmd.extend(["-x", excluded])
        # bandit exits 1 when it reports findings
        output = await run_tool(cmd, cwd=scope.root, token=token, ok_returncodes=(0, 1))
        yield output.stdout

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        data = load_json(raw, self.name)
        if not isinstance(data, dict) or not isinstance(data.get("results", []), list):
            raise ParseError("bandit output has no results list")

        for error in data.get("errors", []):
            logger.debug(f"bandit could not scan {error.get('filename')}: {error.get('reason')}")

        for result in data.get("results", []):
            test_id = result.get("test_id", "")
            column = result.get("col_offset")
            cwe = (result.get("issue_cwe") or {}).get("id")
            line_range = result.get("line_range") or []

            yield context.draft(
                result.get("filename"),
                title=result.get("test_name") or test_id,
                description=result.get("issue_text", ""),
                rule_id=test_id,
                severity=result.get("issue_severity"),
                analysis_type=AnalysisType.SECURITY,
                line=result.get("line_number"),
                column=column + 1 if isinstance(column, int) else None,
                end_line=max(line_range) if line_range else None,
                cross_tool_patterns=bandit_patterns(test_id),
                metadata={
                    "confidence": result.get("issue_confidence"),
                    "cwe": f"CWE-{cwe}" if cwe else None,
                    "moreInfo": result.get("more_info"),
                },
            )
