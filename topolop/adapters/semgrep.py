"""Semgrep adapter."""

from collections.abc import AsyncIterator, Iterable
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from .base import Adapter, AnalysisScope, load_json, patterns_from_keywords

CATEGORY_TYPES = {
    "security": AnalysisType.SECURITY,
    "correctness": AnalysisType.QUALITY,
    "best-practice": AnalysisType.QUALITY,
    "maintainability": AnalysisType.QUALITY,
    "performance": AnalysisType.PERFORMANCE,
    "style": AnalysisType.STYLE,
}

# Keywords found in rule ids or CWE titles
SEMGREP_PATTERN_KEYWORDS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("sql", "injection", "cwe-89"), ("injection_vulnerability",)),
    (("exec", "subprocess", "shell", "command", "cwe-78"), ("command_execution", "shell_injection")),
    (("secret", "password", "hardcoded", "credential", "api-key", "cwe-798"),
     ("credential_exposure", "hardcoded_secrets")),
    (("md5", "sha1", "crypto", "cipher", "cwe-327"), ("cryptographic_weakness", "insecure_crypto")),
    (("path-traversal", "cwe-22"), ("path_traversal", "file_security")),
    (("xxe", "xml", "cwe-611"), ("xml_vulnerability", "parsing_issue")),
    (("pickle", "deserializ", "yaml.load", "cwe-502"), ("insecure_deserialization",)),
    (("xss", "cwe-79"), ("cross_site_scripting",)),
)


def semgrep_patterns(check_id: str, metadata: dict[str, Any]) -> set[str]:
    cwe = metadata.get("cwe") or []
    if isinstance(cwe, str):
        cwe = [cwe]
    text = " ".join([check_id, *[str(c) for c in cwe]])
    patterns = patterns_from_keywords(text, SEMGREP_PATTERN_KEYWORDS)
    if metadata.get("category", "security") == "security":
        patterns.add("security_vulnerability")
    return patterns


class SemgrepAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="semgrep",
        display_name="Semgrep",
        analysis_types=(
            AnalysisType.SECURITY,
            AnalysisType.QUALITY,
            AnalysisType.PERFORMANCE,
            AnalysisType.STYLE,
        ),
        supported_file_types=(".py", ".js", ".ts", ".go", ".java", ".rb", ".c", ".rs"),
        required_tools=("semgrep",),
        capabilities=("security", "pattern_matching", "cli"),
    )
    severity_table = {
        "error": Severity.CRITICAL,
        "warning": Severity.HIGH,
        "info": Severity.MEDIUM,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("semgrep")

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        cmd = [
            "semgrep",
            "--json",
            "--quiet",
            "--config",
            options.get("config", "auto"),
            str(scope.path),
        ]
        output = await run_tool(cmd, cwd=scope.root, token=token, ok_returncodes=(0, 1))
        yield output.stdout

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        data = load_json(raw, self.name)
        if not isinstance(data, dict) or not isinstance(data.get("results", []), list):
            raise ParseError("semgrep output has no results list")

        for finding in data.get("results", []):
            extra = finding.get("extra") or {}
            metadata = extra.get("metadata") or {}
            start = finding.get("start") or {}
            end = finding.get("end") or {}
            check_id = finding.get("check_id", "")
            category = str(metadata.get("category", "security")).lower()

            yield context.draft(
                finding.get("path"),
                title=check_id.rsplit(".", 1)[-1] or check_id,
                description=extra.get("message", ""),
                rule_id=check_id,
                severity=extra.get("severity"),
                analysis_type=CATEGORY_TYPES.get(category, AnalysisType.SECURITY),
                line=start.get("line"),
                column=start.get("col"),
                end_line=end.get("line"),
                end_column=end.get("col"),
                cross_tool_patterns=semgrep_patterns(check_id, metadata),
                metadata={
                    "category": category,
                    "confidence": metadata.get("confidence"),
                    "impact": metadata.get("impact"),
                    "likelihood": metadata.get("likelihood"),
                    "cwe": metadata.get("cwe"),
                    "owasp": metadata.get("owasp"),
                },
            )
