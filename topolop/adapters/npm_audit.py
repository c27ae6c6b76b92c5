"""npm audit adapter (report format v2, npm 7+)."""

from collections.abc import AsyncIterator, Iterable
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from ..models.issue import DependencyInfo
from .base import Adapter, AnalysisScope, load_json

MANIFEST = "package.json"


class NpmAuditAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="npm-audit",
        display_name="npm audit",
        analysis_types=(AnalysisType.DEPENDENCY_SECURITY,),
        supported_file_types=("package.json", "package-lock.json"),
        required_tools=("npm",),
        capabilities=("dependency_scanning", "cli"),
    )
    severity_table = {
        "critical": Severity.CRITICAL,
        "high": Severity.HIGH,
        "moderate": Severity.MEDIUM,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "info": Severity.INFO,
        "default": Severity.INFO,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("npm")

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        cmd = ["npm", "audit", "--json"]
        if not options.get("include_dev", False):
            cmd.append("--omit=dev")
        # npm audit exits 1 when vulnerabilities are found
        output = await run_tool(cmd, cwd=scope.root, token=token, ok_returncodes=(0, 1))
        yield output.stdout

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        data = load_json(raw, self.name)
        if not isinstance(data, dict):
            raise ParseError("npm audit output is not a JSON object")
        if "error" in data and "vulnerabilities" not in data:
            error = data["error"]
            summary = error.get("summary") if isinstance(error, dict) else error
            raise ParseError(f"npm audit failed: {summary}")

        for name, vuln in sorted((data.get("vulnerabilities") or {}).items()):
            advisories = [via for via in vuln.get("via", []) if isinstance(via, dict)]
            fix = vuln.get("fixAvailable")
            fixed_versions = (fix.get("version"),) if isinstance(fix, dict) and fix.get("version") else ()
            dependency_info = DependencyInfo(
                package_name=name,
                ecosystem="npm",
                dependency_type="direct" if vuln.get("isDirect") else "transitive",
                advisory_ids=tuple(str(a.get("source") or a.get("url")) for a in advisories),
                fixed_versions=fixed_versions,
            )

            if not advisories:
                # Vulnerable only through another package
                yield context.draft(
                    MANIFEST,
                    title=f"{name} depends on vulnerable packages",
                    description=f"Vulnerable through: {', '.join(str(v) for v in vuln.get('via', []))}",
                    rule_id=f"npm-audit:{name}",
                    severity=vuln.get("severity"),
                    analysis_type=AnalysisType.DEPENDENCY_SECURITY,
                    cross_tool_patterns={"dependency_vulnerability", "third_party_risk"},
                    dependency_info=dependency_info,
                    metadata={"package": name, "vulnerableRange": vuln.get("range"), "effects": vuln.get("effects", [])},
                )
                continue

            for advisory in advisories:
                description = advisory.get("title", "")
                if advisory.get("url"):
                    description += f"\n\nMore information: {advisory['url']}"
                cwe = advisory.get("cwe") or []
                yield context.draft(
                    MANIFEST,
                    title=advisory.get("title") or f"Vulnerability in {name}",
                    description=description,
                    rule_id=f"{name}:{advisory.get('source') or advisory.get('url') or 'advisory'}",
                    severity=advisory.get("severity") or vuln.get("severity"),
                    analysis_type=AnalysisType.DEPENDENCY_SECURITY,
                    cross_tool_patterns={"dependency_vulnerability", "third_party_risk"},
                    dependency_info=dependency_info,
                    metadata={
                        "package": name,
                        "vulnerableRange": advisory.get("range"),
                        "cwe": list(cwe),
                        "cvssScore": (advisory.get("cvss") or {}).get("score"),
                    },
                )
