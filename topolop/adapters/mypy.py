"""MyPy type checker adapter."""

import re
from collections.abc import AsyncIterator, Iterable
from typing import Any

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.subprocess_runner import probe_executable, run_tool
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from .base import Adapter, AnalysisScope

# file:line:col: level: message  [error-code]
MYPY_LINE_RE = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?:(?P<column>\d+):)?\s*(?P<level>error|warning|note):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<code>[a-z0-9-]+)\])?$"
)

TYPE_CATEGORIES = {
    "annotation": ("annotation-unchecked", "type-abstract", "misc"),
    "incompatible": ("assignment", "return-value", "arg-type"),
    "undefined": ("name-defined", "attr-defined", "has-type"),
    "import": ("import", "no-redef"),
    "generic": ("type-arg", "valid-type"),
    "union": ("union-attr", "operator"),
    "callable": ("call-overload", "call-arg"),
    "override": ("override",),
}


def categorize(code: str | None) -> str:
    if not code:
        return "other"
    for category, codes in TYPE_CATEGORIES.items():
        if any(known in code for known in codes):
            return category
    return "other"


def mypy_patterns(code: str | None, message: str) -> set[str]:
    patterns = {"type_safety"}
    if code == "union-attr" and "None" in message:
        patterns.add("null_dereference")
    if code in ("unreachable", "redundant-expr"):
        patterns.add("dead_code")
    return patterns


class MypyAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="mypy",
        display_name="MyPy",
        analysis_types=(AnalysisType.SEMANTIC, AnalysisType.QUALITY),
        supported_file_types=(".py", ".pyi"),
        required_tools=("mypy",),
        capabilities=("type_checking", "cli"),
    )
    severity_table = {
        "error": Severity.MEDIUM,
        "warning": Severity.LOW,
        "note": Severity.INFO,
    }

    async def probe(self) -> ProbeResult:
        return await probe_executable("mypy")

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        cmd = [
            "mypy",
            "--show-column-numbers",
            "--show-error-codes",
            "--no-error-summary",
            "--no-color-output",
            *options.get("extra_args", []),
            str(scope.path),
        ]
        # mypy exits 1 when it reports errors, 2 on fatal errors
        output = await run_tool(cmd, cwd=scope.root, token=token, ok_returncodes=(0, 1))
        yield output.stdout

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        for line in str(raw).splitlines():
            match = MYPY_LINE_RE.match(line.strip())
            if not match:
                continue
            level = match.group("level")
            code = match.group("code")
            message = match.group("message").strip()
            column = match.group("column")

            yield context.draft(
                match.group("file"),
                title=message,
                description=message,
                rule_id=code or f"mypy-{level}",
                severity=level,
                analysis_type=AnalysisType.SEMANTIC if level == "error" else AnalysisType.QUALITY,
                line=int(match.group("line")),
                column=int(column) if column else None,
                cross_tool_patterns=mypy_patterns(code, message),
                metadata={"level": level, "typeCategory": categorize(code)},
            )
