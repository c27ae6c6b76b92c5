"""OSV.dev adapter for Python dependencies.

Reads requirements files and pyproject.toml from the project root and
queries OSV for each declared package, yielding one chunk per package.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import toml
from packaging.requirements import InvalidRequirement, Requirement

from ..core.builder import IssueDraft
from ..core.cancellation import CancellationToken
from ..core.context import AdapterContext
from ..core.exceptions import ParseError
from ..core.rate_limiter import RequestBudget
from ..clients.osv_client import OSVClient, Vulnerability
from ..constants import DEFAULT_MAX_RETRIES, OSV_RATE_LIMIT_CALLS, OSV_RATE_LIMIT_PERIOD
from ..models.adapter import AdapterDescriptor, ProbeResult
from ..models.enums import AnalysisType, Severity
from ..models.issue import DependencyInfo
from .base import Adapter, AnalysisScope

logger = logging.getLogger(__name__)

REQUIREMENTS_FILES = ("requirements.txt",)
DEV_REQUIREMENTS_FILES = ("requirements-dev.txt", "dev-requirements.txt")


@dataclass
class DeclaredDependency:
    name: str
    version: str | None
    manifest: str
    line: int | None
    dependency_type: str = "direct"


@dataclass
class PackageFindings:
    """One OSV response: the dependency and the advisories affecting it."""

    dependency: DeclaredDependency
    vulnerabilities: list[Vulnerability]


def _pinned_version(requirement: Requirement) -> str | None:
    specs = list(requirement.specifier)
    if len(specs) == 1 and specs[0].operator in ("==", "==="):
        return specs[0].version
    return None


def parse_requirements(path: Path, manifest: str, dependency_type: str = "direct") -> list[DeclaredDependency]:
    """Parse a requirements.txt-style file."""
    deps = []
    with open(path, encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            line = line.split("#", 1)[0].strip()
            # Skip comments, empty lines, and options
            if not line or line.startswith("-"):
                continue
            try:
                requirement = Requirement(line)
            except InvalidRequirement as e:
                logger.debug(f"Failed to parse requirement '{line}': {e}")
                continue
            deps.append(DeclaredDependency(
                requirement.name, _pinned_version(requirement), manifest, number, dependency_type
            ))
    return deps


def parse_pyproject(path: Path, manifest: str, include_dev: bool) -> list[DeclaredDependency]:
    """Parse [project] dependencies (and optional dependencies when include_dev)."""
    try:
        with open(path, encoding="utf-8") as f:
            data = toml.load(f)
    except toml.TomlDecodeError as e:
        raise ParseError(f"Failed to parse {manifest}: {e}") from e

    project = data.get("project", {})
    declared = [(spec, "direct") for spec in project.get("dependencies", [])]
    if include_dev:
        for specs in project.get("optional-dependencies", {}).values():
            declared.extend((spec, "dev") for spec in specs)

    deps = []
    for spec, dependency_type in declared:
        try:
            requirement = Requirement(spec)
        except InvalidRequirement as e:
            logger.debug(f"Failed to parse requirement '{spec}': {e}")
            continue
        deps.append(DeclaredDependency(
            requirement.name, _pinned_version(requirement), manifest, None, dependency_type
        ))
    return deps


def collect_dependencies(root: Path, include_dev: bool) -> list[DeclaredDependency]:
    deps: list[DeclaredDependency] = []
    for name in REQUIREMENTS_FILES:
        if (root / name).is_file():
            deps.extend(parse_requirements(root / name, name))
    if include_dev:
        for name in DEV_REQUIREMENTS_FILES:
            if (root / name).is_file():
                deps.extend(parse_requirements(root / name, name, "dev"))
    if (root / "pyproject.toml").is_file():
        deps.extend(parse_pyproject(root / "pyproject.toml", "pyproject.toml", include_dev))
    return deps


class OSVAdapter(Adapter):
    descriptor = AdapterDescriptor(
        name="osv",
        display_name="OSV.dev",
        analysis_types=(AnalysisType.DEPENDENCY_SECURITY,),
        supported_file_types=("requirements.txt", "pyproject.toml"),
        required_tools=(),
        capabilities=("dependency_scanning", "network"),
    )
    severity_table = {
        "critical": Severity.CRITICAL,
        "high": Severity.HIGH,
        "moderate": Severity.MEDIUM,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "default": Severity.MEDIUM,
    }

    async def probe(self) -> ProbeResult:
        return ProbeResult(available=True, version="v1")

    def make_client(self, options: dict[str, Any]) -> OSVClient:
        return OSVClient(
            budget=RequestBudget(
                options.get("rate_limit_calls", OSV_RATE_LIMIT_CALLS),
                options.get("rate_limit_period", OSV_RATE_LIMIT_PERIOD),
            ),
            max_retries=options.get("max_retries", DEFAULT_MAX_RETRIES),
        )

    async def analyze(
        self,
        scope: AnalysisScope,
        options: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncIterator[Any]:
        dependencies = collect_dependencies(scope.root, options.get("include_dev", False))
        logger.debug(f"OSV: {len(dependencies)} declared dependencies")

        async with self.make_client(options) as client:
            for dependency in dependencies:
                token.raise_if_cancelled()
                vulnerabilities = await client.query_package(dependency.name, dependency.version)
                if vulnerabilities:
                    yield PackageFindings(dependency, vulnerabilities)

    def to_unified_issues(self, raw: Any, context: AdapterContext) -> Iterable[IssueDraft]:
        if not isinstance(raw, PackageFindings):
            raise ParseError(f"osv received unexpected chunk {type(raw).__name__}")

        dependency = raw.dependency
        for vuln in raw.vulnerabilities:
            fixed = vuln.fixed_versions(dependency.name)
            yield context.draft(
                dependency.manifest,
                title=vuln.summary or f"{vuln.id} in {dependency.name}",
                description=vuln.details or "",
                rule_id=f"{dependency.name}:{vuln.id}",
                severity=vuln.database_severity,
                analysis_type=AnalysisType.DEPENDENCY_SECURITY,
                line=dependency.line,
                cross_tool_patterns={"dependency_vulnerability", "third_party_risk"},
                dependency_info=DependencyInfo(
                    package_name=dependency.name,
                    version=dependency.version,
                    ecosystem="PyPI",
                    dependency_type=dependency.dependency_type,
                    advisory_ids=(vuln.id, *vuln.aliases),
                    fixed_versions=tuple(fixed),
                ),
                metadata={
                    "cwe": vuln.cwe_ids,
                    "versionPinned": dependency.version is not None,
                },
            )
