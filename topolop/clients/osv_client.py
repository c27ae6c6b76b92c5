from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ..constants import (
    DEFAULT_MAX_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    OSV_RATE_LIMIT_CALLS,
    OSV_RATE_LIMIT_PERIOD,
    RETRY_BASE_DELAY_SECONDS,
)
from ..core.rate_limiter import RequestBudget
from ..core.retry import retry_async
from .http import raise_for_api_status, send


class Vulnerability(BaseModel):
    id: str
    summary: str | None = None
    details: str | None = None
    aliases: list[str] = Field(default_factory=list)
    modified: datetime | None = None
    published: datetime | None = None
    database_specific: dict[str, Any] = Field(default_factory=dict)
    affected: list[dict[str, Any]] = Field(default_factory=list)
    severity: list[dict[str, Any]] = Field(default_factory=list)
    references: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def cwe_ids(self) -> list[str]:
        """Extract CWE IDs from database_specific field."""
        cwe_ids = list(self.database_specific.get("cwe_ids", []))
        unique_cwes = []
        for cwe in cwe_ids:
            cwe_str = str(cwe)
            if not cwe_str.startswith("CWE-"):
                cwe_str = f"CWE-{cwe_str}"
            if cwe_str not in unique_cwes:
                unique_cwes.append(cwe_str)
        return unique_cwes

    @property
    def database_severity(self) -> str | None:
        """Severity label from the source database (e.g. GHSA's MODERATE)."""
        value = self.database_specific.get("severity")
        return str(value) if value else None

    def fixed_versions(self, package_name: str) -> list[str]:
        """Versions listed as ``fixed`` events for package_name."""
        fixed: list[str] = []
        for affected in self.affected:
            if affected.get("package", {}).get("name", "").lower() != package_name.lower():
                continue
            for version_range in affected.get("ranges", []):
                for event in version_range.get("events", []):
                    if "fixed" in event and event["fixed"] not in fixed:
                        fixed.append(event["fixed"])
        return fixed


class OSVClient:
    BASE_URL = "https://api.osv.dev/v1"

    def __init__(
        self,
        timeout: int = HTTP_TIMEOUT_SECONDS,
        budget: RequestBudget | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ) -> None:
        self.client = httpx.AsyncClient(timeout=timeout)
        self.budget = budget or RequestBudget(OSV_RATE_LIMIT_CALLS, OSV_RATE_LIMIT_PERIOD)
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def __aenter__(self) -> "OSVClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.budget.acquire("OSV")
        response = await send(self.client.post(f"{self.BASE_URL}{path}", json=payload), "OSV")
        raise_for_api_status(response, "OSV")
        return response.json()

    async def query_package(
        self, package_name: str, version: str | None = None, ecosystem: str = "PyPI"
    ) -> list[Vulnerability]:
        payload: dict[str, Any] = {
            "package": {"name": package_name, "ecosystem": ecosystem}
        }
        if version:
            payload["version"] = version

        data = await retry_async(
            lambda: self._post("/query", payload),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
        )
        return [Vulnerability(**vuln_data) for vuln_data in data.get("vulns", [])]

