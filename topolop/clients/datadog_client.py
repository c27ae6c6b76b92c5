"""DataDog APM REST client."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ..constants import (
    DATADOG_RATE_LIMIT_CALLS,
    DATADOG_RATE_LIMIT_PERIOD,
    DEFAULT_MAX_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
)
from ..core.exceptions import MissingConfigError
from ..core.rate_limiter import RequestBudget
from ..core.retry import retry_async
from .http import raise_for_api_status, send

logger = logging.getLogger(__name__)


class ApmStats(BaseModel):
    """Aggregated service statistics; durations are in nanoseconds."""

    hits: float = 0
    errors: float = 0
    duration: float = 0
    apdex: float | None = None


class ServiceStats(BaseModel):
    service: str
    env: str | None = None
    apm_stats: ApmStats = Field(default_factory=ApmStats)
    last_seen: str | None = None

    @property
    def avg_duration_ms(self) -> float:
        return self.apm_stats.duration / 1_000_000

    @property
    def error_rate(self) -> float:
        """Errors as a percentage of hits."""
        if not self.apm_stats.hits:
            return 0.0
        return self.apm_stats.errors / self.apm_stats.hits * 100


class ServiceError(BaseModel):
    service: str | None = None
    type: str = "error"
    message: str = ""
    count: int = 0
    resource: str | None = None


class DataDogClient:
    """Minimal client for the DataDog v1 APM endpoints.

    Credentials are passed in by the caller; the client never reads the
    environment.
    """

    BASE_URL = "https://api.datadoghq.com"

    def __init__(
        self,
        api_key: str | None,
        app_key: str | None,
        base_url: str | None = None,
        timeout: int = HTTP_TIMEOUT_SECONDS,
        budget: RequestBudget | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ) -> None:
        if not api_key or not app_key:
            raise MissingConfigError("DataDog api_key and app_key are required")
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "DD-API-KEY": api_key,
                "DD-APPLICATION-KEY": app_key,
                "Content-Type": "application/json",
            },
        )
        self.budget = budget or RequestBudget(DATADOG_RATE_LIMIT_CALLS, DATADOG_RATE_LIMIT_PERIOD)
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def __aenter__(self) -> "DataDogClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.client.aclose()

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        async def request() -> Any:
            self.budget.acquire("DataDog")
            response = await send(
                self.client.get(f"{self.base_url}{endpoint}", params=params), "DataDog"
            )
            raise_for_api_status(response, "DataDog")
            return response.json()

        return await retry_async(request, max_retries=self.max_retries, base_delay=self.base_delay)

    async def validate(self) -> bool:
        data = await self._get("/api/v1/validate")
        return bool(data.get("valid", False))

    async def get_services(self) -> list[ServiceStats]:
        data = await self._get("/api/v1/apm/services")
        return [ServiceStats(**service) for service in data.get("services", [])]

    async def get_service_errors(self, service: str, start: int, end: int) -> list[ServiceError]:
        data = await self._get(
            "/api/v1/apm/errors", params={"service": service, "start": start, "end": end}
        )
        return [ServiceError(**error) for error in data.get("errors", [])]
