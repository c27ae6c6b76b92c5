from .datadog_client import DataDogClient, ServiceError, ServiceStats
from .osv_client import OSVClient, Vulnerability

__all__ = [
    "DataDogClient",
    "OSVClient",
    "ServiceError",
    "ServiceStats",
    "Vulnerability",
]
