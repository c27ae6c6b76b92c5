from .engine import CorrelationEngine, IngestStatus
from .keys import location_key
from .metrics import MetricsAggregator

__all__ = ["CorrelationEngine", "IngestStatus", "MetricsAggregator", "location_key"]
