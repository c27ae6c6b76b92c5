from .base import Adapter, AnalysisScope
from .catalog import BUILTIN_ADAPTERS, AdapterCatalog
from .harness import AdapterHarness

__all__ = [
    "Adapter",
    "AdapterCatalog",
    "AdapterHarness",
    "AnalysisScope",
    "BUILTIN_ADAPTERS",
]
