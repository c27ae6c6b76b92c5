"""Registry of available adapters."""

import logging
from typing import Any

from ..core.exceptions import InvalidConfigError
from .bandit import BanditAdapter
from .base import Adapter
from .clang import ClangAdapter
from .clippy import ClippyAdapter
from .datadog import DataDogAdapter
from .mypy import MypyAdapter
from .npm_audit import NpmAuditAdapter
from .osv import OSVAdapter
from .semgrep import SemgrepAdapter

logger = logging.getLogger(__name__)

BUILTIN_ADAPTERS: tuple[type[Adapter], ...] = (
    BanditAdapter,
    MypyAdapter,
    SemgrepAdapter,
    ClippyAdapter,
    ClangAdapter,
    NpmAuditAdapter,
    OSVAdapter,
    DataDogAdapter,
)


class AdapterCatalog:
    """Maps adapter names to adapter classes."""

    def __init__(self, adapters: tuple[type[Adapter], ...] = BUILTIN_ADAPTERS) -> None:
        self._adapters: dict[str, type[Adapter]] = {}
        for adapter_cls in adapters:
            self.register(adapter_cls)

    def register(self, adapter_cls: type[Adapter]) -> None:
        name = adapter_cls.descriptor.name
        if name in self._adapters:
            logger.warning(f"Replacing adapter registration for {name}")
        self._adapters[name] = adapter_cls

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def descriptors(self) -> list:
        return [self._adapters[name].descriptor for name in self.names()]

    def create(self, name: str, options: dict[str, Any] | None = None) -> Adapter:
        try:
            adapter_cls = self._adapters[name]
        except KeyError:
            raise InvalidConfigError(
                f"Unknown adapter '{name}'. Available: {', '.join(self.names())}"
            ) from None
        return adapter_cls(options)

    def resolve(self, enabled: list[str], options_for) -> list[Adapter]:
        """Instantiate the enabled adapters (all of them when enabled is empty).

        Args:
            enabled: Adapter names from configuration
            options_for: Callable returning the option map for an adapter name
        """
        names = enabled or self.names()
        return [self.create(name, options_for(name)) for name in names]
