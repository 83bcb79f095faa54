from __future__ import annotations

import logging

from ai_gateway.interfaces import BackendAdapter

logger = logging.getLogger(__name__)


class AdapterFactory:
    """Registry of backend adapters, keyed by each adapter's provider name."""

    def __init__(self, adapters: list[BackendAdapter] | None = None) -> None:
        self._adapters: dict[str, BackendAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: BackendAdapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter for provider %s", adapter.name)
        self._adapters[adapter.name] = adapter
        logger.info("Registered adapter: %s", adapter.name)

    def unregister(self, provider: str) -> None:
        self._adapters.pop(provider, None)

    def get(self, provider: str) -> BackendAdapter | None:
        return self._adapters.get(provider)

    def available(self) -> list[BackendAdapter]:
        return list(self._adapters.values())

    def providers(self) -> list[str]:
        return list(self._adapters)

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)
