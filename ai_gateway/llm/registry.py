from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from types import MappingProxyType

from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.interfaces import BackendAdapter, ConfigurationStore, supports_listing
from ai_gateway.llm.catalog import DEFAULT_MODEL_CATALOG, find_in_catalog
from ai_gateway.schemas import HealthStatus, ModelDescriptor, merge_descriptor

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Immutable snapshot of every known model, keyed by ``provider:name``."""

    def __init__(self, models: dict[str, ModelDescriptor] | None = None) -> None:
        self._models = MappingProxyType(dict(models or {}))
        self.loaded_at = datetime.now(UTC)

    def get(self, key: str) -> ModelDescriptor | None:
        return self._models.get(key)

    def models(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def available_models(self) -> list[ModelDescriptor]:
        return [
            m
            for m in self._models.values()
            if m.is_available and m.health_status != HealthStatus.UNHEALTHY
        ]

    def by_provider(self, provider: str) -> list[ModelDescriptor]:
        return [m for m in self._models.values() if m.provider == provider]

    def keys(self) -> list[str]:
        return list(self._models)

    def __contains__(self, key: object) -> bool:
        return key in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(list(self._models.values()))


class RegistryAggregator:
    """Rebuilds the registry from every source and publishes it in one swap.

    Sources, lowest precedence first: the static catalog, active entries from the
    configuration store (info fetched from the owning adapter), then models
    discovered live from adapters that can list them. Any single source, entry or
    adapter failing is logged and skipped.
    """

    def __init__(
        self,
        adapters: AdapterFactory,
        config_store: ConfigurationStore | None = None,
        catalog: tuple[ModelDescriptor, ...] = DEFAULT_MODEL_CATALOG,
    ) -> None:
        self.adapters = adapters
        self.config_store = config_store
        self.catalog = catalog
        self._snapshot = ModelRegistry()

    @property
    def snapshot(self) -> ModelRegistry:
        return self._snapshot

    async def load(self) -> ModelRegistry:
        logger.info("Loading available models...")
        merged: dict[str, ModelDescriptor] = {}

        self._merge_catalog(merged)
        await self._merge_stored_configs(merged)
        await self._merge_discovered(merged)

        snapshot = ModelRegistry(merged)
        self._snapshot = snapshot
        logger.info(
            "Registry published with %d model(s): %s",
            len(snapshot),
            ", ".join(snapshot.keys()) or "<none>",
        )
        return snapshot

    def _merge_catalog(self, merged: dict[str, ModelDescriptor]) -> None:
        for model in self.catalog:
            if model.is_available:
                merged[model.key] = model
        logger.info("Loaded %d model(s) from static catalog", len(merged))

    def _base_for(
        self, merged: dict[str, ModelDescriptor], provider: str, name: str
    ) -> ModelDescriptor | None:
        key = f"{provider}:{name}"
        if key in merged:
            return merged[key]
        return find_in_catalog(name, provider, self.catalog)

    async def _merge_stored_configs(self, merged: dict[str, ModelDescriptor]) -> None:
        if self.config_store is None:
            return
        try:
            configs = await self.config_store.get_all_model_configs()
        except Exception as e:
            logger.error("Failed to load model configurations from store: %s", e)
            return

        active = [c for c in configs if c.is_active]
        logger.info("Found %d active model configuration(s)", len(active))

        for config in active:
            adapter = self.adapters.get(config.provider)
            if adapter is None:
                logger.warning(
                    "Provider %s for model %s is not registered, skipping",
                    config.provider,
                    config.name,
                )
                continue
            try:
                info = await adapter.get_model_info(config.name)
            except Exception as e:
                logger.warning(
                    "Failed to load configured model %s from provider %s: %s",
                    config.name,
                    config.provider,
                    e,
                )
                continue
            info = info.model_copy(update={"provider": adapter.name, "name": config.name})
            self._put(merged, info)

    async def _merge_discovered(self, merged: dict[str, ModelDescriptor]) -> None:
        listing = [a for a in self.adapters.available() if supports_listing(a)]
        if not listing:
            return
        known = frozenset(merged)
        results = await asyncio.gather(*(self._discover(a, known) for a in listing))
        # Applied in adapter registration order so reloads are deterministic.
        for discovered in results:
            for info in discovered:
                if info.key not in merged:
                    self._put(merged, info)

    async def _discover(
        self, adapter: BackendAdapter, known: frozenset[str]
    ) -> list[ModelDescriptor]:
        try:
            names = await adapter.list_models()  # type: ignore[attr-defined]
        except Exception as e:
            logger.warning("Failed to list models from provider %s: %s", adapter.name, e)
            return []

        logger.debug("Provider %s returned %d model(s)", adapter.name, len(names))
        found: list[ModelDescriptor] = []
        for name in names:
            if f"{adapter.name}:{name}" in known:
                continue
            try:
                info = await adapter.get_model_info(name)
            except Exception as e:
                logger.warning(
                    "Failed to get info for discovered model %s from provider %s: %s",
                    name,
                    adapter.name,
                    e,
                )
                continue
            found.append(info.model_copy(update={"provider": adapter.name, "name": name}))
        return found

    def _put(self, merged: dict[str, ModelDescriptor], info: ModelDescriptor) -> None:
        base = self._base_for(merged, info.provider, info.name)
        merged[info.key] = merge_descriptor(base, info) if base is not None else info
