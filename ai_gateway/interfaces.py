"""Collaborator contracts consumed by the routing core.

Concrete in-process implementations live in ``ai_gateway.adapters``,
``ai_gateway.tracking``, ``ai_gateway.templates`` and ``ai_gateway.config``;
deployments can substitute anything structurally compatible.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ai_gateway.schemas import (
    AIRequest,
    AIResponse,
    ModelConfigEntry,
    ModelDescriptor,
    StreamChunk,
    UsageRecord,
)


@runtime_checkable
class BackendAdapter(Protocol):
    name: str

    async def call(self, request: AIRequest) -> AIResponse: ...

    def stream(self, request: AIRequest) -> AsyncIterator[StreamChunk]: ...

    async def get_model_info(self, model_name: str) -> ModelDescriptor: ...

    async def embed(self, text: str, model: str) -> list[float]: ...


@runtime_checkable
class ModelListingAdapter(BackendAdapter, Protocol):
    async def list_models(self) -> list[str]: ...


class ConfigurationStore(Protocol):
    async def get_all_model_configs(self) -> list[ModelConfigEntry]: ...


class PromptTemplateProvider(Protocol):
    async def get_template(
        self, name: str, language: str, provider_hint: str | None = None
    ) -> Any | None: ...

    async def render_template(self, template: Any, variables: dict[str, Any]) -> str: ...


class UsageSink(Protocol):
    async def record_usage(self, record: UsageRecord) -> None: ...

    async def generate_cost_report(
        self, start: datetime, end: datetime, group_by: str
    ) -> dict[str, Any]: ...


class PerformanceSink(Protocol):
    async def record_metrics(
        self, model: str, provider: str, latency_ms: float, success: bool
    ) -> None: ...

    async def get_all_metrics(self) -> list[Any]: ...

    async def check_alerts(self) -> list[Any]: ...


class AuditSink(Protocol):
    async def log_ai_call(self, entry: dict[str, Any]) -> None: ...

    async def log_error(
        self,
        model: str,
        provider: str,
        code: str,
        message: str,
        stack: str | None,
        scenario: str,
        user_id: str,
    ) -> None: ...

    async def query_logs(self, **filters: Any) -> list[dict[str, Any]]: ...


def supports_listing(adapter: object) -> bool:
    return callable(getattr(adapter, "list_models", None))
