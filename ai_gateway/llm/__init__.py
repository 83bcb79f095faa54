"""Routing core: model registry, scenario-based selection, retries and dispatch."""

from ai_gateway.llm.registry import ModelRegistry, RegistryAggregator
from ai_gateway.llm.retry import RetryExecutor, RetryPolicy, execute_with_retry
from ai_gateway.llm.router import RequestRouter
from ai_gateway.llm.scenarios import ScenarioCatalog, ScenarioType
from ai_gateway.llm.selector import ScenarioSelector

__all__ = [
    "ModelRegistry",
    "RegistryAggregator",
    "RequestRouter",
    "RetryExecutor",
    "RetryPolicy",
    "ScenarioCatalog",
    "ScenarioSelector",
    "ScenarioType",
    "execute_with_retry",
]
