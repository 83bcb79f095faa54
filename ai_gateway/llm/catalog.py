"""Built-in catalog of models known independently of any live backend.

This is the first (lowest-precedence) source merged into the registry. Costs are
USD per token; latency is the observed average in milliseconds.
"""

from __future__ import annotations

from ai_gateway.schemas import ModelDescriptor

DEFAULT_MODEL_CATALOG: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        provider="siliconcloud",
        name="deepseek-ai/DeepSeek-R1-0528-Qwen3-8B",
        family="deepseek",
        parameter_size="8B",
        context_window=32_768,
        cost_per_input_token=0.00002,
        cost_per_output_token=0.00004,
        avg_latency_ms=800,
        quality_rating=8,
        supported_features=("chat", "reasoning"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="qwen3-max-preview",
        family="qwen",
        context_window=32_768,
        cost_per_input_token=0.00004,
        cost_per_output_token=0.0001,
        avg_latency_ms=1200,
        quality_rating=9,
        supported_features=("chat", "function-calling", "reasoning", "code"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="qwen-turbo",
        family="qwen",
        context_window=131_072,
        cost_per_input_token=0.000003,
        cost_per_output_token=0.000006,
        avg_latency_ms=450,
        quality_rating=7,
        supported_features=("chat", "function-calling"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="qwen-flash",
        family="qwen",
        context_window=32_768,
        cost_per_input_token=0.00001,
        cost_per_output_token=0.00002,
        avg_latency_ms=500,
        quality_rating=7,
        supported_features=("chat", "function-calling"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="qwen3-coder-flash",
        family="qwen",
        context_window=32_768,
        cost_per_input_token=0.00001,
        cost_per_output_token=0.00002,
        avg_latency_ms=500,
        quality_rating=7,
        supported_features=("chat", "code"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="deepseek-v3.2",
        family="deepseek",
        context_window=65_536,
        cost_per_input_token=0.00002,
        cost_per_output_token=0.00004,
        avg_latency_ms=1000,
        quality_rating=9,
        supported_features=("chat", "reasoning", "code"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="kimi-k2-thinking",
        family="other",
        context_window=128_000,
        cost_per_input_token=0.00004,
        cost_per_output_token=0.0001,
        avg_latency_ms=2500,
        quality_rating=9,
        supported_features=("chat", "reasoning"),
    ),
    ModelDescriptor(
        provider="qwen",
        name="Moonshot-Kimi-K2-Instruct",
        family="other",
        context_window=128_000,
        cost_per_input_token=0.00004,
        cost_per_output_token=0.0001,
        avg_latency_ms=1800,
        quality_rating=8,
        supported_features=("chat",),
    ),
    ModelDescriptor(
        provider="qwen",
        name="glm-4.7",
        family="zhipu",
        context_window=32_768,
        cost_per_input_token=0.00002,
        cost_per_output_token=0.00004,
        avg_latency_ms=1000,
        quality_rating=8,
        supported_features=("chat",),
    ),
    ModelDescriptor(
        provider="qwen",
        name="text-embedding-v3",
        family="qwen",
        context_window=8192,
        cost_per_input_token=0.0000007,
        cost_per_output_token=0.0,
        avg_latency_ms=300,
        quality_rating=7,
        supported_features=("embedding",),
    ),
    ModelDescriptor(
        provider="ollama",
        name="deepseek-r1:1.5b",
        family="deepseek",
        parameter_size="1.5B",
        context_window=32_768,
        avg_latency_ms=750,
        quality_rating=7,
        supported_features=("chat", "reasoning"),
    ),
    ModelDescriptor(
        provider="ollama",
        name="llama3.2",
        family="llama",
        parameter_size="3B",
        context_window=8_000,
        avg_latency_ms=900,
        quality_rating=5,
        supported_features=("chat",),
    ),
    ModelDescriptor(
        provider="openai",
        name="gpt-4o",
        family="openai",
        context_window=128_000,
        cost_per_input_token=2.50 / 1_000_000,
        cost_per_output_token=10.00 / 1_000_000,
        avg_latency_ms=1500,
        quality_rating=9,
        supported_features=("chat", "function-calling", "vision"),
    ),
    ModelDescriptor(
        provider="openai",
        name="gpt-4o-mini",
        family="openai",
        context_window=128_000,
        cost_per_input_token=0.15 / 1_000_000,
        cost_per_output_token=0.60 / 1_000_000,
        avg_latency_ms=700,
        quality_rating=7,
        supported_features=("chat", "function-calling"),
    ),
    ModelDescriptor(
        provider="deepseek",
        name="deepseek-chat",
        family="deepseek",
        context_window=64_000,
        cost_per_input_token=0.14 / 1_000_000,
        cost_per_output_token=0.28 / 1_000_000,
        avg_latency_ms=1200,
        quality_rating=8,
        supported_features=("chat", "code"),
    ),
    ModelDescriptor(
        provider="deepseek",
        name="deepseek-reasoner",
        family="deepseek",
        context_window=64_000,
        cost_per_input_token=0.55 / 1_000_000,
        cost_per_output_token=2.19 / 1_000_000,
        avg_latency_ms=4000,
        quality_rating=9,
        supported_features=("chat", "reasoning"),
    ),
)


def catalog_by_key(
    catalog: tuple[ModelDescriptor, ...] = DEFAULT_MODEL_CATALOG,
) -> dict[str, ModelDescriptor]:
    return {m.key: m for m in catalog}


def find_in_catalog(
    name: str,
    provider: str | None = None,
    catalog: tuple[ModelDescriptor, ...] = DEFAULT_MODEL_CATALOG,
) -> ModelDescriptor | None:
    """Exact ``provider:name`` match first, then the first entry with that name."""
    if provider is not None:
        for model in catalog:
            if model.provider == provider and model.name == name:
                return model
    for model in catalog:
        if model.name == name:
            return model
    return None
