from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class SelectionStrategy(StrEnum):
    QUALITY = "quality"
    COST = "cost"
    LATENCY = "latency"
    BALANCED = "balanced"


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    name: str
    family: str = "other"
    parameter_size: str = "unknown"
    context_window: int = Field(default=4096, ge=0)
    cost_per_input_token: float = Field(default=0.0, ge=0.0)
    cost_per_output_token: float = Field(default=0.0, ge=0.0)
    avg_latency_ms: float = Field(default=1000.0, ge=0.0)
    quality_rating: float = Field(default=5.0, ge=0.0, le=10.0)
    supported_features: tuple[str, ...] = ("chat",)
    is_available: bool = True
    health_status: HealthStatus = HealthStatus.HEALTHY
    last_health_check_at: datetime = Field(default_factory=_utcnow)
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def key(self) -> str:
        return f"{self.provider}:{self.name}"

    @property
    def cost_per_token(self) -> float:
        return self.cost_per_input_token + self.cost_per_output_token

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens * self.cost_per_input_token
            + output_tokens * self.cost_per_output_token
        )


def merge_descriptor(base: ModelDescriptor, update: ModelDescriptor) -> ModelDescriptor:
    """Overlay the fields ``update`` explicitly set onto ``base``.

    Unset fields on ``update`` (left at their defaults) never clobber data
    from an earlier source.
    """
    explicit = update.model_dump(include=update.model_fields_set, exclude={"key"})
    explicit["provider"] = update.provider
    explicit["name"] = update.name
    return base.model_copy(update=explicit)


class SelectionWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    quality: float = Field(default=0.4, ge=0.0, le=1.0)
    cost: float = Field(default=0.3, ge=0.0, le=1.0)
    latency: float = Field(default=0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> SelectionWeights:
        total = self.quality + self.cost + self.latency
        if abs(total - 1.0) > 1e-4:
            raise ValueError(
                f"Weights must sum to 1.0, got {total:.4f} "
                f"(quality: {self.quality}, cost: {self.cost}, latency: {self.latency})"
            )
        return self


class ScenarioProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario: str
    strategy: SelectionStrategy = SelectionStrategy.BALANCED
    primary_models: tuple[str, ...] = ()
    fallback_models: tuple[str, ...] = ()
    weights: SelectionWeights = SelectionWeights()
    max_latency_ms: float | None = None
    max_cost_per_token: float | None = None
    min_quality_score: float | None = None


class SelectionDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario: str
    model: str
    provider: str
    strategy: str
    candidate_count: int
    is_fallback: bool = False
    reason: str = ""
    cost_per_token: float = 0.0
    latency_ms: float = 0.0
    success_rate: float = 1.0
    timestamp: datetime = Field(default_factory=_utcnow)


class ChatMessage(BaseModel):
    role: str
    content: str


class RequestMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    template_name: str | None = None
    template_variables: dict[str, Any] = Field(default_factory=dict)


class AIRequest(BaseModel):
    prompt: str = ""
    messages: list[ChatMessage] = Field(default_factory=list)
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    stop_sequences: list[str] = Field(default_factory=list)
    metadata: RequestMetadata = Field(default_factory=RequestMetadata)


class TokenUsage(BaseModel):
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class AIResponse(BaseModel):
    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    provider: str
    finish_reason: str | None = "stop"


class StreamChunk(BaseModel):
    content: str = ""
    usage: TokenUsage | None = None
    finish_reason: str | None = None


class UsageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    model: str
    provider: str
    scenario: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    latency_ms: float = 0.0
    success: bool = True
    agent_type: str | None = None
    workflow_step: str | None = None
    error_code: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ModelConfigEntry(BaseModel):
    provider: str
    name: str
    is_active: bool = True
    endpoint: str | None = None
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(default=2048, ge=1)
