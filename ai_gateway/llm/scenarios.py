from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import StrEnum
from typing import Any

from ai_gateway.schemas import (
    ModelDescriptor,
    ScenarioProfile,
    SelectionStrategy,
    SelectionWeights,
)

logger = logging.getLogger(__name__)


class ScenarioType(StrEnum):
    RESUME_PARSING = "resume-parsing"
    JOB_DESCRIPTION_PARSING = "job-description-parsing"
    RESUME_OPTIMIZATION = "resume-optimization"
    RESUME_ANALYSIS = "resume-analysis"
    RESUME_CONTENT_OPTIMIZATION = "resume-content-optimization"
    INTERVIEW_QUESTION_GENERATION = "interview-question-generation"
    MATCH_SCORE_CALCULATION = "match-score-calculation"
    AGENT_STAR_EXTRACTION = "agent-star-extraction"
    AGENT_KEYWORD_MATCHING = "agent-keyword-matching"
    AGENT_INTRODUCTION_GENERATION = "agent-introduction-generation"
    AGENT_CONTEXT_ANALYSIS = "agent-context-analysis"
    AGENT_CUSTOM_QUESTION_GENERATION = "agent-custom-question-generation"
    AGENT_QUESTION_PRIORITIZATION = "agent-question-prioritization"
    AGENT_INTERVIEW_INITIALIZATION = "agent-interview-initialization"
    AGENT_RESPONSE_PROCESSING = "agent-response-processing"
    AGENT_RESPONSE_ANALYSIS = "agent-response-analysis"
    AGENT_INTERVIEW_CONCLUSION = "agent-interview-conclusion"
    AGENT_CONTEXT_COMPRESSION = "agent-context-compression"
    AGENT_RAG_RETRIEVAL = "agent-rag-retrieval"
    AGENT_EMBEDDING_GENERATION = "agent-embedding-generation"
    GENERAL = "general"


_COST_WEIGHTS = SelectionWeights(quality=0.3, cost=0.5, latency=0.2)
_QUALITY_WEIGHTS = SelectionWeights(quality=0.6, cost=0.2, latency=0.2)
_BALANCED_WEIGHTS = SelectionWeights(quality=0.4, cost=0.3, latency=0.3)
_LATENCY_WEIGHTS = SelectionWeights(quality=0.2, cost=0.2, latency=0.6)

_PREMIUM_MODELS = (
    "qwen:qwen3-max-preview",
    "qwen:kimi-k2-thinking",
    "siliconcloud:deepseek-ai/DeepSeek-R1-0528-Qwen3-8B",
)


def _cost_profile(
    scenario: ScenarioType, primary: tuple[str, ...], fallback: tuple[str, ...]
) -> ScenarioProfile:
    return ScenarioProfile(
        scenario=scenario,
        strategy=SelectionStrategy.COST,
        primary_models=primary,
        fallback_models=fallback,
        weights=_COST_WEIGHTS,
        min_quality_score=6,
    )


def _quality_profile(scenario: ScenarioType, fallback: tuple[str, ...]) -> ScenarioProfile:
    return ScenarioProfile(
        scenario=scenario,
        strategy=SelectionStrategy.QUALITY,
        primary_models=_PREMIUM_MODELS,
        fallback_models=fallback,
        weights=_QUALITY_WEIGHTS,
        min_quality_score=8,
    )


def _balanced_profile(
    scenario: ScenarioType, primary: tuple[str, ...], fallback: tuple[str, ...]
) -> ScenarioProfile:
    return ScenarioProfile(
        scenario=scenario,
        strategy=SelectionStrategy.BALANCED,
        primary_models=primary,
        fallback_models=fallback,
        weights=_BALANCED_WEIGHTS,
    )


DEFAULT_SCENARIO_PROFILES: dict[str, ScenarioProfile] = {
    p.scenario: p
    for p in (
        _cost_profile(
            ScenarioType.RESUME_PARSING,
            ("ollama:deepseek-r1:1.5b", "qwen:qwen-turbo", "qwen:qwen3-coder-flash"),
            ("qwen:glm-4.7", "qwen:qwen3-max-preview"),
        ),
        _cost_profile(
            ScenarioType.JOB_DESCRIPTION_PARSING,
            ("ollama:deepseek-r1:1.5b", "qwen:qwen-turbo"),
            ("qwen:glm-4.7", "qwen:qwen3-coder-flash"),
        ),
        _quality_profile(
            ScenarioType.RESUME_OPTIMIZATION, ("qwen:deepseek-v3.2", "qwen:glm-4.7")
        ),
        _quality_profile(ScenarioType.RESUME_ANALYSIS, ("qwen:deepseek-v3.2", "qwen:glm-4.7")),
        _quality_profile(
            ScenarioType.RESUME_CONTENT_OPTIMIZATION, ("qwen:deepseek-v3.2", "qwen:glm-4.7")
        ),
        _balanced_profile(
            ScenarioType.INTERVIEW_QUESTION_GENERATION,
            ("qwen:qwen3-max-preview", "qwen:deepseek-v3.2", "qwen:Moonshot-Kimi-K2-Instruct"),
            ("qwen:glm-4.7", "qwen:qwen-turbo"),
        ),
        _balanced_profile(
            ScenarioType.MATCH_SCORE_CALCULATION,
            ("qwen:qwen3-max-preview", "qwen:deepseek-v3.2", "qwen:glm-4.7"),
            ("qwen:qwen-turbo", "qwen:Moonshot-Kimi-K2-Instruct"),
        ),
        _cost_profile(
            ScenarioType.AGENT_STAR_EXTRACTION,
            ("qwen:qwen-turbo", "qwen:qwen3-coder-flash"),
            ("qwen:glm-4.7", "ollama:deepseek-r1:1.5b"),
        ),
        _cost_profile(
            ScenarioType.AGENT_KEYWORD_MATCHING,
            ("qwen:qwen-turbo", "qwen:qwen3-coder-flash"),
            ("qwen:glm-4.7", "ollama:deepseek-r1:1.5b"),
        ),
        _quality_profile(
            ScenarioType.AGENT_INTRODUCTION_GENERATION,
            ("qwen:deepseek-v3.2", "qwen:Moonshot-Kimi-K2-Instruct"),
        ),
        _cost_profile(
            ScenarioType.AGENT_CONTEXT_ANALYSIS,
            ("qwen:qwen-turbo", "ollama:deepseek-r1:1.5b"),
            ("qwen:glm-4.7", "qwen:qwen3-coder-flash"),
        ),
        _quality_profile(
            ScenarioType.AGENT_CUSTOM_QUESTION_GENERATION, ("qwen:deepseek-v3.2", "qwen:glm-4.7")
        ),
        _balanced_profile(
            ScenarioType.AGENT_QUESTION_PRIORITIZATION,
            ("qwen:glm-4.7", "qwen:deepseek-v3.2"),
            ("qwen:qwen-turbo", "qwen:Moonshot-Kimi-K2-Instruct"),
        ),
        _quality_profile(
            ScenarioType.AGENT_INTERVIEW_INITIALIZATION, ("qwen:deepseek-v3.2", "qwen:glm-4.7")
        ),
        ScenarioProfile(
            scenario=ScenarioType.AGENT_RESPONSE_PROCESSING,
            strategy=SelectionStrategy.LATENCY,
            primary_models=("qwen:qwen-turbo", "qwen:glm-4.7"),
            fallback_models=("ollama:deepseek-r1:1.5b", "qwen:qwen3-coder-flash"),
            weights=_LATENCY_WEIGHTS,
            max_latency_ms=2000,
        ),
        _balanced_profile(
            ScenarioType.AGENT_RESPONSE_ANALYSIS,
            ("qwen:deepseek-v3.2", "qwen:glm-4.7"),
            ("qwen:qwen-turbo", "qwen:Moonshot-Kimi-K2-Instruct"),
        ),
        _quality_profile(
            ScenarioType.AGENT_INTERVIEW_CONCLUSION, ("qwen:deepseek-v3.2", "qwen:glm-4.7")
        ),
        _cost_profile(
            ScenarioType.AGENT_CONTEXT_COMPRESSION,
            ("qwen:qwen-turbo", "ollama:deepseek-r1:1.5b"),
            ("qwen:glm-4.7", "qwen:qwen3-coder-flash"),
        ),
        _cost_profile(
            ScenarioType.AGENT_RAG_RETRIEVAL,
            ("qwen:qwen-turbo", "ollama:deepseek-r1:1.5b"),
            ("qwen:glm-4.7", "qwen:qwen3-coder-flash"),
        ),
        _cost_profile(
            ScenarioType.AGENT_EMBEDDING_GENERATION,
            ("qwen:text-embedding-v3", "ollama:deepseek-r1:1.5b"),
            ("qwen:text-embedding-v3",),
        ),
        _balanced_profile(
            ScenarioType.GENERAL,
            ("qwen:qwen3-max-preview", "qwen:deepseek-v3.2"),
            ("qwen:glm-4.7", "qwen:qwen-turbo"),
        ),
    )
}


class ScenarioCatalog:
    """Scenario name -> profile mapping, mutable only by whole-profile replacement."""

    def __init__(self, profiles: dict[str, ScenarioProfile] | None = None) -> None:
        self._defaults = dict(DEFAULT_SCENARIO_PROFILES if profiles is None else profiles)
        self._profiles = dict(self._defaults)

    def get(self, scenario: str) -> ScenarioProfile | None:
        return self._profiles.get(scenario)

    def scenarios(self) -> list[str]:
        return list(self._profiles)

    def register(self, profile: ScenarioProfile) -> None:
        self._profiles[profile.scenario] = profile
        logger.info(
            "Registered scenario profile: %s (strategy=%s)", profile.scenario, profile.strategy
        )

    def update(self, scenario: str, **changes: Any) -> ScenarioProfile:
        existing = self._profiles.get(scenario)
        if existing is None:
            raise KeyError(f"Scenario configuration not found for: {scenario}")
        changes.pop("scenario", None)
        # Re-validate so bad weights or strategies never get published.
        updated = ScenarioProfile.model_validate(
            {**existing.model_dump(), **changes, "scenario": scenario}
        )
        self._profiles[scenario] = updated
        logger.info("Updated scenario configuration for: %s", scenario)
        return updated

    def reset_to_defaults(self) -> None:
        self._profiles = dict(self._defaults)
        logger.info("Reset all scenario configurations to defaults")

    def recommended_models(
        self, scenario: str, available: Iterable[ModelDescriptor]
    ) -> list[ModelDescriptor]:
        profile = self.get(scenario)
        if profile is None:
            return []
        by_key = {m.key: m for m in available}
        ordered: list[ModelDescriptor] = []
        for model_id in (*profile.primary_models, *profile.fallback_models):
            model = by_key.get(model_id)
            if model is not None and model not in ordered:
                ordered.append(model)
        return ordered

