from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.constants import (
    DEFAULT_SCENARIO,
    LOCAL_DEFAULT_MODEL,
    LOCAL_PROVIDER,
    SCORE_EPSILON,
    SELECTION_LOG_MAX_ENTRIES,
)
from ai_gateway.errors import AIError, AIErrorCode
from ai_gateway.interfaces import supports_listing
from ai_gateway.llm.catalog import find_in_catalog
from ai_gateway.llm.scenarios import ScenarioCatalog
from ai_gateway.schemas import (
    ModelDescriptor,
    ScenarioProfile,
    SelectionDecision,
    SelectionStrategy,
    SelectionWeights,
)

logger = logging.getLogger(__name__)

FallbackStep = Callable[[Sequence[ModelDescriptor]], Awaitable[tuple[ModelDescriptor, str] | None]]


def _inverse(value: float) -> float:
    return 1.0 / max(value, SCORE_EPSILON)


def _normalize(values: list[float]) -> list[float]:
    lo, hi = min(values), max(values)
    if hi - lo <= 0:
        return [1.0] * len(values)
    return [(v - lo) / (hi - lo) for v in values]


def score_candidates(
    candidates: Sequence[ModelDescriptor], weights: SelectionWeights
) -> list[float]:
    if not candidates:
        return []
    quality = _normalize([m.quality_rating for m in candidates])
    cost = _normalize([_inverse(m.cost_per_token) for m in candidates])
    latency = _normalize([_inverse(m.avg_latency_ms) for m in candidates])
    return [
        weights.quality * q + weights.cost * c + weights.latency * lat
        for q, c, lat in zip(quality, cost, latency, strict=True)
    ]


def rank_candidates(
    candidates: Sequence[ModelDescriptor], weights: SelectionWeights
) -> list[tuple[ModelDescriptor, float]]:
    """Best first; equal scores keep the order ``candidates`` was given in."""
    scores = score_candidates(candidates, weights)
    order = sorted(range(len(candidates)), key=lambda i: (-scores[i], i))
    return [(candidates[i], scores[i]) for i in order]


def meets_constraints(model: ModelDescriptor, profile: ScenarioProfile) -> bool:
    if profile.max_latency_ms is not None and model.avg_latency_ms > profile.max_latency_ms:
        return False
    if profile.max_cost_per_token is not None and model.cost_per_token > profile.max_cost_per_token:
        return False
    if profile.min_quality_score is not None and model.quality_rating < profile.min_quality_score:
        return False
    return True


class ScenarioSelector:
    def __init__(
        self,
        scenarios: ScenarioCatalog | None = None,
        adapters: AdapterFactory | None = None,
        local_provider: str = LOCAL_PROVIDER,
        local_default_model: str = LOCAL_DEFAULT_MODEL,
        log_size: int = SELECTION_LOG_MAX_ENTRIES,
    ) -> None:
        self.scenarios = scenarios if scenarios is not None else ScenarioCatalog()
        self.adapters = adapters if adapters is not None else AdapterFactory()
        self.local_provider = local_provider
        self.local_default_model = local_default_model
        self._log: deque[SelectionDecision] = deque(maxlen=log_size)
        self.fallback_cascade: tuple[FallbackStep, ...] = (
            self._local_model_in_registry,
            self._local_default_model,
            self._first_registry_model,
        )

    async def select_for_scenario(
        self, scenario: str, available_models: Sequence[ModelDescriptor]
    ) -> ModelDescriptor:
        if not available_models:
            return await self._select_without_registry(scenario)

        profile = self.scenarios.get(scenario)
        if profile is None:
            logger.warning("No profile defined for scenario: %s. Using best overall model.", scenario)
            return await self.select_best(available_models, scenario)

        by_key = {m.key: m for m in available_models}
        candidates = [by_key[k] for k in dict.fromkeys(profile.primary_models) if k in by_key]
        from_fallback_list = False
        if not candidates:
            candidates = [by_key[k] for k in dict.fromkeys(profile.fallback_models) if k in by_key]
            from_fallback_list = True

        if not candidates:
            return await self._run_cascade(
                scenario,
                available_models,
                profile.strategy,
                f"no primary or fallback model of scenario {scenario} is available",
            )

        constrained = [m for m in candidates if meets_constraints(m, profile)]
        degraded = not constrained
        if degraded:
            logger.warning(
                "All %d candidate(s) for scenario %s violate hard constraints; ignoring them",
                len(candidates),
                scenario,
            )
            constrained = candidates

        chosen, score = rank_candidates(constrained, profile.weights)[0]
        reason = f"{profile.strategy} score {score:.3f} among {len(constrained)} candidate(s)"
        if from_fallback_list:
            reason += "; no primary model available, used fallback list"
        if degraded:
            reason += "; hard constraints ignored"
        self._record(
            scenario,
            chosen,
            profile.strategy,
            len(constrained),
            is_fallback=from_fallback_list,
            reason=reason,
        )
        return chosen

    async def select_best(
        self,
        available_models: Sequence[ModelDescriptor],
        scenario: str = DEFAULT_SCENARIO,
    ) -> ModelDescriptor:
        if not available_models:
            return await self._select_without_registry(scenario)
        candidates = sorted(available_models, key=lambda m: m.key)
        chosen, score = rank_candidates(candidates, SelectionWeights())[0]
        self._record(
            scenario,
            chosen,
            SelectionStrategy.BALANCED,
            len(candidates),
            is_fallback=False,
            reason=f"no scenario profile; balanced score {score:.3f}",
        )
        return chosen

    async def _select_without_registry(self, scenario: str) -> ModelDescriptor:
        logger.warning(
            "No models available in registry for scenario %s, trying local %s runtime",
            scenario,
            self.local_provider,
        )
        adapter = self.adapters.get(self.local_provider)
        if adapter is None:
            raise AIError(
                AIErrorCode.PROVIDER_UNAVAILABLE,
                "No models available and no local fallback registered",
            )

        name = self.local_default_model
        if supports_listing(adapter):
            try:
                names = await adapter.list_models()  # type: ignore[attr-defined]
            except Exception as e:
                raise AIError(
                    AIErrorCode.PROVIDER_UNAVAILABLE,
                    f"No models available and local provider {self.local_provider} "
                    f"is unreachable: {e}",
                    provider=self.local_provider,
                ) from e
            if names:
                name = names[0]

        chosen = self._local_descriptor(name)
        self._record(
            scenario,
            chosen,
            "local-fallback",
            0,
            is_fallback=True,
            reason="registry empty; using local runtime model",
        )
        return chosen

    async def _run_cascade(
        self,
        scenario: str,
        available_models: Sequence[ModelDescriptor],
        strategy: str,
        why: str,
    ) -> ModelDescriptor:
        for step in self.fallback_cascade:
            result = await step(available_models)
            if result is None:
                continue
            chosen, how = result
            logger.warning("Fallback for scenario %s: %s (%s)", scenario, chosen.key, how)
            self._record(
                scenario,
                chosen,
                strategy,
                len(available_models),
                is_fallback=True,
                reason=f"{why}; {how}",
            )
            return chosen
        raise AIError(
            AIErrorCode.PROVIDER_UNAVAILABLE,
            f"No model could be selected for scenario {scenario}",
        )

    async def _local_model_in_registry(
        self, available_models: Sequence[ModelDescriptor]
    ) -> tuple[ModelDescriptor, str] | None:
        for model in available_models:
            if model.provider == self.local_provider:
                return model, "local provider model from registry"
        return None

    async def _local_default_model(
        self, available_models: Sequence[ModelDescriptor]
    ) -> tuple[ModelDescriptor, str] | None:
        if self.local_provider not in self.adapters:
            return None
        return self._local_descriptor(self.local_default_model), "local provider default model"

    async def _first_registry_model(
        self, available_models: Sequence[ModelDescriptor]
    ) -> tuple[ModelDescriptor, str] | None:
        if not available_models:
            return None
        return available_models[0], "first registry model"

    def _local_descriptor(self, name: str) -> ModelDescriptor:
        known = find_in_catalog(name, self.local_provider)
        if known is not None and known.provider == self.local_provider:
            return known
        return ModelDescriptor(provider=self.local_provider, name=name)

    def _record(
        self,
        scenario: str,
        model: ModelDescriptor,
        strategy: str,
        candidate_count: int,
        *,
        is_fallback: bool,
        reason: str,
    ) -> None:
        decision = SelectionDecision(
            scenario=scenario,
            model=model.key,
            provider=model.provider,
            strategy=str(strategy),
            candidate_count=candidate_count,
            is_fallback=is_fallback,
            reason=reason,
            cost_per_token=model.cost_per_token,
            latency_ms=model.avg_latency_ms,
            success_rate=model.success_rate,
        )
        self._log.append(decision)
        logger.info(
            "Model selection: scenario=%s model=%s strategy=%s candidates=%d fallback=%s (%s)",
            scenario,
            model.key,
            decision.strategy,
            candidate_count,
            is_fallback,
            reason,
        )

    def get_selection_log(self, limit: int = 100) -> list[SelectionDecision]:
        if limit <= 0:
            return []
        return list(self._log)[-limit:]

    def clear_selection_log(self) -> None:
        self._log.clear()

    def get_selection_statistics(self) -> dict[str, Any]:
        decisions = list(self._log)
        total = len(decisions)
        fallbacks = sum(1 for d in decisions if d.is_fallback)

        scenario_stats: dict[str, dict[str, Any]] = {}
        model_stats: dict[str, dict[str, Any]] = {}
        strategy_stats: Counter[str] = Counter()

        for d in decisions:
            s = scenario_stats.setdefault(
                d.scenario, {"count": 0, "fallback_count": 0, "models": set()}
            )
            s["count"] += 1
            s["fallback_count"] += int(d.is_fallback)
            s["models"].add(d.model)

            m = model_stats.setdefault(d.model, {"count": 0, "scenarios": set()})
            m["count"] += 1
            m["scenarios"].add(d.scenario)

            strategy_stats[d.strategy] += 1

        for s in scenario_stats.values():
            s["models"] = sorted(s["models"])
            s["fallback_rate"] = s["fallback_count"] / s["count"]
        for m in model_stats.values():
            m["scenarios"] = sorted(m["scenarios"])

        return {
            "total_selections": total,
            "fallback_count": fallbacks,
            "fallback_rate": fallbacks / total if total else 0.0,
            "scenario_stats": scenario_stats,
            "model_stats": model_stats,
            "strategy_stats": dict(strategy_stats),
        }
