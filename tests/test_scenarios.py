import pytest
from pydantic import ValidationError

from ai_gateway.llm.scenarios import (
    DEFAULT_SCENARIO_PROFILES,
    ScenarioCatalog,
    ScenarioType,
)
from ai_gateway.schemas import ScenarioProfile, SelectionStrategy
from tests.fakes import make_model


class TestDefaultProfiles:
    def test_every_scenario_has_a_profile(self):
        for scenario in ScenarioType:
            assert scenario in DEFAULT_SCENARIO_PROFILES, scenario

    def test_profiles_reference_provider_qualified_ids(self):
        for profile in DEFAULT_SCENARIO_PROFILES.values():
            for model_id in (*profile.primary_models, *profile.fallback_models):
                assert ":" in model_id, model_id

    def test_parsing_is_cost_driven(self):
        profile = DEFAULT_SCENARIO_PROFILES[ScenarioType.RESUME_PARSING]
        assert profile.strategy == SelectionStrategy.COST
        assert profile.weights.cost > profile.weights.quality

    def test_optimization_is_quality_driven(self):
        profile = DEFAULT_SCENARIO_PROFILES[ScenarioType.RESUME_OPTIMIZATION]
        assert profile.strategy == SelectionStrategy.QUALITY
        assert profile.weights.quality > profile.weights.cost

    def test_unknown_scenario(self):
        assert ScenarioCatalog().get("does-not-exist") is None


class TestScenarioCatalog:
    def test_update_replaces_profile(self):
        catalog = ScenarioCatalog()
        updated = catalog.update(ScenarioType.GENERAL, primary_models=("p:a",))
        assert updated.primary_models == ("p:a",)
        assert catalog.get(ScenarioType.GENERAL) is updated
        assert DEFAULT_SCENARIO_PROFILES[ScenarioType.GENERAL].primary_models != ("p:a",)

    def test_update_rejects_bad_weights(self):
        catalog = ScenarioCatalog()
        before = catalog.get(ScenarioType.GENERAL)
        with pytest.raises(ValidationError):
            catalog.update(
                ScenarioType.GENERAL, weights={"quality": 0.9, "cost": 0.9, "latency": 0.9}
            )
        assert catalog.get(ScenarioType.GENERAL) is before

    def test_update_unknown_scenario(self):
        with pytest.raises(KeyError):
            ScenarioCatalog().update("nope", primary_models=())

    def test_register_and_reset(self):
        catalog = ScenarioCatalog()
        catalog.register(ScenarioProfile(scenario="custom"))
        assert "custom" in catalog.scenarios()
        catalog.reset_to_defaults()
        assert catalog.get("custom") is None
        assert catalog.get(ScenarioType.GENERAL) is not None

    def test_recommended_models_in_profile_order(self):
        catalog = ScenarioCatalog(
            {
                "s": ScenarioProfile(
                    scenario="s", primary_models=("p:b", "p:a"), fallback_models=("p:c", "p:a")
                )
            }
        )
        available = [make_model("p", n) for n in ("a", "b", "c", "d")]
        assert [m.name for m in catalog.recommended_models("s", available)] == ["b", "a", "c"]
        assert catalog.recommended_models("missing", available) == []
