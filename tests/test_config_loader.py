import os

from ai_gateway.config.loader import (
    StaticConfigurationStore,
    YamlConfigurationStore,
    _substitute_env_vars,
    load_model_configs,
    load_scenario_profiles,
)
from ai_gateway.schemas import ModelConfigEntry, SelectionStrategy


class TestSubstituteEnvVars:
    def test_basic(self, monkeypatch):
        monkeypatch.setenv("HOME", "/users/test")
        assert _substitute_env_vars("${HOME}") == "/users/test"

    def test_with_default(self):
        result = _substitute_env_vars("${NONEXISTENT_VAR_12345:-fallback}")
        assert result == "fallback"

    def test_missing_no_default(self):
        key = "TOTALLY_MISSING_VAR_99999"
        assert os.environ.get(key) is None
        assert _substitute_env_vars(f"${{{key}}}") == ""

    def test_no_substitution(self):
        assert _substitute_env_vars("plain string") == "plain string"

    def test_env_var_overrides_default(self, monkeypatch):
        monkeypatch.setenv("MY_VAR", "real")
        assert _substitute_env_vars("${MY_VAR:-default}") == "real"

    def test_embedded_in_url(self, monkeypatch):
        monkeypatch.setenv("API_HOST", "api.example.com")
        result = _substitute_env_vars("https://${API_HOST}/v1")
        assert result == "https://api.example.com/v1"


VALID_YAML = """\
models:
  - provider: "openai"
    name: "gpt-4o-mini"
    is_active: true
    default_temperature: 0.3
  - provider: "ollama"
    name: "llama3.1:8b"
    is_active: false
"""


class TestLoadModelConfigs:
    def test_load_valid_yaml(self, tmp_path):
        cfg_file = tmp_path / "models.yaml"
        cfg_file.write_text(VALID_YAML)
        result = load_model_configs(str(cfg_file))
        assert [(c.provider, c.name) for c in result] == [
            ("openai", "gpt-4o-mini"),
            ("ollama", "llama3.1:8b"),
        ]
        assert result[0].default_temperature == 0.3
        assert result[1].is_active is False

    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_ENDPOINT", "https://custom.api.com/v1")
        cfg_file = tmp_path / "models.yaml"
        cfg_file.write_text(
            'models:\n  - provider: "custom"\n    name: "m"\n    endpoint: "${TEST_ENDPOINT}"\n'
        )
        [cfg] = load_model_configs(str(cfg_file))
        assert cfg.endpoint == "https://custom.api.com/v1"

    def test_missing_file(self):
        assert load_model_configs("/nonexistent/path/models.yaml") == []

    def test_none_path(self):
        assert load_model_configs(None) == []

    def test_invalid_yaml(self, tmp_path):
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("{{{{not yaml at all::::")
        assert load_model_configs(str(cfg_file)) == []

    def test_missing_models_key(self, tmp_path):
        cfg_file = tmp_path / "no_models.yaml"
        cfg_file.write_text("something_else:\n  - foo: bar\n")
        assert load_model_configs(str(cfg_file)) == []

    def test_invalid_entry_skipped(self, tmp_path):
        cfg_file = tmp_path / "mixed.yaml"
        cfg_file.write_text(
            "models:\n"
            '  - provider: "openai"\n'
            '    name: "ok"\n'
            '  - provider: "openai"\n'
            "    default_temperature: 9\n"
        )
        result = load_model_configs(str(cfg_file))
        assert [c.name for c in result] == ["ok"]

    def test_duplicate_entry_later_wins(self, tmp_path):
        cfg_file = tmp_path / "dupes.yaml"
        cfg_file.write_text(
            "models:\n"
            '  - {provider: "qwen", name: "qwen-turbo", default_max_tokens: 100}\n'
            '  - {provider: "qwen", name: "qwen-flash"}\n'
            '  - {provider: "qwen", name: "qwen-turbo", default_max_tokens: 200}\n'
        )
        result = load_model_configs(str(cfg_file))
        assert [(c.name, c.default_max_tokens) for c in result] == [
            ("qwen-flash", 2048),
            ("qwen-turbo", 200),
        ]


class TestLoadScenarioProfiles:
    def test_load(self, tmp_path):
        cfg_file = tmp_path / "scenarios.yaml"
        cfg_file.write_text(
            "scenarios:\n"
            '  - scenario: "resume-parsing"\n'
            '    strategy: "cost"\n'
            '    primary_models: ["ollama:llama3.2"]\n'
            "    weights: {quality: 0.2, cost: 0.7, latency: 0.1}\n"
            '  - scenario: "broken"\n'
            "    weights: {quality: 0.9, cost: 0.9, latency: 0.9}\n"
        )
        profiles = load_scenario_profiles(str(cfg_file))
        assert list(profiles) == ["resume-parsing"]
        profile = profiles["resume-parsing"]
        assert profile.strategy == SelectionStrategy.COST
        assert profile.primary_models == ("ollama:llama3.2",)
        assert profile.weights.cost == 0.7

    def test_missing_file(self):
        assert load_scenario_profiles("/nope.yaml") == {}


class TestConfigurationStores:
    async def test_yaml_store_rereads_file(self, tmp_path):
        cfg_file = tmp_path / "models.yaml"
        cfg_file.write_text(VALID_YAML)
        store = YamlConfigurationStore(str(cfg_file))
        assert len(await store.get_all_model_configs()) == 2

        cfg_file.write_text('models:\n  - {provider: "openai", name: "gpt-4o"}\n')
        [cfg] = await store.get_all_model_configs()
        assert cfg.name == "gpt-4o"

    async def test_static_store_returns_copy(self):
        entries = [ModelConfigEntry(provider="p", name="m")]
        store = StaticConfigurationStore(entries)
        result = await store.get_all_model_configs()
        result.clear()
        assert len(await store.get_all_model_configs()) == 1
