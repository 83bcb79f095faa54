from ai_gateway.config.loader import (
    StaticConfigurationStore,
    YamlConfigurationStore,
    load_model_configs,
    load_scenario_profiles,
)

__all__ = [
    "StaticConfigurationStore",
    "YamlConfigurationStore",
    "load_model_configs",
    "load_scenario_profiles",
]
