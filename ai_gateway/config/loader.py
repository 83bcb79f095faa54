import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ai_gateway.schemas import ModelConfigEntry, ScenarioProfile

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(.*?))?\}")


def _substitute_env_vars(value: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        return default if default is not None else ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _substitute_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _substitute_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_recursive(item) for item in obj]
    return obj


def _read_yaml_list(config_path: str | None, section: str) -> list[Any] | None:
    if not config_path:
        return None

    path = Path(config_path)
    if not path.is_file():
        logger.warning("Config file not found: %s", config_path)
        return None

    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config from %s: %s", config_path, e)
        return None

    if not isinstance(data, dict) or section not in data:
        logger.warning("Config missing '%s' key: %s", section, config_path)
        return None

    entries = data[section]
    if not isinstance(entries, list) or not entries:
        logger.warning("Config '%s' is empty or not a list: %s", section, config_path)
        return None
    return entries


def load_model_configs(config_path: str | None = None) -> list[ModelConfigEntry]:
    raw_models = _read_yaml_list(config_path, "models")
    if raw_models is None:
        return []

    configs: list[ModelConfigEntry] = []
    seen: set[tuple[str, str]] = set()
    for i, entry in enumerate(raw_models):
        entry = _substitute_recursive(entry)
        try:
            cfg = ModelConfigEntry.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping invalid model entry %d in %s: %s", i, config_path, e)
            continue
        if (cfg.provider, cfg.name) in seen:
            logger.warning(
                "Duplicate model entry %s:%s in %s, later entry wins",
                cfg.provider,
                cfg.name,
                config_path,
            )
            configs = [c for c in configs if (c.provider, c.name) != (cfg.provider, cfg.name)]
        seen.add((cfg.provider, cfg.name))
        configs.append(cfg)

    logger.info("Loaded %d model config(s) from YAML: %s", len(configs), config_path)
    return configs


def load_scenario_profiles(config_path: str | None = None) -> dict[str, ScenarioProfile]:
    raw_profiles = _read_yaml_list(config_path, "scenarios")
    if raw_profiles is None:
        return {}

    profiles: dict[str, ScenarioProfile] = {}
    for i, entry in enumerate(raw_profiles):
        entry = _substitute_recursive(entry)
        try:
            profile = ScenarioProfile.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping invalid scenario entry %d in %s: %s", i, config_path, e)
            continue
        profiles[profile.scenario] = profile

    logger.info("Loaded %d scenario profile(s) from YAML: %s", len(profiles), config_path)
    return profiles


class YamlConfigurationStore:
    """Configuration store backed by a YAML file, re-read on every call.

    Re-reading keeps ``reload_models`` meaningful: edits to the file show up on
    the next registry rebuild.
    """

    def __init__(self, config_path: str) -> None:
        self.config_path = config_path

    async def get_all_model_configs(self) -> list[ModelConfigEntry]:
        return load_model_configs(self.config_path)


class StaticConfigurationStore:
    def __init__(self, configs: list[ModelConfigEntry] | None = None) -> None:
        self.configs = list(configs or [])

    async def get_all_model_configs(self) -> list[ModelConfigEntry]:
        return list(self.configs)
