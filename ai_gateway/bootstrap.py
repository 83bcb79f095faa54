import logging
import os

from ai_gateway.adapters.env import build_adapters_from_env
from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.config.loader import YamlConfigurationStore, load_scenario_profiles
from ai_gateway.interfaces import ConfigurationStore
from ai_gateway.llm.registry import RegistryAggregator
from ai_gateway.llm.retry import RetryPolicy
from ai_gateway.llm.router import RequestRouter
from ai_gateway.llm.scenarios import ScenarioCatalog
from ai_gateway.llm.selector import ScenarioSelector
from ai_gateway.templates import PromptTemplateManager, load_templates

logger = logging.getLogger(__name__)


def create_router(
    adapters: AdapterFactory | None = None,
    config_store: ConfigurationStore | None = None,
    scenario_config_path: str | None = None,
    template_path: str | None = None,
    retry_policy: RetryPolicy | None = None,
) -> RequestRouter:
    """Wire a router from explicit collaborators, falling back to the environment.

    ``MODEL_CONFIG_PATH`` selects a YAML model store, ``SCENARIO_CONFIG_PATH``
    overrides scenario profiles and ``PROMPT_TEMPLATE_PATH`` loads templates.
    The registry stays empty until ``start_router`` (or ``reload_models``) runs.
    """
    if adapters is None:
        adapters = build_adapters_from_env()

    if config_store is None:
        model_config_path = os.environ.get("MODEL_CONFIG_PATH")
        if model_config_path:
            config_store = YamlConfigurationStore(model_config_path)

    scenarios = ScenarioCatalog()
    for profile in load_scenario_profiles(
        scenario_config_path or os.environ.get("SCENARIO_CONFIG_PATH")
    ).values():
        scenarios.register(profile)

    templates = PromptTemplateManager(
        load_templates(template_path or os.environ.get("PROMPT_TEMPLATE_PATH"))
    )

    router = RequestRouter(
        adapters=adapters,
        aggregator=RegistryAggregator(adapters, config_store),
        selector=ScenarioSelector(scenarios=scenarios, adapters=adapters),
        templates=templates,
        retry_policy=retry_policy,
    )
    logger.info("Router created with providers: %s", ", ".join(adapters.providers()) or "<none>")
    return router


async def start_router(router: RequestRouter | None = None) -> RequestRouter:
    router = router or create_router()
    count = await router.reload_models()
    logger.info("Router ready with %d model(s)", count)
    return router
