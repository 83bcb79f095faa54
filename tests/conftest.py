import pytest

from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.llm.registry import RegistryAggregator
from ai_gateway.llm.retry import RetryPolicy
from ai_gateway.llm.router import RequestRouter
from ai_gateway.llm.scenarios import ScenarioCatalog
from ai_gateway.llm.selector import ScenarioSelector
from tests.fakes import RecordingSleep


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def build_router(no_sleep):
    def _build(
        adapters,
        models=(),
        profiles=None,
        templates=None,
        max_retries=2,
        stream_timeout=5.0,
    ):
        factory = adapters if isinstance(adapters, AdapterFactory) else AdapterFactory(adapters)
        return RequestRouter(
            adapters=factory,
            aggregator=RegistryAggregator(factory, catalog=tuple(models)),
            selector=ScenarioSelector(
                scenarios=ScenarioCatalog(profiles if profiles is not None else {}),
                adapters=factory,
            ),
            templates=templates,
            retry_policy=RetryPolicy(max_retries=max_retries, initial_delay=0.01, max_delay=0.1),
            stream_timeout=stream_timeout,
            sleep=no_sleep,
        )

    return _build
