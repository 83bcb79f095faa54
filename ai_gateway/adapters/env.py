import logging
import os

from dotenv import load_dotenv

from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.adapters.ollama import OllamaAdapter
from ai_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from ai_gateway.constants import OLLAMA_BASE_URL

logger = logging.getLogger(__name__)


def _detect_provider_from_url(base_url: str) -> str:
    url_lower = base_url.lower()
    if "openai.com" in url_lower:
        return "openai"
    if "deepseek.com" in url_lower:
        return "deepseek"
    if "dashscope" in url_lower:
        return "qwen"
    if "siliconflow" in url_lower:
        return "siliconcloud"
    return "custom"


def build_adapters_from_env() -> AdapterFactory:
    """Register one adapter per backend configured through the environment.

    ``LLM_API_KEY``/``LLM_BASE_URL`` give a generic OpenAI-compatible backend named
    after its host, ``DEEPSEEK_API_KEY`` adds DeepSeek, and the local Ollama
    runtime is always registered unless ``OLLAMA_DISABLED=1``.
    """
    load_dotenv()
    factory = AdapterFactory()

    api_key = os.environ.get("LLM_API_KEY", "")
    if api_key:
        base_url = os.environ.get("LLM_BASE_URL", "https://api.openai.com/v1")
        factory.register(
            OpenAICompatibleAdapter(
                name=_detect_provider_from_url(base_url), api_key=api_key, base_url=base_url
            )
        )

    deepseek_key = os.environ.get("DEEPSEEK_API_KEY", "")
    if deepseek_key and "deepseek" not in factory:
        factory.register(
            OpenAICompatibleAdapter(
                name="deepseek",
                api_key=deepseek_key,
                base_url=os.environ.get("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1"),
            )
        )

    if os.environ.get("OLLAMA_DISABLED", "").strip().lower() in ("1", "true", "yes"):
        logger.info("Local Ollama adapter disabled by OLLAMA_DISABLED")
    else:
        factory.register(OllamaAdapter(base_url=os.environ.get("OLLAMA_BASE_URL", OLLAMA_BASE_URL)))

    if not factory.providers():
        logger.warning("No backend adapters configured from environment")
    return factory
