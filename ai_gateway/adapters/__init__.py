from ai_gateway.adapters.env import build_adapters_from_env
from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.adapters.ollama import OllamaAdapter
from ai_gateway.adapters.openai_compatible import OpenAICompatibleAdapter

__all__ = ["AdapterFactory", "OllamaAdapter", "OpenAICompatibleAdapter", "build_adapters_from_env"]
