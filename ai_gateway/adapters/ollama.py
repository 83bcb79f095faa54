import logging

import httpx
from openai import AsyncOpenAI

from ai_gateway.adapters.openai_compatible import (
    OpenAICompatibleAdapter,
    infer_model_info,
    translate_error,
)
from ai_gateway.constants import LOCAL_PROVIDER, OLLAMA_BASE_URL
from ai_gateway.schemas import ModelDescriptor

logger = logging.getLogger(__name__)

OLLAMA_API_KEY = "ollama"
OLLAMA_LIST_TIMEOUT = httpx.Timeout(10.0)


class OllamaAdapter(OpenAICompatibleAdapter):
    """Local Ollama runtime. Chat goes through its ``/v1`` OpenAI-compatible API."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        name: str = LOCAL_PROVIDER,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
        embedding_model: str = "nomic-embed-text",
    ) -> None:
        self.root_url = base_url.rstrip("/").removesuffix("/v1")
        super().__init__(
            name=name,
            api_key=OLLAMA_API_KEY,
            base_url=f"{self.root_url}/v1",
            client=client,
            embedding_model=embedding_model,
        )
        self.http_client = http_client

    async def list_models(self) -> list[str]:
        url = f"{self.root_url}/api/tags"
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, timeout=OLLAMA_LIST_TIMEOUT)
            else:
                async with httpx.AsyncClient(timeout=OLLAMA_LIST_TIMEOUT) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Ollama model listing failed at %s: %s", url, e)
            raise translate_error(e, self.name) from e

        data = response.json()
        names = [m["name"] for m in data.get("models", []) if m.get("name")]
        logger.debug("Ollama reports %d local model(s)", len(names))
        return names

    async def get_model_info(self, model_name: str) -> ModelDescriptor:
        info = infer_model_info(self.name, model_name)
        return info.model_copy(update={"cost_per_input_token": 0.0, "cost_per_output_token": 0.0})
