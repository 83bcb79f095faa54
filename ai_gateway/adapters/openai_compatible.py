import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError,
)

from ai_gateway.constants import LLM_DEFAULT_MAX_TOKENS
from ai_gateway.errors import AIError, AIErrorCode
from ai_gateway.llm.catalog import find_in_catalog
from ai_gateway.schemas import AIRequest, AIResponse, ModelDescriptor, StreamChunk, TokenUsage

logger = logging.getLogger(__name__)

LLM_TIMEOUT = httpx.Timeout(connect=60.0, read=120.0, write=60.0, pool=60.0)

_client_cache: dict[tuple[str, str], AsyncOpenAI] = {}


def _get_or_create_client(api_key: str, base_url: str) -> AsyncOpenAI:
    cache_key = (base_url, api_key)
    if cache_key not in _client_cache:
        _client_cache[cache_key] = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=LLM_TIMEOUT,
            max_retries=0,  # retries belong to the router's retry executor
        )
    return _client_cache[cache_key]


# Order matters: APITimeoutError subclasses APIConnectionError.
_ERROR_MAP: tuple[tuple[type[Exception], AIErrorCode], ...] = (
    (APITimeoutError, AIErrorCode.TIMEOUT),
    (httpx.TimeoutException, AIErrorCode.TIMEOUT),
    (APIConnectionError, AIErrorCode.PROVIDER_UNAVAILABLE),
    (httpx.ConnectError, AIErrorCode.PROVIDER_UNAVAILABLE),
    (InternalServerError, AIErrorCode.PROVIDER_UNAVAILABLE),
    (RateLimitError, AIErrorCode.RATE_LIMITED),
    (AuthenticationError, AIErrorCode.AUTHENTICATION_FAILED),
    (PermissionDeniedError, AIErrorCode.AUTHENTICATION_FAILED),
    (BadRequestError, AIErrorCode.INVALID_REQUEST),
    (NotFoundError, AIErrorCode.INVALID_REQUEST),
    (UnprocessableEntityError, AIErrorCode.INVALID_REQUEST),
)


def translate_error(exc: Exception, provider: str) -> AIError:
    if isinstance(exc, AIError):
        return exc
    for exc_type, code in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return AIError(code, f"{provider}: {exc}", provider=provider)
    return AIError(
        AIErrorCode.UNKNOWN_ERROR,
        f"{provider}: {type(exc).__name__}: {exc}",
        provider=provider,
    )


def infer_model_info(provider: str, model_name: str) -> ModelDescriptor:
    """Catalog entry when known, otherwise a best guess from the model name."""
    known = find_in_catalog(model_name, provider)
    if known is not None:
        return known.model_copy(update={"provider": provider, "name": model_name})

    name_lower = model_name.lower()

    if provider == "ollama":
        return ModelDescriptor(
            provider=provider,
            name=model_name,
            family="llama" if "llama" in name_lower else "other",
            context_window=8_000,
            avg_latency_ms=900,
            quality_rating=4,
        )

    if provider == "deepseek":
        is_reasoner = "reasoner" in name_lower or "r1" in name_lower
        return ModelDescriptor(
            provider=provider,
            name=model_name,
            family="deepseek",
            context_window=64_000,
            cost_per_input_token=0.55e-6 if is_reasoner else 0.14e-6,
            cost_per_output_token=2.19e-6 if is_reasoner else 0.28e-6,
            avg_latency_ms=4000 if is_reasoner else 1200,
            quality_rating=9 if is_reasoner else 7,
        )

    is_mini = "mini" in name_lower
    is_o_series = name_lower.startswith("o1") or name_lower.startswith("o3")
    return ModelDescriptor(
        provider=provider,
        name=model_name,
        family="openai" if provider == "openai" else "other",
        context_window=128_000,
        cost_per_input_token=0.15e-6 if is_mini else 2.50e-6,
        cost_per_output_token=0.60e-6 if is_mini else 10.00e-6,
        avg_latency_ms=700 if is_mini else 1500,
        quality_rating=9 if is_o_series else (6 if is_mini else 8),
    )


class OpenAICompatibleAdapter:
    """Adapter for any backend that speaks the OpenAI chat-completions API."""

    def __init__(
        self,
        name: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        client: AsyncOpenAI | None = None,
        embedding_model: str = "text-embedding-3-small",
    ) -> None:
        self.name = name
        self.base_url = base_url
        self.embedding_model = embedding_model
        self.client = client or _get_or_create_client(api_key, base_url)

    def _build_messages(self, request: AIRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [m.model_dump() for m in request.messages]
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def _build_kwargs(self, request: AIRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": self._build_messages(request),
            "max_tokens": request.max_tokens or LLM_DEFAULT_MAX_TOKENS,
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.stop_sequences:
            kwargs["stop"] = request.stop_sequences
        return kwargs

    async def call(self, request: AIRequest) -> AIResponse:
        start_time = time.perf_counter()
        try:
            completion = await self.client.chat.completions.create(**self._build_kwargs(request))
        except Exception as e:
            logger.error(
                "%s request failed after %.2fs: %s: %s",
                self.name,
                time.perf_counter() - start_time,
                type(e).__name__,
                e,
            )
            raise translate_error(e, self.name) from e

        logger.info("%s request completed in %.2fs", self.name, time.perf_counter() - start_time)
        choice = completion.choices[0] if completion.choices else None
        usage = TokenUsage()
        if completion.usage:
            usage = TokenUsage(
                input_tokens=completion.usage.prompt_tokens,
                output_tokens=completion.usage.completion_tokens,
            )
        return AIResponse(
            content=(choice.message.content or "") if choice else "",
            usage=usage,
            model=completion.model or request.model or "",
            provider=self.name,
            finish_reason=choice.finish_reason if choice else None,
        )

    async def stream(self, request: AIRequest) -> AsyncIterator[StreamChunk]:
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        try:
            stream = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            raise translate_error(e, self.name) from e

        # Closing the stream releases the HTTP response on every exit path.
        try:
            async for chunk in stream:
                usage = None
                if chunk.usage:
                    usage = TokenUsage(
                        input_tokens=chunk.usage.prompt_tokens,
                        output_tokens=chunk.usage.completion_tokens,
                    )
                content = ""
                finish_reason = None
                if chunk.choices:
                    content = chunk.choices[0].delta.content or ""
                    finish_reason = chunk.choices[0].finish_reason
                if content or usage or finish_reason:
                    yield StreamChunk(content=content, usage=usage, finish_reason=finish_reason)
        except AIError:
            raise
        except Exception as e:
            raise translate_error(e, self.name) from e
        finally:
            await stream.close()

    async def list_models(self) -> list[str]:
        try:
            page = await self.client.models.list()
        except Exception as e:
            raise translate_error(e, self.name) from e
        return [m.id for m in page.data]

    async def get_model_info(self, model_name: str) -> ModelDescriptor:
        return infer_model_info(self.name, model_name)

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        try:
            result = await self.client.embeddings.create(
                model=model or self.embedding_model, input=text
            )
        except Exception as e:
            raise translate_error(e, self.name) from e
        return list(result.data[0].embedding)
