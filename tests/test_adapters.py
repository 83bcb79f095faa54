from types import SimpleNamespace

import asyncio
import json

import httpx
import openai
import pytest

from ai_gateway.adapters.env import build_adapters_from_env
from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.adapters.ollama import OllamaAdapter
from ai_gateway.adapters.openai_compatible import (
    OpenAICompatibleAdapter,
    infer_model_info,
    translate_error,
)
from ai_gateway.errors import AIError, AIErrorCode
from ai_gateway.interfaces import BackendAdapter, supports_listing
from ai_gateway.schemas import AIRequest, ChatMessage
from tests.fakes import FakeAdapter, make_model

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def _status_error(cls, status):
    return cls("boom", response=httpx.Response(status, request=_REQUEST), body=None)


class FakeCompletions:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


class FakeOpenAIClient:
    def __init__(self, completions=None, model_ids=(), embedding=(0.5, 0.25)):
        self.chat = SimpleNamespace(completions=completions or FakeCompletions())
        self._model_ids = list(model_ids)
        self.models = SimpleNamespace(list=self._list_models)
        self.embeddings = SimpleNamespace(create=self._embed)
        self._embedding = list(embedding)
        self.embed_kwargs = None

    async def _list_models(self):
        return SimpleNamespace(data=[SimpleNamespace(id=i) for i in self._model_ids])

    async def _embed(self, **kwargs):
        self.embed_kwargs = kwargs
        return SimpleNamespace(data=[SimpleNamespace(embedding=self._embedding)])


def _completion(content="hello", prompt_tokens=12, completion_tokens=3):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")
        ],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
        model="gpt-4o-mini",
    )


class FakeDelta:
    def __init__(self, content):
        self.content = content


class FakeChoice:
    def __init__(self, content, finish_reason=None):
        self.delta = FakeDelta(content)
        self.finish_reason = finish_reason


class FakeUsage:
    def __init__(self, prompt, completion):
        self.prompt_tokens = prompt
        self.completion_tokens = completion


class FakeChunk:
    def __init__(self, content=None, usage=None, finish_reason=None):
        self.choices = [FakeChoice(content, finish_reason)] if content or finish_reason else []
        self.usage = usage


class FakeStream:
    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def close(self):
        self.closed = True


class TestTranslateError:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (openai.APITimeoutError(request=_REQUEST), AIErrorCode.TIMEOUT),
            (openai.APIConnectionError(request=_REQUEST), AIErrorCode.PROVIDER_UNAVAILABLE),
            (_status_error(openai.RateLimitError, 429), AIErrorCode.RATE_LIMITED),
            (_status_error(openai.InternalServerError, 503), AIErrorCode.PROVIDER_UNAVAILABLE),
            (_status_error(openai.AuthenticationError, 401), AIErrorCode.AUTHENTICATION_FAILED),
            (_status_error(openai.BadRequestError, 400), AIErrorCode.INVALID_REQUEST),
            (_status_error(openai.NotFoundError, 404), AIErrorCode.INVALID_REQUEST),
            (httpx.ConnectError("refused"), AIErrorCode.PROVIDER_UNAVAILABLE),
            (httpx.ReadTimeout("slow"), AIErrorCode.TIMEOUT),
            (ValueError("weird"), AIErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_maps_vendor_errors(self, error, code):
        translated = translate_error(error, "openai")
        assert translated.code == code
        assert translated.provider == "openai"

    def test_ai_error_passes_through(self):
        err = AIError(AIErrorCode.CANCELLED, "stop")
        assert translate_error(err, "openai") is err


class TestInferModelInfo:
    def test_catalog_hit(self):
        info = infer_model_info("openai", "gpt-4o-mini")
        assert info.key == "openai:gpt-4o-mini"
        assert info.cost_per_input_token > 0

    def test_heuristics_for_unknown_models(self):
        mini = infer_model_info("custom", "acme-mini")
        big = infer_model_info("custom", "acme-large")
        assert mini.cost_per_token < big.cost_per_token
        assert mini.key == "custom:acme-mini"

    def test_deepseek_reasoner_heuristic(self):
        reasoner = infer_model_info("deepseek", "deepseek-r1-distill")
        assert reasoner.quality_rating == 9


class TestOpenAICompatibleAdapter:
    def test_satisfies_protocol(self):
        adapter = OpenAICompatibleAdapter("openai", "k", client=FakeOpenAIClient())
        assert isinstance(adapter, BackendAdapter)
        assert supports_listing(adapter)

    async def test_call(self):
        completions = FakeCompletions(result=_completion())
        adapter = OpenAICompatibleAdapter("openai", "k", client=FakeOpenAIClient(completions))
        request = AIRequest(
            prompt="hi",
            model="gpt-4o-mini",
            temperature=0.2,
            messages=[ChatMessage(role="system", content="be brief")],
            stop_sequences=["END"],
        )

        response = await adapter.call(request)

        assert response.content == "hello"
        assert response.usage.input_tokens == 12
        assert response.usage.output_tokens == 3
        assert response.provider == "openai"
        assert completions.kwargs["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ]
        assert completions.kwargs["temperature"] == 0.2
        assert completions.kwargs["stop"] == ["END"]
        assert completions.kwargs["max_tokens"] == 8192

    async def test_call_translates_errors(self):
        completions = FakeCompletions(error=_status_error(openai.RateLimitError, 429))
        adapter = OpenAICompatibleAdapter("qwen", "k", client=FakeOpenAIClient(completions))
        with pytest.raises(AIError) as exc_info:
            await adapter.call(AIRequest(prompt="hi", model="qwen-turbo"))
        assert exc_info.value.code == AIErrorCode.RATE_LIMITED
        assert exc_info.value.retryable is True

    async def test_stream(self):
        fake_stream = FakeStream(
            [
                FakeChunk(content="Hel"),
                FakeChunk(content="lo"),
                FakeChunk(finish_reason="stop"),
                FakeChunk(usage=FakeUsage(100, 50)),
            ]
        )

        class StreamingCompletions(FakeCompletions):
            async def create(self, **kwargs):
                self.kwargs = kwargs
                return fake_stream

        completions = StreamingCompletions()
        adapter = OpenAICompatibleAdapter("openai", "k", client=FakeOpenAIClient(completions))

        chunks = [c async for c in adapter.stream(AIRequest(prompt="hi", model="gpt-4o"))]

        assert completions.kwargs["stream"] is True
        assert "".join(c.content for c in chunks) == "Hello"
        assert chunks[-1].usage.input_tokens == 100
        assert chunks[-1].usage.output_tokens == 50
        assert any(c.finish_reason == "stop" for c in chunks)
        assert fake_stream.closed is True

    async def test_stream_translates_errors(self):
        completions = FakeCompletions(error=openai.APIConnectionError(request=_REQUEST))
        adapter = OpenAICompatibleAdapter("openai", "k", client=FakeOpenAIClient(completions))
        with pytest.raises(AIError) as exc_info:
            async for _ in adapter.stream(AIRequest(prompt="hi", model="gpt-4o")):
                pass
        assert exc_info.value.code == AIErrorCode.PROVIDER_UNAVAILABLE

    async def test_list_models_and_embed(self):
        client = FakeOpenAIClient(model_ids=["gpt-4o", "gpt-4o-mini"])
        adapter = OpenAICompatibleAdapter("openai", "k", client=client)
        assert await adapter.list_models() == ["gpt-4o", "gpt-4o-mini"]
        assert await adapter.embed("text", "text-embedding-3-large") == [0.5, 0.25]
        assert client.embed_kwargs["model"] == "text-embedding-3-large"


class TestOllamaAdapter:
    def _adapter(self, handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OllamaAdapter(
            base_url="http://ollama.test:11434/v1",
            client=FakeOpenAIClient(),
            http_client=http_client,
        )

    async def test_list_models_from_tags(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(
                200, json={"models": [{"name": "llama3.2"}, {"name": "qwen2:7b"}]}
            )

        adapter = self._adapter(handler)
        assert await adapter.list_models() == ["llama3.2", "qwen2:7b"]
        assert seen == ["http://ollama.test:11434/api/tags"]
        assert adapter.base_url == "http://ollama.test:11434/v1"

    async def test_list_models_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = self._adapter(handler)
        with pytest.raises(AIError) as exc_info:
            await adapter.list_models()
        assert exc_info.value.code == AIErrorCode.PROVIDER_UNAVAILABLE

    async def test_list_models_server_error(self):
        adapter = self._adapter(lambda request: httpx.Response(500))
        with pytest.raises(AIError):
            await adapter.list_models()

    def test_builds_client_for_v1_endpoint(self):
        adapter = OllamaAdapter(base_url="http://ollama.test:11434/")
        assert str(adapter.client.base_url).rstrip("/") == "http://ollama.test:11434/v1"
        assert adapter.client.api_key == "ollama"
        assert adapter.client.max_retries == 0

    async def test_local_models_are_free(self):
        adapter = OllamaAdapter(client=FakeOpenAIClient())
        for name in ("llama3.2", "some-custom-model"):
            info = await adapter.get_model_info(name)
            assert info.provider == "ollama"
            assert info.cost_per_token == 0.0


class TestAdapterFactory:
    def test_register_and_lookup(self):
        factory = AdapterFactory([FakeAdapter("a"), FakeAdapter("b")])
        assert factory.providers() == ["a", "b"]
        assert "a" in factory
        assert factory.get("missing") is None
        assert len(factory) == 2

    def test_replace_and_unregister(self):
        first, second = FakeAdapter("a"), FakeAdapter("a")
        factory = AdapterFactory([first])
        factory.register(second)
        assert factory.get("a") is second
        factory.unregister("a")
        assert factory.available() == []


class TestBuildAdaptersFromEnv:
    def test_all_backends(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_BASE_URL", "https://api.openai.com/v1")
        monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-test")
        monkeypatch.delenv("OLLAMA_DISABLED", raising=False)

        factory = build_adapters_from_env()

        assert factory.providers() == ["openai", "deepseek", "ollama"]
        assert isinstance(factory.get("ollama"), OllamaAdapter)

    def test_ollama_can_be_disabled(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        monkeypatch.setenv("OLLAMA_DISABLED", "1")

        assert build_adapters_from_env().providers() == []

    def test_provider_named_after_base_url(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_BASE_URL", "https://dashscope.aliyuncs.com/compatible-mode/v1")
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        monkeypatch.setenv("OLLAMA_DISABLED", "true")

        assert build_adapters_from_env().providers() == ["qwen"]


class StallingBody(httpx.AsyncByteStream):
    """SSE body that sends one chunk and then never finishes."""

    def __init__(self):
        self.closed = False

    async def __aiter__(self):
        chunk = {
            "id": "c1",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "gpt-4o",
            "choices": [{"index": 0, "delta": {"content": "Hi"}, "finish_reason": None}],
        }
        yield f"data: {json.dumps(chunk)}\n\n".encode()
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class TestStreamRelease:
    async def test_closing_router_stream_closes_http_body(self, build_router):
        body = StallingBody()

        def handler(request):
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, stream=body
            )

        client = openai.AsyncOpenAI(
            api_key="k",
            base_url="http://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        adapter = OpenAICompatibleAdapter("openai", "k", client=client)
        router = build_router([adapter], models=[make_model(provider="openai", name="gpt-4o")])
        await router.reload_models()

        stream = router.stream(AIRequest(prompt="hi", model="openai:gpt-4o"), "u1")
        first = await anext(stream)
        await stream.aclose()

        assert first.content == "Hi"
        assert body.closed is True
        [record] = router.usage.records()
        assert record.error_code == AIErrorCode.CANCELLED
