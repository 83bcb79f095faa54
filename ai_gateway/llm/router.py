"""Request router: the single entry point for AI calls.

Each request goes through validation, model resolution (explicit model or a
scenario-based selection against the current registry snapshot), template
rendering, dispatch to the owning adapter under the retry policy, and finally
accounting. Every dispatched call produces exactly one usage record and one
performance entry whatever its outcome.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import traceback
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ai_gateway.adapters.factory import AdapterFactory
from ai_gateway.constants import (
    AUDIT_CONTENT_PREVIEW_CHARS,
    DEFAULT_LANGUAGE,
    DEFAULT_SCENARIO,
    STREAM_TIMEOUT_SECONDS,
)
from ai_gateway.errors import AIError, AIErrorCode, ensure_ai_error
from ai_gateway.interfaces import (
    AuditSink,
    BackendAdapter,
    PerformanceSink,
    PromptTemplateProvider,
    UsageSink,
)
from ai_gateway.llm.registry import RegistryAggregator
from ai_gateway.llm.retry import RetryExecutor, RetryPolicy, SleepFn
from ai_gateway.llm.scenarios import ScenarioType
from ai_gateway.llm.selector import ScenarioSelector
from ai_gateway.schemas import (
    AIRequest,
    AIResponse,
    ModelDescriptor,
    SelectionDecision,
    StreamChunk,
    TokenUsage,
    UsageRecord,
)
from ai_gateway.tracking import AuditLog, PerformanceMonitor, UsageTracker

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass
class _CallContext:
    user_id: str
    scenario: str
    agent_type: str | None
    workflow_step: str | None
    started: float
    model_id: str = UNKNOWN
    provider: str = UNKNOWN

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


@dataclass(frozen=True)
class _Target:
    model_id: str
    provider: str
    model_name: str
    adapter: BackendAdapter
    descriptor: ModelDescriptor


def parse_model_id(model_id: str) -> tuple[str, str]:
    """Split ``provider:model`` on the first colon (model names may contain colons)."""
    provider, sep, model_name = model_id.partition(":")
    if not sep or not provider or not model_name:
        raise AIError(
            AIErrorCode.INVALID_REQUEST,
            f"Invalid model id {model_id!r}, expected 'provider:model'",
        )
    return provider, model_name


def validate_request(request: AIRequest) -> None:
    if not request.prompt or not request.prompt.strip():
        raise AIError(AIErrorCode.INVALID_REQUEST, "Prompt is required")
    if request.temperature is not None and not 0 <= request.temperature <= 2:
        raise AIError(
            AIErrorCode.INVALID_REQUEST,
            f"Temperature must be between 0 and 2, got {request.temperature}",
        )
    if request.max_tokens is not None and request.max_tokens < 1:
        raise AIError(
            AIErrorCode.INVALID_REQUEST,
            f"Max tokens must be positive, got {request.max_tokens}",
        )


async def _pull(iterator: AsyncIterator[StreamChunk]) -> StreamChunk | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


async def _close(iterator: AsyncIterator[StreamChunk] | None) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug("Error while closing adapter stream: %s", e)


class RequestRouter:
    def __init__(
        self,
        adapters: AdapterFactory,
        aggregator: RegistryAggregator | None = None,
        selector: ScenarioSelector | None = None,
        templates: PromptTemplateProvider | None = None,
        usage: UsageSink | None = None,
        performance: PerformanceSink | None = None,
        audit: AuditSink | None = None,
        retry_policy: RetryPolicy | None = None,
        stream_timeout: float = STREAM_TIMEOUT_SECONDS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.adapters = adapters
        self.aggregator = aggregator if aggregator is not None else RegistryAggregator(adapters)
        self.selector = selector if selector is not None else ScenarioSelector(adapters=adapters)
        self.templates = templates
        self.usage = usage if usage is not None else UsageTracker()
        self.performance = performance if performance is not None else PerformanceMonitor()
        self.audit = audit if audit is not None else AuditLog()
        self.retry = RetryExecutor(retry_policy, sleep=sleep)
        self.stream_timeout = stream_timeout

    # -- public request operations ------------------------------------------

    async def call(
        self,
        request: AIRequest,
        user_id: str,
        scenario: str = DEFAULT_SCENARIO,
        language: str = DEFAULT_LANGUAGE,
    ) -> AIResponse:
        validate_request(request)
        ctx = self._context(request, user_id, scenario)
        target, provider_request = await self._prepare(request, ctx, language)

        try:
            response = await self.retry.execute_with_retry(
                lambda: target.adapter.call(provider_request)
            )
        except Exception as e:
            error = ensure_ai_error(e, target.provider)
            await self._record_failure(ctx, target, error, TokenUsage())
            if error is e:
                raise
            raise error from e

        await self._record_success(ctx, target, response.usage, response.content)
        return response

    async def stream(
        self,
        request: AIRequest,
        user_id: str,
        scenario: str = DEFAULT_SCENARIO,
        language: str = DEFAULT_LANGUAGE,
    ) -> AsyncIterator[StreamChunk]:
        """Stream chunks from the selected model under an overall deadline.

        Only opening the stream is retried. Once the first chunk has been
        handed out, a failure ends the stream. Closing the generator early
        (``aclose()`` or task cancellation) releases the adapter's stream and
        records the call as CANCELLED.
        """
        validate_request(request)
        ctx = self._context(request, user_id, scenario)
        target, provider_request = await self._prepare(request, ctx, language)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stream_timeout
        usage = TokenUsage()
        preview: list[str] = []
        preview_len = 0
        iterator: AsyncIterator[StreamChunk] | None = None
        error: AIError | None = None
        cancelled = False

        try:
            iterator, chunk = await self.retry.execute_with_retry(
                lambda: self._open_stream(target.adapter, provider_request, deadline)
            )
            while chunk is not None:
                if chunk.usage is not None:
                    usage = chunk.usage
                if preview_len < AUDIT_CONTENT_PREVIEW_CHARS and chunk.content:
                    preview.append(chunk.content)
                    preview_len += len(chunk.content)
                yield chunk
                chunk = await self._next_chunk(iterator, deadline)
        except TimeoutError as e:
            error = AIError(
                AIErrorCode.TIMEOUT,
                f"Streaming timed out after {self.stream_timeout}s",
                provider=target.provider,
            )
            error.__cause__ = e
        except (GeneratorExit, asyncio.CancelledError):
            cancelled = True
            raise
        except Exception as e:
            error = ensure_ai_error(e, target.provider)
        finally:
            await _close(iterator)
            if cancelled:
                logger.info("Stream for %s cancelled by caller", target.model_id)
                await self._record_failure(
                    ctx,
                    target,
                    AIError(AIErrorCode.CANCELLED, "Stream cancelled by caller"),
                    usage,
                )
            elif error is not None:
                await self._record_failure(ctx, target, error, usage)
            else:
                await self._record_success(ctx, target, usage, "".join(preview))

        if error is not None:
            raise error

    async def embed(
        self,
        text: str,
        user_id: str,
        scenario: str = ScenarioType.AGENT_EMBEDDING_GENERATION,
    ) -> list[float]:
        request = AIRequest(prompt=text)
        validate_request(request)
        ctx = self._context(request, user_id, scenario)
        try:
            target = await self._resolve_target(request, ctx)
        except Exception as e:
            error = await self._fail_unresolved(ctx, e)
            if error is e:
                raise
            raise error from e

        try:
            vector = await self.retry.execute_with_retry(
                lambda: target.adapter.embed(text, target.model_name)
            )
        except Exception as e:
            error = ensure_ai_error(e, target.provider)
            await self._record_failure(ctx, target, error, TokenUsage())
            if error is e:
                raise
            raise error from e

        await self._record_success(ctx, target, TokenUsage(), f"<embedding dim={len(vector)}>")
        return vector

    # -- registry and selection queries --------------------------------------

    def get_available_models(self) -> list[ModelDescriptor]:
        return self.aggregator.snapshot.available_models()

    def get_models_by_provider(self, provider: str) -> list[ModelDescriptor]:
        return self.aggregator.snapshot.by_provider(provider)

    def get_model_info(self, model_id: str) -> ModelDescriptor | None:
        return self.aggregator.snapshot.get(model_id)

    async def reload_models(self) -> int:
        snapshot = await self.aggregator.load()
        return len(snapshot)

    def get_selection_statistics(self) -> dict[str, Any]:
        return self.selector.get_selection_statistics()

    def get_selection_log(self, limit: int = 100) -> list[SelectionDecision]:
        return self.selector.get_selection_log(limit)

    def get_recommended_models(self, scenario: str) -> list[ModelDescriptor]:
        return self.selector.scenarios.recommended_models(
            scenario, self.aggregator.snapshot.available_models()
        )

    # -- accounting queries --------------------------------------------------

    async def get_cost_report(
        self, start: datetime, end: datetime, group_by: str = "model"
    ) -> dict[str, Any]:
        return await self.usage.generate_cost_report(start, end, group_by)

    async def get_performance_metrics(self, model: str | None = None) -> list[Any]:
        metrics = await self.performance.get_all_metrics()
        if model is None:
            return metrics
        return [m for m in metrics if getattr(m, "model", None) == model]

    async def check_performance_alerts(self) -> list[Any]:
        return await self.performance.check_alerts()

    async def get_logs(self, **filters: Any) -> list[dict[str, Any]]:
        return await self.audit.query_logs(**filters)

    # -- internals -----------------------------------------------------------

    def _context(self, request: AIRequest, user_id: str, scenario: str) -> _CallContext:
        return _CallContext(
            user_id=user_id,
            scenario=str(scenario),
            agent_type=getattr(request.metadata, "agent_type", None),
            workflow_step=getattr(request.metadata, "workflow_step", None),
            started=time.perf_counter(),
            model_id=request.model or UNKNOWN,
        )

    async def _prepare(
        self, request: AIRequest, ctx: _CallContext, language: str
    ) -> tuple[_Target, AIRequest]:
        try:
            target = await self._resolve_target(request, ctx)
            prompt = await self._render_prompt(request, target.provider, language)
        except Exception as e:
            error = await self._fail_unresolved(ctx, e)
            if error is e:
                raise
            raise error from e
        return target, request.model_copy(update={"model": target.model_name, "prompt": prompt})

    async def _resolve_target(self, request: AIRequest, ctx: _CallContext) -> _Target:
        snapshot = self.aggregator.snapshot

        model_id = request.model
        chosen: ModelDescriptor | None = None
        if not model_id:
            chosen = await self.selector.select_for_scenario(
                ctx.scenario, snapshot.available_models()
            )
            model_id = chosen.key
        ctx.model_id = model_id

        provider, model_name = parse_model_id(model_id)
        ctx.provider = provider

        adapter = self.adapters.get(provider)
        if adapter is None:
            raise AIError(
                AIErrorCode.PROVIDER_UNAVAILABLE,
                f"Provider {provider} not found",
                provider=provider,
            )

        # Local fallbacks picked on an empty registry are not in the snapshot.
        descriptor = snapshot.get(model_id) or chosen
        if descriptor is None:
            try:
                descriptor = await adapter.get_model_info(model_name)
            except Exception as e:
                logger.warning("Could not get info for model %s: %s", model_id, e)
                descriptor = None
        if descriptor is None:
            raise AIError(
                AIErrorCode.INVALID_REQUEST,
                f"Model {model_id} not found",
                provider=provider,
            )

        return _Target(
            model_id=model_id,
            provider=provider,
            model_name=model_name,
            adapter=adapter,
            descriptor=descriptor,
        )

    async def _render_prompt(self, request: AIRequest, provider: str, language: str) -> str:
        name = request.metadata.template_name
        if not name or self.templates is None:
            return request.prompt
        template = await self.templates.get_template(name, language, provider)
        if template is None:
            logger.warning("Template %s not found, sending prompt as-is", name)
            return request.prompt
        return await self.templates.render_template(template, request.metadata.template_variables)

    async def _open_stream(
        self, adapter: BackendAdapter, request: AIRequest, deadline: float
    ) -> tuple[AsyncIterator[StreamChunk], StreamChunk | None]:
        stream: Any = adapter.stream(request)
        if inspect.isawaitable(stream):
            stream = await stream
        iterator = aiter(stream)
        try:
            first = await self._next_chunk(iterator, deadline)
        except BaseException:
            await _close(iterator)
            raise
        return iterator, first

    async def _next_chunk(
        self, iterator: AsyncIterator[StreamChunk], deadline: float
    ) -> StreamChunk | None:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise TimeoutError
        return await asyncio.wait_for(_pull(iterator), timeout=remaining)

    async def _fail_unresolved(self, ctx: _CallContext, exc: Exception) -> AIError:
        error = ensure_ai_error(exc, None if ctx.provider == UNKNOWN else ctx.provider)
        logger.error("Failed to resolve model for scenario %s: %s", ctx.scenario, error.message)
        await self._safely(
            "audit",
            lambda: self.audit.log_error(
                ctx.model_id,
                ctx.provider,
                error.code.value,
                error.message,
                _stack_of(exc),
                ctx.scenario,
                ctx.user_id,
            ),
        )
        await self._safely(
            "performance",
            lambda: self.performance.record_metrics(
                ctx.model_id, ctx.provider, ctx.elapsed_ms(), False
            ),
        )
        return error

    async def _record_success(
        self, ctx: _CallContext, target: _Target, usage: TokenUsage, content: str
    ) -> None:
        latency_ms = ctx.elapsed_ms()
        cost = target.descriptor.estimate_cost(usage.input_tokens, usage.output_tokens)
        await self._record_usage(ctx, target, usage, cost, latency_ms, success=True)
        await self._safely(
            "performance",
            lambda: self.performance.record_metrics(
                target.model_id, target.provider, latency_ms, True
            ),
        )
        await self._safely(
            "audit",
            lambda: self.audit.log_ai_call(
                {
                    "user_id": ctx.user_id,
                    "model": target.model_id,
                    "provider": target.provider,
                    "scenario": ctx.scenario,
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "cost": cost,
                    "latency_ms": latency_ms,
                    "success": True,
                    "content_preview": content[:AUDIT_CONTENT_PREVIEW_CHARS],
                }
            ),
        )

    async def _record_failure(
        self, ctx: _CallContext, target: _Target, error: AIError, usage: TokenUsage
    ) -> None:
        latency_ms = ctx.elapsed_ms()
        cost = target.descriptor.estimate_cost(usage.input_tokens, usage.output_tokens)
        await self._record_usage(
            ctx, target, usage, cost, latency_ms, success=False, error_code=error.code.value
        )
        await self._safely(
            "performance",
            lambda: self.performance.record_metrics(
                target.model_id, target.provider, latency_ms, False
            ),
        )
        if error.code == AIErrorCode.CANCELLED:
            return
        await self._safely(
            "audit",
            lambda: self.audit.log_error(
                target.model_id,
                target.provider,
                error.code.value,
                error.message,
                _stack_of(error),
                ctx.scenario,
                ctx.user_id,
            ),
        )

    async def _record_usage(
        self,
        ctx: _CallContext,
        target: _Target,
        usage: TokenUsage,
        cost: float,
        latency_ms: float,
        *,
        success: bool,
        error_code: str | None = None,
    ) -> None:
        record = UsageRecord(
            user_id=ctx.user_id,
            model=target.model_id,
            provider=target.provider,
            scenario=ctx.scenario,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cost=cost,
            latency_ms=latency_ms,
            success=success,
            agent_type=ctx.agent_type,
            workflow_step=ctx.workflow_step,
            error_code=error_code,
        )
        await self._safely("usage", lambda: self.usage.record_usage(record))

    async def _safely(self, sink: str, write: Callable[[], Awaitable[None]]) -> None:
        # Sink failures are logged, never raised to the caller.
        try:
            await write()
        except Exception as e:
            logger.error("Failed to write %s record: %s", sink, e)


def _stack_of(exc: BaseException) -> str | None:
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(exc))
