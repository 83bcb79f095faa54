from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ai_gateway.constants import FAILURE_RATE_ALERT_THRESHOLD, LATENCY_ALERT_THRESHOLD_MS

logger = logging.getLogger(__name__)


@dataclass
class PerformanceMetrics:
    model: str
    provider: str
    call_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    last_updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def average_latency(self) -> float:
        return self.total_latency_ms / self.call_count if self.call_count else 0.0

    @property
    def success_rate(self) -> float:
        return self.success_count / self.call_count if self.call_count else 1.0

    @property
    def failure_rate(self) -> float:
        return self.failure_count / self.call_count if self.call_count else 0.0


@dataclass(frozen=True)
class PerformanceAlert:
    model: str
    type: str
    message: str
    threshold: float
    current_value: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class PerformanceMonitor:
    def __init__(
        self,
        failure_rate_threshold: float = FAILURE_RATE_ALERT_THRESHOLD,
        latency_threshold_ms: float = LATENCY_ALERT_THRESHOLD_MS,
    ) -> None:
        self.failure_rate_threshold = failure_rate_threshold
        self.latency_threshold_ms = latency_threshold_ms
        self._metrics: dict[str, PerformanceMetrics] = {}
        self._entries: int = 0

    @property
    def entry_count(self) -> int:
        return self._entries

    async def record_metrics(
        self, model: str, provider: str, latency_ms: float, success: bool
    ) -> None:
        metrics = self._metrics.get(model)
        if metrics is None:
            metrics = PerformanceMetrics(
                model=model, provider=provider, min_latency_ms=latency_ms
            )
            self._metrics[model] = metrics

        metrics.call_count += 1
        if success:
            metrics.success_count += 1
        else:
            metrics.failure_count += 1
        metrics.total_latency_ms += latency_ms
        metrics.max_latency_ms = max(metrics.max_latency_ms, latency_ms)
        metrics.min_latency_ms = min(metrics.min_latency_ms, latency_ms)
        metrics.last_updated_at = datetime.now(UTC)
        self._entries += 1

    async def get_metrics(self, model: str) -> PerformanceMetrics | None:
        return self._metrics.get(model)

    async def get_all_metrics(self) -> list[PerformanceMetrics]:
        return list(self._metrics.values())

    async def get_metrics_by_provider(self, provider: str) -> list[PerformanceMetrics]:
        return [m for m in self._metrics.values() if m.provider == provider]

    def _alerts_for(self, metrics: PerformanceMetrics) -> list[PerformanceAlert]:
        alerts: list[PerformanceAlert] = []
        if metrics.failure_rate > self.failure_rate_threshold:
            alerts.append(
                PerformanceAlert(
                    model=metrics.model,
                    type="high_failure_rate",
                    message=(
                        f"Model {metrics.model} failure rate {metrics.failure_rate:.1%} "
                        f"exceeds {self.failure_rate_threshold:.1%}"
                    ),
                    threshold=self.failure_rate_threshold,
                    current_value=metrics.failure_rate,
                )
            )
        if metrics.average_latency > self.latency_threshold_ms:
            alerts.append(
                PerformanceAlert(
                    model=metrics.model,
                    type="high_latency",
                    message=(
                        f"Model {metrics.model} average latency "
                        f"{metrics.average_latency:.0f}ms exceeds {self.latency_threshold_ms:.0f}ms"
                    ),
                    threshold=self.latency_threshold_ms,
                    current_value=metrics.average_latency,
                )
            )
        return alerts

    async def check_alerts(self) -> list[PerformanceAlert]:
        alerts: list[PerformanceAlert] = []
        for metrics in self._metrics.values():
            alerts.extend(self._alerts_for(metrics))
        for alert in alerts:
            logger.warning("Performance alert: %s", alert.message)
        return alerts

    async def get_alerts_for_model(self, model: str) -> list[PerformanceAlert]:
        metrics = self._metrics.get(model)
        return self._alerts_for(metrics) if metrics else []

    async def reset_metrics(self, model: str) -> None:
        self._metrics.pop(model, None)
