from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ai_gateway.schemas import UsageRecord

logger = logging.getLogger(__name__)

_GROUP_FIELDS: dict[str, str] = {
    "model": "model",
    "provider": "provider",
    "scenario": "scenario",
    "user": "user_id",
    "agent-type": "agent_type",
    "workflow-step": "workflow_step",
}


class UsageTracker:
    """In-process usage/cost sink. One immutable record per attempted call."""

    def __init__(self) -> None:
        self._records: list[UsageRecord] = []

    async def record_usage(self, record: UsageRecord) -> None:
        self._records.append(record)
        logger.debug(
            "Usage recorded: model=%s user=%s tokens=%d/%d cost=%.8f success=%s",
            record.model,
            record.user_id,
            record.input_tokens,
            record.output_tokens,
            record.cost,
            record.success,
        )

    def records(self) -> list[UsageRecord]:
        return list(self._records)

    def reset(self) -> None:
        self._records.clear()

    def get_total_cost(self) -> float:
        return sum(r.cost for r in self._records)

    async def generate_cost_report(
        self, start: datetime, end: datetime, group_by: str = "model"
    ) -> dict[str, Any]:
        field = _GROUP_FIELDS.get(group_by)
        if field is None:
            raise ValueError(
                f"Unsupported group_by: {group_by}. Expected one of {sorted(_GROUP_FIELDS)}"
            )

        in_range = [r for r in self._records if start <= r.created_at <= end]

        groups: dict[str, dict[str, Any]] = {}
        for r in in_range:
            key = getattr(r, field) or "unknown"
            agg = groups.setdefault(
                key,
                {
                    "key": key,
                    "calls": 0,
                    "successful_calls": 0,
                    "failed_calls": 0,
                    "input_tokens": 0,
                    "output_tokens": 0,
                    "cost": 0.0,
                    "total_latency_ms": 0.0,
                },
            )
            agg["calls"] += 1
            agg["successful_calls" if r.success else "failed_calls"] += 1
            agg["input_tokens"] += r.input_tokens
            agg["output_tokens"] += r.output_tokens
            agg["cost"] += r.cost
            agg["total_latency_ms"] += r.latency_ms

        items = []
        for agg in sorted(groups.values(), key=lambda g: g["cost"], reverse=True):
            agg["avg_latency_ms"] = agg.pop("total_latency_ms") / agg["calls"]
            items.append(agg)

        return {
            "start": start,
            "end": end,
            "group_by": group_by,
            "total_calls": len(in_range),
            "total_cost": sum(r.cost for r in in_range),
            "total_input_tokens": sum(r.input_tokens for r in in_range),
            "total_output_tokens": sum(r.output_tokens for r in in_range),
            "items": items,
        }
