from __future__ import annotations

import logging
from collections import deque
from datetime import UTC, datetime
from typing import Any

from ai_gateway.constants import AUDIT_LOG_MAX_ENTRIES

logger = logging.getLogger(__name__)


class AuditLog:
    """Bounded in-process audit trail of AI calls and errors."""

    def __init__(self, max_entries: int = AUDIT_LOG_MAX_ENTRIES) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)

    async def log_ai_call(self, entry: dict[str, Any]) -> None:
        record = {"type": "call", "timestamp": datetime.now(UTC), **entry}
        self._entries.append(record)
        logger.info(
            "AI call: model=%s scenario=%s success=%s latency=%.0fms",
            record.get("model"),
            record.get("scenario"),
            record.get("success"),
            record.get("latency_ms", 0.0),
        )

    async def log_error(
        self,
        model: str,
        provider: str,
        code: str,
        message: str,
        stack: str | None,
        scenario: str,
        user_id: str,
    ) -> None:
        self._entries.append(
            {
                "type": "error",
                "timestamp": datetime.now(UTC),
                "model": model,
                "provider": provider,
                "error_code": code,
                "error_message": message,
                "stack": stack,
                "scenario": scenario,
                "user_id": user_id,
                "success": False,
            }
        )
        logger.error(
            "AI call failed: model=%s provider=%s scenario=%s code=%s: %s",
            model,
            provider,
            scenario,
            code,
            message,
        )

    async def query_logs(self, **filters: Any) -> list[dict[str, Any]]:
        """Entries matching every given field exactly; ``since``/``until``/``limit`` are special."""
        since: datetime | None = filters.pop("since", None)
        until: datetime | None = filters.pop("until", None)
        limit: int | None = filters.pop("limit", None)

        matched = [
            e
            for e in self._entries
            if all(e.get(k) == v for k, v in filters.items())
            and (since is None or e["timestamp"] >= since)
            and (until is None or e["timestamp"] <= until)
        ]
        if limit is not None:
            matched = matched[-limit:] if limit > 0 else []
        return matched

    def clear(self) -> None:
        self._entries.clear()
