from ai_gateway.tracking.audit import AuditLog
from ai_gateway.tracking.performance import PerformanceAlert, PerformanceMetrics, PerformanceMonitor
from ai_gateway.tracking.usage import UsageTracker

__all__ = [
    "AuditLog",
    "PerformanceAlert",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "UsageTracker",
]
