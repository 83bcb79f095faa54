"""Configuration constants with trade-off documentation.

Each constant has a rationale explaining why this specific value was chosen.
Values that operators tune per deployment are read from the environment.
"""

import os

# =============================================================================
# Environment Variable Helpers
# =============================================================================


def _parse_int_env(name: str, default: int, min_val: int, max_val: int) -> int:
    """Parse an integer environment variable with bounds clamping.

    Returns default if env var is unset or unparseable. Clamps to [min_val, max_val].
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(min_val, min(max_val, value))


def _parse_float_env(name: str, default: float, min_val: float, max_val: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(min_val, min(max_val, value))


# =============================================================================
# Retry Configuration
# =============================================================================

RETRY_MAX_RETRIES = _parse_int_env("AI_RETRY_MAX_RETRIES", default=3, min_val=0, max_val=10)
# Why 3: transient vendor failures (429, 502, connection resets) almost always
# clear within 2-3 attempts. More retries mostly add latency to calls that are
# going to fail anyway. Set to 0 to disable retries entirely.

RETRY_INITIAL_DELAY_SECONDS = _parse_float_env(
    "AI_RETRY_INITIAL_DELAY_SECONDS", default=1.0, min_val=0.0, max_val=30.0
)
RETRY_MAX_DELAY_SECONDS = _parse_float_env(
    "AI_RETRY_MAX_DELAY_SECONDS", default=10.0, min_val=0.0, max_val=120.0
)
RETRY_BACKOFF_MULTIPLIER = _parse_float_env(
    "AI_RETRY_BACKOFF_MULTIPLIER", default=2.0, min_val=1.0, max_val=10.0
)
# Why 1s -> 2s -> 4s capped at 10s: worst case three retries add ~7s, which
# stays well under the 120s stream deadline and typical HTTP client timeouts.

# =============================================================================
# Streaming
# =============================================================================

STREAM_TIMEOUT_SECONDS = _parse_int_env(
    "AI_STREAM_TIMEOUT_SECONDS", default=120, min_val=1, max_val=3600
)
# Why 120: long generations (8k output tokens) finish in 60-90s on hosted
# models. 120s covers them while still bounding a stalled backend.

# =============================================================================
# Model Selection
# =============================================================================

SELECTION_LOG_MAX_ENTRIES = _parse_int_env(
    "AI_SELECTION_LOG_MAX_ENTRIES", default=1000, min_val=1, max_val=100_000
)
# Why 1000: enough history to compute a meaningful fallback rate per scenario
# without unbounded memory growth. Oldest decisions are evicted first.

LOCAL_PROVIDER = os.getenv("AI_LOCAL_PROVIDER", "ollama")
LOCAL_DEFAULT_MODEL = os.getenv("AI_LOCAL_DEFAULT_MODEL", "llama3.2")
# Why ollama/llama3.2: the local runtime is the last line of defence when every
# hosted provider is unavailable. llama3.2 is the smallest general chat model
# that ships with a default Ollama install.

DEFAULT_SCENARIO = "general"
DEFAULT_LANGUAGE = "en"

SCORE_EPSILON = 1e-9
# Why: free local models have cost 0 and 1/cost is undefined. Flooring at a
# tiny positive value keeps them ranked cheapest without special cases.

# =============================================================================
# Accounting / Observability
# =============================================================================

AUDIT_CONTENT_PREVIEW_CHARS = 500
# Why 500: enough to eyeball what a model answered in the audit log without
# storing full completions (which may contain user PII) twice.

FAILURE_RATE_ALERT_THRESHOLD = 0.1
# Why 10%: hosted providers run well under 1% error rate when healthy. A model
# failing one call in ten is degraded and should page someone.

LATENCY_ALERT_THRESHOLD_MS = 30_000
# Why 30s: average latency above 30s means users are staring at spinners;
# individual long generations are fine, the average is what matters.

AUDIT_LOG_MAX_ENTRIES = _parse_int_env(
    "AI_AUDIT_LOG_MAX_ENTRIES", default=10_000, min_val=100, max_val=1_000_000
)

# =============================================================================
# Backends
# =============================================================================

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
# Ollama serves its native API at the root and an OpenAI-compatible API at /v1.

LLM_DEFAULT_MAX_TOKENS = 8192
# Why 8192: DeepSeek defaults to 4096 when max_tokens is not set, which causes
# truncation on longer outputs. 8192 is DeepSeek's maximum supported value.
# For OpenAI models this is also a safe default (well within their limits).
