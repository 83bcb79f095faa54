from __future__ import annotations

from enum import StrEnum


class AIErrorCode(StrEnum):
    INVALID_REQUEST = "INVALID_REQUEST"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_DEFAULT_RETRYABLE: dict[AIErrorCode, bool] = {
    AIErrorCode.INVALID_REQUEST: False,
    AIErrorCode.PROVIDER_UNAVAILABLE: True,
    AIErrorCode.TIMEOUT: True,
    AIErrorCode.RATE_LIMITED: True,
    AIErrorCode.AUTHENTICATION_FAILED: False,
    AIErrorCode.CANCELLED: False,
    AIErrorCode.UNKNOWN_ERROR: False,
}


class AIError(Exception):
    """Typed failure raised by adapters and the request router.

    ``retryable`` defaults per code; UNKNOWN_ERROR is only retried when the
    raising backend says so explicitly.
    """

    def __init__(
        self,
        code: AIErrorCode,
        message: str,
        *,
        retryable: bool | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = _DEFAULT_RETRYABLE[code] if retryable is None else retryable
        self.provider = provider

    def __repr__(self) -> str:
        return (
            f"AIError(code={self.code.value!r}, message={self.message!r}, "
            f"retryable={self.retryable}, provider={self.provider!r})"
        )


def ensure_ai_error(exc: Exception, provider: str | None = None) -> AIError:
    if isinstance(exc, AIError):
        return exc
    wrapped = AIError(
        AIErrorCode.UNKNOWN_ERROR,
        f"{type(exc).__name__}: {exc}",
        provider=provider,
    )
    wrapped.__cause__ = exc
    return wrapped
