"""Trueprice error types."""

from __future__ import annotations

from enum import Enum


GENERIC_FAILURE_MESSAGE = "Something went wrong. Try again."


class ErrorCode(Enum):
    """Error classification codes."""

    CATALOG_LOAD_FAILED = "catalog_load_failed"
    PROVIDER_ERROR = "provider_error"
    METRICS_FETCH_FAILED = "metrics_fetch_failed"
    AI_UNAVAILABLE = "ai_unavailable"
    AI_FAILED = "ai_failed"
    AUTH_FAILED = "auth_failed"
    INVALID_MARKET = "invalid_market"


class TruepriceError(Exception):
    """Trueprice exception with error code and retryable flag.

    Attributes:
        message: Human-readable error description.
        code: Structured error code for programmatic handling.
        retryable: Whether re-triggering the action may succeed.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
