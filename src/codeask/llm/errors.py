"""Classification of provider failures into retryable and fatal kinds."""

from __future__ import annotations

from enum import Enum

import openai

from codeask.config import LLMConfig


class ErrorKind(str, Enum):
    """Why a request to the provider failed."""

    AUTHENTICATION = "authentication"  # 401
    PAYMENT_REQUIRED = "payment_required"  # 402
    REQUEST_TOO_LARGE = "request_too_large"  # context_length_exceeded / 413
    RATE_LIMITED = "rate_limited"  # 429
    NETWORK = "network"  # DNS, connect, timeout
    SERVER = "server"  # 5xx
    UNKNOWN = "unknown"


# Requests that can never succeed unmodified.
FATAL_KINDS = frozenset(
    {ErrorKind.AUTHENTICATION, ErrorKind.PAYMENT_REQUIRED, ErrorKind.REQUEST_TOO_LARGE}
)

CONTEXT_LENGTH_CODES = ("context_length_exceeded", "string_above_max_length")


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception raised while streaming to an ErrorKind.

    Anything not recognised is UNKNOWN, which callers retry.
    """
    if isinstance(error, (openai.APIConnectionError, ConnectionError, TimeoutError)):
        return ErrorKind.NETWORK

    status = getattr(error, "status_code", None)
    code = getattr(error, "code", None)
    if status == 401:
        return ErrorKind.AUTHENTICATION
    if status == 402:
        return ErrorKind.PAYMENT_REQUIRED
    if status == 413 or code in CONTEXT_LENGTH_CODES:
        return ErrorKind.REQUEST_TOO_LARGE
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if isinstance(status, int) and status >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def is_fatal(kind: ErrorKind) -> bool:
    return kind in FATAL_KINDS


def diagnose(kind: ErrorKind, error: BaseException, config: LLMConfig) -> str:
    """Human-readable explanation and remediation for a failure."""
    if kind is ErrorKind.AUTHENTICATION:
        return (
            "Authentication failed. Please verify:\n"
            f"1. {config.api_key_env} is correct for the service at {config.base_url}.\n"
            "2. You have sufficient credits/permissions.\n"
            f"3. The model '{config.model}' is available via the endpoint."
        )
    if kind is ErrorKind.PAYMENT_REQUIRED:
        return "Payment required. Check your account credits/billing."
    if kind is ErrorKind.REQUEST_TOO_LARGE:
        return (
            "Context length exceeded. The model cannot handle the amount of context provided.\n"
            "Try excluding more files/directories or simplifying your request."
        )
    if kind is ErrorKind.RATE_LIMITED:
        return "Rate limited or quota exceeded. Wait before trying again or check your limits."
    if kind is ErrorKind.NETWORK:
        return (
            f"Network error - could not reach API endpoint ({config.base_url}). "
            "Check your connection and CODEASK_API_BASE_URL."
        )
    if kind is ErrorKind.SERVER:
        return f"The provider returned a server error: {error}"
    return f"An unexpected error occurred: {error}"
