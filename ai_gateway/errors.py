"""Domain-level exceptions for the AI gateway.

Caller-visible failures derive from ``GatewayError`` and carry the HTTP status
the API layer renders. ``UpstreamError`` and ``NoHealthyCredentialError`` are
internal signals between adapters, the credential pool and the orchestrators.
"""

import math
from enum import Enum


class UpstreamClassification(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_REJECTED = "auth_rejected"
    INVALID_REQUEST = "invalid_request"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class UpstreamError(Exception):
    """Raised by provider adapters for any failed upstream call."""

    def __init__(
        self,
        classification: UpstreamClassification,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.classification = classification
        self.message = message
        self.status_code = status_code


class NoHealthyCredentialError(Exception):
    """Raised by the credential pool when every key for a provider is cooling down."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No healthy credential available for provider: {provider}")
        self.provider = provider


class GatewayError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(GatewayError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized: invalid or expired token") -> None:
        super().__init__(message)


class CallerRateLimitedError(GatewayError):
    status_code = 429

    def __init__(self, retry_after: float) -> None:
        super().__init__(
            "AI request rate limit exceeded. Please wait before sending more messages."
        )
        self.retry_after = retry_after

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.retry_after))


class GatewayUnavailableError(GatewayError):
    status_code = 503


_UPSTREAM_STATUS_CODES = {
    UpstreamClassification.AUTH_REJECTED: 502,
    UpstreamClassification.INVALID_REQUEST: 400,
    UpstreamClassification.UNAVAILABLE: 503,
    UpstreamClassification.UNKNOWN: 502,
}


class UpstreamFailureError(GatewayError):
    def __init__(self, classification: UpstreamClassification, message: str) -> None:
        super().__init__(message)
        self.classification = classification
        self.status_code = _UPSTREAM_STATUS_CODES.get(classification, 502)


class ClientClosedRequestError(GatewayError):
    """Raised when the caller disconnects before the upstream call finishes."""

    status_code = 499

    def __init__(self) -> None:
        super().__init__("Client closed request")


class GeneralRateLimitedError(CallerRateLimitedError):
    def __init__(self, retry_after: float) -> None:
        super().__init__(retry_after)
        self.message = "Too many requests from this address, please try again later."
