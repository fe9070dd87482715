# pallet_orders/domain/errors.py
"""
Error taxonomy shared by services and the HTTP layer.

Each error knows its HTTP status and a short machine readable code, so the
api layer can translate any of them with a single exception handler.
"""
from typing import Any, Dict, List


class DomainError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update(self.extra)
        return body

    @property
    def headers(self) -> Dict[str, str] | None:
        return None


class ValidationError(DomainError, ValueError):
    """Malformed or missing input, rejected before touching persistence."""

    status_code = 400
    code = "validation_error"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    code = "payload_too_large"


class AuthenticationError(DomainError, PermissionError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(DomainError, PermissionError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DomainError, LookupError):
    status_code = 404
    code = "not_found"


class PreconditionError(DomainError):
    """
    State machine guard failure.

    `missing` enumerates which preconditions failed (delivery_price,
    delivery_date, custom_item_prices, or transition) and
    `unpriced_item_ids` names the custom items still waiting for a price.
    """

    status_code = 409
    code = "precondition_failed"

    def __init__(
        self,
        message: str,
        missing: List[str] | None = None,
        unpriced_item_ids: List[str] | None = None,
    ):
        super().__init__(
            message,
            missing=list(missing or []),
            unpriced_item_ids=list(unpriced_item_ids or []),
        )
        self.missing = list(missing or [])
        self.unpriced_item_ids = list(unpriced_item_ids or [])


class ConflictError(DomainError):
    status_code = 409
    code = "version_conflict"


class RateLimitError(DomainError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after_seconds: int, rate_headers: Dict[str, str] | None = None):
        super().__init__(message, retry_after_seconds=retry_after_seconds)
        self.retry_after_seconds = retry_after_seconds
        self.rate_headers = dict(rate_headers or {})

    @property
    def headers(self) -> Dict[str, str]:
        headers = dict(self.rate_headers)
        headers.setdefault("Retry-After", str(self.retry_after_seconds))
        return headers


class UpstreamError(DomainError, RuntimeError):
    """Persistence or webhook relay failure."""

    status_code = 502
    code = "upstream_error"

    def __init__(self, message: str, retryable: bool = False, details: Dict[str, Any] | None = None):
        extra: Dict[str, Any] = {"ok": False, "retryable": retryable}
        if details:
            extra["details"] = details
        super().__init__(message, **extra)
        self.retryable = retryable
        self.details = details


class ConfigurationError(DomainError, RuntimeError):
    status_code = 500
    code = "configuration_error"


class NotificationError(DomainError, RuntimeError):
    """Failed detached notification. Logged, never returned to a caller."""

    code = "notification_failed"
