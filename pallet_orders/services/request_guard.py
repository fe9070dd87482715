# pallet_orders/services/request_guard.py
from dataclasses import dataclass
from typing import Mapping

from pallet_orders.domain.errors import PayloadTooLargeError, RateLimitError
from pallet_orders.services.rate_limiter import RateLimiter, RateLimitResult, build_counter_store
from pallet_orders.utils.settings import (
    FORMS_CONTACT_MAX_BYTES,
    FORMS_CONTACT_RATE_LIMIT,
    FORMS_PICKUP_MAX_BYTES,
    FORMS_PICKUP_RATE_LIMIT,
    FORMS_QUOTE_MAX_BYTES,
    FORMS_QUOTE_RATE_LIMIT,
    FORMS_RATE_WINDOW_MS,
)
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class EndpointPolicy:
    key_prefix: str
    limit: int
    window_ms: int
    max_bytes: int


CONTACT_POLICY = EndpointPolicy("forms:contact", FORMS_CONTACT_RATE_LIMIT, FORMS_RATE_WINDOW_MS, FORMS_CONTACT_MAX_BYTES)
QUOTE_POLICY = EndpointPolicy("forms:quote", FORMS_QUOTE_RATE_LIMIT, FORMS_RATE_WINDOW_MS, FORMS_QUOTE_MAX_BYTES)
PICKUP_POLICY = EndpointPolicy("forms:pickup", FORMS_PICKUP_RATE_LIMIT, FORMS_RATE_WINDOW_MS, FORMS_PICKUP_MAX_BYTES)


def client_ip(headers: Mapping[str, str]) -> str | None:
    """First hop of X-Forwarded-For, then X-Real-IP."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        return first or None
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip() or None
    return None


def enforce_max_payload_size(declared_content_length: str | int | None, max_bytes: int) -> None:
    """
    Reject a request whose declared Content-Length is over the ceiling.

    Only the advertised size is checked; a missing or unparsable header
    passes through.
    """
    if declared_content_length is None:
        return
    try:
        declared = int(declared_content_length)
    except (TypeError, ValueError):
        return
    if declared > max_bytes:
        logger.warning(f"Rejected payload of {declared} bytes (max {max_bytes})")
        raise PayloadTooLargeError("Payload too large", max_bytes=max_bytes)


class RequestGuard:
    def __init__(self, limiter: RateLimiter):
        self.limiter = limiter

    def enforce_rate_limit(self, client_identity: str | None, key_prefix: str, limit: int, window_ms: int) -> RateLimitResult:
        key = f"{key_prefix}:{client_identity or UNKNOWN_CLIENT}"
        result = self.limiter.check(key, limit, window_ms)
        if not result.allowed:
            logger.warning(f"Rate limit hit for {key}, retry after {result.retry_after_seconds}s")
            raise RateLimitError(
                "Too many requests",
                retry_after_seconds=result.retry_after_seconds,
                rate_headers=result.headers,
            )
        return result

    def protect(self, headers: Mapping[str, str], policy: EndpointPolicy) -> RateLimitResult:
        """Size guard, then rate limit guard; the first rejection wins."""
        enforce_max_payload_size(headers.get("content-length"), policy.max_bytes)
        return self.enforce_rate_limit(client_ip(headers), policy.key_prefix, policy.limit, policy.window_ms)


#one counter table per process
default_guard = RequestGuard(RateLimiter(build_counter_store()))
