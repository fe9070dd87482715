# pallet_orders/services/webhook_client.py
from dataclasses import dataclass
from typing import Any, Dict

import requests
from requests import RequestException

from pallet_orders.domain.errors import ConfigurationError, UpstreamError
from pallet_orders.services import webhook_signer
from pallet_orders.utils.settings import FORMS_WEBHOOK_VERSION, WEBHOOK_SECRET, WEBHOOK_TIMEOUT_SECONDS
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RelayResult:
    status_code: int
    upstream: Any


class WebhookClient:
    """
    Relays a signed JSON payload to the workflow automation endpoint.

    No retries here: the receiving side deduplicates on the idempotency
    key, so the caller gets `retryable=True` and decides.
    """

    def __init__(
        self,
        url: str | None,
        secret: str | None = None,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        version: int = FORMS_WEBHOOK_VERSION,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.secret = secret if secret is not None else WEBHOOK_SECRET
        self.timeout = timeout
        self.version = version
        self.session = session or requests.Session()

    def relay(self, payload: Dict[str, Any], idempotency_key: str) -> RelayResult:
        if not self.url:
            raise ConfigurationError("Webhook URL is not configured")
        if not self.secret:
            raise ConfigurationError("Webhook secret is not configured")

        body = webhook_signer.serialize(payload)
        headers = webhook_signer.signed_headers(body, self.secret, idempotency_key, self.version)

        logger.info(f"Webhook POST {self.url} (key {idempotency_key})")
        try:
            #redirects are not followed, a 3xx is a failed relay
            resp = self.session.post(
                self.url, data=body, headers=headers, timeout=self.timeout, allow_redirects=False
            )
        except RequestException as e:
            #timeouts included, the submission can be sent again with the same key
            logger.error(f"Webhook relay to {self.url} failed: {e}")
            raise UpstreamError("Failed to forward submission", retryable=True) from e

        if not 200 <= resp.status_code < 300:
            text = resp.text or ""
            logger.error(f"Webhook relay to {self.url} answered {resp.status_code}")
            raise UpstreamError(
                "Failed to forward submission",
                retryable=True,
                details={"status": resp.status_code, "upstream": text} if text else {"status": resp.status_code},
            )

        try:
            upstream = resp.json()
        except ValueError:
            upstream = None
        return RelayResult(status_code=resp.status_code, upstream=upstream)
