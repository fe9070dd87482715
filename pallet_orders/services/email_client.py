# pallet_orders/services/email_client.py
from typing import Any, Dict

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from requests import RequestException

from pallet_orders.utils.settings import ADMIN_EMAIL, EMAIL_API_KEY, EMAIL_API_URL, EMAIL_FROM
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)

#kinds addressed to the shop admin rather than the customer
ADMIN_KINDS = frozenset({"admin_new_order", "admin_contact", "admin_quote"})

SUBJECTS = {
    "order_confirmation": "Order Confirmed #{order_ref}",
    "admin_new_order": "New Order #{order_ref}",
    "order_status_update": "Order #{order_ref} - {status_label}",
    "custom_price_set": "Custom Quote Ready - Order #{order_ref}",
    "admin_contact": "New Contact Form Submission",
    "admin_quote": "New Quote Request ({quote_type})",
}


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(RequestException),
    )


def order_ref(order_id: str) -> str:
    return str(order_id).split("-")[0].upper()


def subject_for(kind: str, payload: Dict[str, Any]) -> str:
    template = SUBJECTS.get(kind, "Notification")
    values = {
        "order_ref": order_ref(payload.get("order_id", "")),
        "status_label": str(payload.get("status", "")).capitalize(),
        "quote_type": payload.get("type", "buy"),
    }
    return template.format(**values)


class EmailClient:
    """
    Transactional email provider client.

    send() never raises: it answers {"success": bool, "error"?: str} so the
    detached notification task only has to log the outcome.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str = EMAIL_FROM,
        admin_email: str = ADMIN_EMAIL,
        timeout: int = 5,
    ):
        self.api_url = api_url or EMAIL_API_URL
        self.api_key = api_key or EMAIL_API_KEY
        self.sender = sender
        self.admin_email = admin_email
        self.timeout = timeout

    def recipient(self, kind: str, payload: Dict[str, Any]) -> str | None:
        if kind in ADMIN_KINDS:
            return self.admin_email
        return payload.get("customer_email")

    def send(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_url:
            return {"success": False, "error": "email provider is not configured"}

        to = self.recipient(kind, payload)
        if not to:
            return {"success": False, "error": f"no recipient for {kind}"}

        message = {
            "from": self.sender,
            "to": to,
            "subject": subject_for(kind, payload),
            "template": kind,
            "data": payload,
        }
        try:
            data = self._post(message)
        except RequestException as e:
            return {"success": False, "error": str(e)}

        return {"success": True, "id": data.get("id") if isinstance(data, dict) else None}

    @http_retry()
    def _post(self, message: Dict[str, Any]) -> Any:
        logger.info(f"EmailClient POST {self.api_url} template={message['template']}")
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        resp = requests.post(self.api_url, json=message, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError:
            return None
