# pallet_orders/services/webhook_signer.py
import hashlib
import hmac
import json
import uuid
from typing import Any, Dict

from pallet_orders.utils.settings import FORMS_WEBHOOK_VERSION

VERSION_HEADER = "X-Form-Version"
IDEMPOTENCY_HEADER = "X-Idempotency-Key"
SIGNATURE_HEADER = "X-Signature"


def sign(payload: bytes | str, secret: bytes | str) -> str:
    """Hex HMAC-SHA256 of the exact payload bytes. No salt, same input same digest."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hmac.new(secret, payload, hashlib.sha256).hexdigest()


def verify(payload: bytes | str, secret: bytes | str, signature: str) -> bool:
    return hmac.compare_digest(sign(payload, secret), signature or "")


def serialize(payload: Dict[str, Any]) -> bytes:
    #these bytes are both signed and sent, never re-serialize in between
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


def signed_headers(
    body: bytes,
    secret: bytes | str,
    idempotency_key: str,
    version: int = FORMS_WEBHOOK_VERSION,
) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        VERSION_HEADER: str(version),
        IDEMPOTENCY_HEADER: idempotency_key,
        SIGNATURE_HEADER: sign(body, secret),
    }
