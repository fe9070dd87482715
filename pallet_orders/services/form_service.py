# pallet_orders/services/form_service.py
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Type

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from pallet_orders.domain.errors import UpstreamError, ValidationError
from pallet_orders.domain.schemas import ContactSubmission, PickupSubmission, QuoteSubmission
from pallet_orders.services import webhook_signer
from pallet_orders.services.notification_service import ADMIN_CONTACT, ADMIN_QUOTE, NotificationService
from pallet_orders.services.request_guard import client_ip
from pallet_orders.services.webhook_client import WebhookClient
from pallet_orders.utils.settings import (
    FORMS_INCLUDE_IP,
    FORMS_WEBHOOK_VERSION,
    WEBHOOK_CONTACT_URL,
    WEBHOOK_PICKUP_URL,
    WEBHOOK_QUOTE_URL,
)
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)

FORM_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "contact": ContactSubmission,
    "quote": QuoteSubmission,
    "pickup": PickupSubmission,
}


def parse_submission(form_type: str, body: Any) -> BaseModel:
    """Validate a raw JSON body against its form schema; first problem wins."""
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    schema = FORM_SCHEMAS[form_type]
    try:
        return schema.model_validate(body)
    except SchemaError as e:
        first = e.errors()[0]
        cause = first.get("ctx", {}).get("error")
        if cause is not None:
            raise ValidationError(str(cause)) from None
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise ValidationError(f"{field}: {first.get('msg')}") from None


def _compact(fields: Dict[str, Any]) -> Dict[str, Any]:
    #absent optional fields are left out of the relayed payload
    return {k: v for k, v in fields.items() if v is not None and v != ""}


def contact_fields(sub: ContactSubmission) -> Dict[str, Any]:
    return _compact({
        "fullName": sub.name,
        "email": sub.email,
        "phone": sub.phone,
        "company": sub.company,
        "message": sub.message,
        "preferredContactMethod": "phone" if sub.phone else "email",
    })


def quote_fields(sub: QuoteSubmission) -> Dict[str, Any]:
    d = sub.data
    return _compact({
        "fullName": d.name,
        "email": d.email,
        "phone": d.phone,
        "company": d.company,
        "palletType": d.pallet_type,
        "quantity": d.quantity,
        "frequency": d.frequency,
        "deliveryLocation": d.delivery_location,
        "needByDate": d.need_by_date,
        "message": d.notes,
        "preferredContactMethod": "phone",
    })


def pickup_fields(sub: PickupSubmission) -> Dict[str, Any]:
    d = sub.data
    fields = _compact({
        "fullName": d.name,
        "email": d.email,
        "phone": d.phone,
        "company": d.company,
        "palletCondition": d.pallet_condition,
        "estimatedQuantity": d.estimated_quantity,
        "pickupLocation": d.pickup_location,
        "message": d.notes,
        "preferredContactMethod": "phone",
    })
    fields["photosProvided"] = bool(sub.photos)
    fields["photoCount"] = len(sub.photos)
    return fields


def admin_notice(form_type: str, sub: BaseModel) -> tuple[str, Dict[str, Any]]:
    if form_type == "contact":
        return ADMIN_CONTACT, {
            "name": sub.name,
            "email": sub.email,
            "company": sub.company,
            "phone": sub.phone,
            "message": sub.message,
        }
    d = sub.data
    if form_type == "quote":
        details = {
            "Pallet Type": d.pallet_type,
            "Quantity": d.quantity,
            "Frequency": d.frequency,
            "Delivery Location": d.delivery_location,
            "Need By Date": d.need_by_date or "Not specified",
            "Notes": d.notes or "",
        }
        quote_type = "buy"
    else:
        details = {
            "Pallet Condition": d.pallet_condition,
            "Estimated Quantity": d.estimated_quantity,
            "Pickup Location": d.pickup_location,
            "Photos": str(len(sub.photos)),
            "Notes": d.notes or "",
        }
        quote_type = "sell"
    return ADMIN_QUOTE, {
        "type": quote_type,
        "name": d.name,
        "email": d.email,
        "company": d.company,
        "phone": d.phone,
        "details": details,
    }


FIELD_BUILDERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "contact": contact_fields,
    "quote": quote_fields,
    "pickup": pickup_fields,
}


class FormService:
    """
    Public intake: contact, quote and pickup submissions.

    A validated submission is relayed (signed) to the workflow webhook for
    its form type, and the admin gets a detached email notice. Relay
    failures come back as retryable UpstreamError.
    """

    def __init__(
        self,
        clients: Mapping[str, WebhookClient] | None = None,
        notifier: NotificationService | None = None,
        include_ip: bool = FORMS_INCLUDE_IP,
        version: int = FORMS_WEBHOOK_VERSION,
    ):
        self.clients = dict(clients) if clients is not None else {
            "contact": WebhookClient(WEBHOOK_CONTACT_URL),
            "quote": WebhookClient(WEBHOOK_QUOTE_URL),
            "pickup": WebhookClient(WEBHOOK_PICKUP_URL),
        }
        self.notifier = notifier or NotificationService()
        self.include_ip = include_ip
        self.version = version

    def build_payload(self, form_type: str, sub: BaseModel, submission_id: str, headers: Mapping[str, str]) -> Dict[str, Any]:
        source = {
            "pageUrl": headers.get("referer"),
            "referrerUrl": headers.get("referer"),
            "userAgent": headers.get("user-agent"),
        }
        if self.include_ip:
            source["ip"] = client_ip(headers)
        return {
            "formType": form_type,
            "version": self.version,
            "submissionId": submission_id,
            "submittedAt": datetime.now(timezone.utc).isoformat(),
            "source": source,
            "fields": FIELD_BUILDERS[form_type](sub),
        }

    def submit(self, form_type: str, body: Any, headers: Mapping[str, str]) -> Dict[str, Any]:
        """
        Use Case: accept one intake submission.

        1. Validates the body against the form schema
        2. Relays the signed payload (idempotency key = submission id)
        3. Schedules the admin notice
        """
        sub = parse_submission(form_type, body)
        submission_id = (sub.submission_id or "").strip() or webhook_signer.new_idempotency_key()

        payload = self.build_payload(form_type, sub, submission_id, headers)
        kind, notice = admin_notice(form_type, sub)

        try:
            result = self.clients[form_type].relay(payload, idempotency_key=submission_id)
        except UpstreamError:
            #admin still hears about it when the relay fails
            self.notifier.dispatch(kind, notice)
            raise
        self.notifier.dispatch(kind, notice)

        logger.info(f"Form {form_type} submission {submission_id} relayed ({result.status_code})")
        return {"ok": True, "submissionId": submission_id, "upstream": result.upstream}
