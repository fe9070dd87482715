# pallet_orders/domain/schemas.py
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, model_validator
from pydantic.alias_generators import to_camel

from pallet_orders.domain.order_state import OrderStatus

MAX_FORM_QUANTITY = 100_000
MAX_PICKUP_PHOTOS = 3
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# =====================================================
# ORDERS
# =====================================================
class OrderItemIn(BaseModel):
    """Line item snapshotted from the customer's cart."""

    product_id: str = Field(..., min_length=1, max_length=100)
    product_name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    is_custom: bool = False
    custom_specs: Dict[str, Any] | None = None


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    delivery_notes: str = Field("", max_length=2000)


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    is_custom: bool
    custom_specs: Dict[str, Any] | None = None
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: str
    customer_id: str
    customer_email: str | None = None
    customer_name: str | None = None
    status: OrderStatus
    delivery_price: Decimal | None = None
    delivery_date: date | None = None
    delivery_notes: str = ""
    subtotal: Decimal
    total: Decimal
    version: int
    pricing_complete: bool
    missing: List[str] = []
    unpriced_item_ids: List[str] = []
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateIn(BaseModel):
    status: OrderStatus
    delivery_date: date | None = None
    expected_version: int | None = Field(None, gt=0)


class DeliveryPriceIn(BaseModel):
    #JSON numbers only, sign and finiteness are checked by the service
    delivery_price: StrictInt | StrictFloat
    expected_version: int | None = Field(None, gt=0)


class ItemPriceIn(BaseModel):
    unit_price: StrictInt | StrictFloat
    expected_version: int | None = Field(None, gt=0)


class ItemPriceOut(BaseModel):
    item: OrderItemOut
    order_id: str
    order_total: Decimal
    order_version: int


class EstimateLineIn(BaseModel):
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    is_custom: bool = False


class EstimateIn(BaseModel):
    items: List[EstimateLineIn] = Field(..., min_length=1)


class EstimateOut(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    has_custom_items: bool


# =====================================================
# INTAKE FORMS (one schema per form type)
# =====================================================
class _FormModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _check_contact(name: str | None, email: str | None, phone: str | None) -> None:
    if not name:
        raise ValueError("Name is required")
    if not email:
        raise ValueError("Email is required")
    if not EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    if not phone:
        raise ValueError("Phone is required")


def _parse_quantity(raw: str | int | None, label: str) -> int:
    if raw is None or str(raw).strip() == "":
        raise ValueError(f"{label} is required")
    try:
        qty = int(str(raw).strip())
    except ValueError:
        raise ValueError("Quantity must be at least 1") from None
    if qty < 1:
        raise ValueError("Quantity must be at least 1")
    if qty > MAX_FORM_QUANTITY:
        raise ValueError("Maximum quantity is 100,000")
    return qty


class ContactSubmission(_FormModel):
    form_type: Literal["contact"] = Field("contact", exclude=True)
    submission_id: str | None = None
    name: str | None = None
    email: str | None = None
    company: str | None = None
    phone: str | None = None
    message: str | None = None

    @model_validator(mode="after")
    def _validate(self):
        if self.email:
            self.email = self.email.lower()
        _check_contact(self.name, self.email, self.phone)
        if not self.message:
            raise ValueError("Message is required")
        return self


class QuoteData(_FormModel):
    pallet_type: str | None = None
    quantity: str | int | None = None
    frequency: Literal["one-time", "weekly", "monthly"] = "one-time"
    delivery_location: str | None = None
    need_by_date: str | None = None
    name: str | None = None
    email: str | None = None
    company: str | None = None
    phone: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _validate(self):
        if self.email:
            self.email = self.email.lower()
        if not self.pallet_type:
            raise ValueError("Pallet type is required")
        _parse_quantity(self.quantity, "Quantity")
        self.quantity = str(self.quantity).strip()
        if not self.delivery_location:
            raise ValueError("Delivery location is required")
        _check_contact(self.name, self.email, self.phone)
        return self


class QuoteSubmission(_FormModel):
    form_type: Literal["quote"] = Field("quote", exclude=True)
    submission_id: str | None = None
    data: QuoteData | None = None

    @model_validator(mode="after")
    def _validate(self):
        if self.data is None:
            raise ValueError("Data is required")
        return self


class PickupData(_FormModel):
    pallet_condition: str | None = None
    estimated_quantity: str | int | None = None
    pickup_location: str | None = None
    name: str | None = None
    email: str | None = None
    company: str | None = None
    phone: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _validate(self):
        if self.email:
            self.email = self.email.lower()
        if not self.pallet_condition:
            raise ValueError("Pallet condition is required")
        _parse_quantity(self.estimated_quantity, "Estimated quantity")
        self.estimated_quantity = str(self.estimated_quantity).strip()
        if not self.pickup_location:
            raise ValueError("Pickup location is required")
        _check_contact(self.name, self.email, self.phone)
        return self


class PickupSubmission(_FormModel):
    form_type: Literal["pickup"] = Field("pickup", exclude=True)
    submission_id: str | None = None
    data: PickupData | None = None
    photos: List[str] = []

    @model_validator(mode="after")
    def _validate(self):
        if self.data is None:
            raise ValueError("Data is required")
        #only the first three are considered, like the upload widget
        self.photos = self.photos[:MAX_PICKUP_PHOTOS]
        return self


class SubmissionOut(BaseModel):
    ok: bool = True
    submissionId: str
    upstream: Any = None
