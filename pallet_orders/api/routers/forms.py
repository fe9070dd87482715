# pallet_orders/api/routers/forms.py
"""
Public intake endpoints. No identity required, so every request goes
through the payload size and per-client rate limit guards first.
"""
import json

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from pallet_orders.domain.errors import ValidationError
from pallet_orders.domain.schemas import SubmissionOut
from pallet_orders.services.form_service import FormService
from pallet_orders.services.request_guard import (
    CONTACT_POLICY,
    PICKUP_POLICY,
    QUOTE_POLICY,
    EndpointPolicy,
    RequestGuard,
    client_ip,
    default_guard,
)
from pallet_orders.utils.logging import bind_context, clear_context

router = APIRouter(prefix="/forms", tags=["forms"])

#relay sessions are reused across requests
default_form_service = FormService()


def get_request_guard() -> RequestGuard:
    return default_guard


def get_form_service() -> FormService:
    return default_form_service


async def _handle(
    form_type: str,
    policy: EndpointPolicy,
    request: Request,
    response: Response,
    guard: RequestGuard,
    svc: FormService,
) -> dict:
    bind_context(form_type=form_type, client_ip=client_ip(request.headers))
    try:
        limit = guard.protect(request.headers, policy)
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Invalid JSON body") from None

        #relay and notification use blocking I/O
        result = await run_in_threadpool(svc.submit, form_type, body, request.headers)
    finally:
        clear_context()

    response.headers.update(limit.headers)
    return result


@router.post("/contact", response_model=SubmissionOut)
async def submit_contact(
    request: Request,
    response: Response,
    guard: RequestGuard = Depends(get_request_guard),
    svc: FormService = Depends(get_form_service),
):
    return await _handle("contact", CONTACT_POLICY, request, response, guard, svc)


@router.post("/quote", response_model=SubmissionOut)
async def submit_quote(
    request: Request,
    response: Response,
    guard: RequestGuard = Depends(get_request_guard),
    svc: FormService = Depends(get_form_service),
):
    return await _handle("quote", QUOTE_POLICY, request, response, guard, svc)


@router.post("/pickup", response_model=SubmissionOut)
async def submit_pickup(
    request: Request,
    response: Response,
    guard: RequestGuard = Depends(get_request_guard),
    svc: FormService = Depends(get_form_service),
):
    return await _handle("pickup", PICKUP_POLICY, request, response, guard, svc)
