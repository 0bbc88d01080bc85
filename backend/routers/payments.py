from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

import payment_service
from auth import AdminPrincipal, get_settings
from config import Settings
from database import get_db
from emailer import Mailer, get_mailer
from errors import bad_request
from schemas import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    ManualApprovalRequest,
    MessageResponse,
    PayLaterRequest,
    PaymentApprovalResponse,
    PaymentCallback,
    PaymentCallbackResponse,
    PaymentListItem,
    PaymentListResponse,
    PaymentSummary,
)
from security import require_admin, require_super_admin

router = APIRouter()


@router.post("/payment/initiate", response_model=InitiatePaymentResponse)
def initiate_payment(
    payload: InitiatePaymentRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    payment, gateway_payload = payment_service.initiate_payment(db, settings, payload.unique_id)
    process_url = settings.gateway.process_url
    return InitiatePaymentResponse(
        payment=PaymentSummary.model_validate(payment),
        payment_url=process_url,
        gateway_url=process_url,
        payment_data=gateway_payload,
    )


@router.post("/payment/pay-later", response_model=MessageResponse)
def pay_later(
    payload: PayLaterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    payment_service.pay_later(db, settings, mailer, payload.unique_id)
    return MessageResponse(message="Payment link sent to email addresses")


async def read_callback(request: Request) -> PaymentCallback:
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise bad_request("Malformed callback body")
    else:
        data = dict(await request.form())
    try:
        return PaymentCallback.model_validate(data)
    except ValidationError:
        raise bad_request("tran_id is required")


@router.post("/payment/callback", response_model=PaymentCallbackResponse)
def payment_callback(
    callback: PaymentCallback = Depends(read_callback),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    payment = payment_service.handle_callback(db, mailer, callback.tran_id, callback.status, callback.val_id)
    return PaymentCallbackResponse(status=payment.status)


@router.get("/payment", response_model=PaymentListResponse)
def list_payments(principal: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    payments = payment_service.list_payments(db, principal)
    return PaymentListResponse(payments=[PaymentListItem.model_validate(payment) for payment in payments])


@router.patch("/payment/{payment_id}/approve", response_model=PaymentApprovalResponse)
def approve_payment(
    payment_id: int,
    payload: ManualApprovalRequest,
    principal: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    payment = payment_service.manual_approve(db, mailer, payment_id, payload.note, principal.id)
    return PaymentApprovalResponse(payment=PaymentListItem.model_validate(payment))
