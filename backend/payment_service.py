import logging
import secrets
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from auth import AdminPrincipal
from config import Settings
from email_templates import build_payment_confirmation_email, recipient_emails
from emailer import Attachment, Mailer, send_best_effort
from errors import bad_request, conflict, internal, not_found
from models import Payment, PaymentStatus, Team
from reports import build_receipt_pdf
from security import apply_scope_filter
from team_service import get_team_by_unique_id, send_registration_email
from utils import normalize_segment_key

logger = logging.getLogger(__name__)

CURRENCY = "BDT"
TRANSACTION_ID_ATTEMPTS = 3

FEES: Dict[str, int] = {
    "IUPC": 5500,
    "HACKATHON": 2000,
    "DL_ENIGMA_2_0": 1500,
    "DL_ENIGMA": 1500,
}

GATEWAY_STATUS_MAP = {
    "VALID": PaymentStatus.SUCCESS,
    "VALIDATED": PaymentStatus.SUCCESS,
    "CANCELLED": PaymentStatus.CANCELLED,
}


def resolve_fee(segment) -> int:
    raw = segment.value if hasattr(segment, "value") else segment
    amount = FEES.get(normalize_segment_key(raw), 0)
    if amount <= 0:
        raise bad_request(f"Invalid fee configuration for segment: {raw}")
    return amount


def generate_transaction_id() -> str:
    return f"TXN-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


def map_gateway_status(value: Optional[str]) -> PaymentStatus:
    return GATEWAY_STATUS_MAP.get(str(value or "").strip(), PaymentStatus.FAILED)


def build_gateway_payload(settings: Settings, team: Team, payment: Payment) -> Dict[str, Any]:
    gateway = settings.gateway
    leader = team.leader
    return {
        "store_id": gateway.store_id,
        "store_passwd": gateway.store_password,
        "total_amount": str(payment.amount),
        "currency": payment.currency,
        "tran_id": payment.transaction_id,
        "success_url": gateway.success_url,
        "fail_url": gateway.fail_url,
        "cancel_url": gateway.cancel_url,
        "ipn_url": gateway.ipn_url,
        "cus_name": leader.full_name,
        "cus_email": leader.email,
        "cus_phone": leader.phone or "N/A",
        "cus_add1": team.institution,
        "cus_city": "Sylhet",
        "cus_country": "Bangladesh",
        "product_name": f"{team.segment.value} Registration Fee",
        "product_category": "Competition Fee",
        "product_profile": "general",
    }


def initiate_payment(db: Session, settings: Settings, unique_id: str) -> Tuple[Payment, Dict[str, Any]]:
    team = db.query(Team).options(selectinload(Team.members)).filter(Team.unique_id == unique_id).first()
    if not team:
        raise not_found("The specified team was not found")
    if team.leader is None:
        raise bad_request("Team leader information is missing for this team")

    amount = resolve_fee(team.segment)

    payment = None
    for attempt in range(1, TRANSACTION_ID_ATTEMPTS + 1):
        payment = Payment(
            team_id=team.id,
            transaction_id=generate_transaction_id(),
            amount=amount,
            currency=CURRENCY,
            status=PaymentStatus.PENDING,
        )
        db.add(payment)
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            logger.warning("Transaction id collision on attempt %d for team %s", attempt, team.unique_id)
            if attempt == TRANSACTION_ID_ATTEMPTS:
                raise conflict("Could not allocate a unique transaction id, please retry")

    db.refresh(payment)
    logger.info("Payment %s initiated for team %s (%d %s)", payment.transaction_id, team.unique_id, amount, CURRENCY)
    return payment, build_gateway_payload(settings, team, payment)


def pay_later(db: Session, settings: Settings, mailer: Mailer, unique_id: str) -> None:
    team = get_team_by_unique_id(db, unique_id)
    try:
        send_registration_email(mailer, settings, team)
    except Exception:
        logger.exception("Failed to send pay later email for team %s", unique_id)
        raise internal("Failed to send email. Please try again later or contact support.")


def send_payment_confirmation(mailer: Mailer, payment: Payment) -> bool:
    team = payment.team
    subject, html, text = build_payment_confirmation_email(
        team_name=team.team_name,
        segment=team.segment.value,
        transaction_id=payment.transaction_id,
        amount=payment.amount,
        currency=payment.currency,
    )
    try:
        receipt = Attachment(
            filename=f"receipt-{team.unique_id[:8]}.pdf",
            content=build_receipt_pdf(team, payment_status=payment.status),
        )
    except Exception:
        logger.exception("Failed to render receipt for team %s", team.unique_id)
        receipt = None
    return send_best_effort(
        mailer,
        recipient_emails(team.members),
        subject,
        html,
        text,
        attachments=[receipt] if receipt else None,
        context="payment confirmation email",
    )


def _get_payment(db: Session, **criteria) -> Optional[Payment]:
    query = db.query(Payment).options(joinedload(Payment.team).selectinload(Team.members))
    for column, value in criteria.items():
        query = query.filter(getattr(Payment, column) == value)
    return query.first()


def handle_callback(db: Session, mailer: Mailer, transaction_id: str, gateway_status: Optional[str],
                    val_id: Optional[str]) -> Payment:
    payment = _get_payment(db, transaction_id=transaction_id)
    if not payment:
        raise not_found("Payment record for this transaction was not found")

    new_status = map_gateway_status(gateway_status)
    previous = payment.status
    payment.status = new_status
    payment.val_id = val_id
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s callback: %s -> %s", transaction_id, previous.value, new_status.value)

    if new_status == PaymentStatus.SUCCESS:
        send_payment_confirmation(mailer, payment)
    return payment


def manual_approve(db: Session, mailer: Mailer, payment_id: int, note: str, approver_id: int) -> Payment:
    payment = _get_payment(db, id=payment_id)
    if not payment:
        raise not_found("Payment not found")

    payment.status = PaymentStatus.SUCCESS
    payment.approved_by = approver_id
    payment.manual_approval_note = note.strip()
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s manually approved by admin %s", payment.transaction_id, approver_id)

    send_payment_confirmation(mailer, payment)
    return payment


def list_payments(db: Session, principal: AdminPrincipal) -> List[Payment]:
    query = db.query(Payment).join(Team, Payment.team_id == Team.id).options(joinedload(Payment.team))
    query = apply_scope_filter(query, Team.segment, principal)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
