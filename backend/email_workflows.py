import hmac
import logging
import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from auth import AdminPrincipal
from config import Settings
from email_bulk import BulkSendResult, Recipient, resolve_recipients, send_bulk
from email_templates import build_otp_email
from emailer import Mailer
from errors import bad_request, internal
from models import EmailLog, VerificationToken
from security import visible_segments
from utils import ensure_timezone, normalize_email, now_tz

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
EMAIL_LOG_LIMIT = 100


def generate_otp() -> str:
    return str(secrets.randbelow(10 ** OTP_LENGTH)).zfill(OTP_LENGTH)


def request_otp(db: Session, settings: Settings, mailer: Mailer, email: str) -> None:
    email = normalize_email(email)
    otp = generate_otp()

    db.query(VerificationToken).filter(VerificationToken.email == email).delete(synchronize_session=False)
    db.add(VerificationToken(
        email=email,
        token=otp,
        expires_at=now_tz() + timedelta(minutes=settings.otp_ttl_minutes),
    ))
    db.commit()

    subject, html, text = build_otp_email(otp, validity_minutes=settings.otp_ttl_minutes)
    try:
        mailer.send(email, subject, html, text)
    except Exception:
        logger.exception("Failed to send OTP email")
        raise internal("Failed to send OTP email. Please try again later.")


def verify_otp(db: Session, email: str, otp: str) -> None:
    email = normalize_email(email)
    record = (
        db.query(VerificationToken)
        .filter(VerificationToken.email == email)
        .order_by(VerificationToken.id.desc())
        .first()
    )
    if not record or not hmac.compare_digest(record.token, otp):
        raise bad_request("Invalid OTP")

    if now_tz() > ensure_timezone(record.expires_at):
        raise bad_request("OTP has expired")

    db.delete(record)
    db.commit()


def _record_send(db: Session, sender_id: Optional[int], subject: str, result: BulkSendResult,
                 filter_criteria: dict) -> EmailLog:
    log = EmailLog(
        sender_id=sender_id,
        subject=subject,
        recipient_count=result.total,
        sent_count=result.sent,
        failed_count=result.failed,
        filter_criteria=filter_criteria,
    )
    db.add(log)
    db.commit()
    return log


def send_bulk_email(db: Session, mailer: Mailer, principal: AdminPrincipal, subject: str, body: str,
                    email_filter) -> BulkSendResult:
    recipients = resolve_recipients(db, email_filter, visible_segments(principal))
    if not recipients:
        raise bad_request("No recipients found for this filter")

    result = send_bulk(mailer, recipients, subject, body)
    _record_send(db, principal.id, subject, result, email_filter.model_dump(mode="json", by_alias=True))
    logger.info(
        "Bulk email by admin %s: %d sent, %d failed of %d",
        principal.id, result.sent, result.failed, result.total,
    )
    return result


def send_single_email(db: Session, mailer: Mailer, principal: AdminPrincipal, recipient_email: str,
                      subject: str, body: str) -> None:
    recipient = Recipient(email=recipient_email, context={"email": recipient_email})
    result = send_bulk(mailer, [recipient], subject, body)
    _record_send(db, principal.id, subject, result, {"type": "INDIVIDUAL", "customEmail": recipient_email})
    if result.failed:
        detail = result.errors[0]["error"] if result.errors else "unknown error"
        raise internal(f"Failed to send email: {detail}")


def list_email_logs(db: Session) -> List[EmailLog]:
    return (
        db.query(EmailLog)
        .options(joinedload(EmailLog.sender))
        .order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
        .limit(EMAIL_LOG_LIMIT)
        .all()
    )
