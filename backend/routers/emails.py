from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import email_workflows
from auth import AdminPrincipal
from database import get_db
from emailer import Mailer, get_mailer
from models import EmailLog
from schemas import (
    BulkEmailRequest,
    BulkEmailResponse,
    BulkEmailStats,
    EmailLogListResponse,
    EmailLogResponse,
    MessageResponse,
    SingleEmailRequest,
)
from security import require_admin

router = APIRouter()


def _build_log_response(log: EmailLog) -> EmailLogResponse:
    return EmailLogResponse(
        id=log.id,
        sender_id=log.sender_id,
        sender_email=log.sender.email if log.sender else None,
        subject=log.subject,
        recipient_count=log.recipient_count,
        sent_count=log.sent_count,
        failed_count=log.failed_count,
        filter_criteria=log.filter_criteria,
        sent_at=log.sent_at,
    )


@router.post("/email/send-bulk", response_model=BulkEmailResponse)
def send_bulk_email(
    payload: BulkEmailRequest,
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    result = email_workflows.send_bulk_email(db, mailer, principal, payload.subject, payload.body, payload.filter)
    return BulkEmailResponse(stats=BulkEmailStats(total=result.total, sent=result.sent, failed=result.failed))


@router.post("/email/send-single", response_model=MessageResponse)
def send_single_email(
    payload: SingleEmailRequest,
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    email_workflows.send_single_email(
        db, mailer, principal, str(payload.recipient_email), payload.subject, payload.body,
    )
    return MessageResponse(message="Email sent successfully")


@router.get("/email/logs", response_model=EmailLogListResponse)
def email_logs(_: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    return EmailLogListResponse(logs=[_build_log_response(log) for log in email_workflows.list_email_logs(db)])
