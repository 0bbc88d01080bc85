from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import email_workflows
from auth import get_settings
from config import Settings
from database import get_db
from emailer import Mailer, get_mailer
from schemas import MessageResponse, OtpRequest, OtpVerify

router = APIRouter()


@router.post("/auth/request-otp", response_model=MessageResponse)
def request_otp(
    payload: OtpRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    email_workflows.request_otp(db, settings, mailer, str(payload.email))
    return MessageResponse(message="OTP sent to your email")


@router.post("/auth/verify-otp", response_model=MessageResponse)
def verify_otp(payload: OtpVerify, db: Session = Depends(get_db)):
    email_workflows.verify_otp(db, str(payload.email), payload.otp)
    return MessageResponse(message="Email verified successfully")
