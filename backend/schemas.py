from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional, List, Dict, Any, Literal, Union
from datetime import datetime
import re

from models import AdminStatus, PaymentStatus, Segment, Standing, TshirtSize

SIMPLE_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Admin Schemas
class AdminLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class AdminCreate(CamelModel):
    email: EmailStr
    scopes: List[Segment] = Field(..., min_length=1)


class AdminUpdate(CamelModel):
    scopes: List[Segment] = Field(..., min_length=1)
    status: Optional[AdminStatus] = None


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class AdminResponse(CamelModel):
    id: int
    email: str
    is_super_admin: bool
    status: AdminStatus
    scopes: List[Segment] = []
    created_at: Optional[datetime] = None


class AdminLoginResponse(CamelModel):
    message: str = "Login successful"
    token: str
    admin: AdminResponse


class SegmentCount(CamelModel):
    name: Segment
    count: int


class RecentActivity(CamelModel):
    id: int
    type: str = "REGISTRATION"
    title: str
    subtitle: str
    timestamp: Optional[datetime] = None


class DashboardSummary(CamelModel):
    total_teams: int
    selected_teams: int
    total_revenue: int


class DashboardStats(CamelModel):
    summary: DashboardSummary
    segments: List[SegmentCount]
    recent_activities: List[RecentActivity]


# Team Schemas
class MemberInput(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=10, max_length=15)
    tshirt_size: TshirtSize
    university_name: str = Field(..., min_length=1, max_length=200)

    @field_validator('name', 'university_name')
    @classmethod
    def strip_text(cls, v):
        value = v.strip()
        if not value:
            raise ValueError('Field must not be blank')
        return value

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        value = v.strip()
        if not SIMPLE_EMAIL_RE.match(value):
            raise ValueError('Please enter a valid email address')
        return value


class TeamRegister(CamelModel):
    team_name: str = Field(..., min_length=1, max_length=255)
    segment: Segment
    members: List[MemberInput] = Field(..., min_length=1, max_length=3)

    @field_validator('team_name')
    @classmethod
    def strip_team_name(cls, v):
        value = v.strip()
        if not value:
            raise ValueError('Team name is required')
        return value


class TeamSelectionUpdate(CamelModel):
    is_selected: bool


class TeamDisqualify(CamelModel):
    is_disqualified: bool
    reason: Optional[str] = None


class TeamStandingUpdate(CamelModel):
    standing: Standing


class MemberResponse(CamelModel):
    id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    university: str
    tshirt_size: TshirtSize
    is_team_leader: bool


class PaymentResponse(CamelModel):
    id: int
    transaction_id: str
    amount: int
    currency: str
    status: PaymentStatus
    val_id: Optional[str] = None
    approved_by: Optional[int] = None
    manual_approval_note: Optional[str] = None
    created_at: Optional[datetime] = None


class TeamResponse(CamelModel):
    id: int
    unique_id: str
    team_name: str
    segment: Segment
    institution: str
    is_selected: bool
    is_disqualified: bool
    disqualification_reason: Optional[str] = None
    standing: Standing
    created_at: Optional[datetime] = None
    members: List[MemberResponse] = []
    payments: List[PaymentResponse] = []


class TeamMutationResponse(CamelModel):
    message: str
    team: TeamResponse


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class TeamListResponse(CamelModel):
    teams: List[TeamResponse]
    pagination: Pagination


# Payment Schemas
class InitiatePaymentRequest(CamelModel):
    unique_id: str = Field(..., min_length=1)


class PayLaterRequest(CamelModel):
    unique_id: str = Field(..., min_length=1)


class PaymentCallback(BaseModel):
    tran_id: str = Field(..., min_length=1)
    status: Optional[str] = None
    val_id: Optional[str] = None


class ManualApprovalRequest(CamelModel):
    note: str = Field(..., min_length=1)

    @field_validator('note')
    @classmethod
    def strip_note(cls, v):
        value = v.strip()
        if not value:
            raise ValueError('Note must not be blank')
        return value


class PaymentSummary(CamelModel):
    id: int
    transaction_id: str
    amount: int
    status: PaymentStatus


class InitiatePaymentResponse(CamelModel):
    message: str = "Payment initiated"
    payment: PaymentSummary
    payment_url: str
    gateway_url: str
    payment_data: Dict[str, Any]
    note: str = "In production, redirect user to SSLCommerz gateway with this data"


class PaymentTeamSummary(CamelModel):
    id: int
    unique_id: str
    team_name: str
    segment: Segment


class PaymentListItem(PaymentResponse):
    team: PaymentTeamSummary


class PaymentListResponse(CamelModel):
    payments: List[PaymentListItem]


class PaymentCallbackResponse(CamelModel):
    message: str = "Payment callback processed"
    status: PaymentStatus


class PaymentApprovalResponse(CamelModel):
    message: str = "Payment manually approved"
    payment: PaymentListItem


# Email Schemas
class AllFilter(CamelModel):
    type: Literal["ALL"]


class SegmentFilter(CamelModel):
    type: Literal["SEGMENT"]
    segment: Segment


class SelectedFilter(CamelModel):
    type: Literal["SELECTED"]


class CustomFilter(CamelModel):
    type: Literal["CUSTOM"]
    team_ids: List[int] = Field(..., min_length=1)


class TeamFilter(CamelModel):
    type: Literal["TEAM"]
    team_id: int


class MemberFilter(CamelModel):
    type: Literal["MEMBER"]
    member_id: int


class IndividualFilter(CamelModel):
    type: Literal["INDIVIDUAL"]
    custom_email: EmailStr


EmailFilter = Annotated[
    Union[AllFilter, SegmentFilter, SelectedFilter, CustomFilter, TeamFilter, MemberFilter, IndividualFilter],
    Field(discriminator="type"),
]


class BulkEmailRequest(CamelModel):
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    filter: EmailFilter


class SingleEmailRequest(CamelModel):
    recipient_email: EmailStr
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)


class BulkEmailStats(CamelModel):
    total: int
    sent: int
    failed: int


class BulkEmailResponse(CamelModel):
    message: str = "Bulk email sent"
    stats: BulkEmailStats


class EmailLogResponse(CamelModel):
    id: int
    sender_id: Optional[int] = None
    sender_email: Optional[str] = None
    subject: str
    recipient_count: int
    sent_count: int
    failed_count: int
    filter_criteria: Optional[Dict[str, Any]] = None
    sent_at: Optional[datetime] = None


class EmailLogListResponse(CamelModel):
    logs: List[EmailLogResponse]


# Verification Schemas
class OtpRequest(CamelModel):
    email: EmailStr


class OtpVerify(CamelModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)

    @field_validator('otp')
    @classmethod
    def validate_otp(cls, v):
        if not v.isdigit():
            raise ValueError('OTP must be 6 digits')
        return v


class MessageResponse(CamelModel):
    message: str
