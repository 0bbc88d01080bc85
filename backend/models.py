from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum
import uuid


class Segment(enum.Enum):
    IUPC = "IUPC"
    HACKATHON = "HACKATHON"
    DL_ENIGMA_2_0 = "DL_ENIGMA_2_0"


class AdminStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class Standing(enum.Enum):
    NONE = "NONE"
    WINNER = "WINNER"
    FIRST_RUNNER_UP = "FIRST_RUNNER_UP"
    SECOND_RUNNER_UP = "SECOND_RUNNER_UP"


class TshirtSize(enum.Enum):
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


def _new_unique_id() -> str:
    return str(uuid.uuid4())


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    status = Column(SQLEnum(AdminStatus), default=AdminStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    scopes = relationship("AdminScope", back_populates="admin", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def scope_values(self):
        return sorted(s.scope.value for s in self.scopes)


class AdminScope(Base):
    __tablename__ = "admin_scopes"
    __table_args__ = (UniqueConstraint("admin_id", "scope", name="uq_admin_scope"),)

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False, index=True)
    scope = Column(SQLEnum(Segment), nullable=False)

    admin = relationship("Admin", back_populates="scopes")


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(36), unique=True, index=True, nullable=False, default=_new_unique_id)
    team_name = Column(String(255), nullable=False)
    segment = Column(SQLEnum(Segment), nullable=False, index=True)
    institution = Column(String(200), nullable=False)
    is_selected = Column(Boolean, default=False, nullable=False)
    is_disqualified = Column(Boolean, default=False, nullable=False)
    disqualification_reason = Column(Text, nullable=True)
    standing = Column(SQLEnum(Standing), default=Standing.NONE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    members = relationship(
        "Member",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Member.id",
    )
    payments = relationship(
        "Payment",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [Payment.created_at.desc(), Payment.id.desc()],
    )

    @property
    def leader(self):
        for member in self.members:
            if member.is_team_leader:
                return member
        return None

    @property
    def latest_payment(self):
        return self.payments[0] if self.payments else None


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(15), nullable=True)
    university = Column(String(200), nullable=False)
    tshirt_size = Column(SQLEnum(TshirtSize), nullable=False)
    is_team_leader = Column(Boolean, default=False, nullable=False)

    team = relationship("Team", back_populates="members")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(String(64), unique=True, index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    currency = Column(String(8), default="BDT", nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    val_id = Column(String(255), nullable=True)
    approved_by = Column(Integer, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    manual_approval_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    team = relationship("Team", back_populates="payments")


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    token = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    subject = Column(String(255), nullable=False)
    recipient_count = Column(Integer, default=0, nullable=False)
    sent_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    filter_criteria = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())

    sender = relationship("Admin")


class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(500), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
