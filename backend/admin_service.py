import logging
from typing import List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from auth import AdminPrincipal, create_access_token, generate_random_password, get_password_hash, verify_password
from config import Settings
from email_templates import build_admin_credentials_email
from emailer import Mailer, send_best_effort
from errors import bad_request, conflict, forbidden, not_found, unauthorized
from models import Admin, AdminScope, AdminStatus, Payment, PaymentStatus, Segment, Team
from schemas import AdminResponse, DashboardStats, DashboardSummary, RecentActivity, SegmentCount
from security import apply_scope_filter
from utils import normalize_email

logger = logging.getLogger(__name__)

INVALID_LOGIN_MESSAGE = "Invalid email or password"


def build_admin_response(admin: Admin) -> AdminResponse:
    return AdminResponse(
        id=admin.id,
        email=admin.email,
        is_super_admin=bool(admin.is_super_admin),
        status=admin.status,
        scopes=[Segment(value) for value in admin.scope_values],
        created_at=admin.created_at,
    )


def _get_admin_or_404(db: Session, admin_id: int) -> Admin:
    admin = db.query(Admin).options(selectinload(Admin.scopes)).filter(Admin.id == admin_id).first()
    if not admin:
        raise not_found("Admin not found")
    return admin


def login(db: Session, settings: Settings, email: str, password: str) -> Tuple[str, Admin]:
    admin = db.query(Admin).filter(Admin.email == normalize_email(email)).first()
    if not admin:
        raise unauthorized(INVALID_LOGIN_MESSAGE)

    if admin.status != AdminStatus.ACTIVE:
        raise forbidden("Your account has been suspended. Please contact the super admin.")

    if not verify_password(password, admin.password_hash):
        raise unauthorized(INVALID_LOGIN_MESSAGE)

    token = create_access_token(admin, settings)
    logger.info("Admin %s logged in", admin.id)
    return token, admin


def get_admin(db: Session, admin_id: int) -> Admin:
    return _get_admin_or_404(db, admin_id)


def change_password(db: Session, settings: Settings, admin_id: int, current_password: str, new_password: str) -> None:
    admin = _get_admin_or_404(db, admin_id)
    if not verify_password(current_password, admin.password_hash):
        raise bad_request("Current password is incorrect")
    if current_password == new_password:
        raise bad_request("New password must differ from the current password")
    admin.password_hash = get_password_hash(new_password, rounds=settings.bcrypt_rounds)
    db.commit()


def create_admin(db: Session, settings: Settings, mailer: Mailer, email: str, scopes: List[Segment]) -> Admin:
    email = normalize_email(email)
    if db.query(Admin.id).filter(Admin.email == email).first():
        raise conflict("An admin account with this email already exists")

    plain_password = generate_random_password()
    admin = Admin(
        email=email,
        password_hash=get_password_hash(plain_password, rounds=settings.bcrypt_rounds),
        is_super_admin=False,
        status=AdminStatus.ACTIVE,
    )
    admin.scopes = [AdminScope(scope=scope) for scope in dict.fromkeys(scopes)]
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin %s created with scopes %s", admin.id, admin.scope_values)

    subject, html, text = build_admin_credentials_email(email, plain_password)
    send_best_effort(mailer, email, subject, html, text, context="admin creation email")
    return admin


def list_admins(db: Session) -> List[Admin]:
    return (
        db.query(Admin)
        .options(selectinload(Admin.scopes))
        .order_by(Admin.created_at.desc(), Admin.id.desc())
        .all()
    )


def update_admin(db: Session, admin_id: int, scopes: List[Segment], status=None) -> Admin:
    admin = _get_admin_or_404(db, admin_id)
    if admin.is_super_admin:
        raise forbidden("The super admin account cannot be modified")

    try:
        db.query(AdminScope).filter(AdminScope.admin_id == admin.id).delete(synchronize_session=False)
        for scope in dict.fromkeys(scopes):
            db.add(AdminScope(admin_id=admin.id, scope=scope))
        if status is not None:
            admin.status = status
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire(admin)
    return _get_admin_or_404(db, admin_id)


def delete_admin(db: Session, admin_id: int) -> None:
    admin = _get_admin_or_404(db, admin_id)
    if admin.is_super_admin:
        raise forbidden("The super admin account cannot be deleted")
    db.delete(admin)
    db.commit()
    logger.info("Admin %s deleted", admin_id)


def dashboard_stats(db: Session, principal: AdminPrincipal) -> DashboardStats:
    team_query = apply_scope_filter(db.query(Team), Team.segment, principal)
    total_teams = team_query.count()
    selected_teams = team_query.filter(Team.is_selected.is_(True)).count()

    revenue_query = apply_scope_filter(
        db.query(func.coalesce(func.sum(Payment.amount), 0)).join(Team, Payment.team_id == Team.id),
        Team.segment,
        principal,
    ).filter(Payment.status == PaymentStatus.SUCCESS)
    total_revenue = int(revenue_query.scalar() or 0)

    segment_rows = apply_scope_filter(
        db.query(Team.segment, func.count(Team.id)),
        Team.segment,
        principal,
    ).group_by(Team.segment).all()

    recent = team_query.order_by(Team.created_at.desc(), Team.id.desc()).limit(5).all()

    return DashboardStats(
        summary=DashboardSummary(
            total_teams=total_teams,
            selected_teams=selected_teams,
            total_revenue=total_revenue,
        ),
        segments=[SegmentCount(name=segment, count=count) for segment, count in segment_rows],
        recent_activities=[
            RecentActivity(
                id=team.id,
                title=f"New Team: {team.team_name}",
                subtitle=f"{team.segment.value} | {team.institution}",
                timestamp=team.created_at,
            )
            for team in recent
        ],
    )
