import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from auth import AdminPrincipal
from config import Settings
from email_templates import build_registration_email, recipient_emails
from emailer import Mailer, send_best_effort
from errors import forbidden, not_found
from models import Member, Segment, Standing, Team
from schemas import MemberInput
from security import apply_scope_filter, can_access_segment
from utils import normalize_optional_text

logger = logging.getLogger(__name__)


def _team_options():
    return (selectinload(Team.members), selectinload(Team.payments))


def _get_team_or_404(db: Session, team_id: int) -> Team:
    team = db.query(Team).options(*_team_options()).filter(Team.id == team_id).first()
    if not team:
        raise not_found("Team not found")
    return team


def send_registration_email(mailer: Mailer, settings: Settings, team: Team) -> None:
    """Raises on delivery failure; callers decide whether that is fatal."""
    subject, html, text = build_registration_email(
        team_name=team.team_name,
        segment=team.segment.value,
        member_count=len(team.members),
        checkout_url=settings.checkout_url(team.unique_id),
    )
    mailer.send(recipient_emails(team.members), subject, html, text)


def register_team(
    db: Session,
    settings: Settings,
    mailer: Mailer,
    team_name: str,
    segment: Segment,
    members: List[MemberInput],
) -> Team:
    leader = members[0]
    team = Team(
        team_name=team_name,
        segment=segment,
        institution=leader.university_name,
    )
    team.members = [
        Member(
            full_name=member.name,
            email=member.email,
            phone=member.phone,
            university=member.university_name,
            tshirt_size=member.tshirt_size,
            is_team_leader=index == 0,
        )
        for index, member in enumerate(members)
    ]
    try:
        db.add(team)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(team)
    logger.info("Team %s (%s) registered with %d members", team.unique_id, segment.value, len(members))

    try:
        send_registration_email(mailer, settings, team)
    except Exception:
        logger.exception("Failed to send registration confirmation for team %s", team.unique_id)
    return team


def list_teams(
    db: Session,
    principal: AdminPrincipal,
    segment: Optional[Segment] = None,
    is_selected: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Team], int]:
    query = apply_scope_filter(db.query(Team), Team.segment, principal)

    if segment is not None:
        query = query.filter(Team.segment == segment)
    if is_selected is not None:
        query = query.filter(Team.is_selected.is_(is_selected))

    needle = normalize_optional_text(search)
    if needle:
        needle = needle.lower()
        query = query.filter(
            or_(
                func.lower(Team.team_name).contains(needle, autoescape=True),
                func.lower(Team.institution).contains(needle, autoescape=True),
            )
        )

    total = query.count()
    teams = (
        query.options(*_team_options())
        .order_by(Team.created_at.desc(), Team.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return teams, total


def get_team(db: Session, principal: AdminPrincipal, team_id: int) -> Team:
    team = _get_team_or_404(db, team_id)
    if not can_access_segment(principal, team.segment):
        raise forbidden("Access denied")
    return team


def get_team_by_unique_id(db: Session, unique_id: str) -> Team:
    team = db.query(Team).options(*_team_options()).filter(Team.unique_id == unique_id).first()
    if not team:
        raise not_found("Team not found")
    return team


def set_selection(db: Session, team_id: int, is_selected: bool) -> Team:
    team = _get_team_or_404(db, team_id)
    team.is_selected = is_selected
    db.commit()
    return _get_team_or_404(db, team_id)


def disqualify(db: Session, team_id: int, is_disqualified: bool, reason: Optional[str]) -> Team:
    team = _get_team_or_404(db, team_id)
    team.is_disqualified = is_disqualified
    team.disqualification_reason = normalize_optional_text(reason)
    db.commit()
    return _get_team_or_404(db, team_id)


def set_standing(db: Session, team_id: int, standing: Standing) -> Team:
    team = _get_team_or_404(db, team_id)
    team.standing = standing
    db.commit()
    return _get_team_or_404(db, team_id)


def delete_team(db: Session, team_id: int) -> None:
    team = _get_team_or_404(db, team_id)
    db.delete(team)
    db.commit()
    logger.info("Team %s deleted", team_id)
