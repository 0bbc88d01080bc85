import html as html_lib
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from errors import bad_request, forbidden
from models import Member, Segment, Team

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<([a-z0-9_]+)>", re.IGNORECASE)
MUSTACHE_PATTERN = re.compile(r"\{\{\s*([a-z0-9_]+)\s*\}\}", re.IGNORECASE)

ALLOWED_TAGS = {
    "name",
    "email",
    "team_name",
    "segment",
    "institution",
    "unique_id",
    "university",
    "tshirt_size",
    "is_team_leader",
    "is_selected",
    "standing",
}


@dataclass
class Recipient:
    email: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BulkSendResult:
    total: int = 0
    sent: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


def _normalize_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def render_email_template(template: str, context: Dict[str, Any], *, html_mode: bool) -> str:
    if not template:
        return ""

    def repl(match: re.Match) -> str:
        tag = match.group(1).lower()
        if tag not in ALLOWED_TAGS:
            return match.group(0)
        value = _normalize_value(context.get(tag))
        if html_mode:
            return html_lib.escape(value)
        return value

    rendered = TAG_PATTERN.sub(repl, template)
    return MUSTACHE_PATTERN.sub(repl, rendered)


def derive_text_from_html(html: str) -> str:
    if not html:
        return ""
    text = re.sub(r"<\s*br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"<\s*/p\s*>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html_lib.unescape(text)
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n", text)
    return text.strip()


def available_tags() -> Iterable[str]:
    return sorted(ALLOWED_TAGS)


def member_context(member: Member, team: Optional[Team] = None) -> Dict[str, Any]:
    team = team or member.team
    return {
        "name": member.full_name,
        "email": member.email,
        "university": member.university,
        "tshirt_size": member.tshirt_size,
        "is_team_leader": member.is_team_leader,
        "team_name": team.team_name if team else None,
        "segment": team.segment if team else None,
        "institution": team.institution if team else None,
        "unique_id": team.unique_id if team else None,
        "is_selected": team.is_selected if team else None,
        "standing": team.standing if team else None,
    }


def _recipients_from_teams(teams: Iterable[Team]) -> List[Recipient]:
    seen = set()
    recipients: List[Recipient] = []
    for team in teams:
        for member in team.members:
            email_value = (member.email or "").strip()
            if not email_value or email_value.lower() in seen:
                continue
            seen.add(email_value.lower())
            recipients.append(Recipient(email=email_value, context=member_context(member, team)))
    return recipients


def _team_query(db: Session, allowed_segments: Optional[List[str]]):
    query = db.query(Team).options(selectinload(Team.members)).order_by(Team.created_at.asc(), Team.id.asc())
    if allowed_segments is not None:
        query = query.filter(Team.segment.in_([Segment(value) for value in allowed_segments]))
    return query


def resolve_recipients(db: Session, email_filter, allowed_segments: Optional[List[str]] = None) -> List[Recipient]:
    """Turn an ``EmailFilter`` variant into a deduplicated recipient list.

    ``allowed_segments`` is ``None`` for super-admins; otherwise team-based
    filters never reach teams outside those segments.
    """
    kind = email_filter.type

    if kind == "ALL":
        return _recipients_from_teams(_team_query(db, allowed_segments).all())

    if kind == "SEGMENT":
        segment_value = email_filter.segment.value
        if allowed_segments is not None and segment_value not in allowed_segments:
            raise forbidden("Insufficient permissions for this segment")
        teams = _team_query(db, allowed_segments).filter(Team.segment == Segment(segment_value)).all()
        return _recipients_from_teams(teams)

    if kind == "SELECTED":
        teams = _team_query(db, allowed_segments).filter(Team.is_selected.is_(True)).all()
        return _recipients_from_teams(teams)

    if kind == "CUSTOM":
        teams = _team_query(db, allowed_segments).filter(Team.id.in_(email_filter.team_ids)).all()
        return _recipients_from_teams(teams)

    if kind == "TEAM":
        teams = _team_query(db, allowed_segments).filter(Team.id == email_filter.team_id).all()
        return _recipients_from_teams(teams)

    if kind == "MEMBER":
        member = db.query(Member).filter(Member.id == email_filter.member_id).first()
        if not member or not member.email:
            return []
        if allowed_segments is not None and member.team.segment.value not in allowed_segments:
            raise forbidden("Insufficient permissions for this member")
        return [Recipient(email=member.email, context=member_context(member))]

    if kind == "INDIVIDUAL":
        return [Recipient(email=str(email_filter.custom_email), context={"email": str(email_filter.custom_email)})]

    raise bad_request(f"Unsupported filter type: {kind}")


def send_bulk(mailer, recipients: List[Recipient], subject: str, body: str) -> BulkSendResult:
    result = BulkSendResult(total=len(recipients))
    for recipient in recipients:
        try:
            rendered_html = render_email_template(body, recipient.context, html_mode=True)
            rendered_subject = render_email_template(subject, recipient.context, html_mode=False)
            mailer.send(recipient.email, rendered_subject, rendered_html, derive_text_from_html(rendered_html))
            result.sent += 1
        except Exception as exc:
            logger.error("Failed to send email to %s: %s", recipient.email, exc)
            result.failed += 1
            if len(result.errors) < 10:
                result.errors.append({"email": recipient.email, "error": str(exc)})
    return result
