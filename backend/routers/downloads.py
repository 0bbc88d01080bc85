import io
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload, selectinload

import reports
from auth import AdminPrincipal
from database import get_db
from models import Payment, Segment, Team
from security import apply_scope_filter, require_admin
from team_service import get_team_by_unique_id
from utils import now_tz

router = APIRouter()

ExportFormat = Literal["csv", "xlsx"]


def _stream(content: bytes, media_type: str, filename: str, inline: bool = False) -> StreamingResponse:
    disposition = "inline" if inline else "attachment"
    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f"{disposition}; filename={filename}"},
    )


def _scoped_teams(db: Session, principal: AdminPrincipal, segment: Optional[Segment]):
    query = apply_scope_filter(db.query(Team), Team.segment, principal)
    if segment is not None:
        query = query.filter(Team.segment == segment)
    return (
        query.options(selectinload(Team.members), selectinload(Team.payments))
        .order_by(Team.created_at.desc(), Team.id.desc())
        .all()
    )


def _export(kind: str, records, fmt: str, stem: str) -> StreamingResponse:
    headers, rows = reports.build_table(kind, records)
    stamp = now_tz().strftime("%Y%m%d_%H%M%S")
    if fmt == "xlsx":
        content = reports.render_xlsx(kind.capitalize(), headers, rows)
        return _stream(content, reports.XLSX_MEDIA_TYPE, f"{stem}_{stamp}.xlsx")
    return _stream(reports.render_csv(headers, rows).encode("utf-8"), "text/csv", f"{stem}_{stamp}.csv")


@router.get("/download/teams")
def download_teams_pdf(
    segment: Optional[Segment] = None,
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teams = _scoped_teams(db, principal, segment)
    suffix = segment.value if segment else "all"
    return _stream(reports.build_teams_pdf(teams), "application/pdf", f"teams-{suffix}.pdf")


@router.get("/download/teams/export")
def export_teams(
    segment: Optional[Segment] = None,
    format: ExportFormat = Query("csv"),
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teams = _scoped_teams(db, principal, segment)
    return _export("teams", teams, format, f"teams_{segment.value if segment else 'all'}")


@router.get("/download/payments/export")
def export_payments(
    format: ExportFormat = Query("csv"),
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Payment).join(Team, Payment.team_id == Team.id).options(joinedload(Payment.team))
    payments = (
        apply_scope_filter(query, Team.segment, principal)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return _export("payments", payments, format, "payments")


@router.get("/download/receipt/{unique_id}")
def download_receipt(unique_id: str, db: Session = Depends(get_db)):
    team = get_team_by_unique_id(db, unique_id)
    return _stream(
        reports.build_receipt_pdf(team),
        "application/pdf",
        f"receipt-{team.unique_id[:8]}.pdf",
        inline=True,
    )
