"""Read-only renderings of team and payment data for admins and participants.

Tabular exports go through ``build_table`` so CSV and XLSX stay column-for-column
identical. PDFs are assembled with ReportLab's platypus flowables; the receipt
embeds a QR code rendered with ``qrcode``.
"""
import csv
import io
import json
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

import qrcode
from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

from models import Payment, PaymentStatus, Standing, Team
from utils import now_tz

BRAND_GREEN = colors.HexColor("#3d5a30")
STATUS_COLORS = {
    PaymentStatus.SUCCESS: colors.HexColor("#22c55e"),
    PaymentStatus.PENDING: colors.HexColor("#eab308"),
}
FAILED_COLOR = colors.HexColor("#ef4444")
TEAMS_PER_PAGE = 3

TEAM_EXPORT_HEADERS = [
    "Team ID",
    "Unique ID",
    "Team Name",
    "Segment",
    "Institution",
    "Selected",
    "Disqualified",
    "Standing",
    "Payment Status",
    "Member Name",
    "Member Email",
    "Member Phone",
    "University",
    "T-Shirt",
    "Leader",
    "Registered At",
]

PAYMENT_EXPORT_HEADERS = [
    "Payment ID",
    "Transaction ID",
    "Team Name",
    "Segment",
    "Amount",
    "Currency",
    "Status",
    "Validation ID",
    "Approved By",
    "Approval Note",
    "Created At",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def team_rows(teams: Iterable[Team]) -> List[List[str]]:
    rows = []
    for team in teams:
        latest = team.latest_payment
        payment_status = latest.status if latest else "UNPAID"
        base = [
            team.id,
            team.unique_id,
            team.team_name,
            team.segment,
            team.institution,
            team.is_selected,
            team.is_disqualified,
            team.standing,
            payment_status,
        ]
        for member in team.members:
            rows.append([_fmt(v) for v in base + [
                member.full_name,
                member.email,
                member.phone,
                member.university,
                member.tshirt_size,
                member.is_team_leader,
                team.created_at,
            ]])
    return rows


def payment_rows(payments: Iterable[Payment]) -> List[List[str]]:
    return [
        [_fmt(v) for v in [
            payment.id,
            payment.transaction_id,
            payment.team.team_name if payment.team else None,
            payment.team.segment if payment.team else None,
            payment.amount,
            payment.currency,
            payment.status,
            payment.val_id,
            payment.approved_by,
            payment.manual_approval_note,
            payment.created_at,
        ]]
        for payment in payments
    ]


def render_csv(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def render_xlsx(title: str, headers: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    stream = io.BytesIO()
    wb.save(stream)
    return stream.getvalue()


def build_table(kind: str, records) -> Tuple[List[str], List[List[str]]]:
    if kind == "teams":
        return TEAM_EXPORT_HEADERS, team_rows(records)
    if kind == "payments":
        return PAYMENT_EXPORT_HEADERS, payment_rows(records)
    raise ValueError(f"Unknown export kind: {kind}")


def _styles():
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("CarnivalTitle", parent=styles["Heading1"], fontSize=24, alignment=1, spaceAfter=6),
        "subtitle": ParagraphStyle("CarnivalSubtitle", parent=styles["Heading2"], fontSize=18, alignment=1, spaceAfter=6),
        "meta": ParagraphStyle("CarnivalMeta", parent=styles["Normal"], fontSize=10, alignment=1, textColor=colors.gray),
        "team": ParagraphStyle("CarnivalTeam", parent=styles["Heading3"], fontSize=16, textColor=BRAND_GREEN, spaceAfter=4),
        "body": ParagraphStyle("CarnivalBody", parent=styles["Normal"], fontSize=10, leading=13),
        "label": ParagraphStyle("CarnivalLabel", parent=styles["Normal"], fontSize=10, textColor=BRAND_GREEN, spaceBefore=6),
        "small": ParagraphStyle("CarnivalSmall", parent=styles["Normal"], fontSize=8, textColor=colors.gray, alignment=1),
    }


def build_teams_pdf(teams: Sequence[Team], generated_at: Optional[datetime] = None) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=18 * mm, rightMargin=18 * mm,
                            topMargin=18 * mm, bottomMargin=18 * mm, title="Team Registration List")
    styles = _styles()
    generated_at = generated_at or now_tz()

    elements = [
        Paragraph("SUST CSE Carnival 2026", styles["title"]),
        Paragraph("Team Registration List", styles["subtitle"]),
        Paragraph(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M %Z').strip()}", styles["meta"]),
        Spacer(1, 12 * mm),
    ]

    for index, team in enumerate(teams):
        if index > 0 and index % TEAMS_PER_PAGE == 0:
            elements.append(PageBreak())

        elements.append(Paragraph(f"{index + 1}. {escape(team.team_name)}", styles["team"]))
        elements.append(Paragraph(f"Competition: {team.segment.value}", styles["body"]))
        elements.append(Paragraph(f"Institution: {escape(team.institution)}", styles["body"]))
        elements.append(Paragraph(f"Status: {'Selected' if team.is_selected else 'Pending'}", styles["body"]))
        if team.is_disqualified:
            reason = f" ({escape(team.disqualification_reason)})" if team.disqualification_reason else ""
            elements.append(Paragraph(f"Disqualified{reason}", styles["body"]))
        if team.standing != Standing.NONE:
            elements.append(Paragraph(f"Standing: {team.standing.value}", styles["body"]))

        elements.append(Paragraph("<u>Team Members:</u>", styles["label"]))
        for idx, member in enumerate(team.members):
            leader = " (Leader)" if member.is_team_leader else ""
            elements.append(Paragraph(
                f"&nbsp;&nbsp;{idx + 1}. {escape(member.full_name)}{leader}<br/>"
                f"&nbsp;&nbsp;&nbsp;&nbsp;Email: {escape(member.email)}<br/>"
                f"&nbsp;&nbsp;&nbsp;&nbsp;Phone: {escape(member.phone or 'N/A')}<br/>"
                f"&nbsp;&nbsp;&nbsp;&nbsp;University: {escape(member.university)}<br/>"
                f"&nbsp;&nbsp;&nbsp;&nbsp;T-Shirt: {member.tshirt_size.value}",
                styles["body"],
            ))
        elements.append(Spacer(1, 8 * mm))

    elements.append(Paragraph(f"Total Teams: {len(teams)}", styles["small"]))
    doc.build(elements)
    return buffer.getvalue()


def receipt_qr_payload(team: Team, payment_status: PaymentStatus) -> str:
    return json.dumps({
        "id": team.unique_id,
        "name": team.team_name,
        "status": payment_status.value,
        "members": len(team.members),
    })


def _qr_image(data: str, size: float = 35 * mm) -> Image:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    stream = io.BytesIO()
    img.save(stream, format="PNG")
    stream.seek(0)
    return Image(stream, width=size, height=size)


def build_receipt_pdf(team: Team, payment_status: Optional[PaymentStatus] = None) -> bytes:
    if payment_status is None:
        latest = team.latest_payment
        payment_status = latest.status if latest else PaymentStatus.PENDING

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=18 * mm, rightMargin=18 * mm,
                            topMargin=15 * mm, bottomMargin=15 * mm, title="Registration Receipt")
    styles = _styles()
    white_title = ParagraphStyle("ReceiptHeader", parent=styles["title"], textColor=colors.white, alignment=0)
    white_meta = ParagraphStyle("ReceiptHeaderMeta", parent=styles["body"], textColor=colors.white)

    header = Table(
        [[
            Paragraph("SUST CSE CARNIVAL 2026", white_title),
            Paragraph(
                f"Receipt ID: {team.unique_id[:8].upper()}<br/>Date: {now_tz().strftime('%Y-%m-%d')}",
                white_meta,
            ),
        ], [Paragraph("OFFICIAL REGISTRATION RECEIPT", white_meta), ""]],
        colWidths=[120 * mm, 54 * mm],
    )
    header.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), BRAND_GREEN),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
    ]))

    badge = Table([[payment_status.value]], colWidths=[40 * mm], rowHeights=[12 * mm])
    badge.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), STATUS_COLORS.get(payment_status, FAILED_COLOR)),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.white),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 14),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))

    details = Table(
        [
            ["Team Name", Paragraph(f"<b>{escape(team.team_name)}</b>", styles["body"]), badge],
            ["Competition Segment", team.segment.value, ""],
            ["Institution", Paragraph(escape(team.institution or "N/A"), styles["body"]), ""],
            ["Registration ID", team.unique_id, ""],
        ],
        colWidths=[45 * mm, 85 * mm, 44 * mm],
    )
    details.setStyle(TableStyle([
        ("SPAN", (2, 0), (2, -1)),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("FONTNAME", (1, 3), (1, 3), "Courier"),
        ("LINEABOVE", (0, 0), (1, 0), 2, BRAND_GREEN),
    ]))

    member_rows = [["#", "Name", "Email", "Phone"]]
    for index, member in enumerate(team.members, start=1):
        name = escape(member.full_name) + (" <font color='#3d5a30' size='8'>(LEADER)</font>" if member.is_team_leader else "")
        member_rows.append([str(index), Paragraph(name, styles["body"]), member.email, member.phone or ""])
    members_table = Table(member_rows, colWidths=[10 * mm, 60 * mm, 70 * mm, 34 * mm])
    members_table.setStyle(TableStyle([
        ("LINEBELOW", (0, 0), (-1, 0), 2, BRAND_GREEN),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
    ]))

    instructions = Paragraph(
        "<u>Instructions:</u><br/>"
        "1. Please print this receipt or save it on your mobile device.<br/>"
        "2. Present the QR code at the registration desk for check-in.<br/>"
        "3. For any issues, contact support at cse.carnival@sust.edu",
        styles["body"],
    )
    footer = Table(
        [[instructions, [_qr_image(receipt_qr_payload(team, payment_status)),
                         Paragraph("Scan for Verification", styles["small"])]]],
        colWidths=[130 * mm, 44 * mm],
    )
    footer.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "BOTTOM")]))

    elements = [
        header,
        Spacer(1, 8 * mm),
        Paragraph("TEAM REGISTRATION DETAILS", styles["label"]),
        details,
        Spacer(1, 8 * mm),
        Paragraph("TEAM MEMBERS", styles["label"]),
        members_table,
        Spacer(1, 20 * mm),
        footer,
    ]
    doc.build(elements)
    return buffer.getvalue()
