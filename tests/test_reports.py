import csv
import io
import json
from datetime import datetime, timezone

from openpyxl import load_workbook

import reports
from models import PaymentStatus, Team
from routers import downloads


def test_receipt_is_public_pdf(client, register_team):
    team = register_team("Alpha")
    response = client.get(f"/api/download/receipt/{team['uniqueId']}")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_receipt_for_unknown_team(client):
    assert client.get("/api/download/receipt/missing").status_code == 404


def test_receipt_qr_payload(client, register_team, db):
    register_team("Alpha", members=3)
    team = db.query(Team).one()
    payload = json.loads(reports.receipt_qr_payload(team, PaymentStatus.SUCCESS))
    assert payload == {"id": team.unique_id, "name": "Alpha", "status": "SUCCESS", "members": 3}


def test_teams_pdf_requires_admin(client, super_headers, register_team):
    register_team("Alpha")
    assert client.get("/api/download/teams").status_code == 401
    response = client.get("/api/download/teams", headers=super_headers)
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")
    assert "teams-all.pdf" in response.headers["content-disposition"]


def test_teams_csv_one_row_per_member(client, super_headers, register_team):
    team = register_team("Alpha", "HACKATHON", 2)
    client.post("/api/payment/initiate", json={"uniqueId": team["uniqueId"]})

    response = client.get("/api/download/teams/export", params={"format": "csv"}, headers=super_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == reports.TEAM_EXPORT_HEADERS
    assert len(rows) == 3
    assert {row[9] for row in rows[1:]} == {"Alpha Member 0", "Alpha Member 1"}
    assert all(row[8] == "PENDING" for row in rows[1:])


def test_teams_export_is_scope_filtered(client, scoped_headers, register_team):
    register_team("Alpha", "HACKATHON", 1)
    register_team("Beta", "IUPC", 1)
    response = client.get(
        "/api/download/teams/export",
        params={"format": "csv"},
        headers=scoped_headers("iupc@sust.edu", ["IUPC"]),
    )
    rows = list(csv.reader(io.StringIO(response.text)))
    assert [row[2] for row in rows[1:]] == ["Beta"]


def test_teams_xlsx_export(client, super_headers, register_team):
    register_team("Alpha", "IUPC", 1)
    response = client.get(
        "/api/download/teams/export",
        params={"format": "xlsx", "segment": "IUPC"},
        headers=super_headers,
    )
    assert response.headers["content-type"] == reports.XLSX_MEDIA_TYPE
    sheet = load_workbook(io.BytesIO(response.content)).active
    values = list(sheet.values)
    assert list(values[0]) == reports.TEAM_EXPORT_HEADERS
    assert values[1][2] == "Alpha"
    assert values[1][8] == "UNPAID"


def test_export_filename_uses_app_clock(client, super_headers, monkeypatch):
    fixed = datetime(2026, 2, 14, 9, 30, 5, tzinfo=timezone.utc)
    monkeypatch.setattr(downloads, "now_tz", lambda: fixed)
    response = client.get("/api/download/payments/export", params={"format": "csv"}, headers=super_headers)
    assert "_20260214_093005.csv" in response.headers["content-disposition"]


def test_export_rejects_unknown_format(client, super_headers):
    response = client.get("/api/download/teams/export", params={"format": "pdf"}, headers=super_headers)
    assert response.status_code == 400


def test_payments_export(client, super_headers, register_team):
    team = register_team("Alpha", "HACKATHON", 1)
    client.post("/api/payment/initiate", json={"uniqueId": team["uniqueId"]})
    response = client.get("/api/download/payments/export", params={"format": "csv"}, headers=super_headers)
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == reports.PAYMENT_EXPORT_HEADERS
    assert rows[1][2] == "Alpha"
    assert rows[1][4] == "2000"
    assert rows[1][6] == "PENDING"


def test_build_teams_pdf_paginates(client, register_team, db):
    for index in range(4):
        register_team(f"Team {index}", members=1)
    content = reports.build_teams_pdf(db.query(Team).all())
    assert content.startswith(b"%PDF")
