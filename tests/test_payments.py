import re

import pytest

import payment_service
from errors import ErrorKind, ServiceError
from models import Admin, Payment, PaymentStatus, Segment

from conftest import SUPER_EMAIL

TXN_PATTERN = re.compile(r"^TXN-\d+-[0-9A-F]{8}$")


@pytest.mark.parametrize(
    "segment,amount",
    [
        (Segment.IUPC, 5500),
        (Segment.HACKATHON, 2000),
        (Segment.DL_ENIGMA_2_0, 1500),
        ("DL ENIGMA 2.0", 1500),
        ("DL ENIGMA", 1500),
    ],
)
def test_fee_table(segment, amount):
    assert payment_service.resolve_fee(segment) == amount


def test_unknown_fee_is_bad_request():
    with pytest.raises(ServiceError) as excinfo:
        payment_service.resolve_fee("ROBOTICS")
    assert excinfo.value.kind == ErrorKind.VALIDATION
    assert "ROBOTICS" in excinfo.value.detail


def test_transaction_id_format():
    assert TXN_PATTERN.match(payment_service.generate_transaction_id())


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("VALID", PaymentStatus.SUCCESS),
        ("VALIDATED", PaymentStatus.SUCCESS),
        ("CANCELLED", PaymentStatus.CANCELLED),
        ("FAILED", PaymentStatus.FAILED),
        ("whatever", PaymentStatus.FAILED),
        (None, PaymentStatus.FAILED),
    ],
)
def test_gateway_status_mapping(raw, expected):
    assert payment_service.map_gateway_status(raw) == expected


def _initiate(client, unique_id):
    response = client.post("/api/payment/initiate", json={"uniqueId": unique_id})
    assert response.status_code == 200, response.text
    return response.json()


def test_initiate_payment_for_hackathon_team(client, register_team):
    team = register_team("Alpha", "HACKATHON", 2)
    body = _initiate(client, team["uniqueId"])

    assert body["payment"]["amount"] == 2000
    assert body["payment"]["status"] == "PENDING"
    assert TXN_PATTERN.match(body["payment"]["transactionId"])
    assert body["paymentUrl"] == "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"
    assert body["paymentData"]["tran_id"] == body["payment"]["transactionId"]
    assert body["paymentData"]["total_amount"] == "2000"
    assert body["paymentData"]["cus_email"] == "alpha0@example.com"


def test_initiate_payment_unknown_team(client):
    response = client.post("/api/payment/initiate", json={"uniqueId": "missing"})
    assert response.status_code == 404


def test_initiate_retries_on_transaction_id_collision(app, client, register_team, db, monkeypatch):
    team = register_team("Alpha")
    first = _initiate(client, team["uniqueId"])["payment"]["transactionId"]

    ids = iter([first, "TXN-1-ABCDEF12"])
    monkeypatch.setattr(payment_service, "generate_transaction_id", lambda: next(ids))
    payment, _ = payment_service.initiate_payment(db, app.state.settings, team["uniqueId"])
    assert payment.transaction_id == "TXN-1-ABCDEF12"
    assert db.query(Payment).count() == 2


def test_initiate_gives_up_after_repeated_collisions(app, client, register_team, db, monkeypatch):
    team = register_team("Alpha")
    taken = _initiate(client, team["uniqueId"])["payment"]["transactionId"]

    monkeypatch.setattr(payment_service, "generate_transaction_id", lambda: taken)
    with pytest.raises(ServiceError) as excinfo:
        payment_service.initiate_payment(db, app.state.settings, team["uniqueId"])
    assert excinfo.value.kind == ErrorKind.CONFLICT


def test_callback_valid_marks_success_and_sends_receipt(client, register_team, mailer):
    team = register_team("Alpha")
    txn = _initiate(client, team["uniqueId"])["payment"]["transactionId"]

    response = client.post("/api/payment/callback", json={"tran_id": txn, "status": "VALID", "val_id": "V-1"})
    assert response.status_code == 200
    assert response.json() == {"message": "Payment callback processed", "status": "SUCCESS"}

    confirmations = [m for m in mailer.sent if m["subject"].startswith("Payment Received")]
    assert len(confirmations) == 1
    attachment = confirmations[0]["attachments"][0]
    assert attachment.content.startswith(b"%PDF")


def test_callback_accepts_form_posts(client, register_team):
    team = register_team("Alpha")
    txn = _initiate(client, team["uniqueId"])["payment"]["transactionId"]
    response = client.post("/api/payment/callback", data={"tran_id": txn, "status": "CANCELLED"})
    assert response.json()["status"] == "CANCELLED"


def test_callback_unknown_status_fails_payment(client, register_team, db):
    team = register_team("Alpha")
    txn = _initiate(client, team["uniqueId"])["payment"]["transactionId"]
    client.post("/api/payment/callback", json={"tran_id": txn, "status": "BOGUS"})
    assert db.query(Payment).filter(Payment.transaction_id == txn).one().status == PaymentStatus.FAILED


def test_callback_overwrites_terminal_status(client, register_team):
    team = register_team("Alpha")
    txn = _initiate(client, team["uniqueId"])["payment"]["transactionId"]
    client.post("/api/payment/callback", json={"tran_id": txn, "status": "VALID"})
    response = client.post("/api/payment/callback", json={"tran_id": txn, "status": "CANCELLED"})
    assert response.json()["status"] == "CANCELLED"


def test_callback_errors(client):
    assert client.post("/api/payment/callback", json={"tran_id": "TXN-0-00000000", "status": "VALID"}).status_code == 404
    assert client.post("/api/payment/callback", json={"status": "VALID"}).status_code == 400
    malformed = client.post(
        "/api/payment/callback",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert malformed.status_code == 400


def test_pay_later_resends_registration_email(client, register_team, mailer):
    team = register_team("Alpha")
    mailer.sent.clear()
    response = client.post("/api/payment/pay-later", json={"uniqueId": team["uniqueId"]})
    assert response.status_code == 200
    assert len(mailer.sent_to("alpha0@example.com")) == 1


def test_pay_later_surfaces_email_failure(client, register_team, mailer):
    team = register_team("Alpha")
    mailer.fail_all = True
    response = client.post("/api/payment/pay-later", json={"uniqueId": team["uniqueId"]})
    assert response.status_code == 500
    assert response.json()["message"].startswith("Failed to send email")


def test_manual_approval(client, super_headers, register_team, db):
    team = register_team("Alpha")
    payment_id = _initiate(client, team["uniqueId"])["payment"]["id"]

    response = client.patch(
        f"/api/payment/{payment_id}/approve",
        json={"note": "Paid in cash at the desk"},
        headers=super_headers,
    )
    assert response.status_code == 200
    payment = response.json()["payment"]
    super_id = db.query(Admin.id).filter(Admin.email == SUPER_EMAIL).scalar()
    assert payment["status"] == "SUCCESS"
    assert payment["approvedBy"] == super_id
    assert payment["manualApprovalNote"] == "Paid in cash at the desk"
    assert payment["team"]["teamName"] == "Alpha"


def test_manual_approval_validation_and_permissions(client, super_headers, scoped_headers, register_team):
    team = register_team("Alpha", "HACKATHON")
    payment_id = _initiate(client, team["uniqueId"])["payment"]["id"]

    empty = client.patch(f"/api/payment/{payment_id}/approve", json={"note": ""}, headers=super_headers)
    assert empty.status_code == 400
    blank = client.patch(f"/api/payment/{payment_id}/approve", json={"note": "   "}, headers=super_headers)
    assert blank.status_code == 400
    missing = client.patch("/api/payment/999/approve", json={"note": "ok"}, headers=super_headers)
    assert missing.status_code == 404
    regular = scoped_headers("hack@sust.edu", ["HACKATHON"])
    forbidden = client.patch(f"/api/payment/{payment_id}/approve", json={"note": "ok"}, headers=regular)
    assert forbidden.status_code == 403


def test_payment_list_is_scope_filtered(client, super_headers, scoped_headers, register_team):
    alpha = register_team("Alpha", "HACKATHON")
    beta = register_team("Beta", "IUPC")
    _initiate(client, alpha["uniqueId"])
    _initiate(client, beta["uniqueId"])

    everything = client.get("/api/payment", headers=super_headers).json()["payments"]
    assert [p["team"]["teamName"] for p in everything] == ["Beta", "Alpha"]

    iupc = client.get("/api/payment", headers=scoped_headers("iupc@sust.edu", ["IUPC"])).json()["payments"]
    assert [p["team"]["segment"] for p in iupc] == ["IUPC"]
    assert iupc[0]["amount"] == 5500
