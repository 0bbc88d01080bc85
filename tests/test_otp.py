from datetime import timedelta

import email_workflows
from models import VerificationToken
from utils import now_tz


def _issue(client, monkeypatch, *codes):
    sequence = iter(codes)
    monkeypatch.setattr(email_workflows, "generate_otp", lambda: next(sequence))
    for _ in codes:
        response = client.post("/api/auth/request-otp", json={"email": "Leader@Example.com"})
        assert response.status_code == 200
        assert response.json()["message"] == "OTP sent to your email"


def test_generate_otp_is_six_digits():
    for _ in range(20):
        code = email_workflows.generate_otp()
        assert len(code) == 6 and code.isdigit()


def test_request_otp_emails_code(client, mailer, monkeypatch):
    _issue(client, monkeypatch, "123456")
    mail = mailer.sent_to("leader@example.com")[0]
    assert "123456" in mail["text"]


def test_verify_otp_success_consumes_token(client, db, monkeypatch):
    _issue(client, monkeypatch, "123456")
    response = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "123456"})
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"
    assert db.query(VerificationToken).count() == 0

    replay = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "123456"})
    assert replay.status_code == 400


def test_new_otp_invalidates_previous(client, db, monkeypatch):
    _issue(client, monkeypatch, "111111", "222222")
    assert db.query(VerificationToken).count() == 1

    old = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "111111"})
    assert old.status_code == 400
    assert old.json()["message"] == "Invalid OTP"

    new = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "222222"})
    assert new.status_code == 200


def test_expired_otp_rejected(client, db, monkeypatch):
    _issue(client, monkeypatch, "654321")
    token = db.query(VerificationToken).one()
    token.expires_at = now_tz() - timedelta(minutes=1)
    db.commit()

    response = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "654321"})
    assert response.status_code == 400
    assert response.json()["message"] == "OTP has expired"


def test_otp_must_be_six_digits(client):
    response = client.post("/api/auth/verify-otp", json={"email": "leader@example.com", "otp": "12ab56"})
    assert response.status_code == 400


def test_otp_email_failure_is_surfaced(client, mailer):
    mailer.fail_all = True
    response = client.post("/api/auth/request-otp", json={"email": "leader@example.com"})
    assert response.status_code == 500
