from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest
from fastapi.testclient import TestClient

from auth import get_password_hash
from config import Settings
from emailer import EmailDeliveryError
from models import Admin, AdminScope, AdminStatus, Segment
from server import create_app

TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdefghijklmnop"
SUPER_EMAIL = "superadmin@sust.edu"
SUPER_PASSWORD = "Admin@123456"
ADMIN_PASSWORD = "Scoped@Pass123"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail_all = False
        self.fail_for = set()

    def send(self, to, subject, html, text=None, attachments=None):
        recipients = [to] if isinstance(to, str) else list(to)
        if self.fail_all or any(addr in self.fail_for for addr in recipients):
            raise EmailDeliveryError("SMTP unavailable")
        self.sent.append({
            "to": recipients,
            "subject": subject,
            "html": html,
            "text": text,
            "attachments": list(attachments or []),
        })

    def sent_to(self, address):
        return [mail for mail in self.sent if address in mail["to"]]


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret_key=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        frontend_url="http://localhost:3000",
        super_admin_email=SUPER_EMAIL,
        super_admin_password=SUPER_PASSWORD,
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(settings, mailer):
    return create_app(settings, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(client, app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, email, password):
    response = client.post("/api/admin/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def super_headers(client):
    return auth_header(login(client, SUPER_EMAIL, SUPER_PASSWORD))


@pytest.fixture
def make_admin(db):
    def _make(email, scopes, status=AdminStatus.ACTIVE, password=ADMIN_PASSWORD):
        admin = Admin(
            email=email,
            password_hash=get_password_hash(password, rounds=4),
            is_super_admin=False,
            status=status,
        )
        admin.scopes = [AdminScope(scope=Segment(scope)) for scope in scopes]
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make


@pytest.fixture
def scoped_headers(client, make_admin):
    def _headers(email, scopes):
        make_admin(email, scopes)
        return auth_header(login(client, email, ADMIN_PASSWORD))

    return _headers


def team_payload(name="Alpha", segment="HACKATHON", members=2):
    slug = name.lower().replace(" ", "")
    return {
        "teamName": name,
        "segment": segment,
        "members": [
            {
                "name": f"{name} Member {index}",
                "email": f"{slug}{index}@example.com",
                "phone": f"0171234567{index}",
                "tshirtSize": "M",
                "universityName": f"University {index}",
            }
            for index in range(members)
        ],
    }


@pytest.fixture
def register_team(client):
    def _register(name="Alpha", segment="HACKATHON", members=2):
        response = client.post("/api/teams/register", json=team_payload(name, segment, members))
        assert response.status_code == 201, response.text
        return response.json()["team"]

    return _register
