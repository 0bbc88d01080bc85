from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import bcrypt
import hashlib
import secrets
import string

from config import Settings
from database import get_db
from errors import forbidden, unauthorized
from models import Admin, AdminScope, AdminStatus

security = HTTPBearer(auto_error=False)

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%&*"


@dataclass
class AdminPrincipal:
    id: int
    email: str
    is_super_admin: bool
    scopes: List[str] = field(default_factory=list)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _prehash(password: str) -> bytes:
    try:
        pw_bytes = password.encode('utf-8')
    except Exception:
        pw_bytes = str(password).encode('utf-8')
    return hashlib.sha256(pw_bytes).digest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(plain_password), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    # Always pre-hash password with SHA-256, then bcrypt the digest
    hashed = bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def generate_random_password(length: int = 12) -> str:
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def create_access_token(admin: Admin, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": str(admin.id),
        "email": admin.email,
        "is_super_admin": bool(admin.is_super_admin),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise unauthorized("Invalid or expired token")


def load_scopes(db: Session, admin_id: int) -> List[str]:
    rows = db.query(AdminScope.scope).filter(AdminScope.admin_id == admin_id).all()
    return sorted(row[0].value for row in rows)


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AdminPrincipal:
    if not credentials or not credentials.credentials:
        raise unauthorized("No token provided")

    payload = decode_token(credentials.credentials, settings)
    if payload.get("type") != "access":
        raise unauthorized("Invalid token type")

    subject = payload.get("sub")
    try:
        admin_id = int(subject)
    except (TypeError, ValueError):
        raise unauthorized("Invalid or expired token")

    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if admin is None:
        raise unauthorized("Invalid or expired token")
    if admin.status == AdminStatus.SUSPENDED:
        raise forbidden("Your account has been suspended. Please contact the super admin.")

    return AdminPrincipal(
        id=admin.id,
        email=admin.email,
        is_super_admin=bool(payload.get("is_super_admin")),
        scopes=load_scopes(db, admin.id),
    )
