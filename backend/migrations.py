import logging

from sqlalchemy.orm import Session

from auth import get_password_hash
from config import Settings
from models import Admin, AdminScope, AdminStatus, Segment
from utils import normalize_email

logger = logging.getLogger(__name__)


def ensure_default_superadmin(db: Session, settings: Settings) -> Admin:
    email = normalize_email(settings.super_admin_email)
    admin = db.query(Admin).filter(Admin.email == email).first()
    if admin:
        return admin

    admin = Admin(
        email=email,
        password_hash=get_password_hash(settings.super_admin_password, rounds=settings.bcrypt_rounds),
        is_super_admin=True,
        status=AdminStatus.ACTIVE,
    )
    admin.scopes = [AdminScope(scope=segment) for segment in Segment]
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Super admin %s created; change the default password after first login", email)
    return admin


def ensure_superadmin_scopes(db: Session) -> None:
    for admin in db.query(Admin).filter(Admin.is_super_admin.is_(True)).all():
        held = {scope.scope for scope in admin.scopes}
        missing = [segment for segment in Segment if segment not in held]
        for segment in missing:
            admin.scopes.append(AdminScope(scope=segment))
        if missing:
            logger.info("Granted missing scopes %s to super admin %s", [s.value for s in missing], admin.id)
    db.commit()
