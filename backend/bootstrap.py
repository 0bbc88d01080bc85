from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import Settings
from database import Base
from migrations import ensure_default_superadmin, ensure_superadmin_scopes
from models import SystemConfig

logger = logging.getLogger(__name__)

MIGRATION_MARKER_KEY = "migration:backend_bootstrap:v1"


def _marker_table_exists(db) -> bool:
    return inspect(db.get_bind()).has_table(SystemConfig.__tablename__)


def has_bootstrap_marker(session_factory: sessionmaker) -> bool:
    db = session_factory()
    try:
        if not _marker_table_exists(db):
            return False
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        return marker is not None
    finally:
        db.close()


def set_bootstrap_marker(session_factory: sessionmaker) -> None:
    db = session_factory()
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        value = datetime.now(timezone.utc).isoformat()
        if marker:
            marker.value = value
        else:
            db.add(SystemConfig(key=MIGRATION_MARKER_KEY, value=value))
        db.commit()
    finally:
        db.close()


def clear_bootstrap_marker(session_factory: sessionmaker) -> bool:
    db = session_factory()
    try:
        if not _marker_table_exists(db):
            return False
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        if not marker:
            return False
        db.delete(marker)
        db.commit()
        return True
    finally:
        db.close()


def run_bootstrap_migrations(engine: Engine, session_factory: sessionmaker, settings: Settings) -> None:
    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        ensure_default_superadmin(db, settings)
        ensure_superadmin_scopes(db)
    finally:
        db.close()
