from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import admin_service
from auth import AdminPrincipal, get_settings
from config import Settings
from database import get_db
from emailer import Mailer, get_mailer
from schemas import (
    AdminCreate,
    AdminLogin,
    AdminLoginResponse,
    AdminResponse,
    AdminUpdate,
    DashboardStats,
    MessageResponse,
    PasswordChangeRequest,
)
from security import require_admin, require_super_admin

router = APIRouter()


@router.post("/admin/login", response_model=AdminLoginResponse)
def login(
    payload: AdminLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token, admin = admin_service.login(db, settings, payload.email, payload.password)
    return AdminLoginResponse(token=token, admin=admin_service.build_admin_response(admin))


@router.get("/admin/me", response_model=AdminResponse)
def me(principal: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.build_admin_response(admin_service.get_admin(db, principal.id))


@router.patch("/admin/me/password", response_model=MessageResponse)
def change_my_password(
    payload: PasswordChangeRequest,
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    admin_service.change_password(db, settings, principal.id, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/admin/dashboard", response_model=DashboardStats)
def dashboard(principal: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.dashboard_stats(db, principal)


@router.post("/admin", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
def create_admin(
    payload: AdminCreate,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    admin = admin_service.create_admin(db, settings, mailer, payload.email, payload.scopes)
    return admin_service.build_admin_response(admin)


@router.get("/admin", response_model=List[AdminResponse])
def list_admins(_: AdminPrincipal = Depends(require_super_admin), db: Session = Depends(get_db)):
    return [admin_service.build_admin_response(admin) for admin in admin_service.list_admins(db)]


@router.patch("/admin/{admin_id}", response_model=AdminResponse)
def update_admin(
    admin_id: int,
    payload: AdminUpdate,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.update_admin(db, admin_id, payload.scopes, payload.status)
    return admin_service.build_admin_response(admin)


@router.delete("/admin/{admin_id}", response_model=MessageResponse)
def delete_admin(
    admin_id: int,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    admin_service.delete_admin(db, admin_id)
    return MessageResponse(message="Admin deleted successfully")
