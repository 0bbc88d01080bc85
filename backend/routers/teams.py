from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

import team_service
from auth import AdminPrincipal, get_settings
from config import Settings
from database import get_db
from emailer import Mailer, get_mailer
from models import Segment, Team
from schemas import (
    MessageResponse,
    Pagination,
    TeamDisqualify,
    TeamListResponse,
    TeamMutationResponse,
    TeamRegister,
    TeamResponse,
    TeamSelectionUpdate,
    TeamStandingUpdate,
)
from security import require_admin, require_super_admin
from utils import total_pages

router = APIRouter()


def build_team_response(team: Team, latest_only: bool = False) -> TeamResponse:
    response = TeamResponse.model_validate(team)
    if latest_only:
        response.payments = response.payments[:1]
    return response


@router.post("/teams/register", response_model=TeamMutationResponse, status_code=status.HTTP_201_CREATED)
def register_team(
    payload: TeamRegister,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    team = team_service.register_team(db, settings, mailer, payload.team_name, payload.segment, payload.members)
    return TeamMutationResponse(message="Team registered successfully", team=build_team_response(team))


@router.get("/teams/by-unique-id/{unique_id}", response_model=TeamResponse)
def get_team_by_unique_id(unique_id: str, db: Session = Depends(get_db)):
    return build_team_response(team_service.get_team_by_unique_id(db, unique_id), latest_only=True)


@router.get("/teams", response_model=TeamListResponse)
def list_teams(
    segment: Optional[Segment] = None,
    is_selected: Optional[bool] = Query(None, alias="isSelected"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: AdminPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teams, total = team_service.list_teams(db, principal, segment, is_selected, search, page, limit)
    return TeamListResponse(
        teams=[build_team_response(team, latest_only=True) for team in teams],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=total_pages(total, limit)),
    )


@router.get("/teams/{team_id}", response_model=TeamResponse)
def get_team(team_id: int, principal: AdminPrincipal = Depends(require_admin), db: Session = Depends(get_db)):
    return build_team_response(team_service.get_team(db, principal, team_id))


@router.patch("/teams/{team_id}/selection", response_model=TeamMutationResponse)
def update_selection(
    team_id: int,
    payload: TeamSelectionUpdate,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    team = team_service.set_selection(db, team_id, payload.is_selected)
    message = f"Team {'selected' if payload.is_selected else 'unselected'} successfully"
    return TeamMutationResponse(message=message, team=build_team_response(team))


@router.patch("/teams/{team_id}/disqualify", response_model=TeamMutationResponse)
def disqualify_team(
    team_id: int,
    payload: TeamDisqualify,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    team = team_service.disqualify(db, team_id, payload.is_disqualified, payload.reason)
    message = f"Team {'disqualified' if payload.is_disqualified else 'reinstated'} successfully"
    return TeamMutationResponse(message=message, team=build_team_response(team))


@router.patch("/teams/{team_id}/standing", response_model=TeamMutationResponse)
def update_standing(
    team_id: int,
    payload: TeamStandingUpdate,
    _: AdminPrincipal = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    team = team_service.set_standing(db, team_id, payload.standing)
    return TeamMutationResponse(message="Team standing updated successfully", team=build_team_response(team))


@router.delete("/teams/{team_id}", response_model=MessageResponse)
def delete_team(team_id: int, _: AdminPrincipal = Depends(require_super_admin), db: Session = Depends(get_db)):
    team_service.delete_team(db, team_id)
    return MessageResponse(message="Team deleted successfully")
