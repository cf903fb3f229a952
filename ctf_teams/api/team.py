# ctf_teams/api/team.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from ctf_teams.schemas.team import (
    JoinWithCode,
    LeaderReassign,
    MemberAdd,
    MemberRead,
    TeamCreate,
    TeamDetail,
    TeamRead,
    TeamStats,
    TeamUpdate,
)
from ctf_teams.crud.team import get_team, list_teams, team_stats
from ctf_teams.crud.membership import list_members, user_teams
from ctf_teams.crud.lifecycle import LifecycleCoordinator
from ctf_teams.crud.policies import assert_can_manage_team
from ctf_teams.dependencies import get_db, get_current_active_user, get_coordinator
from ctf_teams.models.user import User as UserModel

router = APIRouter(prefix="/teams", tags=["Teams"])

@router.post("/", response_model=TeamDetail, status_code=status.HTTP_201_CREATED)
def create_team_api(
    data: TeamCreate,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Создать команду с ростером (капитан по умолчанию — текущий пользователь).
    """
    return coordinator.create_team(data.model_dump(), user)

@router.get("/", response_model=List[TeamRead])
def list_teams_api(
    event_id: Optional[int] = Query(None),
    team_status: Optional[str] = Query(None, alias="status"),
    is_invite_only: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Поиск по названию и описанию"),
    available_only: bool = Query(False, description="Только активные и не заполненные"),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    return list_teams(
        db,
        event_id=event_id,
        status=team_status,
        is_invite_only=is_invite_only,
        search=search,
        available_only=available_only,
    )

@router.get("/my-teams", response_model=List[TeamRead])
def my_teams(
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Команды, в которых текущий пользователь состоит.
    """
    return user_teams(db, user.id)

@router.post("/join", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
def join_with_code(
    data: JoinWithCode,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Вступить в команду по коду приглашения.
    """
    return coordinator.join_with_invite_code(data.invite_code, user)

@router.get("/{team_id}", response_model=TeamRead)
def read_team(
    team_id: int,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    return get_team(db, team_id)

@router.patch("/{team_id}", response_model=TeamRead)
def update_team_api(
    team_id: int,
    data: TeamUpdate,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Изменить команду. Только лидер или админ.
    """
    return coordinator.update_team(team_id, data.model_dump(exclude_unset=True), user)

@router.delete("/{team_id}", response_model=TeamRead)
def disband_team_api(
    team_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Распустить команду (строка остаётся, status=disbanded).
    """
    return coordinator.disband_team(team_id, user)

@router.get("/{team_id}/stats", response_model=TeamStats)
def read_team_stats(
    team_id: int,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    return team_stats(db, team_id)

@router.post("/{team_id}/invite-code", response_model=TeamDetail)
def regenerate_code(
    team_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    return coordinator.regenerate_invite_code(team_id, user)

@router.get("/{team_id}/members", response_model=List[MemberRead])
def read_members(
    team_id: int,
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    team = get_team(db, team_id)
    if include_inactive:
        assert_can_manage_team(team, user, "view former members")
    return list_members(db, team.id, include_inactive=include_inactive)

@router.post("/{team_id}/members", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
def add_member_api(
    team_id: int,
    data: MemberAdd,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Добавить участника напрямую (лидер или админ).
    """
    return coordinator.add_member(team_id, data.user_id, user, role=data.role)

@router.delete("/{team_id}/members/{user_id}", response_model=MemberRead)
def remove_member_api(
    team_id: int,
    user_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Удалить участника. Лидера удалить нельзя — сначала передайте лидерство.
    """
    return coordinator.remove_member(team_id, user_id, user)

@router.post("/{team_id}/leader", response_model=MemberRead)
def reassign_leader_api(
    team_id: int,
    data: LeaderReassign,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    return coordinator.reassign_leader(team_id, data.user_id, user)

@router.post("/{team_id}/leave", response_model=MemberRead)
def leave_team_api(
    team_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    return coordinator.leave_team(team_id, user)
