# ctf_teams/api/join_request.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from ctf_teams.schemas.join_request import (
    AdminRequestStats,
    BulkActionRequest,
    BulkActionResult,
    BulkFailureRead,
    JoinRequestCreate,
    JoinRequestRead,
    JoinRequestRespond,
    RequestStats,
)
from ctf_teams.crud.join_request import (
    admin_request_stats,
    get_request,
    leader_requests,
    list_requests,
    request_stats,
)
from ctf_teams.crud.lifecycle import LifecycleCoordinator
from ctf_teams.crud.policies import assert_can_manage_team
from ctf_teams.dependencies import get_db, get_current_active_user, get_coordinator
from ctf_teams.models.join_request import JoinRequestStatus
from ctf_teams.models.user import User as UserModel

router = APIRouter(tags=["Join Requests"])

_ACTIONS = {"approve": JoinRequestStatus.APPROVED, "reject": JoinRequestStatus.REJECTED}

@router.post("/teams/{team_id}/requests", response_model=JoinRequestRead, status_code=status.HTTP_201_CREATED)
def submit_request(
    team_id: int,
    data: JoinRequestCreate,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Подать заявку на вступление в команду.
    """
    return coordinator.submit_join_request(team_id, user, data.message)

@router.get("/teams/{team_id}/requests", response_model=List[JoinRequestRead])
def team_requests(
    team_id: int,
    request_status: Optional[str] = Query(None, alias="status"),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    coordinator.assert_can_view_requests(team_id, user)
    return list_requests(coordinator.db, team_id=team_id, status=request_status)

@router.get("/teams/{team_id}/request-stats", response_model=RequestStats)
def team_request_stats(
    team_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    coordinator.assert_can_view_requests(team_id, user)
    return request_stats(coordinator.db, team_id)

@router.get("/requests/mine", response_model=List[JoinRequestRead])
def my_requests(
    request_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    return list_requests(db, requested_by=user.id, status=request_status)

@router.get("/requests/leader", response_model=List[JoinRequestRead])
def requests_for_leader(
    request_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Заявки во все команды, которые возглавляет текущий пользователь.
    """
    return leader_requests(db, user.id, status=request_status)

@router.get("/requests", response_model=List[JoinRequestRead])
def all_requests(
    request_status: Optional[str] = Query(None, alias="status"),
    team_id: Optional[int] = Query(None),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Все заявки (только админ), с фильтрами по статусу и команде.
    """
    coordinator.assert_admin(user)
    return list_requests(coordinator.db, team_id=team_id, status=request_status)

@router.get("/requests/admin/stats", response_model=AdminRequestStats)
def requests_admin_stats(
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    coordinator.assert_admin(user)
    return admin_request_stats(coordinator.db)

@router.post("/requests/bulk-action", response_model=BulkActionResult)
def bulk_action(
    data: BulkActionRequest,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Ответить на несколько заявок: каждая независимо, ошибки собираются в failed.
    """
    result = coordinator.bulk_respond_requests(data.request_ids, _ACTIONS[data.action], user)
    return BulkActionResult(
        message=f"Bulk {data.action}: {len(result.successful)} succeeded, {len(result.failed)} failed",
        successful=result.successful,
        failed=[BulkFailureRead(request_id=f.request_id, code=f.code, message=f.message) for f in result.failed],
        success_count=len(result.successful),
        failed_count=len(result.failed),
    )

@router.get("/requests/{request_id}", response_model=JoinRequestRead)
def read_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    request = get_request(db, request_id)
    if request.requested_by != user.id:
        assert_can_manage_team(request.team, user, "view this join request")
    return request

@router.put("/requests/{request_id}", response_model=JoinRequestRead)
def respond_request(
    request_id: int,
    data: JoinRequestRespond,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Одобрить или отклонить заявку (лидер или админ).
    """
    return coordinator.respond_join_request(request_id, data.status, user)

@router.delete("/requests/{request_id}", response_model=JoinRequestRead)
def withdraw_request(
    request_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Отозвать свою заявку (запись остаётся в истории).
    """
    return coordinator.withdraw_join_request(request_id, user)
