# ctf_teams/api/invitation.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from ctf_teams.schemas.invitation import InvitationCreate, InvitationRead, InvitationRespond
from ctf_teams.crud.invitation import (
    get_invitation,
    list_all_invitations,
    list_team_invitations,
    pending_for_user,
)
from ctf_teams.crud.lifecycle import LifecycleCoordinator
from ctf_teams.crud.policies import assert_can_manage_team
from ctf_teams.dependencies import get_db, get_current_active_user, get_coordinator
from ctf_teams.models.user import User as UserModel

router = APIRouter(tags=["Invitations"])

@router.post("/teams/{team_id}/invitations", response_model=InvitationRead, status_code=status.HTTP_201_CREATED)
def send_invitation(
    team_id: int,
    data: InvitationCreate,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Пригласить кандидата события по email (лидер или админ).
    """
    return coordinator.send_invitation(
        team_id, data.invited_user_email, user, message=data.message, expires_at=data.expires_at,
    )

@router.get("/teams/{team_id}/invitations", response_model=List[InvitationRead])
def team_invitations(
    team_id: int,
    invitation_status: Optional[str] = Query(None, alias="status"),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    team = coordinator.assert_can_view_requests(team_id, user)
    return list_team_invitations(coordinator.db, team.id, status=invitation_status)

@router.get("/invitations/mine", response_model=List[InvitationRead])
def my_invitations(
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Живые приглашения текущего пользователя.
    """
    return pending_for_user(db, user.id)

@router.get("/invitations", response_model=List[InvitationRead])
def all_invitations(
    invitation_status: Optional[str] = Query(None, alias="status"),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    coordinator.assert_admin(user)
    return list_all_invitations(coordinator.db, status=invitation_status)

@router.get("/invitations/{invitation_id}", response_model=InvitationRead)
def read_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    invitation = get_invitation(db, invitation_id)
    if invitation.invited_user_id != user.id and invitation.invited_by != user.id:
        assert_can_manage_team(invitation.team, user, "view this invitation")
    return invitation

@router.put("/invitations/{invitation_id}", response_model=InvitationRead)
def respond_invitation(
    invitation_id: int,
    data: InvitationRespond,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Принять или отклонить приглашение (только приглашённый).
    """
    return coordinator.respond_invitation(invitation_id, data.status, user)

@router.delete("/invitations/{invitation_id}", response_model=InvitationRead)
def cancel_invitation(
    invitation_id: int,
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
    user: UserModel = Depends(get_current_active_user)
):
    return coordinator.cancel_invitation(invitation_id, user)
