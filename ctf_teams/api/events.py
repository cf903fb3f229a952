# ctf_teams/api/events.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from ctf_teams.schemas.user import UserRead
from ctf_teams.crud.eligibility import eligible_candidates, registered_users
from ctf_teams.dependencies import get_db, get_current_active_user
from ctf_teams.models.user import User as UserModel

router = APIRouter(prefix="/events", tags=["Events"])

@router.get("/{event_id}/candidates", response_model=List[UserRead])
def list_candidates(
    event_id: int,
    exclude_team_id: Optional[int] = Query(None, description="Не учитывать членства в этой команде"),
    search: Optional[str] = Query(None, description="Поиск по username, email или имени"),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Кандидаты в команды события: зарегистрированы и ещё без команды.
    """
    return eligible_candidates(db, event_id, exclude_team_id=exclude_team_id, search=search)

@router.get("/{event_id}/registered-users", response_model=List[UserRead])
def list_registered_users(
    event_id: int,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_active_user)
):
    """
    Все зарегистрированные на событие пользователи (с командой и без).
    """
    return registered_users(db, event_id)
