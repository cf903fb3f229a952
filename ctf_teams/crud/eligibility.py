# ctf_teams/crud/eligibility.py
"""
Eligibility Resolver: кто из пользователей может стать участником команды события.

Кандидат — активный пользователь с регистрацией status=registered на событие
и без активного членства в любой команде этого события.
"""
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ctf_teams.models.user import User
from ctf_teams.models.event import EventRegistration, RegistrationStatus
from ctf_teams.models.membership import TeamMembership, MembershipStatus
from ctf_teams.core.exceptions import IneligibleUserError
from ctf_teams.crud.event import get_event

logger = logging.getLogger("CTFTeams.Eligibility")

def _registered_users_query(db: Session, event_id: int):
    return (
        db.query(User)
        .join(EventRegistration, EventRegistration.user_id == User.id)
        .filter(
            EventRegistration.event_id == event_id,
            EventRegistration.status == RegistrationStatus.REGISTERED,
            User.is_active.is_(True),
        )
    )

def _engaged_user_ids(event_id: int, exclude_team_id: Optional[int] = None):
    stmt = select(TeamMembership.user_id).where(
        TeamMembership.event_id == event_id,
        TeamMembership.status == MembershipStatus.ACTIVE,
    )
    if exclude_team_id is not None:
        stmt = stmt.where(TeamMembership.team_id != exclude_team_id)
    return stmt

def registered_users(db: Session, event_id: int) -> List[User]:
    """
    Все зарегистрированные (не отозвавшие регистрацию) пользователи события, с командой или без.
    """
    get_event(db, event_id)
    return _registered_users_query(db, event_id).order_by(User.username).all()

def eligible_candidates(
    db: Session,
    event_id: int,
    exclude_team_id: Optional[int] = None,
    search: Optional[str] = None,
) -> List[User]:
    """
    Кандидаты в команды события (без повторов, по username).
    Членства в exclude_team_id не учитываются: текущий состав этой команды
    остаётся в выборке при повторной проверке ростера.
    search сужает выборку по username, email или имени (без учёта регистра).
    Пустой список — нормальный результат, а не ошибка.
    """
    get_event(db, event_id)
    query = (
        _registered_users_query(db, event_id)
        .filter(User.id.not_in(_engaged_user_ids(event_id, exclude_team_id)))
    )
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(User.username).like(pattern),
            func.lower(User.email).like(pattern),
            func.lower(User.full_name).like(pattern),
        ))
    candidates = query.order_by(User.username).all()
    logger.debug(f"Event {event_id}: {len(candidates)} eligible candidates")
    return candidates

def is_registered(db: Session, event_id: int, user_id: int) -> bool:
    return db.query(
        _registered_users_query(db, event_id).filter(User.id == user_id).exists()
    ).scalar()

def is_eligible(db: Session, event_id: int, user_id: int, exclude_team_id: Optional[int] = None) -> bool:
    query = _registered_users_query(db, event_id).filter(
        User.id == user_id,
        User.id.not_in(_engaged_user_ids(event_id, exclude_team_id)),
    )
    return db.query(query.exists()).scalar()

def resolve_candidate_by_email(db: Session, event_id: int, email: str, exclude_team_id: Optional[int] = None) -> User:
    """
    Найти кандидата события по email (используется при отправке приглашений
    и при создании команды по email). IneligibleUserError, если кандидата нет.
    """
    event = get_event(db, event_id)
    normalized = (email or "").strip().lower()
    user = (
        _registered_users_query(db, event_id)
        .filter(User.email == normalized)
        .first()
    )
    if user is None:
        raise IneligibleUserError(
            f"No user registered for event '{event.name}' with email {normalized}.",
            email=normalized, event_id=event.id,
        )
    if not is_eligible(db, event_id, user.id, exclude_team_id):
        raise IneligibleUserError(
            f"User {user.email} already belongs to a team in event '{event.name}'.",
            email=user.email, user_id=user.id, event_id=event.id,
        )
    return user
