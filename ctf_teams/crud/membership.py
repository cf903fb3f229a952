# ctf_teams/crud/membership.py
"""
Membership Ledger — единственное место, где меняются размер команды и лидерство.

Публичные функции фиксируют транзакцию сами; функции с префиксом "_" только
делают flush и используются внутри составных операций (создание команды,
одобрение заявки, принятие приглашения, роспуск).
"""
from sqlalchemy import update
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ctf_teams.models.base import utcnow
from ctf_teams.models.team import Team, TeamStatus
from ctf_teams.models.membership import TeamMembership, MembershipRole, MembershipStatus
from ctf_teams.core.exceptions import (
    AlreadyOnTeamError,
    InvalidStateTransitionError,
    LeaderRemovalError,
    NotATeamMemberError,
    TeamFullError,
    TeamNotFoundError,
    TeamNotJoinableError,
    ValidationError,
)
from ctf_teams.crud.transaction import atomic
from ctf_teams.crud.user import get_user

logger = logging.getLogger("CTFTeams.Membership")

# ==== Запросы ====

def get_active_membership(db: Session, event_id: int, user_id: int) -> Optional[TeamMembership]:
    """Активное членство пользователя в любой команде события."""
    return (
        db.query(TeamMembership)
        .filter(
            TeamMembership.event_id == event_id,
            TeamMembership.user_id == user_id,
            TeamMembership.status == MembershipStatus.ACTIVE,
        )
        .first()
    )

def get_team_membership(db: Session, team_id: int, user_id: int) -> Optional[TeamMembership]:
    return (
        db.query(TeamMembership)
        .filter(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
            TeamMembership.status == MembershipStatus.ACTIVE,
        )
        .first()
    )

def get_leader_membership(db: Session, team_id: int) -> Optional[TeamMembership]:
    return (
        db.query(TeamMembership)
        .filter(
            TeamMembership.team_id == team_id,
            TeamMembership.role == MembershipRole.LEADER,
            TeamMembership.status == MembershipStatus.ACTIVE,
        )
        .first()
    )

def list_members(db: Session, team_id: int, include_inactive: bool = False) -> List[TeamMembership]:
    query = db.query(TeamMembership).filter(TeamMembership.team_id == team_id)
    if not include_inactive:
        query = query.filter(TeamMembership.status == MembershipStatus.ACTIVE)
    # лидер первым, дальше по времени вступления
    return query.order_by(TeamMembership.role.asc(), TeamMembership.joined_at.asc(), TeamMembership.id.asc()).all()

def current_size(db: Session, team_id: int) -> int:
    size = db.query(Team.current_size).filter(Team.id == team_id).scalar()
    if size is None:
        raise TeamNotFoundError(f"Team with id={team_id} not found.", team_id=team_id)
    return size

def is_full(db: Session, team_id: int) -> bool:
    row = db.query(Team.current_size, Team.max_size).filter(Team.id == team_id).first()
    if row is None:
        raise TeamNotFoundError(f"Team with id={team_id} not found.", team_id=team_id)
    return row.current_size >= row.max_size

def user_teams(db: Session, user_id: int) -> List[Team]:
    """Команды, где у пользователя активное членство (по одной на событие)."""
    return (
        db.query(Team)
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .filter(TeamMembership.user_id == user_id, TeamMembership.status == MembershipStatus.ACTIVE)
        .order_by(Team.name)
        .all()
    )

# ==== Примитивы (flush only) ====

def _lock_team(db: Session, team_id: int) -> Team:
    """
    Загружает команду с блокировкой строки (SELECT ... FOR UPDATE там, где БД это умеет):
    изменения размера и лидерства одной команды сериализуются.
    """
    team = db.query(Team).filter(Team.id == team_id).with_for_update().populate_existing().first()
    if not team:
        raise TeamNotFoundError(f"Team with id={team_id} not found.", team_id=team_id)
    return team

def _reserve_seat(db: Session, team: Team) -> None:
    # Условное обновление: из двух конкурентов только один увидит current_size < max_size.
    result = db.execute(
        update(Team)
        .where(Team.id == team.id, Team.current_size < Team.max_size)
        .values(current_size=Team.current_size + 1)
        .execution_options(synchronize_session=False)
    )
    db.expire(team, ["current_size"])
    if result.rowcount != 1:
        raise TeamFullError(
            f"Team '{team.name}' is full ({team.max_size}/{team.max_size}).",
            team_id=team.id, team_name=team.name,
        )

def _release_seat(db: Session, team: Team) -> None:
    db.execute(
        update(Team)
        .where(Team.id == team.id, Team.current_size > 0)
        .values(current_size=Team.current_size - 1)
        .execution_options(synchronize_session=False)
    )
    db.expire(team, ["current_size"])

def _swap_leader_id(db: Session, team: Team, new_leader_id: int) -> None:
    previous = team.leader_id
    condition = Team.leader_id.is_(None) if previous is None else Team.leader_id == previous
    result = db.execute(
        update(Team)
        .where(Team.id == team.id, condition)
        .values(leader_id=new_leader_id)
        .execution_options(synchronize_session=False)
    )
    db.expire(team, ["leader_id"])
    if result.rowcount != 1:
        raise InvalidStateTransitionError(
            f"Leadership of '{team.name}' changed concurrently; retry the operation.",
            team_id=team.id,
        )

def _demote_leader(db: Session, team: Team) -> Optional[TeamMembership]:
    current = get_leader_membership(db, team.id)
    if current is not None:
        current.role = MembershipRole.MEMBER
        db.flush()
    return current

def _add_member(db: Session, team: Team, user_id: int, role: str = MembershipRole.MEMBER) -> TeamMembership:
    if role not in MembershipRole.ALL:
        raise ValidationError(f"Invalid role '{role}'. Valid roles: {', '.join(MembershipRole.ALL)}", role=role)
    if team.status != TeamStatus.ACTIVE:
        raise TeamNotJoinableError(
            f"Team '{team.name}' is not accepting members (status={team.status}).",
            team_id=team.id, team_name=team.name,
        )
    existing = get_active_membership(db, team.event_id, user_id)
    if existing is not None:
        where = "this team" if existing.team_id == team.id else "another team in this event"
        raise AlreadyOnTeamError(
            f"User {user_id} is already an active member of {where}.",
            user_id=user_id, team_id=existing.team_id,
        )
    _reserve_seat(db, team)

    if role == MembershipRole.LEADER:
        previous = _demote_leader(db, team)
        _swap_leader_id(db, team, user_id)
        if previous is not None:
            logger.info(f"Leader hand-off in team {team.id}: {previous.user_id} -> {user_id}")

    membership = TeamMembership(
        team_id=team.id,
        user_id=user_id,
        event_id=team.event_id,
        role=role,
        status=MembershipStatus.ACTIVE,
        joined_at=utcnow(),
    )
    db.add(membership)
    db.flush()
    logger.info(f"Added user {user_id} to team {team.id} as {role}")
    return membership

def _deactivate(membership: TeamMembership) -> None:
    membership.status = MembershipStatus.INACTIVE
    membership.left_at = utcnow()

def _remove_member(db: Session, team: Team, user_id: int) -> TeamMembership:
    membership = get_team_membership(db, team.id, user_id)
    if membership is None:
        raise NotATeamMemberError(
            f"User {user_id} is not an active member of '{team.name}'.",
            team_id=team.id, user_id=user_id,
        )
    if membership.is_leader:
        raise LeaderRemovalError(
            f"User {user_id} leads '{team.name}'; reassign leadership before removing them.",
            team_id=team.id, user_id=user_id,
        )
    _deactivate(membership)
    db.flush()
    _release_seat(db, team)
    logger.info(f"Removed user {user_id} from team {team.id}")
    return membership

def _reassign_leader(db: Session, team: Team, new_leader_user_id: int) -> TeamMembership:
    target = get_team_membership(db, team.id, new_leader_user_id)
    if target is None:
        raise NotATeamMemberError(
            f"User {new_leader_user_id} is not an active member of '{team.name}'.",
            team_id=team.id, user_id=new_leader_user_id,
        )
    if target.is_leader:
        return target
    _swap_leader_id(db, team, new_leader_user_id)
    previous = _demote_leader(db, team)
    target.role = MembershipRole.LEADER
    db.flush()
    logger.info(
        f"Leader hand-off in team {team.id}: {previous.user_id if previous else None} -> {new_leader_user_id}"
    )
    return target

def _deactivate_all(db: Session, team: Team) -> List[int]:
    """Роспуск: все активные членства (включая лидера) -> inactive."""
    memberships = (
        db.query(TeamMembership)
        .filter(TeamMembership.team_id == team.id, TeamMembership.status == MembershipStatus.ACTIVE)
        .all()
    )
    for membership in memberships:
        _deactivate(membership)
    db.flush()
    team.current_size = 0
    return [m.user_id for m in memberships]

# ==== Публичные операции ====

def add_member(db: Session, team_id: int, user_id: int, role: str = MembershipRole.MEMBER) -> TeamMembership:
    """
    Добавить пользователя в команду: одна команда на событие, вместимость, для role=leader — передача лидерства.
    """
    get_user(db, user_id)
    with atomic(db, f"adding user {user_id} to team {team_id}"):
        team = _lock_team(db, team_id)
        membership = _add_member(db, team, user_id, role)
    db.refresh(membership)
    return membership

def remove_member(db: Session, team_id: int, user_id: int) -> TeamMembership:
    """
    Удалить участника (status=inactive, left_at=now).
    Единственного лидера удалить нельзя — сначала reassign_leader.
    """
    with atomic(db, f"removing user {user_id} from team {team_id}"):
        team = _lock_team(db, team_id)
        membership = _remove_member(db, team, user_id)
    db.refresh(membership)
    return membership

def leave_team(db: Session, team_id: int, user_id: int) -> TeamMembership:
    """Выход из команды по собственной инициативе — те же правила, что и remove_member."""
    return remove_member(db, team_id, user_id)

def reassign_leader(db: Session, team_id: int, new_leader_user_id: int) -> TeamMembership:
    """
    Атомарно понизить текущего лидера и повысить new_leader_user_id (он уже должен быть участником).
    """
    with atomic(db, f"reassigning leader of team {team_id}"):
        team = _lock_team(db, team_id)
        membership = _reassign_leader(db, team, new_leader_user_id)
    db.refresh(membership)
    return membership
