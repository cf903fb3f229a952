# ctf_teams/crud/team.py
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from ctf_teams.core.settings import settings
from ctf_teams.core.exceptions import (
    CapacityError,
    DuplicateCaptainError,
    IneligibleUserError,
    InvalidStateTransitionError,
    TeamNotFoundError,
    ValidationError,
)
from ctf_teams.models.base import utcnow
from ctf_teams.models.team import Team, TeamStatus, generate_invite_code
from ctf_teams.models.membership import MembershipRole
from ctf_teams.models.join_request import JoinRequest, JoinRequestStatus
from ctf_teams.models.invitation import Invitation, InvitationStatus
from ctf_teams.models.user import User
from ctf_teams.crud.event import get_event
from ctf_teams.crud.eligibility import eligible_candidates, resolve_candidate_by_email
from ctf_teams.crud.membership import (
    _add_member,
    _deactivate_all,
    _lock_team,
    _reassign_leader,
    list_members,
)
from ctf_teams.crud.policies import assert_can_appoint_captain
from ctf_teams.crud.transaction import atomic
from ctf_teams.crud.user import get_user

logger = logging.getLogger("CTFTeams.Team")

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

# ==== Валидация ====

def _clean_name(value) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("Team name is required.")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Team name must be at most {NAME_MAX_LENGTH} characters.")
    return name

def _clean_description(value) -> str:
    description = (value or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters.")
    return description

def _validate_sizes(min_size: int, max_size: int) -> None:
    limit = settings.TEAM_SIZE_LIMIT
    if not 1 <= min_size <= limit:
        raise ValidationError(f"min_size must be between 1 and {limit}.", min_size=min_size)
    if not 1 <= max_size <= limit:
        raise ValidationError(f"max_size must be between 1 and {limit}.", max_size=max_size)
    if min_size > max_size:
        raise ValidationError(
            f"min_size ({min_size}) cannot exceed max_size ({max_size}).",
            min_size=min_size, max_size=max_size,
        )

def _ensure_unique_name(db: Session, event_id: int, name: str, exclude_team_id: Optional[int] = None) -> None:
    query = db.query(Team.id).filter(Team.event_id == event_id, Team.name == name)
    if exclude_team_id is not None:
        query = query.filter(Team.id != exclude_team_id)
    if query.first():
        raise ValidationError(f"Team with name '{name}' already exists in this event.", name=name)

def _resolve_captain(db: Session, event_id: int, data: dict, actor: User) -> int:
    captain_id = data.get("captain_user_id")
    captain_email = (data.get("captain_email") or "").strip()
    if captain_email:
        by_email = resolve_candidate_by_email(db, event_id, captain_email)
        if captain_id is not None and captain_id != by_email.id:
            raise DuplicateCaptainError(
                f"captain_user_id={captain_id} and captain_email={by_email.email} name different users.",
                captain_user_id=captain_id, captain_email=by_email.email,
            )
        captain_id = by_email.id
    if captain_id is None:
        captain_id = actor.id
    assert_can_appoint_captain(actor, captain_id)
    return captain_id

def _resolve_members(db: Session, event_id: int, data: dict, captain_id: int) -> List[int]:
    """
    Ростер без повторов, в порядке указания; капитан, указанный и как участник,
    считается один раз (как лидер).
    """
    raw_ids = list(data.get("member_user_ids") or [])
    for email in data.get("member_emails") or []:
        raw_ids.append(resolve_candidate_by_email(db, event_id, email).id)
    members: List[int] = []
    for user_id in raw_ids:
        if user_id != captain_id and user_id not in members:
            members.append(user_id)
    return members

# ==== Чтение ====

def get_team(db: Session, team_id: int) -> Team:
    """
    Получить команду по ID (распущенные тоже — это аудит).
    """
    team = db.get(Team, team_id)
    if not team:
        raise TeamNotFoundError(f"Team with id={team_id} not found.", team_id=team_id)
    return team

def get_team_by_invite_code(db: Session, invite_code: str) -> Team:
    team = db.query(Team).filter(Team.invite_code == (invite_code or "").strip()).first()
    if not team:
        raise TeamNotFoundError("No team matches this invite code.")
    return team

def list_teams(
    db: Session,
    event_id: Optional[int] = None,
    status: Optional[str] = None,
    is_invite_only: Optional[bool] = None,
    search: Optional[str] = None,
    available_only: bool = False,
) -> List[Team]:
    """
    Список команд с фильтрами; available_only — активные и не заполненные.
    """
    query = db.query(Team)
    if event_id is not None:
        query = query.filter(Team.event_id == event_id)
    if status:
        query = query.filter(Team.status == status)
    if is_invite_only is not None:
        query = query.filter(Team.is_invite_only == is_invite_only)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(func.lower(Team.name).like(pattern), func.lower(Team.description).like(pattern)))
    if available_only:
        query = query.filter(Team.status == TeamStatus.ACTIVE, Team.current_size < Team.max_size)
    return query.order_by(Team.name).all()

# ==== Создание ====

def create_team(db: Session, data: dict, actor: User) -> Team:
    """
    Создать команду вместе с ростером: капитан (по умолчанию — actor) становится лидером,
    остальные — участниками. Либо коммитится всё, либо ничего.
    """
    name = _clean_name(data.get("name"))
    description = _clean_description(data.get("description"))
    min_size = data.get("min_size")
    min_size = 1 if min_size is None else min_size
    max_size = data.get("max_size")
    max_size = settings.DEFAULT_MAX_TEAM_SIZE if max_size is None else max_size
    _validate_sizes(min_size, max_size)
    event = get_event(db, data.get("event_id"))

    captain_id = _resolve_captain(db, event.id, data, actor)
    member_ids = _resolve_members(db, event.id, data, captain_id)
    if max_size < 1 + len(member_ids):
        raise ValidationError(
            f"Roster of {1 + len(member_ids)} exceeds max_size={max_size}.",
            max_size=max_size, roster_size=1 + len(member_ids),
        )

    candidate_ids = {user.id for user in eligible_candidates(db, event.id)}
    for user_id in [captain_id] + member_ids:
        if user_id not in candidate_ids:
            user = get_user(db, user_id)
            raise IneligibleUserError(
                f"User '{user.username}' is not an eligible candidate for event '{event.name}'.",
                user_id=user.id, username=user.username, event_id=event.id,
            )
    _ensure_unique_name(db, event.id, name)

    team = Team(
        name=name,
        description=description,
        min_size=min_size,
        max_size=max_size,
        current_size=0,
        is_invite_only=bool(data.get("is_invite_only", False)),
        status=TeamStatus.ACTIVE,
        event_id=event.id,
    )
    with atomic(db, f"creating team '{name}'"):
        db.add(team)
        db.flush()
        _add_member(db, team, captain_id, MembershipRole.LEADER)
        for user_id in member_ids:
            _add_member(db, team, user_id, MembershipRole.MEMBER)
    db.refresh(team)
    logger.info(f"Created team '{team.name}' (ID: {team.id}) in event {event.id} with {team.current_size} members")
    return team

# ==== Изменение ====

def _disband(db: Session, team: Team) -> Dict[str, List[int]]:
    """
    Каскад роспуска (flush only): членства -> inactive, pending-заявки -> rejected,
    pending-приглашения -> cancelled. Возвращает затронутых пользователей для уведомлений.
    """
    former_members = _deactivate_all(db, team)
    now = utcnow()
    requests = (
        db.query(JoinRequest)
        .filter(JoinRequest.team_id == team.id, JoinRequest.status == JoinRequestStatus.PENDING)
        .all()
    )
    for request in requests:
        request.mark_responded(JoinRequestStatus.REJECTED, None, "team_disbanded")
    invitations = (
        db.query(Invitation)
        .filter(Invitation.team_id == team.id, Invitation.status == InvitationStatus.PENDING)
        .all()
    )
    for invitation in invitations:
        invitation.mark_responded(InvitationStatus.CANCELLED, None, "team_disbanded")
    team.status = TeamStatus.DISBANDED
    team.updated_at = now
    db.flush()
    logger.info(
        f"Disbanded team {team.id}: {len(former_members)} memberships closed, "
        f"{len(requests)} requests rejected, {len(invitations)} invitations cancelled"
    )
    return {
        "members": former_members,
        "requesters": [r.requested_by for r in requests],
        "invitees": [i.invited_user_id for i in invitations],
    }

def update_team(db: Session, team_id: int, data: dict) -> Team:
    """
    Изменить настройки команды. status='disbanded' запускает каскад роспуска;
    leader_id передаёт лидерство действующему участнику.
    """
    team, _ = update_team_with_cascade(db, team_id, data)
    return team

def update_team_with_cascade(db: Session, team_id: int, data: dict):
    """То же, что update_team, плюс список затронутых каскадом пользователей (для уведомлений)."""
    affected: Dict[str, List[int]] = {}
    with atomic(db, f"updating team {team_id}"):
        team = _lock_team(db, team_id)
        if team.status == TeamStatus.DISBANDED:
            raise InvalidStateTransitionError(
                f"Team '{team.name}' is disbanded and can no longer be changed.", team_id=team.id,
            )
        if "name" in data and data["name"] is not None:
            name = _clean_name(data["name"])
            _ensure_unique_name(db, team.event_id, name, exclude_team_id=team.id)
            team.name = name
        if "description" in data and data["description"] is not None:
            team.description = _clean_description(data["description"])

        min_size = team.min_size if data.get("min_size") is None else data["min_size"]
        max_size = team.max_size if data.get("max_size") is None else data["max_size"]
        _validate_sizes(min_size, max_size)
        if max_size < team.current_size:
            raise CapacityError(
                f"Team '{team.name}' has {team.current_size} members; max_size cannot drop to {max_size}.",
                team_id=team.id, current_size=team.current_size, max_size=max_size,
            )
        team.min_size, team.max_size = min_size, max_size

        if data.get("is_invite_only") is not None:
            team.is_invite_only = bool(data["is_invite_only"])
        if data.get("leader_id") is not None:
            _reassign_leader(db, team, data["leader_id"])

        status = data.get("status")
        if status is not None and status != team.status:
            if status not in TeamStatus.ALL:
                raise ValidationError(f"Invalid status '{status}'. Valid: {', '.join(TeamStatus.ALL)}", status=status)
            if status == TeamStatus.DISBANDED:
                affected = _disband(db, team)
            else:
                team.status = status
        team.updated_at = datetime.now(timezone.utc)
    db.refresh(team)
    logger.info(f"Updated team '{team.name}' (ID: {team.id})")
    return team, affected

def delete_team(db: Session, team_id: int) -> Team:
    """
    Удаление = роспуск; строка команды остаётся ради истории членств.
    """
    return update_team(db, team_id, {"status": TeamStatus.DISBANDED})

def regenerate_invite_code(db: Session, team_id: int) -> Team:
    with atomic(db, f"regenerating invite code of team {team_id}"):
        team = _lock_team(db, team_id)
        if team.status == TeamStatus.DISBANDED:
            raise InvalidStateTransitionError(f"Team '{team.name}' is disbanded.", team_id=team.id)
        team.invite_code = generate_invite_code()
    db.refresh(team)
    logger.info(f"Regenerated invite code for team {team.id}")
    return team

def team_stats(db: Session, team_id: int) -> dict:
    team = get_team(db, team_id)
    members = list_members(db, team.id)
    return {
        "team_id": team.id,
        "team_name": team.name,
        "status": team.status,
        "current_size": team.current_size,
        "max_size": team.max_size,
        "min_size": team.min_size,
        "available_slots": max(team.max_size - team.current_size, 0),
        "meets_minimum": team.current_size >= team.min_size,
        "leader_id": team.leader_id,
        "members": [
            {"user_id": m.user_id, "username": m.user.username, "role": m.role, "joined_at": m.joined_at}
            for m in members
        ],
    }
