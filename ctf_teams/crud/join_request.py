# ctf_teams/crud/join_request.py
"""
Join Request Workflow: заявка пользователя -> ответ лидера/админа (по одной или пачкой).

Ответ фиксируется ровно один раз. Одобрение заново проверяет регистрацию, единственность команды в событии
и вместимость через Membership Ledger; если проверка не прошла, заявка
закрывается как rejected с системной причиной, а исходная ошибка пробрасывается.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
import logging

from ctf_teams.core.settings import settings
from ctf_teams.core.exceptions import (
    AlreadyOnTeamError,
    DuplicatePendingRequestError,
    ForbiddenError,
    IneligibleUserError,
    JoinRequestNotFoundError,
    TeamFullError,
    TeamLifecycleError,
    TeamNotJoinableError,
    ValidationError,
)
from ctf_teams.models.base import utcnow
from ctf_teams.models.join_request import JoinRequest, JoinRequestStatus
from ctf_teams.models.membership import MembershipRole
from ctf_teams.models.team import Team, TeamStatus
from ctf_teams.models.user import User
from ctf_teams.crud.eligibility import is_registered
from ctf_teams.crud.membership import _add_member, _lock_team, get_active_membership
from ctf_teams.crud.policies import assert_can_manage_team
from ctf_teams.crud.respondable import AUTO_RESOLVE_ERRORS, claim, ensure_pending
from ctf_teams.crud.team import get_team
from ctf_teams.crud.transaction import atomic

logger = logging.getLogger("CTFTeams.JoinRequests")

MESSAGE_MAX_LENGTH = 500


@dataclass
class BulkFailure:
    request_id: int
    code: str
    message: str


@dataclass
class BulkResult:
    successful: List[int] = field(default_factory=list)
    failed: List[BulkFailure] = field(default_factory=list)


def _pending_request(db: Session, team_id: int, user_id: int) -> Optional[JoinRequest]:
    return (
        db.query(JoinRequest)
        .filter(
            JoinRequest.team_id == team_id,
            JoinRequest.requested_by == user_id,
            JoinRequest.status == JoinRequestStatus.PENDING,
        )
        .first()
    )

def get_request(db: Session, request_id: int) -> JoinRequest:
    request = db.get(JoinRequest, request_id)
    if not request:
        raise JoinRequestNotFoundError(f"Join request with id={request_id} not found.", request_id=request_id)
    return request

def submit(db: Session, team_id: int, user_id: int, message: Optional[str] = None) -> JoinRequest:
    """
    Подать заявку. Проверки по порядку: команда существует, активна и не invite-only,
    пользователь зарегистрирован на событие, ещё без команды, нет другой pending-заявки,
    есть свободное место.
    """
    team = get_team(db, team_id)
    if team.status != TeamStatus.ACTIVE:
        raise TeamNotJoinableError(
            f"Team '{team.name}' is not accepting join requests (status={team.status}).",
            team_id=team.id, team_name=team.name,
        )
    if team.is_invite_only:
        raise ForbiddenError(
            f"Team '{team.name}' is invite-only; join with an invitation or the team's invite code.",
            team_id=team.id, team_name=team.name,
        )
    if not is_registered(db, team.event_id, user_id):
        raise IneligibleUserError(
            f"User {user_id} is not registered for the event of team '{team.name}'.",
            user_id=user_id, team_id=team.id, event_id=team.event_id,
        )
    if get_active_membership(db, team.event_id, user_id):
        raise AlreadyOnTeamError(
            f"User {user_id} already belongs to a team in this event.",
            user_id=user_id, event_id=team.event_id,
        )
    if _pending_request(db, team.id, user_id):
        raise DuplicatePendingRequestError(
            f"User {user_id} already has a pending request for team '{team.name}'.",
            user_id=user_id, team_id=team.id,
        )
    if team.is_full:
        raise TeamFullError(f"Team '{team.name}' is full.", team_id=team.id, team_name=team.name)
    message = (message or "").strip()
    if len(message) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Message must be at most {MESSAGE_MAX_LENGTH} characters.")

    request = JoinRequest(team_id=team.id, requested_by=user_id, message=message, status=JoinRequestStatus.PENDING)
    with atomic(db, f"submitting join request to team {team.id}"):
        db.add(request)
    db.refresh(request)
    logger.info(f"User {user_id} requested to join team {team.id} (request {request.id})")
    return request

def _approve(db: Session, request: JoinRequest, responder: User) -> None:
    with atomic(db, f"approving join request {request.id}"):
        team = _lock_team(db, request.team_id)
        if not is_registered(db, team.event_id, request.requested_by):
            raise IneligibleUserError(
                f"User {request.requested_by} is no longer registered for the event of team '{team.name}'.",
                user_id=request.requested_by, team_id=team.id,
            )
        _add_member(db, team, request.requested_by, MembershipRole.MEMBER)
        claim(db, request, JoinRequestStatus.APPROVED, responder.id)

def _auto_reject(db: Session, request_id: int, reason: str) -> JoinRequest:
    request = get_request(db, request_id)
    if request.is_pending:
        with atomic(db, f"auto-rejecting join request {request_id}"):
            claim(db, request, JoinRequestStatus.REJECTED, None, reason)
        logger.info(f"Join request {request_id} rejected by system: {reason}")
    return request

def respond(db: Session, request_id: int, decision: str, responding_user: User) -> JoinRequest:
    """
    Ответить на заявку (approved | rejected). Только лидер команды или админ,
    только пока заявка pending.
    """
    if decision not in JoinRequestStatus.DECISIONS:
        raise ValidationError(
            f"Invalid decision '{decision}'. Valid: {', '.join(JoinRequestStatus.DECISIONS)}", decision=decision,
        )
    request = get_request(db, request_id)
    assert_can_manage_team(request.team, responding_user, "respond to join requests")
    ensure_pending(request, "Join request")

    if decision == JoinRequestStatus.REJECTED:
        with atomic(db, f"rejecting join request {request.id}"):
            claim(db, request, JoinRequestStatus.REJECTED, responding_user.id)
        logger.info(f"Join request {request.id} rejected by user {responding_user.id}")
    else:
        try:
            _approve(db, request, responding_user)
        except AUTO_RESOLVE_ERRORS as e:
            _auto_reject(db, request_id, e.code)
            raise
        logger.info(f"Join request {request.id} approved by user {responding_user.id}")
    db.refresh(request)
    return request

def bulk_respond(db: Session, request_ids: List[int], decision: str, responding_user: User) -> BulkResult:
    """
    Ответ пачкой: каждая заявка в своей транзакции, ошибка одной не мешает остальным.
    """
    result = BulkResult()
    for request_id in dict.fromkeys(request_ids):
        try:
            respond(db, request_id, decision, responding_user)
            result.successful.append(request_id)
        except TeamLifecycleError as e:
            result.failed.append(BulkFailure(request_id=request_id, code=e.code, message=e.message))
    logger.info(
        f"Bulk {decision} by user {responding_user.id}: "
        f"{len(result.successful)} succeeded, {len(result.failed)} failed"
    )
    return result

def withdraw(db: Session, request_id: int, user: User) -> JoinRequest:
    """Отозвать свою pending-заявку (запись остаётся: rejected с причиной withdrawn)."""
    request = get_request(db, request_id)
    if request.requested_by != user.id:
        raise ForbiddenError("Only the requester can withdraw this join request.", request_id=request.id)
    ensure_pending(request, "Join request")
    with atomic(db, f"withdrawing join request {request.id}"):
        claim(db, request, JoinRequestStatus.REJECTED, user.id, "withdrawn")
    db.refresh(request)
    logger.info(f"Join request {request.id} withdrawn by user {user.id}")
    return request

# ==== Запросы ====

def list_requests(
    db: Session,
    team_id: Optional[int] = None,
    status: Optional[str] = None,
    requested_by: Optional[int] = None,
) -> List[JoinRequest]:
    query = db.query(JoinRequest)
    if team_id is not None:
        query = query.filter(JoinRequest.team_id == team_id)
    if status:
        query = query.filter(JoinRequest.status == status)
    if requested_by is not None:
        query = query.filter(JoinRequest.requested_by == requested_by)
    return query.order_by(JoinRequest.created_at.desc(), JoinRequest.id.desc()).all()

def leader_requests(db: Session, leader_id: int, status: Optional[str] = None) -> List[JoinRequest]:
    """Заявки во все команды, которые возглавляет leader_id."""
    query = db.query(JoinRequest).join(Team, Team.id == JoinRequest.team_id).filter(Team.leader_id == leader_id)
    if status:
        query = query.filter(JoinRequest.status == status)
    return query.order_by(JoinRequest.created_at.desc(), JoinRequest.id.desc()).all()

def _count_by_status(query) -> Dict[str, int]:
    counts = {status: 0 for status in (JoinRequestStatus.PENDING,) + JoinRequestStatus.DECISIONS}
    for status, count in query.group_by(JoinRequest.status).all():
        counts[status] = count
    return counts

def request_stats(db: Session, team_id: int) -> dict:
    team = get_team(db, team_id)
    counts = _count_by_status(
        db.query(JoinRequest.status, func.count(JoinRequest.id)).filter(JoinRequest.team_id == team.id)
    )
    return {"team_id": team.id, "total": sum(counts.values()), **counts}

def admin_request_stats(db: Session) -> dict:
    counts = _count_by_status(db.query(JoinRequest.status, func.count(JoinRequest.id)))
    since = utcnow() - timedelta(days=settings.RECENT_ACTIVITY_DAYS)
    recent = db.query(func.count(JoinRequest.id)).filter(JoinRequest.created_at >= since).scalar()
    return {"total": sum(counts.values()), **counts, "recent": recent or 0}
