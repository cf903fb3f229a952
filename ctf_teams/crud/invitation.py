# ctf_teams/crud/invitation.py
"""
Invitation Workflow: приглашение лидера конкретному кандидату события.

Срок действия проверяется лениво: любое обращение к просроченному pending-приглашению
сначала переводит его в expired, и только потом решает, что делать дальше.
"""
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ctf_teams.core.settings import settings
from ctf_teams.core.exceptions import (
    DuplicatePendingInvitationError,
    IneligibleUserError,
    InvitationExpiredError,
    InvitationNotFoundError,
    TeamFullError,
    TeamNotJoinableError,
    ValidationError,
)
from ctf_teams.models.base import as_utc, utcnow
from ctf_teams.models.invitation import Invitation, InvitationStatus
from ctf_teams.models.membership import MembershipRole
from ctf_teams.models.team import TeamStatus
from ctf_teams.models.user import User
from ctf_teams.crud.eligibility import is_registered, resolve_candidate_by_email
from ctf_teams.crud.membership import _add_member, _lock_team
from ctf_teams.crud.policies import assert_can_cancel_invitation, assert_can_manage_team, assert_is_invitee
from ctf_teams.crud.respondable import AUTO_RESOLVE_ERRORS, claim, ensure_pending
from ctf_teams.crud.team import get_team
from ctf_teams.crud.transaction import atomic

logger = logging.getLogger("CTFTeams.Invitations")

MESSAGE_MAX_LENGTH = 500

# ==== Срок действия ====

def expire_if_due(db: Session, invitation: Invitation) -> bool:
    """
    Переводит просроченное pending-приглашение в expired (с коммитом).
    True — если приглашение просрочено (сейчас или ранее).
    """
    if invitation.status == InvitationStatus.EXPIRED:
        return True
    if not invitation.is_expired:
        return False
    with atomic(db, f"expiring invitation {invitation.id}"):
        claim(db, invitation, InvitationStatus.EXPIRED, None, "expired")
    logger.info(f"Invitation {invitation.id} expired (expires_at={invitation.expires_at})")
    return True

def _expire_all_due(db: Session, invitations: List[Invitation]) -> List[Invitation]:
    for invitation in invitations:
        if invitation.is_pending:
            expire_if_due(db, invitation)
    return invitations

def _raise_expired(invitation: Invitation) -> None:
    raise InvitationExpiredError(
        f"Invitation {invitation.id} to team '{invitation.team.name}' expired at {invitation.expires_at}.",
        invitation_id=invitation.id, team_id=invitation.team_id,
    )

# ==== Чтение ====

def _load(db: Session, invitation_id: int) -> Invitation:
    invitation = db.get(Invitation, invitation_id)
    if not invitation:
        raise InvitationNotFoundError(f"Invitation with id={invitation_id} not found.", invitation_id=invitation_id)
    return invitation

def get_invitation(db: Session, invitation_id: int) -> Invitation:
    invitation = _load(db, invitation_id)
    expire_if_due(db, invitation)
    return invitation

def list_team_invitations(db: Session, team_id: int, status: Optional[str] = None) -> List[Invitation]:
    get_team(db, team_id)
    invitations = _expire_all_due(
        db,
        db.query(Invitation).filter(Invitation.team_id == team_id).order_by(Invitation.created_at.desc()).all(),
    )
    return [i for i in invitations if not status or i.status == status]

def pending_for_user(db: Session, user_id: int) -> List[Invitation]:
    """Живые приглашения пользователя ("мои приглашения")."""
    invitations = _expire_all_due(
        db,
        db.query(Invitation)
        .filter(Invitation.invited_user_id == user_id, Invitation.status == InvitationStatus.PENDING)
        .order_by(Invitation.created_at.desc())
        .all(),
    )
    return [i for i in invitations if i.is_pending]

def list_all_invitations(db: Session, status: Optional[str] = None) -> List[Invitation]:
    invitations = _expire_all_due(db, db.query(Invitation).order_by(Invitation.created_at.desc()).all())
    return [i for i in invitations if not status or i.status == status]

# ==== Операции ====

def send(
    db: Session,
    team_id: int,
    invited_user_email: str,
    message: Optional[str],
    expires_at: Optional[datetime],
    sent_by: User,
) -> Invitation:
    """
    Пригласить кандидата события по email. expires_at по умолчанию — now + INVITATION_TTL_HOURS,
    переданный явно должен быть строго в будущем.
    """
    now = utcnow()
    if expires_at is None:
        expires_at = now + timedelta(hours=settings.INVITATION_TTL_HOURS)
    expires_at = as_utc(expires_at)
    if expires_at <= now:
        raise ValidationError("Invitation expiry must be in the future.", expires_at=expires_at.isoformat())
    message = (message or "").strip()
    if len(message) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Message must be at most {MESSAGE_MAX_LENGTH} characters.")

    team = get_team(db, team_id)
    if team.status != TeamStatus.ACTIVE:
        raise TeamNotJoinableError(
            f"Team '{team.name}' is not accepting members (status={team.status}).",
            team_id=team.id, team_name=team.name,
        )
    assert_can_manage_team(team, sent_by, "send invitations")
    if team.is_full:
        raise TeamFullError(f"Team '{team.name}' is full.", team_id=team.id, team_name=team.name)
    invitee = resolve_candidate_by_email(db, team.event_id, invited_user_email)

    existing = (
        db.query(Invitation)
        .filter(
            Invitation.team_id == team.id,
            Invitation.invited_user_id == invitee.id,
            Invitation.status == InvitationStatus.PENDING,
        )
        .first()
    )
    if existing is not None and not expire_if_due(db, existing):
        raise DuplicatePendingInvitationError(
            f"User {invitee.email} already has a pending invitation to '{team.name}'.",
            invitation_id=existing.id, team_id=team.id, email=invitee.email,
        )

    invitation = Invitation(
        team_id=team.id,
        invited_user_id=invitee.id,
        invited_by=sent_by.id,
        message=message,
        expires_at=expires_at,
        status=InvitationStatus.PENDING,
    )
    with atomic(db, f"sending invitation to team {team.id}"):
        db.add(invitation)
    db.refresh(invitation)
    logger.info(f"User {sent_by.id} invited {invitee.id} to team {team.id} (invitation {invitation.id})")
    return invitation

def _accept(db: Session, invitation: Invitation, user: User) -> None:
    with atomic(db, f"accepting invitation {invitation.id}"):
        team = _lock_team(db, invitation.team_id)
        if not is_registered(db, team.event_id, user.id):
            raise IneligibleUserError(
                f"User '{user.username}' is no longer registered for the event of team '{team.name}'.",
                user_id=user.id, team_id=team.id,
            )
        _add_member(db, team, user.id, MembershipRole.MEMBER)
        claim(db, invitation, InvitationStatus.ACCEPTED, user.id)

def respond(db: Session, invitation_id: int, decision: str, responding_user: User) -> Invitation:
    """
    Ответ приглашённого (accepted | declined). Сначала срок: просроченное
    приглашение становится expired и ответ отклоняется, каким бы он ни был.
    """
    if decision not in InvitationStatus.DECISIONS:
        raise ValidationError(
            f"Invalid decision '{decision}'. Valid: {', '.join(InvitationStatus.DECISIONS)}", decision=decision,
        )
    invitation = _load(db, invitation_id)
    if expire_if_due(db, invitation):
        _raise_expired(invitation)
    assert_is_invitee(invitation, responding_user)
    ensure_pending(invitation, "Invitation")

    if decision == InvitationStatus.DECLINED:
        with atomic(db, f"declining invitation {invitation.id}"):
            claim(db, invitation, InvitationStatus.DECLINED, responding_user.id)
        logger.info(f"Invitation {invitation.id} declined by user {responding_user.id}")
    else:
        try:
            _accept(db, invitation, responding_user)
        except AUTO_RESOLVE_ERRORS as e:
            invitation = _load(db, invitation_id)
            if invitation.is_pending:
                with atomic(db, f"auto-declining invitation {invitation_id}"):
                    claim(db, invitation, InvitationStatus.DECLINED, None, e.code)
                logger.info(f"Invitation {invitation_id} declined by system: {e.code}")
            raise
        logger.info(f"Invitation {invitation.id} accepted by user {responding_user.id}")
    db.refresh(invitation)
    return invitation

def cancel(db: Session, invitation_id: int, cancelled_by: User) -> Invitation:
    """Отменить pending-приглашение (пригласивший, лидер команды или админ)."""
    invitation = _load(db, invitation_id)
    if expire_if_due(db, invitation):
        _raise_expired(invitation)
    assert_can_cancel_invitation(invitation, invitation.team, cancelled_by)
    ensure_pending(invitation, "Invitation")
    with atomic(db, f"cancelling invitation {invitation.id}"):
        claim(db, invitation, InvitationStatus.CANCELLED, cancelled_by.id)
    db.refresh(invitation)
    logger.info(f"Invitation {invitation.id} cancelled by user {cancelled_by.id}")
    return invitation
