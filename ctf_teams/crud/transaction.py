# ctf_teams/crud/transaction.py
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ctf_teams.core.exceptions import (
    AlreadyOnTeamError,
    DuplicatePendingInvitationError,
    DuplicatePendingRequestError,
    InvalidStateTransitionError,
    TeamFullError,
    TeamLifecycleError,
    ValidationError,
)

logger = logging.getLogger("CTFTeams.Transaction")

# (фрагмент сообщения БД, фабрика доменной ошибки); сообщения SQLite и PostgreSQL различаются,
# поэтому для каждого ограничения есть и имя индекса, и список колонок.
_CONSTRAINT_ERRORS = (
    (("uq_membership_active_user_event", "team_memberships.event_id, team_memberships.user_id"),
     lambda: AlreadyOnTeamError("User already holds an active membership in this event.")),
    (("uq_membership_active_leader", "team_memberships.team_id"),
     lambda: InvalidStateTransitionError("Team leadership changed concurrently; retry the operation.")),
    (("uq_join_request_pending", "join_requests.team_id, join_requests.requested_by"),
     lambda: DuplicatePendingRequestError("A pending join request already exists for this team.")),
    (("uq_invitation_pending", "invitations.team_id, invitations.invited_user_id"),
     lambda: DuplicatePendingInvitationError("A pending invitation already exists for this user.")),
    (("uq_team_event_name", "teams.event_id, teams.name"),
     lambda: ValidationError("A team with this name already exists in the event.")),
    (("ck_team_capacity",),
     lambda: TeamFullError("Team capacity would be exceeded.")),
)


def translate_integrity_error(exc: IntegrityError) -> TeamLifecycleError:
    """
    Переводит нарушение ограничения БД в доменную ошибку.
    Так инварианты, проверенные заранее, остаются атомарными и при гонках.
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for fragments, factory in _CONSTRAINT_ERRORS:
        if any(fragment in message for fragment in fragments):
            return factory()
    return ValidationError("Conflicting data; the operation was not applied.")


@contextmanager
def atomic(db: Session, action: str) -> Iterator[Session]:
    """
    Единица работы: либо commit всего блока, либо rollback и доменная ошибка.
    """
    try:
        yield db
        db.commit()
    except TeamLifecycleError as e:
        db.rollback()
        logger.warning(f"Rolled back while {action}: {e.code}: {e}")
        raise
    except IntegrityError as e:
        db.rollback()
        domain_error = translate_integrity_error(e)
        logger.warning(f"Integrity error while {action}: {domain_error.code}")
        raise domain_error from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while {action}: {e}")
        raise TeamLifecycleError(f"Database error while {action}.") from e
