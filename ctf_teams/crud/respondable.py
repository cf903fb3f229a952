# ctf_teams/crud/respondable.py
"""
Общие шаги для заявок и приглашений: проверка pending и однократный ответ.
"""
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ctf_teams.core.exceptions import (
    AlreadyOnTeamError,
    IneligibleUserError,
    InvalidStateTransitionError,
    TeamFullError,
    TeamNotJoinableError,
)
from ctf_teams.models.respondable import Respondable

# Ошибки ledger'а, которые при approve/accept приводят к системному отказу.
AUTO_RESOLVE_ERRORS = (TeamFullError, AlreadyOnTeamError, IneligibleUserError, TeamNotJoinableError)
AUTO_RESOLVE_CODES = frozenset(error.code for error in AUTO_RESOLVE_ERRORS)


def ensure_pending(item: Respondable, label: str) -> None:
    if not item.is_pending:
        raise InvalidStateTransitionError(
            f"{label} {item.id} is already {item.status}; terminal states are final.",
            id=item.id, status=item.status,
        )


def claim(db: Session, item: Respondable, status: str, actor_id: Optional[int], reason: Optional[str] = None) -> None:
    """
    pending -> status ровно один раз: условный UPDATE, проигравший в гонке
    получает InvalidStateTransitionError. Коммит — на вызывающей стороне.
    """
    model = type(item)
    result = db.execute(
        update(model)
        .where(model.id == item.id, model.status == "pending")
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.expire(item, ["status"])
        raise InvalidStateTransitionError(
            f"{model.__name__} {item.id} was answered concurrently.",
            id=item.id,
        )
    item.mark_responded(status, actor_id, reason)
    db.flush()
