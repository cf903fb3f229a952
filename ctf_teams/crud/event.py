# ctf_teams/crud/event.py
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ctf_teams.models.event import Event, EventRegistration, RegistrationStatus
from ctf_teams.models.base import utcnow
from ctf_teams.core.exceptions import EventNotFoundError, ValidationError
from ctf_teams.crud.transaction import atomic

logger = logging.getLogger("CTFTeams.Events")

def get_event(db: Session, event_id: int) -> Event:
    """
    Получить событие по ID или EventNotFoundError.
    """
    event = db.get(Event, event_id) if event_id is not None else None
    if not event:
        raise EventNotFoundError(f"Event with id={event_id} not found.", event_id=event_id)
    return event

def create_event(db: Session, data: dict) -> Event:
    code = (data.get("event_code") or "").strip()
    name = (data.get("name") or "").strip()
    if not code or not name:
        raise ValidationError("Event code and name are required.")
    event = Event(
        event_code=code,
        name=name,
        description=data.get("description", ""),
        starts_at=data.get("starts_at"),
        ends_at=data.get("ends_at"),
        is_active=data.get("is_active", True),
    )
    with atomic(db, "creating event"):
        db.add(event)
    db.refresh(event)
    logger.info(f"Created event '{event.event_code}' (ID: {event.id})")
    return event

def _get_registration(db: Session, event_id: int, user_id: int) -> Optional[EventRegistration]:
    return db.query(EventRegistration).filter_by(event_id=event_id, user_id=user_id).first()

def register_user(db: Session, event_id: int, user_id: int) -> EventRegistration:
    """
    Зарегистрировать пользователя на событие (повторная регистрация после отзыва — допустима).
    """
    get_event(db, event_id)
    registration = _get_registration(db, event_id, user_id)
    with atomic(db, "registering user for event"):
        if registration is None:
            registration = EventRegistration(event_id=event_id, user_id=user_id)
            db.add(registration)
        else:
            registration.status = RegistrationStatus.REGISTERED
            registration.withdrawn_at = None
    db.refresh(registration)
    logger.info(f"User {user_id} registered for event {event_id}")
    return registration

def withdraw_registration(db: Session, event_id: int, user_id: int) -> EventRegistration:
    registration = _get_registration(db, event_id, user_id)
    if registration is None or registration.status == RegistrationStatus.WITHDRAWN:
        raise ValidationError(f"User {user_id} is not registered for event {event_id}.")
    with atomic(db, "withdrawing registration"):
        registration.status = RegistrationStatus.WITHDRAWN
        registration.withdrawn_at = utcnow()
    logger.info(f"User {user_id} withdrew from event {event_id}")
    return registration
