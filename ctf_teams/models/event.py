#ctf_teams/models/event.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, utcnow


class Event(Base):
    """
    Event — экземпляр соревнования. Регистрацией владеет внешняя подсистема,
    ядро только читает список зарегистрированных.
    """
    __tablename__ = "events"

    id: int = Column(Integer, primary_key=True)
    event_code: str = Column(String(64), unique=True, nullable=False, index=True, doc="Код события")
    name: str = Column(String(128), nullable=False, doc="Название")
    description: str = Column(String(500), nullable=True)
    starts_at: datetime = Column(DateTime(timezone=True), nullable=True)
    ends_at: datetime = Column(DateTime(timezone=True), nullable=True)
    is_active: bool = Column(Boolean, default=True, nullable=False)
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    registrations = relationship("EventRegistration", back_populates="event", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="event")

    def __repr__(self):
        return f"<Event(id={self.id}, code='{self.event_code}')>"


class RegistrationStatus:
    REGISTERED = "registered"
    WITHDRAWN = "withdrawn"


class EventRegistration(Base):
    """
    EventRegistration — пользователь зарегистрирован на событие (или отозвал регистрацию).
    """
    __tablename__ = "event_registrations"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),
    )

    id: int = Column(Integer, primary_key=True)
    event_id: int = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: str = Column(String(20), default=RegistrationStatus.REGISTERED, nullable=False, doc="registered | withdrawn")
    registered_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    withdrawn_at: datetime = Column(DateTime(timezone=True), nullable=True)

    event = relationship("Event", back_populates="registrations")
    user = relationship("User", back_populates="registrations")

    def __repr__(self):
        return f"<EventRegistration(event_id={self.event_id}, user_id={self.user_id}, status='{self.status}')>"
