#ctf_teams/models/team.py
import secrets
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, utcnow


class TeamStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISBANDED = "disbanded"
    PENDING = "pending"

    ALL = (ACTIVE, INACTIVE, DISBANDED, PENDING)


def generate_invite_code() -> str:
    return secrets.token_urlsafe(12)


class Team(Base):
    """
    Team — команда внутри события. Размер (current_size) меняет только
    Membership Ledger; удаление — это переход в status=disbanded.
    """
    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_team_event_name"),
        CheckConstraint("min_size >= 1", name="ck_team_min_size_positive"),
        CheckConstraint("min_size <= max_size", name="ck_team_size_bounds"),
        CheckConstraint("current_size >= 0 AND current_size <= max_size", name="ck_team_capacity"),
    )

    id: int = Column(Integer, primary_key=True)
    name: str = Column(String(100), nullable=False, index=True, doc="Название команды")
    description: str = Column(String(500), nullable=True, default="", doc="Описание")
    min_size: int = Column(Integer, nullable=False, default=1)
    max_size: int = Column(Integer, nullable=False, default=4)
    current_size: int = Column(Integer, nullable=False, default=0, doc="Число активных членств")
    is_invite_only: bool = Column(Boolean, nullable=False, default=False, doc="Приватная команда")
    status: str = Column(String(20), nullable=False, default=TeamStatus.ACTIVE, index=True)
    event_id: int = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    invite_code: str = Column(String(64), nullable=False, unique=True, index=True, default=generate_invite_code)
    leader_id: int = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: datetime = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    event = relationship("Event", back_populates="teams")
    leader = relationship("User", foreign_keys=[leader_id])
    memberships = relationship("TeamMembership", back_populates="team", lazy="dynamic")
    join_requests = relationship("JoinRequest", back_populates="team", lazy="dynamic")
    invitations = relationship("Invitation", back_populates="team", lazy="dynamic")

    @property
    def is_full(self) -> bool:
        return self.current_size >= self.max_size

    @property
    def leader_name(self) -> str:
        return self.leader.display_name if self.leader else None

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', size={self.current_size}/{self.max_size}, status='{self.status}')>"
