#ctf_teams/models/membership.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, utcnow


class MembershipRole:
    LEADER = "leader"
    MEMBER = "member"

    ALL = (LEADER, MEMBER)


class MembershipStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


_ACTIVE = text("status = 'active'")
_ACTIVE_LEADER = text("status = 'active' AND role = 'leader'")


class TeamMembership(Base):
    """
    TeamMembership — связь пользователь × команда.
    event_id дублируется из команды, чтобы правило "одно активное членство на событие"
    и "ровно один активный лидер" держались уникальными индексами в БД.
    """
    __tablename__ = "team_memberships"
    __table_args__ = (
        Index(
            "uq_membership_active_user_event", "event_id", "user_id",
            unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE,
        ),
        Index(
            "uq_membership_active_leader", "team_id",
            unique=True, sqlite_where=_ACTIVE_LEADER, postgresql_where=_ACTIVE_LEADER,
        ),
        Index("ix_membership_team_status", "team_id", "status"),
    )

    id: int = Column(Integer, primary_key=True)
    team_id: int = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id: int = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    role: str = Column(String(20), nullable=False, default=MembershipRole.MEMBER)
    status: str = Column(String(20), nullable=False, default=MembershipStatus.ACTIVE)
    joined_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    left_at: datetime = Column(DateTime(timezone=True), nullable=True)
    updated_at: datetime = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    team = relationship("Team", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    @property
    def is_leader(self) -> bool:
        return self.role == MembershipRole.LEADER

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    def __repr__(self):
        return f"<TeamMembership(team_id={self.team_id}, user_id={self.user_id}, role='{self.role}', status='{self.status}')>"
