#ctf_teams/models/invitation.py
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, as_utc, utcnow


class InvitationStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    DECISIONS = (ACCEPTED, DECLINED)


_PENDING = text("status = 'pending'")


class Invitation(Base):
    """
    Invitation — приглашение лидера конкретному пользователю, с обязательным сроком.
    is_expired вычисляется (now > expires_at при status=pending) и в БД
    фиксируется лениво, при первом обращении.
    """
    __tablename__ = "invitations"
    __table_args__ = (
        Index(
            "uq_invitation_pending", "team_id", "invited_user_id",
            unique=True, sqlite_where=_PENDING, postgresql_where=_PENDING,
        ),
    )

    id: int = Column(Integer, primary_key=True)
    team_id: int = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_by: int = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message: str = Column(String(500), nullable=True, default="")
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)
    status: str = Column(String(20), nullable=False, default=InvitationStatus.PENDING, index=True)
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    responded_at: datetime = Column(DateTime(timezone=True), nullable=True)
    responded_by: int = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    response_reason: str = Column(String(64), nullable=True)

    team = relationship("Team", back_populates="invitations")
    invited_user = relationship("User", foreign_keys=[invited_user_id])
    inviter = relationship("User", foreign_keys=[invited_by])

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING

    @property
    def is_expired(self) -> bool:
        if self.status == InvitationStatus.EXPIRED:
            return True
        return self.is_pending and utcnow() > as_utc(self.expires_at)

    def mark_responded(self, status: str, actor_id: Optional[int], reason: Optional[str] = None) -> None:
        self.status = status
        self.responded_at = utcnow()
        self.responded_by = actor_id
        self.response_reason = reason

    def __repr__(self):
        return f"<Invitation(id={self.id}, team_id={self.team_id}, invited_user_id={self.invited_user_id}, status='{self.status}')>"
