#ctf_teams/models/join_request.py
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, utcnow


class JoinRequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    DECISIONS = (APPROVED, REJECTED)


_PENDING = text("status = 'pending'")


class JoinRequest(Base):
    """
    JoinRequest — заявка пользователя на вступление в команду.
    Отвечается ровно один раз; не удаляется (аудит).
    responded_by = NULL при терминальном статусе означает системное решение
    (причина — в response_reason).
    """
    __tablename__ = "join_requests"
    __table_args__ = (
        Index(
            "uq_join_request_pending", "team_id", "requested_by",
            unique=True, sqlite_where=_PENDING, postgresql_where=_PENDING,
        ),
    )

    id: int = Column(Integer, primary_key=True)
    team_id: int = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message: str = Column(String(500), nullable=True, default="")
    status: str = Column(String(20), nullable=False, default=JoinRequestStatus.PENDING, index=True)
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    responded_at: datetime = Column(DateTime(timezone=True), nullable=True)
    responded_by: int = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    response_reason: str = Column(String(64), nullable=True, doc="Причина системного решения")

    team = relationship("Team", back_populates="join_requests")
    requester = relationship("User", foreign_keys=[requested_by])
    responder = relationship("User", foreign_keys=[responded_by])

    @property
    def is_pending(self) -> bool:
        return self.status == JoinRequestStatus.PENDING

    def mark_responded(self, status: str, actor_id: Optional[int], reason: Optional[str] = None) -> None:
        self.status = status
        self.responded_at = utcnow()
        self.responded_by = actor_id
        self.response_reason = reason

    def __repr__(self):
        return f"<JoinRequest(id={self.id}, team_id={self.team_id}, requested_by={self.requested_by}, status='{self.status}')>"
