#ctf_teams/models/user.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from ctf_teams.models.base import Base, utcnow

class User(Base):
    """
    User — аккаунт участника. Аутентификацией владеет внешний слой,
    здесь хранится только то, что нужно для правил членства.
    """
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)
    username: str = Column(String(50), unique=True, nullable=False, index=True, doc="Уникальный username")
    email: str = Column(String(255), unique=True, nullable=False, index=True, doc="Email")
    full_name: str = Column(String(128), nullable=True, doc="Полное имя")
    is_active: bool = Column(Boolean, default=True, nullable=False, doc="Аккаунт активен")
    is_superuser: bool = Column(Boolean, default=False, nullable=False, doc="Администратор платформы")
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, nullable=False, doc="Дата создания")
    updated_at: datetime = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False, doc="Дата обновления")

    # --- Связи ---
    registrations = relationship("EventRegistration", back_populates="user", cascade="all, delete-orphan")
    memberships = relationship("TeamMembership", back_populates="user", lazy="dynamic")

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}')>"
