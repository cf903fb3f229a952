# ctf_teams/schemas/team.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime


class TeamBase(BaseModel):
    """
    TeamBase — базовая схема команды.
    """
    name: str = Field(..., examples=["0xDEADBEEF"], description="Название команды (уникально в событии)")
    description: Optional[str] = Field("", examples=["Pwn & crypto"], description="Описание команды")
    min_size: int = Field(1, description="Минимальный размер")
    max_size: Optional[int] = Field(None, description="Максимальный размер (по умолчанию — DEFAULT_MAX_TEAM_SIZE)")
    is_invite_only: bool = Field(False, description="Приватная команда: вступление по приглашению или коду")


class TeamCreate(TeamBase):
    """
    TeamCreate — создание команды вместе с ростером.
    Капитан по умолчанию — текущий пользователь.
    """
    event_id: int = Field(..., description="ID события")
    captain_user_id: Optional[int] = Field(None, description="ID капитана (только админ может назначить другого)")
    captain_email: Optional[EmailStr] = Field(None, description="Email капитана (альтернатива captain_user_id)")
    member_user_ids: List[int] = Field(default_factory=list, description="ID участников")
    member_emails: List[EmailStr] = Field(default_factory=list, description="Email участников")


class TeamUpdate(BaseModel):
    """
    TeamUpdate — изменение настроек команды (все поля опциональны).
    status=disbanded распускает команду.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    is_invite_only: Optional[bool] = None
    status: Optional[str] = Field(None, examples=["active", "inactive", "disbanded"])
    leader_id: Optional[int] = Field(None, description="Передать лидерство участнику")


class TeamRead(TeamBase):
    id: int
    max_size: int
    event_id: int
    status: str
    current_size: int
    leader_id: Optional[int] = None
    leader_name: Optional[str] = None
    is_full: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TeamDetail(TeamRead):
    """
    TeamDetail — команда с кодом приглашения (видят лидер и админ).
    """
    invite_code: str


class MemberRead(BaseModel):
    id: int
    team_id: int
    user_id: int
    role: str
    status: str
    joined_at: datetime
    left_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MemberAdd(BaseModel):
    user_id: int = Field(..., description="ID пользователя")
    role: str = Field("member", examples=["member", "leader"], description="Роль; leader передаёт лидерство")


class LeaderReassign(BaseModel):
    user_id: int = Field(..., description="ID нового лидера (уже участник команды)")


class JoinWithCode(BaseModel):
    invite_code: str = Field(..., min_length=1, description="Код приглашения команды")


class TeamMemberStats(BaseModel):
    user_id: int
    username: str
    role: str
    joined_at: datetime


class TeamStats(BaseModel):
    team_id: int
    team_name: str
    status: str
    current_size: int
    max_size: int
    min_size: int
    available_slots: int
    meets_minimum: bool
    leader_id: Optional[int] = None
    members: List[TeamMemberStats] = Field(default_factory=list)
