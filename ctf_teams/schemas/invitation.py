# ctf_teams/schemas/invitation.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Literal, Optional
from datetime import datetime


class InvitationCreate(BaseModel):
    """
    InvitationCreate — приглашение кандидата события по email.
    """
    invited_user_email: EmailStr = Field(..., examples=["player@example.com"])
    message: Optional[str] = Field("", max_length=500)
    expires_at: Optional[datetime] = Field(None, description="Срок действия; по умолчанию now + INVITATION_TTL_HOURS")


class InvitationRespond(BaseModel):
    status: Literal["accepted", "declined"] = Field(..., description="Ответ приглашённого")


class InvitationRead(BaseModel):
    id: int
    team_id: int
    invited_user_id: int
    invited_by: Optional[int] = None
    message: Optional[str] = None
    expires_at: datetime
    status: str
    is_expired: bool
    created_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[int] = None
    response_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
