# ctf_teams/schemas/user.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class UserRead(BaseModel):
    """
    UserRead — пользователь в списках кандидатов и участников.
    """
    id: int
    username: str = Field(..., examples=["john_doe"])
    email: str = Field(..., examples=["john.doe@example.com"])
    full_name: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)
