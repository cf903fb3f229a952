# ctf_teams/schemas/response.py
from pydantic import BaseModel, Field
from typing import Any, Optional

class ErrorDetail(BaseModel):
    """
    ErrorDetail — детальное описание ошибки (код, сообщение, детали).
    """
    code: str = Field(..., examples=["team_full"], description="Код ошибки (machine-readable)")
    message: str = Field(..., examples=["Team '0xDEADBEEF' is full."], description="Сообщение об ошибке")
    details: Optional[Any] = Field(None, examples=[{"team_id": 7}], description="Контекст: команда, пользователь")

class ErrorResponse(BaseModel):
    """
    ErrorResponse — стандартная структура для ошибки.
    """
    error: ErrorDetail
