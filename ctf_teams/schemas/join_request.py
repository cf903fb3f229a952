# ctf_teams/schemas/join_request.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime


class JoinRequestCreate(BaseModel):
    message: Optional[str] = Field("", max_length=500, description="Сообщение лидеру")


class JoinRequestRespond(BaseModel):
    status: Literal["approved", "rejected"] = Field(..., description="Решение по заявке")


class JoinRequestRead(BaseModel):
    id: int
    team_id: int
    requested_by: int
    message: Optional[str] = None
    status: str
    created_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[int] = Field(None, description="NULL при терминальном статусе — системное решение")
    response_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BulkActionRequest(BaseModel):
    """
    BulkActionRequest — ответ на несколько заявок сразу (каждая обрабатывается независимо).
    """
    action: Literal["approve", "reject"]
    request_ids: List[int] = Field(..., min_length=1)


class BulkFailureRead(BaseModel):
    request_id: int
    code: str
    message: str


class BulkActionResult(BaseModel):
    message: str
    successful: List[int]
    failed: List[BulkFailureRead]
    success_count: int
    failed_count: int


class RequestStats(BaseModel):
    team_id: int
    total: int
    pending: int
    approved: int
    rejected: int


class AdminRequestStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    recent: int = Field(..., description="Заявки за последние RECENT_ACTIVITY_DAYS дней")
