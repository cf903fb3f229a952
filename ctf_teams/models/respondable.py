#ctf_teams/models/respondable.py
"""
Общая возможность "ожидает ответа" у JoinRequest и Invitation.

Это протокол, а не базовый класс: правила истечения срока и авторизации
у двух вариантов разные и остаются в их собственных модулях.
"""
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Respondable(Protocol):
    id: int
    status: str

    @property
    def is_pending(self) -> bool:
        ...

    def mark_responded(self, status: str, actor_id: Optional[int], reason: Optional[str] = None) -> None:
        ...
