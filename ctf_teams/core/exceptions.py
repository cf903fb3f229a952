# ctf_teams/core/exceptions.py
from typing import Any, Optional


class BaseAppException(Exception):
    """Базовый класс для всех кастомных исключений приложения."""
    def __init__(self, message: str = "App exception"):
        super().__init__(message)
        self.message = message


class TeamLifecycleError(BaseAppException):
    """
    Корень таксономии ошибок жизненного цикла команд.
    code — стабильный машинный код, status_code — HTTP-статус на границе API,
    details — контекст (команда, пользователь) для отображения без повторных запросов.
    """
    code: str = "team_lifecycle_error"
    status_code: int = 400
    default_message: str = "Team lifecycle error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        super().__init__(message or self.default_message)
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details or None}

# ==== Валидация ====

class ValidationError(TeamLifecycleError):
    """Некорректный ввод: границы размера, обязательные поля, сроки."""
    code = "validation_error"
    status_code = 422
    default_message = "Validation error"

class CapacityError(ValidationError):
    """Новый max_size меньше текущего размера команды."""
    code = "capacity_error"
    default_message = "Team capacity cannot be reduced below its current size"

class DuplicateCaptainError(ValidationError):
    """Противоречивое указание капитана в запросе на создание команды."""
    code = "duplicate_captain"
    default_message = "Conflicting captain selection"

class IneligibleUserError(TeamLifecycleError):
    """Пользователь не является допустимым кандидатом для события."""
    code = "ineligible_user"
    status_code = 422
    default_message = "User is not an eligible candidate for this event"

# ==== Инварианты членства ====

class AlreadyOnTeamError(TeamLifecycleError):
    """У пользователя уже есть активное членство в событии."""
    code = "already_on_team"
    status_code = 409
    default_message = "User already belongs to a team in this event"

class TeamFullError(TeamLifecycleError):
    """Команда заполнена."""
    code = "team_full"
    status_code = 409
    default_message = "Team is full"

class LeaderRemovalError(TeamLifecycleError):
    """Попытка удалить единственного лидера команды."""
    code = "leader_removal"
    status_code = 409
    default_message = "The team leader cannot be removed; reassign leadership first"

class NotATeamMemberError(TeamLifecycleError):
    """Пользователь не состоит в команде."""
    code = "not_a_team_member"
    status_code = 404
    default_message = "User is not an active member of this team"

# ==== Заявки и приглашения ====

class DuplicatePendingRequestError(TeamLifecycleError):
    code = "duplicate_pending_request"
    status_code = 409
    default_message = "A pending join request already exists for this team"

class DuplicatePendingInvitationError(TeamLifecycleError):
    code = "duplicate_pending_invitation"
    status_code = 409
    default_message = "A pending invitation already exists for this user"

class InvalidStateTransitionError(TeamLifecycleError):
    """Действие над объектом в неподходящем состоянии (не pending, распущенная команда и т.п.)."""
    code = "invalid_state_transition"
    status_code = 409
    default_message = "Invalid state transition"

class TeamNotJoinableError(InvalidStateTransitionError):
    """Команда не принимает участников (status != active)."""
    code = "team_not_joinable"
    default_message = "Team is not accepting members"

class InvitationExpiredError(TeamLifecycleError):
    code = "invitation_expired"
    status_code = 410
    default_message = "Invitation has expired"

# ==== Авторизация ====

class ForbiddenError(TeamLifecycleError):
    """Действие выполняет не тот участник (не лидер, не приглашённый и т.п.)."""
    code = "forbidden"
    status_code = 403
    default_message = "You are not allowed to perform this action"

# ==== NotFound ====

class NotFoundError(TeamLifecycleError):
    """Ошибка отсутствия ресурса."""
    code = "not_found"
    status_code = 404
    default_message = "Resource not found"

class EventNotFoundError(NotFoundError):
    code = "event_not_found"
    default_message = "Event not found"

class TeamNotFoundError(NotFoundError):
    code = "team_not_found"
    default_message = "Team not found"

class UserNotFoundError(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"

class JoinRequestNotFoundError(NotFoundError):
    code = "join_request_not_found"
    default_message = "Join request not found"

class InvitationNotFoundError(NotFoundError):
    code = "invitation_not_found"
    default_message = "Invitation not found"
