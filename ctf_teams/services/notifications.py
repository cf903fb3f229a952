# ctf_teams/services/notifications.py
import httpx
from typing import Any, Dict, Iterable, Optional
from ctf_teams.core.settings import settings
import logging

logger = logging.getLogger("CTFTeams.Notifications")


class NotificationKind:
    INVITATION_SENT = "invitation.sent"
    INVITATION_ACCEPTED = "invitation.accepted"
    INVITATION_DECLINED = "invitation.declined"
    INVITATION_CANCELLED = "invitation.cancelled"
    JOIN_REQUEST_SUBMITTED = "join_request.submitted"
    JOIN_REQUEST_APPROVED = "join_request.approved"
    JOIN_REQUEST_REJECTED = "join_request.rejected"
    TEAM_DISBANDED = "team.disbanded"


class NotificationDispatcher:
    """
    Best-effort уведомления: всегда пишет в лог и, если задан webhook, шлёт JSON.
    Ошибки доставки логируются и не пробрасываются — изменение состава уже закоммичено.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    def notify(self, kind: str, recipient_ids: Iterable[Optional[int]], payload: Optional[Dict[str, Any]] = None) -> bool:
        recipients = sorted({r for r in recipient_ids if r is not None})
        if not recipients:
            return True
        logger.info(f"Notification {kind} -> users {recipients}")
        if not self.webhook_url:
            return True

        body = {"kind": kind, "recipients": recipients, "payload": payload or {}}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.webhook_url, json=body)
                response.raise_for_status()
            return True
        except httpx.TimeoutException:
            logger.warning(f"Timeout while delivering {kind} to {self.webhook_url}")
        except httpx.HTTPError as e:
            logger.warning(f"Failed to deliver {kind} to {self.webhook_url}: {e.__class__.__name__}: {e}")
        return False


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        webhook_url=settings.NOTIFICATION_WEBHOOK_URL,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
