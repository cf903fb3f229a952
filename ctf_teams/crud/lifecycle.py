# ctf_teams/crud/lifecycle.py
"""
Lifecycle Coordinator — фасад для API-слоя.

Своего состояния нет: он применяет правила авторизации, вызывает владельцев
данных (реестр команд, ledger, заявки, приглашения) и рассылает уведомления
только после коммита. Проверки вместимости и членства повторяются в момент фиксации,
а не только в момент исходного запроса.
"""
from datetime import datetime
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ctf_teams.core.exceptions import (
    ForbiddenError,
    IneligibleUserError,
    TeamNotJoinableError,
)
from ctf_teams.models.invitation import Invitation, InvitationStatus
from ctf_teams.models.join_request import JoinRequest, JoinRequestStatus
from ctf_teams.models.membership import MembershipRole, TeamMembership
from ctf_teams.models.team import Team, TeamStatus
from ctf_teams.models.user import User
from ctf_teams.crud import invitation as invitations
from ctf_teams.crud import join_request as join_requests
from ctf_teams.crud import membership as ledger
from ctf_teams.crud import team as registry
from ctf_teams.crud.eligibility import is_eligible
from ctf_teams.crud.policies import assert_can_manage_team, assert_can_remove_member
from ctf_teams.crud.respondable import AUTO_RESOLVE_CODES, AUTO_RESOLVE_ERRORS
from ctf_teams.services.notifications import NotificationDispatcher, NotificationKind, get_dispatcher

logger = logging.getLogger("CTFTeams.Lifecycle")


class LifecycleCoordinator:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or get_dispatcher()

    # ==== Команды ====

    def create_team(self, data: dict, actor: User) -> Team:
        team = registry.create_team(self.db, data, actor)
        logger.info(f"User {actor.id} created team {team.id} '{team.name}'")
        return team

    def update_team(self, team_id: int, data: dict, actor: User) -> Team:
        team = registry.get_team(self.db, team_id)
        assert_can_manage_team(team, actor, "edit this team")
        team, affected = registry.update_team_with_cascade(self.db, team_id, data)
        if affected:
            self._notify_disbanded(team, affected)
        return team

    def disband_team(self, team_id: int, actor: User) -> Team:
        return self.update_team(team_id, {"status": TeamStatus.DISBANDED}, actor)

    def regenerate_invite_code(self, team_id: int, actor: User) -> Team:
        team = registry.get_team(self.db, team_id)
        assert_can_manage_team(team, actor, "regenerate the invite code")
        return registry.regenerate_invite_code(self.db, team_id)

    def _notify_disbanded(self, team: Team, affected: dict) -> None:
        recipients = affected.get("members", []) + affected.get("requesters", []) + affected.get("invitees", [])
        self.notifier.notify(NotificationKind.TEAM_DISBANDED, recipients, {"team_id": team.id, "team_name": team.name})

    # ==== Состав ====

    def add_member(self, team_id: int, user_id: int, actor: User, role: str = MembershipRole.MEMBER) -> TeamMembership:
        team = registry.get_team(self.db, team_id)
        assert_can_manage_team(team, actor, "add members")
        if not is_eligible(self.db, team.event_id, user_id, exclude_team_id=team.id):
            raise IneligibleUserError(
                f"User {user_id} is not an eligible candidate for the event of team '{team.name}'.",
                user_id=user_id, team_id=team.id,
            )
        return ledger.add_member(self.db, team_id, user_id, role)

    def remove_member(self, team_id: int, user_id: int, actor: User) -> TeamMembership:
        team = registry.get_team(self.db, team_id)
        assert_can_remove_member(team, actor, user_id)
        return ledger.remove_member(self.db, team_id, user_id)

    def leave_team(self, team_id: int, actor: User) -> TeamMembership:
        return ledger.leave_team(self.db, team_id, actor.id)

    def reassign_leader(self, team_id: int, new_leader_user_id: int, actor: User) -> TeamMembership:
        team = registry.get_team(self.db, team_id)
        assert_can_manage_team(team, actor, "reassign leadership")
        return ledger.reassign_leader(self.db, team_id, new_leader_user_id)

    def join_with_invite_code(self, invite_code: str, actor: User) -> TeamMembership:
        """
        Вступить по коду приглашения: код даёт право входа и в приватную команду,
        но правила кандидата и вместимости те же.
        """
        team = registry.get_team_by_invite_code(self.db, invite_code)
        if team.status != TeamStatus.ACTIVE:
            raise TeamNotJoinableError(f"Team '{team.name}' is not accepting members.", team_id=team.id)
        if not is_eligible(self.db, team.event_id, actor.id, exclude_team_id=team.id):
            raise IneligibleUserError(
                f"User '{actor.username}' is not an eligible candidate for the event of team '{team.name}'.",
                user_id=actor.id, team_id=team.id,
            )
        membership = ledger.add_member(self.db, team.id, actor.id, MembershipRole.MEMBER)
        logger.info(f"User {actor.id} joined team {team.id} with invite code")
        return membership

    # ==== Заявки ====

    def submit_join_request(self, team_id: int, actor: User, message: Optional[str] = None) -> JoinRequest:
        request = join_requests.submit(self.db, team_id, actor.id, message)
        team = request.team
        self.notifier.notify(
            NotificationKind.JOIN_REQUEST_SUBMITTED, [team.leader_id],
            {"request_id": request.id, "team_id": team.id, "requested_by": actor.id},
        )
        return request

    def respond_join_request(self, request_id: int, decision: str, actor: User) -> JoinRequest:
        try:
            request = join_requests.respond(self.db, request_id, decision, actor)
        except AUTO_RESOLVE_ERRORS as e:
            request = join_requests.get_request(self.db, request_id)
            if request.status == JoinRequestStatus.REJECTED and request.responded_by is None:
                self._notify_request(request, NotificationKind.JOIN_REQUEST_REJECTED, reason=e.code)
            raise
        kind = (
            NotificationKind.JOIN_REQUEST_APPROVED
            if request.status == JoinRequestStatus.APPROVED
            else NotificationKind.JOIN_REQUEST_REJECTED
        )
        self._notify_request(request, kind)
        return request

    def approve_request(self, request_id: int, actor: User) -> JoinRequest:
        return self.respond_join_request(request_id, JoinRequestStatus.APPROVED, actor)

    def bulk_respond_requests(self, request_ids: List[int], decision: str, actor: User) -> join_requests.BulkResult:
        result = join_requests.bulk_respond(self.db, request_ids, decision, actor)
        for request_id in result.successful:
            request = join_requests.get_request(self.db, request_id)
            self._notify_request(
                request,
                NotificationKind.JOIN_REQUEST_APPROVED if decision == JoinRequestStatus.APPROVED
                else NotificationKind.JOIN_REQUEST_REJECTED,
            )
        for failure in result.failed:
            if failure.code not in AUTO_RESOLVE_CODES:
                continue
            request = join_requests.get_request(self.db, failure.request_id)
            if request.status == JoinRequestStatus.REJECTED and request.responded_by is None:
                self._notify_request(request, NotificationKind.JOIN_REQUEST_REJECTED, reason=failure.code)
        return result

    def withdraw_join_request(self, request_id: int, actor: User) -> JoinRequest:
        return join_requests.withdraw(self.db, request_id, actor)

    def _notify_request(self, request: JoinRequest, kind: str, reason: Optional[str] = None) -> None:
        self.notifier.notify(
            kind, [request.requested_by],
            {"request_id": request.id, "team_id": request.team_id, "reason": reason or request.response_reason},
        )

    # ==== Приглашения ====

    def send_invitation(
        self,
        team_id: int,
        invited_user_email: str,
        actor: User,
        message: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Invitation:
        invitation = invitations.send(self.db, team_id, invited_user_email, message, expires_at, actor)
        self.notifier.notify(
            NotificationKind.INVITATION_SENT, [invitation.invited_user_id],
            {
                "invitation_id": invitation.id,
                "team_id": invitation.team_id,
                "team_name": invitation.team.name,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )
        return invitation

    def respond_invitation(self, invitation_id: int, decision: str, actor: User) -> Invitation:
        try:
            invitation = invitations.respond(self.db, invitation_id, decision, actor)
        except AUTO_RESOLVE_ERRORS as e:
            invitation = invitations.get_invitation(self.db, invitation_id)
            if invitation.status == InvitationStatus.DECLINED and invitation.responded_by is None:
                self._notify_invitation(invitation, NotificationKind.INVITATION_DECLINED, reason=e.code)
            raise
        kind = (
            NotificationKind.INVITATION_ACCEPTED
            if invitation.status == InvitationStatus.ACCEPTED
            else NotificationKind.INVITATION_DECLINED
        )
        self._notify_invitation(invitation, kind)
        return invitation

    def cancel_invitation(self, invitation_id: int, actor: User) -> Invitation:
        invitation = invitations.cancel(self.db, invitation_id, actor)
        self.notifier.notify(
            NotificationKind.INVITATION_CANCELLED, [invitation.invited_user_id],
            {"invitation_id": invitation.id, "team_id": invitation.team_id},
        )
        return invitation

    def _notify_invitation(self, invitation: Invitation, kind: str, reason: Optional[str] = None) -> None:
        # Инвайтеру — о решении; приглашённому — о системном отказе.
        recipients = [invitation.invited_by]
        if reason:
            recipients.append(invitation.invited_user_id)
        self.notifier.notify(
            kind, recipients,
            {"invitation_id": invitation.id, "team_id": invitation.team_id, "reason": reason or invitation.response_reason},
        )

    # ==== Чтение с правами ====

    def assert_can_view_requests(self, team_id: int, actor: User) -> Team:
        team = registry.get_team(self.db, team_id)
        assert_can_manage_team(team, actor, "view join requests")
        return team

    def assert_admin(self, actor: User) -> None:
        if not actor.is_superuser:
            raise ForbiddenError("Administrator role required.", user_id=actor.id)
