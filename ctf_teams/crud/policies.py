# ctf_teams/crud/policies.py
"""Бизнес-авторизация: кто может управлять составом, заявками и приглашениями."""

from ctf_teams.core.exceptions import ForbiddenError
from ctf_teams.models.invitation import Invitation
from ctf_teams.models.team import Team
from ctf_teams.models.user import User


def is_admin(user: User) -> bool:
    return bool(user and user.is_superuser)


def is_team_leader(team: Team, user: User) -> bool:
    return user is not None and team.leader_id == user.id


def assert_can_manage_team(team: Team, user: User, action: str = "manage this team") -> None:
    if is_admin(user) or is_team_leader(team, user):
        return
    raise ForbiddenError(
        f"Only the leader of '{team.name}' or an administrator can {action}.",
        team_id=team.id, user_id=user.id if user else None,
    )


def assert_can_remove_member(team: Team, actor: User, target_user_id: int) -> None:
    # Участник может выйти сам; остальных удаляет лидер или админ.
    if actor.id == target_user_id:
        return
    assert_can_manage_team(team, actor, "remove members")


def assert_can_appoint_captain(actor: User, captain_user_id: int) -> None:
    if captain_user_id == actor.id or is_admin(actor):
        return
    raise ForbiddenError(
        "Only administrators can appoint another user as team captain.",
        user_id=actor.id, captain_user_id=captain_user_id,
    )


def assert_is_invitee(invitation: Invitation, user: User) -> None:
    if invitation.invited_user_id != user.id:
        raise ForbiddenError(
            "Only the invited user can respond to this invitation.",
            invitation_id=invitation.id, user_id=user.id,
        )


def assert_can_cancel_invitation(invitation: Invitation, team: Team, user: User) -> None:
    if invitation.invited_by == user.id or is_admin(user) or is_team_leader(team, user):
        return
    raise ForbiddenError(
        "Only the inviting leader or an administrator can cancel this invitation.",
        invitation_id=invitation.id, user_id=user.id,
    )
