from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from ctf_teams.crud import invitation as invitations
from ctf_teams.crud import membership as ledger
from ctf_teams.core.exceptions import (
    AlreadyOnTeamError,
    DuplicatePendingInvitationError,
    ForbiddenError,
    IneligibleUserError,
    InvalidStateTransitionError,
    InvitationExpiredError,
    TeamFullError,
    ValidationError,
)
from ctf_teams.models.base import as_utc, utcnow
from ctf_teams.models.invitation import Invitation, InvitationStatus


@pytest.fixture
def team(make_team, players):
    return make_team(captain=players["leader"], members=[players["alice"]], max_size=3)


def _send(db, team, user, sender, **kwargs):
    return invitations.send(db, team.id, user.email, kwargs.get("message"), kwargs.get("expires_at"), sender)


def _backdate(db: Session, invitation: Invitation) -> None:
    invitation.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()


def test_send_with_default_expiry(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"], message="join us")

    assert invitation.status == InvitationStatus.PENDING
    assert invitation.invited_user_id == players["bob"].id
    assert invitation.invited_by == players["leader"].id
    remaining = as_utc(invitation.expires_at) - utcnow()
    assert timedelta(hours=71) < remaining <= timedelta(hours=72)


def test_expiry_in_past_is_rejected_at_creation(db: Session, team, players):
    with pytest.raises(ValidationError):
        _send(db, team, players["bob"], players["leader"], expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
    assert db.query(Invitation).count() == 0


def test_only_leader_or_admin_sends(db: Session, team, players, admin):
    with pytest.raises(ForbiddenError):
        _send(db, team, players["bob"], players["alice"])
    assert _send(db, team, players["bob"], admin).invited_by == admin.id


def test_invitee_must_be_candidate(db: Session, team, players, outsider, make_team):
    make_team(name="Other", captain=players["carol"])
    with pytest.raises(IneligibleUserError):
        _send(db, team, outsider, players["leader"])
    with pytest.raises(IneligibleUserError):
        _send(db, team, players["carol"], players["leader"])


def test_full_team_cannot_invite(db: Session, players, make_team):
    full = make_team(name="Full", captain=players["dave"], max_size=1)
    with pytest.raises(TeamFullError):
        _send(db, full, players["bob"], players["dave"])


def test_one_live_invitation_per_user(db: Session, team, players):
    first = _send(db, team, players["bob"], players["leader"])
    with pytest.raises(DuplicatePendingInvitationError):
        _send(db, team, players["bob"], players["leader"])

    _backdate(db, first)
    second = _send(db, team, players["bob"], players["leader"])

    assert second.id != first.id
    db.refresh(first)
    assert first.status == InvitationStatus.EXPIRED


def test_accept(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])

    accepted = invitations.respond(db, invitation.id, InvitationStatus.ACCEPTED, players["bob"])

    assert accepted.status == InvitationStatus.ACCEPTED
    assert accepted.responded_by == players["bob"].id
    assert ledger.get_team_membership(db, team.id, players["bob"].id) is not None
    assert ledger.current_size(db, team.id) == 3


def test_decline(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])
    declined = invitations.respond(db, invitation.id, InvitationStatus.DECLINED, players["bob"])
    assert declined.status == InvitationStatus.DECLINED
    assert ledger.current_size(db, team.id) == 2


def test_only_invitee_responds(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])
    with pytest.raises(ForbiddenError):
        invitations.respond(db, invitation.id, InvitationStatus.ACCEPTED, players["leader"])
    assert invitations.get_invitation(db, invitation.id).is_pending


@pytest.mark.parametrize("decision", [InvitationStatus.ACCEPTED, InvitationStatus.DECLINED])
def test_expired_invitation_fails_any_response(db: Session, team, players, decision):
    invitation = _send(db, team, players["bob"], players["leader"])
    _backdate(db, invitation)
    assert invitation.is_expired

    with pytest.raises(InvitationExpiredError):
        invitations.respond(db, invitation.id, decision, players["bob"])

    db.refresh(invitation)
    assert invitation.status == InvitationStatus.EXPIRED
    assert ledger.get_team_membership(db, team.id, players["bob"].id) is None
    with pytest.raises(InvitationExpiredError):
        invitations.respond(db, invitation.id, decision, players["bob"])


def test_second_response_fails(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])
    invitations.respond(db, invitation.id, InvitationStatus.ACCEPTED, players["bob"])
    with pytest.raises(InvalidStateTransitionError):
        invitations.respond(db, invitation.id, InvitationStatus.DECLINED, players["bob"])
    assert ledger.current_size(db, team.id) == 3


def test_accept_when_full_declines_automatically(db: Session, team, players):
    first = _send(db, team, players["bob"], players["leader"])
    second = _send(db, team, players["carol"], players["leader"])
    invitations.respond(db, first.id, InvitationStatus.ACCEPTED, players["bob"])

    with pytest.raises(TeamFullError):
        invitations.respond(db, second.id, InvitationStatus.ACCEPTED, players["carol"])

    second = invitations.get_invitation(db, second.id)
    assert second.status == InvitationStatus.DECLINED
    assert second.responded_by is None
    assert second.response_reason == "team_full"


def test_accept_after_joining_elsewhere(db: Session, team, players, make_team):
    invitation = _send(db, team, players["bob"], players["leader"])
    make_team(name="Other", captain=players["dave"], members=[players["bob"]])

    with pytest.raises(AlreadyOnTeamError):
        invitations.respond(db, invitation.id, InvitationStatus.ACCEPTED, players["bob"])
    assert invitations.get_invitation(db, invitation.id).response_reason == "already_on_team"


def test_cancel(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])
    with pytest.raises(ForbiddenError):
        invitations.cancel(db, invitation.id, players["bob"])

    cancelled = invitations.cancel(db, invitation.id, players["leader"])
    assert cancelled.status == InvitationStatus.CANCELLED
    with pytest.raises(InvalidStateTransitionError):
        invitations.cancel(db, invitation.id, players["leader"])


def test_cancel_expired(db: Session, team, players):
    invitation = _send(db, team, players["bob"], players["leader"])
    _backdate(db, invitation)
    with pytest.raises(InvitationExpiredError):
        invitations.cancel(db, invitation.id, players["leader"])


def test_reads_normalize_expiry(db: Session, team, players):
    live = _send(db, team, players["bob"], players["leader"])
    stale = _send(db, team, players["carol"], players["leader"])
    _backdate(db, stale)

    assert [i.id for i in invitations.pending_for_user(db, players["carol"].id)] == []
    assert [i.id for i in invitations.pending_for_user(db, players["bob"].id)] == [live.id]
    expired = invitations.list_team_invitations(db, team.id, status=InvitationStatus.EXPIRED)
    assert [i.id for i in expired] == [stale.id]
    assert len(invitations.list_all_invitations(db)) == 2
