from http import HTTPStatus

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from ctf_teams.core.settings import settings
from ctf_teams.crud import membership as ledger

TEAMS_ENDPOINT = f"{settings.API_V1_STR}/teams"


def _create(client, headers, event, **extra):
    payload = {"name": "Rop Chainers", "description": "rev", "min_size": 1, "max_size": 4, "event_id": event.id}
    payload.update(extra)
    return client.post(f"{TEAMS_ENDPOINT}/", headers=headers, json=payload)


def test_create_team(client: TestClient, auth, event, players):
    response = _create(client, auth(players["leader"]), event, member_user_ids=[players["alice"].id])

    assert response.status_code == HTTPStatus.CREATED, response.text
    data = response.json()
    assert data["leader_id"] == players["leader"].id
    assert data["current_size"] == 2
    assert data["is_full"] is False
    assert data["invite_code"]


def test_create_team_unauthenticated(client: TestClient, event):
    response = client.post(f"{TEAMS_ENDPOINT}/", json={"name": "x", "event_id": event.id})
    assert response.status_code == HTTPStatus.UNAUTHORIZED


def test_inactive_user_is_forbidden(client: TestClient, auth, make_user, event):
    sleeper = make_user("sleeper", is_active=False)
    response = client.get(f"{TEAMS_ENDPOINT}/", headers=auth(sleeper))
    assert response.status_code == HTTPStatus.FORBIDDEN


def test_validation_error_shape(client: TestClient, auth, event, players):
    response = _create(client, auth(players["leader"]), event, min_size=3, max_size=2)

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    error = response.json()["error"]
    assert error["code"] == "validation_error"
    assert "min_size" in error["message"]


def test_ineligible_member_names_user(client: TestClient, auth, event, players, outsider):
    response = _create(client, auth(players["leader"]), event, member_user_ids=[outsider.id])

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    error = response.json()["error"]
    assert error["code"] == "ineligible_user"
    assert error["details"]["username"] == "outsider"


def test_list_and_my_teams(client: TestClient, auth, event, players, make_team):
    make_team(name="Alpha", captain=players["leader"], members=[players["alice"]])
    make_team(name="Beta", captain=players["bob"])

    listed = client.get(f"{TEAMS_ENDPOINT}/", headers=auth(players["carol"]), params={"event_id": event.id})
    mine = client.get(f"{TEAMS_ENDPOINT}/my-teams", headers=auth(players["alice"]))

    assert [t["name"] for t in listed.json()] == ["Alpha", "Beta"]
    assert [t["name"] for t in mine.json()] == ["Alpha"]
    assert "invite_code" not in listed.json()[0]


def test_get_missing_team(client: TestClient, auth, players):
    response = client.get(f"{TEAMS_ENDPOINT}/999", headers=auth(players["leader"]))
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()["error"]["code"] == "team_not_found"


def test_update_requires_leader(client: TestClient, auth, players, make_team):
    team = make_team(captain=players["leader"], members=[players["alice"]])

    forbidden = client.patch(f"{TEAMS_ENDPOINT}/{team.id}", headers=auth(players["alice"]), json={"name": "Hijack"})
    allowed = client.patch(f"{TEAMS_ENDPOINT}/{team.id}", headers=auth(players["leader"]), json={"max_size": 5})

    assert forbidden.status_code == HTTPStatus.FORBIDDEN
    assert forbidden.json()["error"]["code"] == "forbidden"
    assert allowed.status_code == HTTPStatus.OK
    assert allowed.json()["max_size"] == 5


def test_shrink_below_size_is_capacity_error(client: TestClient, auth, players, make_team):
    team = make_team(captain=players["leader"], members=[players["alice"], players["bob"]])
    response = client.patch(f"{TEAMS_ENDPOINT}/{team.id}", headers=auth(players["leader"]), json={"max_size": 2})
    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["error"]["code"] == "capacity_error"


def test_disband(client: TestClient, auth, players, make_team, notifier):
    team = make_team(captain=players["leader"], members=[players["alice"]])

    response = client.delete(f"{TEAMS_ENDPOINT}/{team.id}", headers=auth(players["leader"]))

    assert response.status_code == HTTPStatus.OK
    assert response.json()["status"] == "disbanded"
    assert response.json()["current_size"] == 0
    assert notifier.kinds() == ["team.disbanded"]


def test_members_endpoints(client: TestClient, auth, db: Session, players, make_team):
    team = make_team(captain=players["leader"])
    headers = auth(players["leader"])

    added = client.post(f"{TEAMS_ENDPOINT}/{team.id}/members", headers=headers, json={"user_id": players["alice"].id})
    assert added.status_code == HTTPStatus.CREATED, added.text

    members = client.get(f"{TEAMS_ENDPOINT}/{team.id}/members", headers=headers).json()
    assert [m["user_id"] for m in members] == [players["leader"].id, players["alice"].id]

    leader_removal = client.delete(f"{TEAMS_ENDPOINT}/{team.id}/members/{players['leader'].id}", headers=headers)
    assert leader_removal.status_code == HTTPStatus.CONFLICT
    assert leader_removal.json()["error"]["code"] == "leader_removal"

    handoff = client.post(f"{TEAMS_ENDPOINT}/{team.id}/leader", headers=headers, json={"user_id": players["alice"].id})
    assert handoff.status_code == HTTPStatus.OK
    assert handoff.json()["role"] == "leader"

    left = client.post(f"{TEAMS_ENDPOINT}/{team.id}/leave", headers=headers)
    assert left.status_code == HTTPStatus.OK
    assert left.json()["status"] == "inactive"
    assert ledger.current_size(db, team.id) == 1


def test_add_member_to_full_team(client: TestClient, auth, players, make_team):
    team = make_team(captain=players["leader"], max_size=1)
    response = client.post(
        f"{TEAMS_ENDPOINT}/{team.id}/members", headers=auth(players["leader"]), json={"user_id": players["alice"].id},
    )
    assert response.status_code == HTTPStatus.CONFLICT
    assert response.json()["error"]["code"] == "team_full"


def test_join_with_code_and_stats(client: TestClient, auth, players, make_team):
    team = make_team(captain=players["leader"], is_invite_only=True)
    headers = auth(players["leader"])

    code = client.post(f"{TEAMS_ENDPOINT}/{team.id}/invite-code", headers=headers).json()["invite_code"]
    joined = client.post(f"{TEAMS_ENDPOINT}/join", headers=auth(players["bob"]), json={"invite_code": code})
    assert joined.status_code == HTTPStatus.CREATED, joined.text

    again = client.post(f"{TEAMS_ENDPOINT}/join", headers=auth(players["bob"]), json={"invite_code": code})
    assert again.status_code == HTTPStatus.CONFLICT
    assert again.json()["error"]["code"] == "already_on_team"

    stats = client.get(f"{TEAMS_ENDPOINT}/{team.id}/stats", headers=headers).json()
    assert stats["current_size"] == 2
    assert [m["username"] for m in stats["members"]] == ["leader", "bob"]
